"""Change event types for watched files."""
import uuid
from datetime import UTC, datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class ChangeKind(str, Enum):
    """Kinds of change reported for a watched file."""

    MODIFIED = "modified"
    RENAMED = "renamed"
    REMOVED = "removed"


class ChangeEvent(BaseModel):
    """Immutable notification that a file changed.

    Attributes:
        id: Unique event identifier (UUID).
        kind: What happened to the file.
        path: File path relative to the watch root.
        timestamp: Event timestamp in UTC.
    """

    model_config = ConfigDict(frozen=True)

    kind: ChangeKind = Field(description="Change kind")
    path: str = Field(description="Path relative to the watch root")
    id: str = Field(default_factory=lambda: str(uuid.uuid4()), description="Unique event identifier (UUID)")
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC), description="Event timestamp (UTC)")
