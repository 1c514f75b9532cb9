"""Translation of raw watchdog events into change events."""

import os

from watchdog.events import (
    FileCreatedEvent,
    FileDeletedEvent,
    FileModifiedEvent,
    FileMovedEvent,
    FileSystemEvent,
)

from remark.watch.types import ChangeEvent, ChangeKind


def decode_path(raw: str | bytes) -> str:
    """Decode a watchdog path, which may be bytes on some platforms."""
    if isinstance(raw, str):
        return raw
    return bytes(raw).decode("utf-8", errors="replace")


def relative_path(raw: str | bytes, root: str) -> str:
    """Convert an absolute event path into a watch list key.

    Args:
        raw: Path reported by watchdog.
        root: Absolute watch root.

    Returns:
        Normalized path relative to the root.
    """
    return os.path.normpath(os.path.relpath(decode_path(raw), root))


def normalize_event(raw_event: FileSystemEvent, root: str) -> list[ChangeEvent]:
    """Transform a raw filesystem event into change events.

    Created files count as modifications because a watched path can only
    be re-created after something replaced it. A move yields a rename for
    the source and a modification for the destination, which covers
    editors that save by renaming a temporary file over the original.

    Args:
        raw_event: Raw watchdog filesystem event.
        root: Absolute watch root.

    Returns:
        Zero or more change events, in the order they should be applied.
    """
    if raw_event.is_directory:
        return []

    src = relative_path(raw_event.src_path, root)

    if isinstance(raw_event, FileMovedEvent):
        dest = relative_path(raw_event.dest_path, root)
        return [
            ChangeEvent(kind=ChangeKind.RENAMED, path=src),
            ChangeEvent(kind=ChangeKind.MODIFIED, path=dest),
        ]
    if isinstance(raw_event, (FileModifiedEvent, FileCreatedEvent)):
        return [ChangeEvent(kind=ChangeKind.MODIFIED, path=src)]
    if isinstance(raw_event, FileDeletedEvent):
        return [ChangeEvent(kind=ChangeKind.REMOVED, path=src)]

    return []
