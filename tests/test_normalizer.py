"""Watchdog event translation tests."""

import os

import pytest
from pydantic import ValidationError
from watchdog.events import (
    DirModifiedEvent,
    FileClosedEvent,
    FileCreatedEvent,
    FileDeletedEvent,
    FileModifiedEvent,
    FileMovedEvent,
)

from remark.watch.normalizer import normalize_event, relative_path
from remark.watch.types import ChangeKind

ROOT = os.path.abspath("/srv/notes")


def under_root(*parts: str) -> str:
    return os.path.join(ROOT, *parts)


def test_modified_file() -> None:
    """A content change becomes a modification of the relative path."""
    events = normalize_event(FileModifiedEvent(under_root("docs", "a.md")), ROOT)
    assert [(e.kind, e.path) for e in events] == [(ChangeKind.MODIFIED, os.path.join("docs", "a.md"))]


def test_created_file_counts_as_modified() -> None:
    """Re-creating a watched file means its content changed."""
    events = normalize_event(FileCreatedEvent(under_root("a.md")), ROOT)
    assert [(e.kind, e.path) for e in events] == [(ChangeKind.MODIFIED, "a.md")]


def test_deleted_file() -> None:
    """Deletion becomes a removal."""
    events = normalize_event(FileDeletedEvent(under_root("a.md")), ROOT)
    assert [(e.kind, e.path) for e in events] == [(ChangeKind.REMOVED, "a.md")]


def test_moved_file_renames_source_and_modifies_destination() -> None:
    """An atomic save (temp file moved over the original) updates the original."""
    events = normalize_event(FileMovedEvent(under_root(".a.md.tmp"), under_root("a.md")), ROOT)
    assert [(e.kind, e.path) for e in events] == [
        (ChangeKind.RENAMED, ".a.md.tmp"),
        (ChangeKind.MODIFIED, "a.md"),
    ]


def test_directory_and_close_events_are_dropped() -> None:
    """Only file content events matter."""
    assert normalize_event(DirModifiedEvent(under_root("docs")), ROOT) == []
    assert normalize_event(FileClosedEvent(under_root("a.md")), ROOT) == []


def test_relative_path_decodes_bytes() -> None:
    """Byte paths from some observers are decoded."""
    assert relative_path(under_root("a.md").encode(), ROOT) == "a.md"


def test_change_events_are_immutable() -> None:
    """Events cannot be altered after creation."""
    event = normalize_event(FileDeletedEvent(under_root("a.md")), ROOT)[0]
    with pytest.raises(ValidationError):
        event.path = "b.md"  # type: ignore[misc]
    assert event.path == "a.md"
