"""Authoritative set of watched files."""

import asyncio
import os
from collections.abc import Callable, Iterable
from typing import Protocol

import structlog

from remark.watch.bus import ChangeEventBus
from remark.watch.types import ChangeEvent, ChangeKind

logger = structlog.get_logger()


class SubscriptionBackend(Protocol):
    """Filesystem-watch primitive owned by a WatchSet."""

    def subscribe(self, path: str) -> None:
        """Start (or restart) watching a file. Raises OSError on failure."""
        ...

    def unsubscribe(self, path: str) -> None:
        """Stop watching a file. Unknown paths are ignored."""
        ...


class WatchSet:
    """Single owner of the watch list and its filesystem subscriptions.

    Every mutation runs on the event loop thread. Readers on any thread
    only ever see the immutable snapshot tuple, which is replaced whole
    after each change.

    Attributes:
        on_discover: Optional callback invoked once per newly watched path.
    """

    def __init__(
        self,
        backend: SubscriptionBackend,
        bus: ChangeEventBus,
        base_url: str = "",
        on_discover: Callable[[str], None] | None = None,
    ) -> None:
        """Initialize watch set.

        Args:
            backend: Subscription backend for individual files.
            bus: Bus that modified events are forwarded to.
            base_url: Viewer URL announced for discovered files.
            on_discover: Called with each newly discovered path.
        """
        self._backend = backend
        self._bus = bus
        self._base_url = base_url
        self._paths: set[str] = set()
        self._snapshot: tuple[str, ...] = ()
        self.on_discover = on_discover

    def snapshot(self) -> tuple[str, ...]:
        """Consistent copy of the watch list at the instant of the call."""
        return self._snapshot

    def __contains__(self, path: object) -> bool:
        return path in self._snapshot

    def __len__(self) -> int:
        return len(self._snapshot)

    def _publish_snapshot(self) -> None:
        self._snapshot = tuple(self._paths)

    def reconcile(self, paths: Iterable[str]) -> list[str]:
        """Start watching every path that is not watched yet.

        Already watched paths are left alone, so calling this repeatedly
        with the same input has no further effect.

        Args:
            paths: Output of the latest glob resolution pass.

        Returns:
            Paths that were added by this call.
        """
        added: list[str] = []
        for path in paths:
            if path in self._paths:
                continue

            try:
                self._backend.subscribe(path)
            except OSError as e:
                logger.warning("subscribe_failed", path=path, error=str(e))
                continue

            self._paths.add(path)
            added.append(path)

        if not added:
            return added

        self._publish_snapshot()
        for path in added:
            logger.info("watching", path=path, url=f"{self._base_url}/?filename={path}")
            if self.on_discover is not None:
                self.on_discover(path)
        return added

    def _drop(self, path: str) -> None:
        self._paths.discard(path)
        self._backend.unsubscribe(path)
        self._publish_snapshot()

    async def handle(self, event: ChangeEvent) -> None:
        """Apply a filesystem notification to the watch list.

        Args:
            event: Notification from the subscription backend.
        """
        if event.path not in self._paths:
            return

        if event.kind is ChangeKind.MODIFIED:
            delivered = await self._bus.publish(event)
            logger.debug("change_published", path=event.path, delivered_to=delivered)

        elif event.kind is ChangeKind.RENAMED:
            try:
                self._backend.subscribe(event.path)
            except OSError as e:
                logger.warning("resubscribe_failed", path=event.path, error=str(e))
                self._drop(event.path)

        elif event.kind is ChangeKind.REMOVED:
            self._drop(event.path)
            logger.info("unwatching", path=event.path)


def sorted_for_display(paths: Iterable[str]) -> list[str]:
    """Order watch list entries for a file index.

    Sorts case-insensitively, then moves nested paths ahead of top-level
    files while keeping their relative order.

    Args:
        paths: Snapshot of the watch list.

    Returns:
        New list in display order.
    """
    ordered = sorted(paths, key=str.lower)
    ordered.sort(key=lambda path: os.sep not in path)
    return ordered


async def run_notification_loop(
    queue: asyncio.Queue[ChangeEvent],
    watch_set: WatchSet,
) -> None:
    """Feed filesystem notifications into the watch set.

    Runs as a long-lived asyncio task, blocking until the backend queues
    a notification.

    Args:
        queue: Queue filled by the subscription backend.
        watch_set: Watch set that owns the notifications.
    """
    logger.info("notification_loop_started")
    try:
        while True:
            event = await queue.get()
            await watch_set.handle(event)
    except asyncio.CancelledError:
        logger.info("notification_loop_stopped")
        raise
