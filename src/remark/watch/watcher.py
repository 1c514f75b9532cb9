"""Watchdog-backed subscriptions for individual files."""

import asyncio
import contextlib
import os
import threading

import structlog
from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer
from watchdog.observers.api import ObservedWatch

from remark.watch.normalizer import normalize_event
from remark.watch.types import ChangeEvent

logger = structlog.get_logger()


class ForwardingHandler(FileSystemEventHandler):
    """Watchdog handler that hands change events to the event loop.

    Runs on the observer thread; the only thing it touches on the loop
    side is the notification queue, via call_soon_threadsafe.
    """

    def __init__(
        self,
        root: str,
        loop: asyncio.AbstractEventLoop,
        queue: asyncio.Queue[ChangeEvent],
    ) -> None:
        """Initialize forwarding handler.

        Args:
            root: Absolute watch root used to relativize event paths.
            loop: Event loop that owns the queue.
            queue: Notification queue consumed by the watch set.
        """
        super().__init__()
        self._root = root
        self._loop = loop
        self._queue = queue

    def on_any_event(self, event: FileSystemEvent) -> None:
        """Forward a raw filesystem event.

        Args:
            event: Raw watchdog filesystem event.
        """
        for change in normalize_event(event, self._root):
            logger.debug("watcher_emit", path=change.path, kind=change.kind.value)
            try:
                self._loop.call_soon_threadsafe(self._queue.put_nowait, change)
            except RuntimeError as e:
                logger.warning("watcher_forward_failed", error=str(e), path=change.path)


class ObserverBackend:
    """Per-file subscriptions on top of a watchdog Observer.

    Watchdog watches directories, so each file subscription holds a
    reference on a non-recursive watch of its parent directory. The
    directory watch is unscheduled when its last file is unsubscribed.

    Attributes:
        root: Absolute directory that watch list paths are relative to.
    """

    def __init__(
        self,
        root: str,
        loop: asyncio.AbstractEventLoop,
        queue: asyncio.Queue[ChangeEvent],
    ) -> None:
        """Initialize observer backend.

        Args:
            root: Directory that watch list paths are relative to.
            loop: Event loop for forwarding notifications.
            queue: Notification queue consumed by the watch set.
        """
        self.root = os.path.abspath(root)
        self._handler = ForwardingHandler(self.root, loop, queue)
        self._observer: Observer | None = None  # pyright: ignore[reportInvalidTypeForm]
        self._watches: dict[str, ObservedWatch] = {}
        self._files: dict[str, str] = {}
        self._lock = threading.Lock()

    @property
    def is_alive(self) -> bool:
        """Whether the observer thread is running."""
        return self._observer is not None and self._observer.is_alive()

    def start(self) -> None:
        """Start the observer thread.

        Raises:
            OSError: If the notification subsystem cannot be initialized.
        """
        observer = Observer()
        observer.start()
        self._observer = observer
        logger.info("watcher_started", root=self.root)

    def stop(self) -> None:
        """Stop the observer thread and forget all subscriptions."""
        if self._observer is not None:
            self._observer.stop()
            self._observer.join(timeout=5.0)
            self._observer = None

        with self._lock:
            self._watches.clear()
            self._files.clear()

        logger.info("watcher_stopped")

    def subscribe(self, path: str) -> None:
        """Watch a file, re-arming its directory watch if needed.

        Subscribing a path that is already subscribed just re-checks it,
        which is what a rename needs.

        Args:
            path: Path relative to the root.

        Raises:
            FileNotFoundError: If the path is not an existing regular file.
            OSError: If the directory watch cannot be scheduled.
        """
        if self._observer is None:
            raise OSError("Observer is not running")

        absolute = os.path.join(self.root, path)
        if not os.path.isfile(absolute):
            raise FileNotFoundError(f"No such file: {path}")

        directory = os.path.dirname(absolute)
        with self._lock:
            if directory not in self._watches:
                self._watches[directory] = self._observer.schedule(
                    self._handler, directory, recursive=False
                )
                logger.debug("watcher_scheduled", directory=directory)
            self._files[path] = directory

    def unsubscribe(self, path: str) -> None:
        """Stop watching a file.

        Args:
            path: Path relative to the root.
        """
        with self._lock:
            directory = self._files.pop(path, None)
            if directory is None or directory in self._files.values():
                return
            watch = self._watches.pop(directory, None)

        if watch is not None and self._observer is not None:
            with contextlib.suppress(KeyError):
                self._observer.unschedule(watch)
            logger.debug("watcher_unscheduled", directory=directory)
