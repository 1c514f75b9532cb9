"""Watch list subsystem: glob resolution, file subscriptions and change fan-out."""
from remark.watch.bus import ChangeEventBus
from remark.watch.resolver import GlobResolver, PatternError, run_resolver_loop
from remark.watch.types import ChangeEvent, ChangeKind
from remark.watch.watcher import ObserverBackend
from remark.watch.watchset import WatchSet, run_notification_loop, sorted_for_display

__all__ = [
    "ChangeEvent",
    "ChangeEventBus",
    "ChangeKind",
    "GlobResolver",
    "ObserverBackend",
    "PatternError",
    "WatchSet",
    "run_notification_loop",
    "run_resolver_loop",
    "sorted_for_display",
]
