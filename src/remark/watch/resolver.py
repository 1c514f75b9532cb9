"""Glob pattern resolution for the watch list."""

import asyncio
import glob
import os
from collections.abc import Callable, Iterable

import structlog

from remark.watch.watchset import WatchSet

logger = structlog.get_logger()


class PatternError(ValueError):
    """Raised when a glob pattern cannot be parsed."""

    def __init__(self, message: str, pattern: str) -> None:
        """Initialize pattern error.

        Args:
            message: Error description.
            pattern: The offending pattern.
        """
        super().__init__(f"{message}: {pattern!r}")
        self.pattern = pattern


def validate_pattern(pattern: str) -> None:
    """Check that a pattern is well formed.

    Brackets must close and braces must balance; a bracket expression
    may contain any character except an unescaped closing bracket.

    Args:
        pattern: Glob pattern to check.

    Raises:
        PatternError: If the pattern is empty or malformed.
    """
    if not pattern:
        raise PatternError("Empty pattern", pattern)

    depth = 0
    i = 0
    while i < len(pattern):
        char = pattern[i]
        if char == "\\":
            i += 2
            continue
        if char == "[":
            end = pattern.find("]", i + 2 if pattern[i + 1 : i + 2] in ("!", "]") else i + 1)
            if end == -1:
                raise PatternError("Unclosed character class", pattern)
            i = end + 1
            continue
        if char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth < 0:
                raise PatternError("Unbalanced '}'", pattern)
        i += 1

    if depth != 0:
        raise PatternError("Unclosed '{'", pattern)


def expand_braces(pattern: str) -> list[str]:
    """Expand {a,b} alternatives into separate patterns.

    Nested groups are expanded recursively. Patterns without braces are
    returned unchanged.

    Args:
        pattern: A validated glob pattern.

    Returns:
        Patterns without brace groups, in left-to-right order.
    """
    start = pattern.find("{")
    if start == -1:
        return [pattern]

    depth = 0
    options: list[str] = []
    last = start + 1
    for i in range(start, len(pattern)):
        char = pattern[i]
        if char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                options.append(pattern[last:i])
                end = i
                break
        elif char == "," and depth == 1:
            options.append(pattern[last:i])
            last = i + 1
    else:
        return [pattern]

    prefix, suffix = pattern[:start], pattern[end + 1 :]
    expanded: list[str] = []
    for option in options:
        expanded.extend(expand_braces(prefix + option + suffix))
    return expanded


class GlobResolver:
    """Resolves a fixed pattern set into the files currently matching it.

    Attributes:
        patterns: Immutable tuple of patterns as given.
        root: Directory patterns are resolved against.
    """

    def __init__(self, patterns: Iterable[str], root: str = ".") -> None:
        """Initialize resolver.

        Args:
            patterns: Glob patterns; supports *, ?, [..], ** and {a,b}.
            root: Directory patterns are resolved against.

        Raises:
            PatternError: If any pattern is malformed or none are given.
        """
        self.patterns: tuple[str, ...] = tuple(patterns)
        self.root = root

        if not self.patterns:
            raise PatternError("No patterns given", "")
        for pattern in self.patterns:
            validate_pattern(pattern)

        self._expanded: tuple[str, ...] = tuple(
            expanded for pattern in self.patterns for expanded in expand_braces(pattern)
        )

    def resolve(self) -> frozenset[str]:
        """Collect the regular files matching any pattern.

        Absolute patterns yield absolute matches; those are made relative
        to the root too, since watch notifications are keyed that way.

        Returns:
            Normalized paths relative to the root.

        Raises:
            OSError: If the root directory cannot be listed.
        """
        if not os.path.isdir(self.root):
            raise FileNotFoundError(f"Watch root is not a directory: {self.root}")

        matches: set[str] = set()
        for pattern in self._expanded:
            for match in glob.iglob(pattern, root_dir=self.root, recursive=True):
                if os.path.isabs(match):
                    match = os.path.relpath(match, self.root)
                path = os.path.normpath(match)
                if os.path.isfile(os.path.join(self.root, path)):
                    matches.add(path)
        return frozenset(matches)


async def run_resolver_loop(
    resolver: GlobResolver,
    watch_set: WatchSet,
    interval: float,
    on_fatal: Callable[[str], None],
) -> None:
    """Re-resolve the patterns on a fixed interval and reconcile the watch set.

    Runs as a long-lived asyncio task. Any resolution failure is fatal:
    it is logged, reported through on_fatal and the loop exits.

    Args:
        resolver: Resolver for the configured pattern set.
        watch_set: Watch set to reconcile.
        interval: Seconds to sleep between passes.
        on_fatal: Called with a reason when resolution fails.
    """
    logger.info("resolver_started", patterns=list(resolver.patterns), interval=interval)
    while True:
        try:
            paths = await asyncio.to_thread(resolver.resolve)
        except (PatternError, OSError) as e:
            logger.critical("glob_failed", error=str(e), root=resolver.root)
            on_fatal(f"failed to glob for files: {e}")
            return

        watch_set.reconcile(paths)
        await asyncio.sleep(interval)
