"""
Watcher for files the bundler does not handle, such as PHP templates.
"""

import asyncio
import logging
from fnmatch import fnmatch
from pathlib import Path
from typing import Callable, Sequence

from watchfiles import Change, DefaultFilter, awatch

from ..models.events import FileChange
from ..pipelines.subscription import Subscription

logger = logging.getLogger(__name__)

ChangeCallback = Callable[[FileChange], None]


def matches_glob(relative_path: str, pattern: str) -> bool:
    """
    Match a POSIX relative path against a glob.

    A leading ``**/`` also matches files directly in the root.
    """
    if fnmatch(relative_path, pattern):
        return True
    return pattern.startswith("**/") and fnmatch(relative_path, pattern[3:])


class GlobFilter(DefaultFilter):
    """watchfiles filter keeping paths that match the configured globs."""

    def __init__(self, root: Path, patterns: Sequence[str], ignore: Sequence[str] = ()):
        super().__init__()
        self.root = root
        self.patterns = list(patterns)
        self.ignore = list(ignore)

    def relative(self, path: str) -> str:
        try:
            return Path(path).relative_to(self.root).as_posix()
        except ValueError:
            return Path(path).as_posix()

    def __call__(self, change: Change, path: str) -> bool:
        if not super().__call__(change, path):
            return False
        relative = self.relative(path)
        if any(matches_glob(relative, pattern) for pattern in self.ignore):
            return False
        return any(matches_glob(relative, pattern) for pattern in self.patterns)


class FileChangeWatcher:
    """Reports modified or added files under ``root`` that match the globs."""

    def __init__(self, root: Path, patterns: Sequence[str], ignore: Sequence[str] = ()):
        self.root = root
        self.filter = GlobFilter(root, patterns, ignore)

    async def _watch_loop(self, on_change: ChangeCallback, stop_event: asyncio.Event) -> None:
        async for changes in awatch(self.root, watch_filter=self.filter, stop_event=stop_event):
            for change, path in sorted(changes, key=lambda c: c[1]):
                if change is Change.deleted:
                    continue
                on_change(FileChange(self.filter.relative(path)))

    async def watch(self, on_change: ChangeCallback) -> Subscription:
        stop_event = asyncio.Event()
        task = asyncio.create_task(self._watch_loop(on_change, stop_event), name="watch-files")
        logger.debug(f"Watching {', '.join(self.filter.patterns)} under {self.root}")
        return Subscription("file watcher", task, stop_event)
