"""Source watcher - triggers a crawl pass when candidate files appear."""

import asyncio
import logging
from pathlib import Path
from typing import Awaitable, Callable, Iterable

from watchfiles import Change, awatch

from bookfeeder.services.classifier import Classifier
from bookfeeder.utils import is_within

logger = logging.getLogger(__name__)


class SourceWatcher:
    """Watches the source tree and calls on_change once per debounced batch."""

    def __init__(
        self,
        source_root: Path,
        classifier: Classifier,
        on_change: Callable[[set[Path]], Awaitable[None]],
        ignored_dirs: Iterable[Path] = (),
        debounce_ms: int = 5000,
    ):
        """Initialize the watcher.

        Args:
            source_root: Directory to watch recursively
            classifier: Filters out artifacts and unsupported formats
            on_change: Coroutine called with the changed candidate paths
            ignored_dirs: Subtrees whose changes are ignored (staging, backup)
            debounce_ms: Quiet period before a batch of changes is delivered
        """
        self.source_root = Path(source_root)
        self.classifier = classifier
        self.on_change = on_change
        self.ignored_dirs = [Path(d).resolve() for d in ignored_dirs]
        self.debounce_ms = debounce_ms

    def is_candidate_change(self, change: Change, path_str: str) -> bool:
        """watch_filter: added/modified supported book files outside ignored dirs.

        A directory moved into the tree arrives as a single added event with
        no events for its contents, so added directories are let through too.
        """
        if change == Change.deleted:
            return False
        path = Path(path_str)
        if any(is_within(path, d) for d in self.ignored_dirs):
            return False
        if self.classifier.is_artifact(path, self.source_root):
            return False
        if path.is_dir():
            return change == Change.added and not self.classifier.artifacts.is_artifact_folder(path.name)
        return self.classifier.is_supported(path.name)

    async def watch(self, stop_event: asyncio.Event | None = None) -> None:
        """Watch until stop_event is set."""
        if not self.source_root.exists():
            logger.error(f"Source root does not exist, not watching: {self.source_root}")
            return

        logger.info(f"File watcher started for {self.source_root}")
        async for changes in awatch(
            self.source_root,
            watch_filter=self.is_candidate_change,
            debounce=self.debounce_ms,
            stop_event=stop_event,
            recursive=True,
        ):
            paths = {Path(path_str) for _, path_str in changes}
            logger.info(f"Detected {len(paths)} new or changed book path(s)")
            try:
                await self.on_change(paths)
            except Exception as e:
                logger.error(f"Error handling file changes: {e}", exc_info=True)
        logger.info("File watcher stopped")
