"""Tests for the source watcher."""

import asyncio
import shutil
from unittest.mock import AsyncMock, patch

import pytest
from watchfiles import Change

from bookfeeder.config import DEFAULT_BOOK_FORMATS
from bookfeeder.services.classifier import Classifier
from bookfeeder.services.watcher import SourceWatcher

pytestmark = pytest.mark.unit


@pytest.fixture
def watcher(roots):
    return SourceWatcher(
        roots.source,
        Classifier(DEFAULT_BOOK_FORMATS),
        on_change=AsyncMock(),
        ignored_dirs=[roots.source / "upload"],
        debounce_ms=10,
    )


class TestCandidateFilter:
    """Tests for the watch_filter callback."""

    def test_added_book(self, watcher, roots):
        assert watcher.is_candidate_change(Change.added, str(roots.source / "a" / "x.epub"))

    def test_modified_book(self, watcher, roots):
        assert watcher.is_candidate_change(Change.modified, str(roots.source / "x.pdf"))

    def test_deleted_ignored(self, watcher, roots):
        assert not watcher.is_candidate_change(Change.deleted, str(roots.source / "x.pdf"))

    def test_unsupported_ignored(self, watcher, roots):
        assert not watcher.is_candidate_change(Change.added, str(roots.source / "x.part"))

    def test_artifact_ignored(self, watcher, roots):
        assert not watcher.is_candidate_change(Change.added, str(roots.source / "a" / "metadata.db"))
        assert not watcher.is_candidate_change(Change.added, str(roots.source / ".caltrash" / "x.epub"))

    def test_ignored_dir(self, watcher, roots):
        assert not watcher.is_candidate_change(Change.added, str(roots.source / "upload" / "x.epub"))

    def test_added_directory(self, watcher, roots):
        series = roots.source / "Series"
        series.mkdir()

        assert watcher.is_candidate_change(Change.added, str(series))
        assert not watcher.is_candidate_change(Change.modified, str(series))

    def test_added_artifact_or_ignored_directory(self, watcher, roots):
        (roots.source / ".caltrash").mkdir()
        (roots.source / "upload" / "batch").mkdir(parents=True)

        assert not watcher.is_candidate_change(Change.added, str(roots.source / ".caltrash"))
        assert not watcher.is_candidate_change(Change.added, str(roots.source / "upload" / "batch"))

    def test_source_root_under_trash_folder(self, tmp_path):
        source = tmp_path / ".Trash-1000" / "books"
        source.mkdir(parents=True)
        watcher = SourceWatcher(source, Classifier(DEFAULT_BOOK_FORMATS), on_change=AsyncMock())

        assert watcher.is_candidate_change(Change.added, str(source / "a" / "x.epub"))


class TestWatch:
    """Tests for the watch loop with awatch stubbed."""

    @pytest.mark.asyncio
    async def test_calls_on_change_per_batch(self, watcher, roots):
        batches = [
            {(Change.added, str(roots.source / "a.epub")), (Change.added, str(roots.source / "b.pdf"))},
            {(Change.modified, str(roots.source / "a.epub"))},
        ]

        async def fake_awatch(*args, **kwargs):
            for batch in batches:
                yield batch

        with patch("bookfeeder.services.watcher.awatch", fake_awatch):
            await watcher.watch()

        assert watcher.on_change.await_count == 2
        first = watcher.on_change.await_args_list[0].args[0]
        assert first == {roots.source / "a.epub", roots.source / "b.pdf"}

    @pytest.mark.asyncio
    async def test_handler_error_keeps_watching(self, watcher, roots):
        watcher.on_change.side_effect = [RuntimeError("crawl failed"), None]

        async def fake_awatch(*args, **kwargs):
            yield {(Change.added, str(roots.source / "a.epub"))}
            yield {(Change.added, str(roots.source / "b.epub"))}

        with patch("bookfeeder.services.watcher.awatch", fake_awatch):
            await watcher.watch()

        assert watcher.on_change.await_count == 2

    @pytest.mark.asyncio
    async def test_passes_filter_and_stop_event(self, watcher, roots):
        seen = {}

        async def fake_awatch(*args, **kwargs):
            seen["args"] = args
            seen.update(kwargs)
            return
            yield

        stop_event = asyncio.Event()
        with patch("bookfeeder.services.watcher.awatch", fake_awatch):
            await watcher.watch(stop_event=stop_event)

        assert seen["args"] == (roots.source,)
        assert seen["stop_event"] is stop_event
        assert seen["debounce"] == 10
        assert seen["watch_filter"] == watcher.is_candidate_change

    @pytest.mark.asyncio
    async def test_missing_root(self, tmp_path):
        on_change = AsyncMock()
        watcher = SourceWatcher(tmp_path / "missing", Classifier(["pdf"]), on_change=on_change)

        await watcher.watch()

        on_change.assert_not_awaited()


@pytest.mark.integration
class TestWatchFilesystem:
    """Tests with real filesystem notifications."""

    @pytest.mark.asyncio
    async def test_folder_moved_into_tree_triggers_crawl(self, roots, tmp_path):
        incoming = tmp_path / "incoming" / "Series"
        incoming.mkdir(parents=True)
        (incoming / "vol1.epub").write_bytes(b"volume one")
        (incoming / "vol2.epub").write_bytes(b"volume two")

        triggered = asyncio.Event()
        seen: list[set] = []

        async def on_change(paths):
            seen.append(paths)
            triggered.set()

        watcher = SourceWatcher(
            roots.source, Classifier(DEFAULT_BOOK_FORMATS), on_change=on_change, debounce_ms=200
        )
        stop_event = asyncio.Event()
        task = asyncio.create_task(watcher.watch(stop_event=stop_event))
        await asyncio.sleep(0.5)

        shutil.move(str(incoming), str(roots.source / "Series"))

        try:
            await asyncio.wait_for(triggered.wait(), timeout=5)
        finally:
            stop_event.set()
            await asyncio.wait_for(task, timeout=5)

        assert any(roots.source / "Series" in batch for batch in seen)
