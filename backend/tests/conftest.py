"""Pytest fixtures for bookfeeder tests."""

import os
from dataclasses import dataclass
from pathlib import Path

import pytest

from bookfeeder.config import Settings
from bookfeeder.errors import CatalogAddFailure, CatalogQueryError


@dataclass
class Roots:
    source: Path
    staging: Path
    backup: Path
    ledger: Path
    library: Path


@pytest.fixture
def roots(tmp_path) -> Roots:
    """Separate source, staging, backup, ledger and library locations."""
    r = Roots(
        source=tmp_path / "books",
        staging=tmp_path / "upload",
        backup=tmp_path / "backup",
        ledger=tmp_path / "state" / "processed_files.txt",
        library=tmp_path / "library",
    )
    r.source.mkdir()
    r.staging.mkdir()
    r.backup.mkdir()
    r.library.mkdir()
    return r


@pytest.fixture
def make_settings(roots):
    """Build Settings pointed at the tmp_path roots."""

    def _make(**overrides) -> Settings:
        values = {
            "source_root": roots.source,
            "staging_dir": roots.staging,
            "backup_root": roots.backup,
            "ledger_path": roots.ledger,
            "library_path": roots.library,
            "batch_pause": 0,
            "poll_interval": 0,
        }
        values.update(overrides)
        return Settings(_env_file=None, **values)

    return _make


def write_book(path: Path, content: bytes = b"%PDF-1.4 book body") -> Path:
    """Create a file with content, including parent directories."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(content)
    return path


def same_inode(a: Path, b: Path) -> bool:
    return os.stat(a).st_ino == os.stat(b).st_ino


class FakeCatalog:
    """In-memory CatalogClient."""

    def __init__(self, names=(), fail_names=(), list_error: bool = False, events=None):
        self.names = set(names)
        self.fail_names = set(fail_names)
        self.list_error = list_error
        self.events = events if events is not None else []
        self.added: list[str] = []
        self.list_calls = 0

    async def list_format_names(self) -> set[str]:
        self.list_calls += 1
        if self.list_error:
            raise CatalogQueryError("calibredb list exited 1: library locked")
        return set(self.names)

    async def add(self, file_path: Path) -> None:
        self.events.append(f"add:{file_path.name}")
        if file_path.name in self.fail_names:
            raise CatalogAddFailure(file_path, "exit code 1")
        self.added.append(file_path.name)
        self.names.add(file_path.name)


@pytest.fixture
def fake_catalog():
    return FakeCatalog()
