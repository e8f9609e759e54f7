"""Tests for settings loading."""

from pathlib import Path

import pytest
from pydantic import ValidationError

from bookfeeder.config import DEFAULT_BOOK_FORMATS, Settings

pytestmark = pytest.mark.unit


def test_defaults():
    settings = Settings(_env_file=None)

    assert settings.source_root == Path("/mnt/nas/books")
    assert settings.staging_dir == Path("/mnt/nas/books/upload")
    assert settings.backup_root == Path("/mnt/nas/books/backup")
    assert settings.ledger_path == Path("/var/lib/calibre-feeder/processed_files.txt")
    assert settings.lock_path == Path("/var/lib/calibre-feeder/processed_files.txt.lock")
    assert settings.batch_size == 10
    assert settings.book_formats == DEFAULT_BOOK_FORMATS
    assert settings.ingest_formats == settings.book_formats
    assert settings.backup_enabled is True


def test_comma_separated_formats_from_env(monkeypatch):
    monkeypatch.setenv("BOOKFEEDER_BOOK_FORMATS", "EPUB, .pdf,mobi,epub")

    settings = Settings(_env_file=None)

    assert settings.book_formats == ["epub", "pdf", "mobi"]


def test_json_formats_from_env(monkeypatch):
    monkeypatch.setenv("BOOKFEEDER_BOOK_FORMATS", '["pdf", "epub"]')
    monkeypatch.setenv("BOOKFEEDER_INGEST_FORMATS", '["pdf"]')

    settings = Settings(_env_file=None)

    assert settings.book_formats == ["pdf", "epub"]
    assert settings.ingest_formats == ["pdf"]


def test_ingest_formats_wider_than_book_formats():
    with pytest.raises(ValidationError, match="djvu"):
        Settings(_env_file=None, book_formats=["pdf"], ingest_formats=["pdf", "djvu"])


def test_batch_size_must_be_positive():
    with pytest.raises(ValidationError):
        Settings(_env_file=None, batch_size=0)


def test_explicit_lock_path_kept(tmp_path):
    settings = Settings(_env_file=None, lock_path=tmp_path / "crawl.lock")

    assert settings.lock_path == tmp_path / "crawl.lock"


def test_env_file(tmp_path):
    env_file = tmp_path / "feeder.env"
    env_file.write_text("BOOKFEEDER_BATCH_SIZE=3\nBOOKFEEDER_BACKUP_ENABLED=false\n")

    settings = Settings(_env_file=env_file)

    assert settings.batch_size == 3
    assert settings.backup_enabled is False


def test_empty_ingest_formats_from_env_rejected(monkeypatch):
    monkeypatch.setenv("BOOKFEEDER_INGEST_FORMATS", "")

    with pytest.raises(ValidationError, match="at least one extension"):
        Settings(_env_file=None)


@pytest.mark.parametrize("value", [[], " , ", "[]"])
def test_empty_book_formats_rejected(value):
    with pytest.raises(ValidationError, match="at least one extension"):
        Settings(_env_file=None, book_formats=value)
