"""Tests for the backup-and-link transfer step."""

import errno
from unittest.mock import patch

import pytest

from bookfeeder.errors import BackupWriteError, LinkConflict, StagingLinkError
from bookfeeder.services.transfer import BackupLinkTransfer

from conftest import same_inode, write_book

pytestmark = pytest.mark.unit


@pytest.fixture
def transfer(roots):
    return BackupLinkTransfer(roots.source, roots.backup, roots.staging)


class TestBackupLinkTransfer:
    """Tests for moving originals to backup and staging hardlinks."""

    def test_moves_to_mirrored_backup_and_links(self, roots, transfer):
        source = write_book(roots.source / "Herbert" / "Dune" / "dune.epub", b"spice")

        staged = transfer.transfer(source)

        backup = roots.backup / "Herbert" / "Dune" / "dune.epub"
        assert not source.exists()
        assert backup.read_bytes() == b"spice"
        assert staged.path == roots.staging / "dune.epub"
        assert staged.backup_path == backup
        assert same_inode(staged.path, backup)

    def test_deleting_staged_copy_keeps_backup(self, roots, transfer):
        source = write_book(roots.source / "y.pdf", b"pdf bytes")

        staged = transfer.transfer(source)
        staged.path.unlink()

        assert (roots.backup / "y.pdf").read_bytes() == b"pdf bytes"

    def test_link_conflict_leaves_source_untouched(self, roots, transfer):
        write_book(roots.staging / "dune.epub", b"someone else's dune")
        source = write_book(roots.source / "a" / "dune.epub", b"our dune")

        with pytest.raises(LinkConflict) as exc_info:
            transfer.transfer(source)

        assert exc_info.value.staged_path == roots.staging / "dune.epub"
        assert source.read_bytes() == b"our dune"
        assert not (roots.backup / "a" / "dune.epub").exists()
        assert (roots.staging / "dune.epub").read_bytes() == b"someone else's dune"

    def test_existing_backup_is_never_overwritten(self, roots, transfer):
        write_book(roots.backup / "a" / "book.pdf", b"original backup")
        source = write_book(roots.source / "a" / "book.pdf", b"new content, same path")

        with pytest.raises(BackupWriteError):
            transfer.transfer(source)

        assert source.exists()
        assert (roots.backup / "a" / "book.pdf").read_bytes() == b"original backup"
        assert not (roots.staging / "book.pdf").exists()

    def test_outside_source_root_is_backup_error(self, roots, transfer, tmp_path):
        stray = write_book(tmp_path / "elsewhere" / "book.pdf")

        with pytest.raises(BackupWriteError):
            transfer.transfer(stray)
        assert stray.exists()

    def test_link_failure_restores_source(self, roots, transfer):
        source = write_book(roots.source / "a" / "book.pdf", b"bytes")
        cross_device = OSError(errno.EXDEV, "Invalid cross-device link")

        with patch("bookfeeder.services.transfer.os.link", side_effect=cross_device):
            with pytest.raises(StagingLinkError) as exc_info:
                transfer.transfer(source)

        assert "different filesystems" in str(exc_info.value)
        assert source.read_bytes() == b"bytes"
        assert not (roots.backup / "a" / "book.pdf").exists()

    def test_backup_directory_uncreatable(self, roots):
        blocker = roots.backup / "a"
        blocker.write_text("file in the way")
        source = write_book(roots.source / "a" / "book.pdf")
        transfer = BackupLinkTransfer(roots.source, roots.backup, roots.staging)

        with pytest.raises(BackupWriteError):
            transfer.transfer(source)
        assert source.exists()

    def test_link_only_mode_keeps_source(self, roots):
        transfer = BackupLinkTransfer(roots.source, roots.backup, roots.staging, backup_enabled=False)
        source = write_book(roots.source / "a" / "book.pdf", b"bytes")

        staged = transfer.transfer(source)

        assert source.exists()
        assert staged.backup_path is None
        assert same_inode(staged.path, source)
        assert list(roots.backup.iterdir()) == []
