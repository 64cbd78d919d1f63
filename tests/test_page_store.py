"""Tests for PageStore."""

from __future__ import annotations

import logging
from pathlib import Path
from unittest.mock import patch

import pytest

from conftest import write_page
from paperscan.config import Settings, SettingsStore
from paperscan.pages.store import PageStore


class TestListPages:
    """Test page enumeration and zero-byte pruning."""

    def test_zero_byte_file_is_deleted_and_not_listed(self, store: SettingsStore, scan_dir: Path) -> None:
        """A zero-byte scan disappears from disk and from the result."""
        empty = write_page(scan_dir, "scan-0001.pdf", b"")
        write_page(scan_dir, "scan-0002.pdf", b"test")

        pages = PageStore(store).list_pages()

        assert [page.filename for page in pages] == ["scan-0002.pdf"]
        assert not empty.exists()

    def test_logs_zero_byte_cleanup(
        self, store: SettingsStore, scan_dir: Path, caplog: pytest.LogCaptureFixture
    ) -> None:
        write_page(scan_dir, "scan-0001.pdf", b"")

        with caplog.at_level(logging.INFO, logger="paperscan.pages.store"):
            PageStore(store).list_pages()

        assert "Removed zero-byte scan file: scan-0001.pdf" in caplog.text

    def test_orders_by_modification_time(self, store: SettingsStore, scan_dir: Path) -> None:
        """Oldest first, regardless of lexical filename order."""
        write_page(scan_dir, "scan-a.pdf", mtime=3_000)
        write_page(scan_dir, "scan-b.pdf", mtime=1_000)
        write_page(scan_dir, "scan-c.pdf", mtime=2_000)

        pages = PageStore(store).list_pages()

        assert [page.filename for page in pages] == ["scan-b.pdf", "scan-c.pdf", "scan-a.pdf"]

    def test_only_scan_pdfs_are_listed(self, store: SettingsStore, scan_dir: Path) -> None:
        write_page(scan_dir, "scan-0001.pdf")
        write_page(scan_dir, "combined-2024.pdf")
        write_page(scan_dir, "scan-0002.png")
        (scan_dir / "scan-dir.pdf").mkdir()

        pages = PageStore(store).list_pages()

        assert [page.filename for page in pages] == ["scan-0001.pdf"]

    def test_non_matching_empty_files_are_left_alone(self, store: SettingsStore, scan_dir: Path) -> None:
        other = write_page(scan_dir, "notes.txt", b"")

        PageStore(store).list_pages()

        assert other.exists()

    def test_page_metadata(self, store: SettingsStore, scan_dir: Path) -> None:
        path = write_page(scan_dir, "scan-0001.pdf", b"x" * 2048, mtime=1_700_000_000)

        (page,) = PageStore(store).list_pages()

        assert page.filepath == path.resolve()
        assert page.size == 2048
        assert page.timestamp.timestamp() == pytest.approx(1_700_000_000)

    def test_missing_directory_returns_empty(self, tmp_path: Path) -> None:
        store = SettingsStore.in_memory(Settings(scan_output_dir=str(tmp_path / "missing")))

        assert PageStore(store).list_pages() == []

    def test_filesystem_error_degrades_to_empty(self, store: SettingsStore, scan_dir: Path) -> None:
        write_page(scan_dir, "scan-0001.pdf")

        with patch.object(Path, "iterdir", side_effect=PermissionError("denied")):
            assert PageStore(store).list_pages() == []

    def test_failed_zero_byte_removal_still_excluded(
        self, store: SettingsStore, scan_dir: Path, caplog: pytest.LogCaptureFixture
    ) -> None:
        write_page(scan_dir, "scan-0001.pdf", b"")

        with patch.object(Path, "unlink", side_effect=PermissionError("denied")):
            with caplog.at_level(logging.WARNING, logger="paperscan.pages.store"):
                pages = PageStore(store).list_pages()

        assert pages == []
        assert "Could not remove zero-byte file scan-0001.pdf" in caplog.text

    def test_reads_directory_from_current_settings(self, tmp_path: Path) -> None:
        first = tmp_path / "first"
        second = tmp_path / "second"
        first.mkdir()
        second.mkdir()
        write_page(second, "scan-0001.pdf")
        store = SettingsStore.in_memory(Settings(scan_output_dir=str(first)))
        page_store = PageStore(store)

        assert page_store.list_pages() == []
        store.update(scan_output_dir=str(second))
        assert len(page_store.list_pages()) == 1


class TestClearAllPages:
    """Test bulk deletion."""

    def test_deletes_every_page(self, store: SettingsStore, scan_dir: Path) -> None:
        write_page(scan_dir, "scan-0001.pdf")
        write_page(scan_dir, "scan-0002.pdf")
        empty = write_page(scan_dir, "scan-0003.pdf", b"")
        other = write_page(scan_dir, "combined-x.pdf")

        result = PageStore(store).clear_all_pages()

        assert result.success
        assert result.deleted_count == 2
        assert result.error is None
        assert not empty.exists()
        assert other.exists()
        assert sorted(p.name for p in scan_dir.iterdir()) == ["combined-x.pdf"]

    def test_partial_failure_reports_reduced_count(self, store: SettingsStore, scan_dir: Path) -> None:
        """A file that cannot be deleted is skipped, not fatal."""
        write_page(scan_dir, "scan-0001.pdf", mtime=1_000)
        locked = write_page(scan_dir, "scan-0002.pdf", mtime=2_000)
        original_unlink = Path.unlink

        def flaky_unlink(self: Path, missing_ok: bool = False) -> None:
            if self.name == locked.name:
                raise PermissionError("locked")
            original_unlink(self, missing_ok=missing_ok)

        with patch.object(Path, "unlink", flaky_unlink):
            result = PageStore(store).clear_all_pages()

        assert result.success
        assert result.deleted_count == 1
        assert locked.exists()

    def test_empty_directory(self, store: SettingsStore) -> None:
        result = PageStore(store).clear_all_pages()

        assert result.success
        assert result.deleted_count == 0

    def test_unexpected_failure_reports_error(self, store: SettingsStore) -> None:
        page_store = PageStore(store)

        with patch.object(page_store, "list_pages", side_effect=RuntimeError("boom")):
            result = page_store.clear_all_pages()

        assert not result.success
        assert result.error == "boom"


class TestDeletePages:
    """Test deletion of named pages."""

    def test_mix_of_existing_and_missing(self, store: SettingsStore, scan_dir: Path) -> None:
        """Only existing files are deleted and counted."""
        write_page(scan_dir, "scan-0001.pdf")
        write_page(scan_dir, "scan-0002.pdf")
        keep = write_page(scan_dir, "scan-0003.pdf")

        result = PageStore(store).delete_pages(["scan-0001.pdf", "scan-9999.pdf", "scan-0002.pdf"])

        assert result.success
        assert result.deleted_count == 2
        assert [p.name for p in scan_dir.iterdir()] == [keep.name]

    def test_deletes_non_scan_files_by_name(self, store: SettingsStore, scan_dir: Path) -> None:
        combined = write_page(scan_dir, "combined-2024.pdf")

        result = PageStore(store).delete_pages([combined.name])

        assert result.deleted_count == 1
        assert not combined.exists()

    def test_refuses_path_traversal(self, store: SettingsStore, scan_dir: Path) -> None:
        outside = write_page(scan_dir.parent, "scan-outside.pdf")

        result = PageStore(store).delete_pages(["../scan-outside.pdf"])

        assert result.success
        assert result.deleted_count == 0
        assert outside.exists()

    def test_per_file_failure_is_skipped(
        self, store: SettingsStore, scan_dir: Path, caplog: pytest.LogCaptureFixture
    ) -> None:
        write_page(scan_dir, "scan-0001.pdf")

        with patch.object(Path, "unlink", side_effect=PermissionError("locked")):
            with caplog.at_level(logging.WARNING, logger="paperscan.pages.store"):
                result = PageStore(store).delete_pages(["scan-0001.pdf"])

        assert result.success
        assert result.deleted_count == 0
        assert "Could not delete scan-0001.pdf" in caplog.text


class TestFormatSize:
    """PageStore exposes the size formatter."""

    def test_format_size(self, store: SettingsStore) -> None:
        assert PageStore(store).format_size(1536) == "1.5 KB"
        assert PageStore.format_size(10) == "10 B"
