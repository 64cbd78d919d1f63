"""Tests for ScanIngestor."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Sequence
from unittest.mock import MagicMock

import pytest

from conftest import write_page
from paperscan.config import SettingsStore
from paperscan.errors import NoPagesError, NotFoundError, RemoteServiceError
from paperscan.ingest.pipeline import ScanIngestor
from paperscan.models import TaskIdField
from paperscan.pages.combiner import PageCombiner
from paperscan.pages.store import PageStore
from paperscan.remote.client import PaperlessClient


class ConcatStrategy:
    name = "concat"

    def merge(self, inputs: Sequence[Path], output: Path) -> None:
        output.write_bytes(b"".join(path.read_bytes() for path in inputs))


def _ingestor(store: SettingsStore, client: MagicMock) -> ScanIngestor:
    return ScanIngestor(
        PageStore(store),
        PageCombiner(store, strategies=[ConcatStrategy()]),
        client,
    )


@pytest.fixture
def client() -> MagicMock:
    mock = MagicMock(spec=PaperlessClient)
    mock.upload.return_value = TaskIdField("task-1")
    return mock


class TestIngest:
    """Test the combine, upload and cleanup flow."""

    def test_combines_uploads_and_deletes(self, store: SettingsStore, scan_dir: Path, client: MagicMock) -> None:
        write_page(scan_dir, "scan-0001.pdf", b"one")
        write_page(scan_dir, "scan-0002.pdf", b"two")
        unrelated = write_page(scan_dir, "scan-0003.pdf", b"three")

        result = _ingestor(store, client).ingest(["scan-0001.pdf", "scan-0002.pdf"], output_filename="doc.pdf")

        client.upload.assert_called_once_with(scan_dir / "doc.pdf")
        assert result.output_path == scan_dir / "doc.pdf"
        assert result.ack == TaskIdField("task-1")
        assert result.deleted_count == 3
        assert sorted(p.name for p in scan_dir.iterdir()) == [unrelated.name]

    def test_single_page_uploaded_directly(self, store: SettingsStore, scan_dir: Path, client: MagicMock) -> None:
        page = write_page(scan_dir, "scan-0001.pdf")

        result = _ingestor(store, client).ingest(["scan-0001.pdf"])

        client.upload.assert_called_once_with(page)
        assert result.deleted_count == 1
        assert not page.exists()

    def test_keep_pages(self, store: SettingsStore, scan_dir: Path, client: MagicMock) -> None:
        write_page(scan_dir, "scan-0001.pdf", b"one")
        write_page(scan_dir, "scan-0002.pdf", b"two")

        result = _ingestor(store, client).ingest(
            ["scan-0001.pdf", "scan-0002.pdf"], output_filename="doc.pdf", delete_after=False
        )

        assert result.deleted_count == 0
        assert sorted(p.name for p in scan_dir.iterdir()) == ["doc.pdf", "scan-0001.pdf", "scan-0002.pdf"]

    def test_upload_failure_keeps_pages(self, store: SettingsStore, scan_dir: Path, client: MagicMock) -> None:
        """Pages survive a failed upload; the combined artifact does not."""
        write_page(scan_dir, "scan-0001.pdf", b"one")
        write_page(scan_dir, "scan-0002.pdf", b"two")
        client.upload.side_effect = RemoteServiceError(500, "Paperless API error: HTTP 500")

        with pytest.raises(RemoteServiceError):
            _ingestor(store, client).ingest(["scan-0001.pdf", "scan-0002.pdf"], output_filename="doc.pdf")

        assert sorted(p.name for p in scan_dir.iterdir()) == ["scan-0001.pdf", "scan-0002.pdf"]

    def test_no_pages(self, store: SettingsStore, client: MagicMock) -> None:
        with pytest.raises(NoPagesError):
            _ingestor(store, client).ingest([])

        client.upload.assert_not_called()

    def test_missing_single_page(self, store: SettingsStore, client: MagicMock) -> None:
        with pytest.raises(NotFoundError, match="scan-0404.pdf"):
            _ingestor(store, client).ingest(["scan-0404.pdf"])

        client.upload.assert_not_called()

    def test_single_page_outside_directory(
        self, store: SettingsStore, scan_dir: Path, client: MagicMock
    ) -> None:
        """Only plain names inside the output directory are uploaded."""
        write_page(scan_dir.parent, "secret.pdf")

        with pytest.raises(NotFoundError, match="secret.pdf"):
            _ingestor(store, client).ingest(["../secret.pdf"])

        client.upload.assert_not_called()
        assert (scan_dir.parent / "secret.pdf").exists()

    def test_single_page_ignores_output_name(
        self, store: SettingsStore, scan_dir: Path, client: MagicMock, caplog: pytest.LogCaptureFixture
    ) -> None:
        page = write_page(scan_dir, "scan-0001.pdf")

        with caplog.at_level(logging.WARNING, logger="paperscan.ingest.pipeline"):
            result = _ingestor(store, client).ingest(["scan-0001.pdf"], output_filename="doc.pdf")

        client.upload.assert_called_once_with(page)
        assert result.output_path == page
        assert "uploaded under its own name, ignoring doc.pdf" in caplog.text
