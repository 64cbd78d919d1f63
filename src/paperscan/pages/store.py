"""Page files in the scan output directory."""

from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path
from typing import Iterable

from paperscan.config import SettingsStore
from paperscan.models import DeleteResult, ScannedPage
from paperscan.utils.files import format_size, is_plain_filename, is_scan_filename

LOGGER = logging.getLogger(__name__)


class PageStore:
    """Authoritative view of the usable page files on disk.

    Zero-byte files are left behind by interrupted scans. Every listing deletes
    them, so they are never returned or counted.
    """

    format_size = staticmethod(format_size)

    def __init__(self, settings: SettingsStore, *, logger: logging.Logger | None = None) -> None:
        self.settings = settings
        self.log = logger or LOGGER

    @property
    def directory(self) -> Path:
        return self.settings.get().output_dir

    def list_pages(self) -> list[ScannedPage]:
        """Return non-empty ``scan-*.pdf`` pages, oldest first."""
        scan_dir = self.directory
        if not scan_dir.exists():
            return []

        pages: list[ScannedPage] = []
        try:
            for entry in scan_dir.iterdir():
                if not is_scan_filename(entry.name) or not entry.is_file():
                    continue
                stat = entry.stat()
                if stat.st_size == 0:
                    self._prune_empty(entry)
                    continue
                pages.append(
                    ScannedPage(
                        filename=entry.name,
                        filepath=entry.resolve(),
                        timestamp=datetime.fromtimestamp(stat.st_mtime),
                        size=stat.st_size,
                    )
                )
        except OSError as exc:
            self.log.error("Error reading scan directory %s: %s", scan_dir, exc)
            return []

        pages.sort(key=lambda page: (page.timestamp, page.filename))
        return pages

    def _prune_empty(self, path: Path) -> None:
        try:
            path.unlink()
        except OSError as exc:
            self.log.warning("Could not remove zero-byte file %s: %s", path.name, exc)
        else:
            self.log.info("Removed zero-byte scan file: %s", path.name)

    def clear_all_pages(self) -> DeleteResult:
        """Delete every listed page; per-file failures only lower the count."""
        deleted_count = 0
        try:
            for page in self.list_pages():
                try:
                    page.filepath.unlink()
                    deleted_count += 1
                except OSError as exc:
                    self.log.warning("Could not delete %s: %s", page.filename, exc)
        except Exception as exc:
            self.log.error("Clearing scanned pages failed: %s", exc)
            return DeleteResult(success=False, deleted_count=deleted_count, error=str(exc))

        self.log.info("Cleared %d scanned pages from %s", deleted_count, self.directory)
        return DeleteResult(success=True, deleted_count=deleted_count)

    def delete_pages(self, filenames: Iterable[str]) -> DeleteResult:
        """Delete the named files; names that do not exist are skipped."""
        deleted_count = 0
        try:
            scan_dir = self.directory
            for filename in filenames:
                if not is_plain_filename(filename):
                    self.log.warning("Refusing to delete %r: not a plain filename", filename)
                    continue
                path = scan_dir / filename
                try:
                    if path.is_file():
                        path.unlink()
                        deleted_count += 1
                        self.log.info("Deleted page: %s", filename)
                except OSError as exc:
                    self.log.warning("Could not delete %s: %s", filename, exc)
        except Exception as exc:
            self.log.error("Deleting pages failed: %s", exc)
            return DeleteResult(success=False, deleted_count=deleted_count, error=str(exc))

        return DeleteResult(success=True, deleted_count=deleted_count)
