"""Combine selected pages and hand the result to Paperless-ngx."""

from __future__ import annotations

import logging
from typing import Sequence

from paperscan.errors import NoPagesError, NotFoundError
from paperscan.models import IngestResult
from paperscan.utils.files import is_plain_filename
from paperscan.pages.combiner import PageCombiner
from paperscan.pages.store import PageStore
from paperscan.remote.client import PaperlessClient

LOGGER = logging.getLogger(__name__)


class ScanIngestor:
    """Coordinates page combination, upload and cleanup."""

    def __init__(
        self,
        store: PageStore,
        combiner: PageCombiner,
        client: PaperlessClient,
        *,
        logger: logging.Logger | None = None,
    ) -> None:
        self.store = store
        self.combiner = combiner
        self.client = client
        self.log = logger or LOGGER

    def ingest(
        self,
        page_filenames: Sequence[str],
        *,
        output_filename: str | None = None,
        delete_after: bool = True,
    ) -> IngestResult:
        """Upload the pages as one document, deleting them once accepted.

        A single page is uploaded as is under its own name; ``output_filename``
        only names the combined file when there are several pages.
        """
        if not page_filenames:
            raise NoPagesError()

        combined = len(page_filenames) > 1
        if combined:
            output_path = self.combiner.combine(page_filenames, output_filename)
        else:
            filename = page_filenames[0]
            output_path = self.store.directory / filename
            if not is_plain_filename(filename) or not output_path.is_file():
                raise NotFoundError(filename)
            if output_filename is not None:
                self.log.warning(
                    "Single page %s is uploaded under its own name, ignoring %s", filename, output_filename
                )

        try:
            ack = self.client.upload(output_path)
        except Exception:
            if combined:
                output_path.unlink(missing_ok=True)
            raise

        deleted_count = 0
        if delete_after:
            consumed = list(page_filenames)
            if combined:
                consumed.append(output_path.name)
            result = self.store.delete_pages(consumed)
            deleted_count = result.deleted_count
            self.log.info("Removed %d files after upload", deleted_count)

        return IngestResult(output_path=output_path, ack=ack, deleted_count=deleted_count)
