"""FastAPI application exposing paperscan operations over HTTP."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, List

from fastapi import Depends, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from paperscan.config import SettingsStore
from paperscan.errors import (
    ConfigurationError,
    NoPagesError,
    NotFoundError,
    PaperscanError,
    RemoteServiceError,
    ToolExecutionError,
)
from paperscan.ingest.pipeline import ScanIngestor
from paperscan.models import DeleteResult, ScannedPage, ack_task_id
from paperscan.pages.combiner import PageCombiner
from paperscan.pages.store import PageStore
from paperscan.remote.client import PaperlessClient
from paperscan.utils.files import is_plain_filename

LOGGER = logging.getLogger(__name__)

app = FastAPI(title="paperscan", version="0.1.0")
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)

_store: SettingsStore | None = None


class FilenamesPayload(BaseModel):
    filenames: List[str]


class CombinePayload(BaseModel):
    filenames: List[str]
    output: str | None = None


class UploadPayload(BaseModel):
    filename: str


class IngestPayload(BaseModel):
    filenames: List[str]
    output: str | None = None
    delete_after: bool = True


class SettingsPayload(BaseModel):
    paperless_api_url: str | None = None
    paperless_api_token: str | None = None
    scan_output_dir: str | None = None
    scan_resolution: int | None = None
    default_tags: List[str] | None = None
    scanner_device_url: str | None = None
    merge_tools: List[str] | None = None
    request_timeout: float | None = None
    merge_timeout: float | None = None


def configure(store: SettingsStore) -> None:
    """Use ``store`` for every request."""
    global _store
    _store = store


def get_settings_store() -> SettingsStore:
    global _store
    if _store is None:
        _store = SettingsStore()
    return _store


def _page_json(page: ScannedPage) -> dict[str, Any]:
    return {
        "filename": page.filename,
        "size": page.size,
        "size_label": page.size_label,
        "timestamp": page.timestamp.isoformat(),
    }


def _delete_json(result: DeleteResult) -> dict[str, Any]:
    return {"success": result.success, "deleted_count": result.deleted_count, "error": result.error}


def _http_error(exc: PaperscanError) -> HTTPException:
    if isinstance(exc, (ConfigurationError, NoPagesError)):
        status = 400
    elif isinstance(exc, NotFoundError):
        status = 404
    elif isinstance(exc, RemoteServiceError):
        status = 502
    elif isinstance(exc, ToolExecutionError):
        status = 500
    else:
        status = 400
    return HTTPException(status_code=status, detail=str(exc))


@app.on_event("startup")
async def startup_event() -> None:
    logging.basicConfig(level=logging.INFO, format="[%(levelname)s] %(message)s")


@app.get("/pages")
async def list_pages(store: SettingsStore = Depends(get_settings_store)) -> dict[str, Any]:
    pages = await asyncio.to_thread(PageStore(store).list_pages)
    return {"pages": [_page_json(page) for page in pages], "count": len(pages)}


@app.delete("/pages")
async def clear_pages(store: SettingsStore = Depends(get_settings_store)) -> dict[str, Any]:
    result = await asyncio.to_thread(PageStore(store).clear_all_pages)
    return _delete_json(result)


@app.post("/pages/delete")
async def delete_pages(
    payload: FilenamesPayload, store: SettingsStore = Depends(get_settings_store)
) -> dict[str, Any]:
    result = await asyncio.to_thread(PageStore(store).delete_pages, payload.filenames)
    return _delete_json(result)


@app.post("/combine")
async def combine_pages(
    payload: CombinePayload, store: SettingsStore = Depends(get_settings_store)
) -> dict[str, str]:
    try:
        path = await asyncio.to_thread(PageCombiner(store).combine, payload.filenames, payload.output)
    except PaperscanError as exc:
        raise _http_error(exc) from exc
    return {"status": "ok", "filename": path.name, "path": str(path)}


@app.post("/upload")
async def upload_document(
    payload: UploadPayload, store: SettingsStore = Depends(get_settings_store)
) -> dict[str, Any]:
    if not is_plain_filename(payload.filename):
        raise HTTPException(status_code=400, detail="Invalid filename")
    path = store.get().output_dir / payload.filename
    try:
        ack = await asyncio.to_thread(PaperlessClient(store).upload, path)
    except PaperscanError as exc:
        raise _http_error(exc) from exc
    return {"status": "queued", "task_id": ack_task_id(ack)}


@app.post("/ingest")
async def ingest_pages(
    payload: IngestPayload, store: SettingsStore = Depends(get_settings_store)
) -> dict[str, Any]:
    ingestor = ScanIngestor(PageStore(store), PageCombiner(store), PaperlessClient(store))
    try:
        result = await asyncio.to_thread(
            ingestor.ingest,
            payload.filenames,
            output_filename=payload.output,
            delete_after=payload.delete_after,
        )
    except PaperscanError as exc:
        raise _http_error(exc) from exc
    return {
        "status": "queued",
        "filename": result.output_path.name,
        "task_id": ack_task_id(result.ack),
        "deleted_count": result.deleted_count,
    }


@app.get("/connection")
async def test_connection(store: SettingsStore = Depends(get_settings_store)) -> dict[str, Any]:
    result = await asyncio.to_thread(PaperlessClient(store).test_connection)
    return {"success": result.success, "error": result.error, "document_count": result.document_count}


@app.get("/settings")
async def read_settings(store: SettingsStore = Depends(get_settings_store)) -> dict[str, Any]:
    data = store.get().to_dict()
    if data["paperless_api_token"]:
        data["paperless_api_token"] = "****"
    return {"settings": data, "errors": store.validate()}


@app.put("/settings")
async def update_settings(
    payload: SettingsPayload, store: SettingsStore = Depends(get_settings_store)
) -> dict[str, Any]:
    changes = {key: value for key, value in payload.model_dump().items() if value is not None}
    try:
        store.update(**changes)
    except (OSError, ValueError) as exc:
        LOGGER.error("Saving settings failed: %s", exc)
        raise HTTPException(status_code=500, detail=str(exc)) from exc
    return await read_settings(store)
