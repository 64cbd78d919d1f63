"""Shared fixtures for paperscan tests."""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any
from unittest.mock import MagicMock

import pytest

from paperscan.config import Settings, SettingsStore


@pytest.fixture
def scan_dir(tmp_path: Path) -> Path:
    directory = tmp_path / "scans"
    directory.mkdir()
    return directory


@pytest.fixture
def settings(scan_dir: Path) -> Settings:
    return Settings(
        paperless_api_url="http://paperless.local:8000/",
        paperless_api_token="secret-token",
        scan_output_dir=str(scan_dir),
        default_tags=("Scanned",),
    )


@pytest.fixture
def store(settings: Settings) -> SettingsStore:
    return SettingsStore.in_memory(settings)


def write_page(directory: Path, name: str, content: bytes = b"%PDF-1.4 page", mtime: float | None = None) -> Path:
    path = directory / name
    path.write_bytes(content)
    if mtime is not None:
        os.utime(path, (mtime, mtime))
    return path


def make_response(status: int = 200, payload: Any = None, text: str | None = None) -> MagicMock:
    """Stand-in for ``requests.Response``."""
    response = MagicMock()
    response.status_code = status
    response.ok = 200 <= status < 400
    if text is None:
        text = json.dumps(payload) if payload is not None else ""
    response.text = text
    if payload is not None:
        response.json.return_value = payload
    else:
        response.json.side_effect = ValueError("No JSON")
    return response
