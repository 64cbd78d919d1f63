"""Utility helpers for working with page files."""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path

SCAN_PREFIX = "scan-"
SCAN_SUFFIX = ".pdf"


def is_scan_filename(name: str) -> bool:
    """Return True for names following the ``scan-*.pdf`` convention."""
    return name.startswith(SCAN_PREFIX) and name.endswith(SCAN_SUFFIX)


def is_plain_filename(name: str) -> bool:
    """Return True when ``name`` cannot escape its directory."""
    return bool(name) and name not in (".", "..") and Path(name).name == name and "\\" not in name


def format_size(num_bytes: int) -> str:
    """Human readable file size with one decimal for KB and MB."""
    if num_bytes < 1024:
        return f"{num_bytes} B"
    if num_bytes < 1024 * 1024:
        return f"{num_bytes / 1024:.1f} KB"
    return f"{num_bytes / (1024 * 1024):.1f} MB"


def timestamp_slug(moment: datetime | None = None) -> str:
    """ISO 8601 UTC timestamp with ``:`` and ``.`` replaced by ``-``.

    Mirrors ``2024-05-01T10:20:30.123Z`` -> ``2024-05-01T10-20-30-123Z``.
    """
    moment = moment or datetime.now(timezone.utc)
    moment = moment.astimezone(timezone.utc)
    iso = moment.strftime("%Y-%m-%dT%H:%M:%S") + f".{moment.microsecond // 1000:03d}Z"
    return iso.replace(":", "-").replace(".", "-")


def combined_filename(moment: datetime | None = None) -> str:
    """Default name for a combined document."""
    return f"combined-{timestamp_slug(moment)}.pdf"
