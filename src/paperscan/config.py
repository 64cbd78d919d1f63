"""Application settings and their JSON persistence."""

from __future__ import annotations

import json
import logging
import os
import re
from dataclasses import asdict, dataclass, fields, replace
from pathlib import Path
from typing import Any

LOGGER = logging.getLogger(__name__)

CONFIG_ENV_VAR = "PAPERSCAN_CONFIG"
MERGE_TOOL_NAMES = ("pdftk", "ghostscript", "pymupdf")
MIN_RESOLUTION = 75
MAX_RESOLUTION = 1200

_URL_RE = re.compile(r"^https?://.+")


def _get_default_config_path() -> Path:
    """Get the settings file path from the environment or the working directory."""
    override = os.environ.get(CONFIG_ENV_VAR)
    if override:
        return Path(override).expanduser()
    return Path.cwd() / "config" / "config.json"


@dataclass(slots=True, frozen=True)
class Settings:
    paperless_api_url: str = "http://localhost:8000"
    paperless_api_token: str = ""
    scan_output_dir: str = "/tmp"
    scan_resolution: int = 300
    default_tags: tuple[str, ...] = ("scanned", "automated")
    scanner_device_url: str = ""
    merge_tools: tuple[str, ...] = ("pdftk", "ghostscript")
    request_timeout: float = 30.0
    merge_timeout: float = 120.0

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Settings:
        """Build settings from a mapping, ignoring unknown keys."""
        known = {f.name for f in fields(cls)}
        values: dict[str, Any] = {}
        for key, value in data.items():
            if key not in known:
                LOGGER.warning("Ignoring unknown setting %r", key)
                continue
            if key in ("default_tags", "merge_tools"):
                if isinstance(value, str):
                    value = value.split(",")
                value = tuple(str(item).strip() for item in value or () if str(item).strip())
            elif key == "scan_resolution":
                value = int(value)
            elif key in ("request_timeout", "merge_timeout"):
                value = float(value)
            elif value is None:
                value = ""
            values[key] = value
        return cls(**values)

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["default_tags"] = list(self.default_tags)
        data["merge_tools"] = list(self.merge_tools)
        return data

    def validate(self) -> list[str]:
        """Return human-readable validation errors, empty when valid."""
        errors: list[str] = []

        if not self.paperless_api_url:
            errors.append("Paperless API URL is required")
        elif not _URL_RE.match(self.paperless_api_url):
            errors.append("Paperless API URL must be a valid HTTP/HTTPS URL")

        if not self.paperless_api_token:
            errors.append("Paperless API Token is required")

        if not self.scan_output_dir:
            errors.append("Scan output directory is required")

        if not MIN_RESOLUTION <= self.scan_resolution <= MAX_RESOLUTION:
            errors.append(
                f"Scan resolution must be between {MIN_RESOLUTION} and {MAX_RESOLUTION} DPI"
            )

        unknown_tools = [name for name in self.merge_tools if name not in MERGE_TOOL_NAMES]
        if unknown_tools:
            errors.append(f"Unknown merge tools: {', '.join(unknown_tools)}")
        elif not self.merge_tools:
            errors.append("At least one merge tool is required")

        if self.request_timeout <= 0 or self.merge_timeout <= 0:
            errors.append("Timeouts must be positive")

        return errors

    @property
    def base_url(self) -> str:
        return self.paperless_api_url.rstrip("/")

    def api_url(self, path: str) -> str:
        """Absolute URL for an API path such as ``tags/``."""
        return f"{self.base_url}/api/{path.lstrip('/')}"

    @property
    def intake_endpoint(self) -> str:
        return self.api_url("documents/post_document/")

    @property
    def output_dir(self) -> Path:
        return Path(self.scan_output_dir).expanduser()


class SettingsStore:
    """Holds the current settings snapshot and persists changes as JSON."""

    def __init__(self, path: Path | None = None, *, persist: bool = True) -> None:
        self.path = Path(path) if path is not None else _get_default_config_path()
        self.persist = persist
        self._settings = self._load() if persist else Settings()

    @classmethod
    def in_memory(cls, settings: Settings | None = None) -> SettingsStore:
        """A store that never reads or writes the settings file."""
        store = cls(Path(os.devnull), persist=False)
        store._settings = settings or Settings()
        return store

    def _load(self) -> Settings:
        if not self.path.exists():
            return Settings()
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
            if not isinstance(data, dict):
                raise ValueError("settings file must contain a JSON object")
            return Settings.from_dict(data)
        except (OSError, ValueError, TypeError) as exc:
            LOGGER.warning("Failed to load settings from %s, using defaults: %s", self.path, exc)
            return Settings()

    def _save(self) -> None:
        if not self.persist:
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(self._settings.to_dict(), indent=2), encoding="utf-8")

    def get(self) -> Settings:
        return self._settings

    def update(self, **changes: Any) -> Settings:
        merged = self._settings.to_dict()
        merged.update(changes)
        self._settings = Settings.from_dict(merged)
        self._save()
        return self._settings

    def reset(self) -> Settings:
        self._settings = Settings()
        self._save()
        return self._settings

    def validate(self) -> list[str]:
        return self._settings.validate()

    @property
    def intake_endpoint(self) -> str:
        return self._settings.intake_endpoint
