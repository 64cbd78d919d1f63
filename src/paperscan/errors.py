"""Exception types raised by paperscan operations."""

from __future__ import annotations

from pathlib import Path
from typing import Sequence


class PaperscanError(Exception):
    """Base class for all paperscan failures."""


class ConfigurationError(PaperscanError):
    """Settings failed validation before any I/O was attempted."""

    def __init__(self, errors: Sequence[str]) -> None:
        self.errors = list(errors)
        super().__init__(f"Configuration error: {', '.join(self.errors)}")


class NotFoundError(PaperscanError):
    """A referenced local file does not exist."""

    def __init__(self, path: Path | str) -> None:
        self.path = path
        super().__init__(f"File not found: {path}")


class NoPagesError(PaperscanError, ValueError):
    """Combine was requested without any pages."""

    def __init__(self) -> None:
        super().__init__("No pages to combine")


class RemoteServiceError(PaperscanError):
    """Paperless-ngx answered with a non-success status or could not be reached."""

    def __init__(self, status: int | None, message: str) -> None:
        self.status = status
        self.message = message
        super().__init__(message)


class MergeToolError(PaperscanError):
    """A single merge strategy failed."""

    def __init__(self, tool: str, message: str) -> None:
        self.tool = tool
        self.message = message
        super().__init__(f"{tool}: {message}")


class ToolExecutionError(PaperscanError):
    """No merge strategy produced a combined document."""

    def __init__(self, failures: Sequence[str]) -> None:
        self.failures = list(failures)
        super().__init__(f"Failed to combine pages: {'; '.join(self.failures)}")
