"""Core paperscan data models."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Union

from paperscan.utils.files import format_size


@dataclass(slots=True, frozen=True)
class ScannedPage:
    """A non-empty page file in the scan output directory."""

    filename: str
    filepath: Path
    timestamp: datetime
    size: int

    @property
    def size_label(self) -> str:
        return format_size(self.size)


@dataclass(slots=True)
class DeleteResult:
    success: bool
    deleted_count: int = 0
    error: str | None = None


@dataclass(slots=True)
class ConnectionResult:
    success: bool
    error: str | None = None
    document_count: int | None = None


@dataclass(slots=True, frozen=True)
class RemoteTag:
    """Tag known to the Paperless-ngx instance."""

    id: int
    name: str

    @classmethod
    def from_json(cls, payload: Any) -> RemoteTag | None:
        if not isinstance(payload, dict):
            return None
        tag_id = payload.get("id")
        name = payload.get("name")
        if isinstance(tag_id, bool) or not isinstance(tag_id, int) or not isinstance(name, str):
            return None
        return cls(id=tag_id, name=name)


@dataclass(slots=True, frozen=True)
class BareTaskId:
    """Intake response that is just the consumption task UUID."""

    task_id: str


@dataclass(slots=True, frozen=True)
class TaskIdField:
    """Intake response object carrying a ``task_id`` field."""

    task_id: str


@dataclass(slots=True, frozen=True)
class Unrecognized:
    """Any other successful intake response."""

    payload: Any = None


UploadAck = Union[BareTaskId, TaskIdField, Unrecognized]


def decode_upload_ack(payload: Any) -> UploadAck:
    """Classify the body of a successful ``post_document`` response."""
    if isinstance(payload, str) and payload:
        return BareTaskId(payload)
    if isinstance(payload, dict):
        task_id = payload.get("task_id")
        if task_id:
            return TaskIdField(str(task_id))
    return Unrecognized(payload)


def ack_task_id(ack: UploadAck) -> str | None:
    if isinstance(ack, (BareTaskId, TaskIdField)):
        return ack.task_id
    return None


@dataclass(slots=True)
class IngestResult:
    """Outcome of combining and uploading a set of pages."""

    output_path: Path
    ack: UploadAck
    deleted_count: int = 0
