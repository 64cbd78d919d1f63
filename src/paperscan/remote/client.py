"""Paperless-ngx REST client for tag resolution and document intake."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Sequence

import requests

from paperscan.config import Settings, SettingsStore
from paperscan.errors import ConfigurationError, NotFoundError, RemoteServiceError
from paperscan.models import ConnectionResult, RemoteTag, UploadAck, ack_task_id, decode_upload_ack

LOGGER = logging.getLogger(__name__)

API_ACCEPT = "application/json; version=6"
USER_AGENT = "paperscan/0.1"


def _error_detail(status: int, text: str) -> str:
    """Build ``HTTP <status>: <detail>`` from an error response body."""
    detail = f"HTTP {status}"
    if not text:
        return detail
    try:
        payload = json.loads(text)
    except ValueError:
        return f"{detail}: {text}"
    if isinstance(payload, dict):
        if payload.get("detail"):
            return f"{detail}: {payload['detail']}"
        if payload.get("error"):
            return f"{detail}: {payload['error']}"
    return f"{detail}: {text}"


def _succeeded(response: requests.Response) -> bool:
    return 200 <= response.status_code < 300


class PaperlessClient:
    """Uploads documents to Paperless-ngx.

    Settings are read once per operation, so edits made through the
    ``SettingsStore`` apply to the next call.
    """

    def __init__(
        self,
        settings: SettingsStore,
        *,
        session: requests.Session | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self.settings = settings
        self.session = session or requests.Session()
        self.log = logger or LOGGER

    def _headers(self, settings: Settings) -> dict[str, str]:
        return {
            "Authorization": f"Token {settings.paperless_api_token}",
            "Accept": API_ACCEPT,
            "User-Agent": USER_AGENT,
        }

    def _request(self, settings: Settings, method: str, path: str, **kwargs: Any) -> requests.Response:
        url = path if path.startswith(("http://", "https://")) else settings.api_url(path)
        return self.session.request(
            method,
            url,
            headers=self._headers(settings),
            timeout=settings.request_timeout,
            **kwargs,
        )

    def _validated_settings(self) -> Settings:
        settings = self.settings.get()
        errors = settings.validate()
        if errors:
            raise ConfigurationError(errors)
        return settings

    def test_connection(self) -> ConnectionResult:
        """Probe the document listing endpoint; never raises."""
        try:
            settings = self._validated_settings()
        except ConfigurationError as exc:
            return ConnectionResult(success=False, error=str(exc))

        self.log.info("Testing connection to Paperless-ngx at %s...", settings.base_url)
        try:
            response = self._request(settings, "GET", "documents/")
            if not _succeeded(response):
                error = f"HTTP {response.status_code}"
                text = response.text
                if text:
                    error += f": {text}"
                self.log.error("Connection test failed: %s", error)
                return ConnectionResult(success=False, error=error)
        except requests.RequestException as exc:
            self.log.error("Connection test failed: %s", exc)
            return ConnectionResult(success=False, error=str(exc))

        count = None
        try:
            payload = response.json()
            if isinstance(payload, dict) and isinstance(payload.get("count"), int):
                count = payload["count"]
        except ValueError:
            self.log.debug("Connection test response was not JSON")
        self.log.info("Connection successful! Found %s documents in Paperless-ngx", count or 0)
        return ConnectionResult(success=True, document_count=count)

    def fetch_tags(self, settings: Settings | None = None) -> list[RemoteTag]:
        """First page of remote tags."""
        settings = settings or self.settings.get()
        response = self._request(settings, "GET", "tags/")
        if not _succeeded(response):
            raise RemoteServiceError(
                response.status_code, f"Failed to fetch tags: HTTP {response.status_code}"
            )
        payload = response.json()
        results = payload.get("results", []) if isinstance(payload, dict) else []
        tags = []
        for item in results or []:
            tag = RemoteTag.from_json(item)
            if tag is not None:
                tags.append(tag)
        return tags

    def create_tag(self, name: str, settings: Settings | None = None) -> RemoteTag | None:
        """Create a remote tag, returning None on failure."""
        settings = settings or self.settings.get()
        try:
            response = self._request(settings, "POST", "tags/", json={"name": name})
        except requests.RequestException as exc:
            self.log.warning('Error creating tag "%s": %s', name, exc)
            return None
        if not _succeeded(response):
            self.log.warning('Could not create tag "%s": HTTP %s', name, response.status_code)
            return None
        try:
            tag = RemoteTag.from_json(response.json())
        except ValueError:
            tag = None
        if tag is None:
            self.log.warning('Could not create tag "%s": response carried no id', name)
            return None
        self.log.info("Created new tag: %s", name)
        return tag

    def resolve_tag_names(self, names: Sequence[str]) -> list[int]:
        """Map tag names to remote ids, creating tags that do not exist yet.

        Matching is case-insensitive. A tag that cannot be created is left out;
        failing to fetch the tag list at all raises.
        """
        settings = self.settings.get()
        existing = self.fetch_tags(settings)

        tag_ids: list[int] = []
        for name in names:
            match = next(
                (tag for tag in existing if tag.name.casefold() == name.casefold()),
                None,
            )
            if match is None:
                match = self.create_tag(name, settings)
                if match is None:
                    continue
                existing.append(match)
            tag_ids.append(match.id)
        return tag_ids

    def upload(self, file_path: Path | str) -> UploadAck:
        """Submit a document for consumption.

        Returning means Paperless accepted the file for processing; the
        consumption task is not awaited.
        """
        settings = self._validated_settings()

        path = Path(file_path)
        if not path.is_file():
            raise NotFoundError(path)

        self.log.info("Uploading %s to Paperless-ngx...", path.name)
        content = path.read_bytes()
        files = {"document": (path.name, content, "application/pdf")}

        form: list[tuple[str, str]] = []
        if settings.default_tags:
            try:
                tag_ids = self.resolve_tag_names(settings.default_tags)
            except Exception as exc:
                self.log.warning("Could not resolve tags, uploading without tags: %s", exc)
            else:
                form.extend(("tags", str(tag_id)) for tag_id in tag_ids)
                self.log.info("Applied %d tags to document", len(tag_ids))

        try:
            response = self._request(
                settings, "POST", settings.intake_endpoint, files=files, data=form
            )
        except requests.RequestException as exc:
            raise RemoteServiceError(None, f"Paperless API error: {exc}") from exc

        if not _succeeded(response):
            text = response.text
            self.log.error("API Response: %s", text)
            raise RemoteServiceError(
                response.status_code,
                f"Paperless API error: {_error_detail(response.status_code, text)}",
            )

        try:
            payload = response.json()
        except ValueError:
            payload = response.text or None
        ack = decode_upload_ack(payload)

        task_id = ack_task_id(ack)
        if task_id:
            self.log.info("Upload successful! Task ID: %s", task_id)
            self.log.info("Document queued for processing. Check Paperless-ngx for completion.")
        else:
            self.log.info("Upload successful! Document queued for processing.")
        return ack
