from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from enum import Enum
from http.client import HTTPException
from pathlib import Path
from typing import Optional, Protocol
from urllib import request
from uuid import uuid4

from backend.roundtrack.errors import RequestValidationFailure, UploadFailedError
from backend.roundtrack.models import AnswerInput
from backend.roundtrack.settings import Settings

logger = logging.getLogger("roundtrack.uploads")


class UploadKind(str, Enum):
    image = "image"
    audio = "audio"
    file = "file"


class StorageError(Exception):
    pass


@dataclass(frozen=True)
class Attachment:
    field_id: str
    filename: str
    content_type: str
    data: bytes


class BlobStorage(Protocol):
    def upload(self, data: bytes, *, filename: str, content_type: str, kind: UploadKind) -> str:
        ...


def classify_upload(content_type: Optional[str]) -> UploadKind:
    value = (content_type or "").split(";", 1)[0].strip().lower()
    if value.startswith("image/"):
        return UploadKind.image
    if value.startswith("audio/"):
        return UploadKind.audio
    return UploadKind.file


_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


def safe_filename(filename: str) -> str:
    name = Path(filename or "").name
    cleaned = _UNSAFE_CHARS.sub("_", name).strip("._")
    return cleaned or "upload"


class LocalBlobStorage:
    def __init__(self, root_dir: str, public_base_url: str) -> None:
        self.root = Path(root_dir)
        self.public_base_url = public_base_url.rstrip("/")

    def upload(self, data: bytes, *, filename: str, content_type: str, kind: UploadKind) -> str:
        folder = self.root / kind.value
        stored_name = f"{uuid4().hex[:12]}_{safe_filename(filename)}"
        try:
            folder.mkdir(parents=True, exist_ok=True)
            (folder / stored_name).write_bytes(data)
        except OSError as exc:
            raise StorageError(f"could not write {stored_name}") from exc
        return f"{self.public_base_url}/{kind.value}/{stored_name}"


class HttpBlobStorage:
    def __init__(self, upload_url: str, *, api_key: str, timeout_seconds: int) -> None:
        self.upload_url = upload_url
        self.api_key = api_key
        self.timeout_seconds = timeout_seconds

    def upload(self, data: bytes, *, filename: str, content_type: str, kind: UploadKind) -> str:
        headers = {
            "Content-Type": content_type or "application/octet-stream",
            "X-Upload-Kind": kind.value,
            "X-Upload-Filename": safe_filename(filename),
        }
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        req = request.Request(self.upload_url, data=data, method="POST", headers=headers)
        try:
            with request.urlopen(req, timeout=self.timeout_seconds) as response:
                body = response.read()
        except (OSError, HTTPException) as exc:
            raise StorageError(f"storage upload request failed: {exc}") from exc

        try:
            decoded = json.loads(body.decode("utf-8"))
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            raise StorageError("storage response was not valid json") from exc
        url = (decoded.get("secure_url") or decoded.get("url")) if isinstance(decoded, dict) else None
        if not isinstance(url, str) or not url:
            raise StorageError("storage response did not include a url")
        return url


def build_storage(settings: Settings) -> BlobStorage:
    if settings.storage_backend == "http":
        if not settings.storage_upload_url:
            raise ValueError("STORAGE_UPLOAD_URL is required for the http storage backend")
        return HttpBlobStorage(
            settings.storage_upload_url,
            api_key=settings.storage_api_key,
            timeout_seconds=settings.upload_timeout_seconds,
        )
    return LocalBlobStorage(settings.storage_local_dir, settings.storage_public_base_url)


def resolve_attachments(
    answers: list[AnswerInput],
    attachments: list[Attachment],
    storage: BlobStorage,
    *,
    max_bytes: Optional[int] = None,
) -> list[AnswerInput]:
    """Upload attachments and return answers with file values replaced by URLs.

    Every upload happens before anything is returned, so a failure leaves the
    caller with nothing to commit.
    """
    by_field = {attachment.field_id: attachment for attachment in attachments}
    resolved: list[AnswerInput] = []
    for answer in answers:
        attachment = by_field.get(answer.field_id)
        if attachment is None:
            resolved.append(answer)
            continue
        if max_bytes is not None and len(attachment.data) > max_bytes:
            raise RequestValidationFailure(
                f"file {attachment.filename} exceeds the {max_bytes} byte limit"
            )
        kind = classify_upload(attachment.content_type)
        try:
            url = storage.upload(
                attachment.data,
                filename=attachment.filename,
                content_type=attachment.content_type,
                kind=kind,
            )
        except StorageError as exc:
            logger.error(
                "upload_failed field_id=%s filename=%s kind=%s error=%s",
                attachment.field_id,
                attachment.filename,
                kind.value,
                exc,
            )
            raise UploadFailedError(
                str(exc), filename=attachment.filename, field_id=attachment.field_id
            ) from exc
        logger.info(
            "upload_complete field_id=%s kind=%s bytes=%s",
            attachment.field_id,
            kind.value,
            len(attachment.data),
        )
        resolved.append(answer.model_copy(update={"answer": url}))
    return resolved
