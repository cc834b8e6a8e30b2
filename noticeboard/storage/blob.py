"""Blob storage for notice attachments and recipient replies.

The services only depend on the ``BlobStorage`` protocol:

- ``save`` persists the bytes and returns an opaque reference; any failure
  surfaces as ``StorageFailure`` so the calling operation aborts.
- ``delete`` is best-effort and never raises to the caller.
"""
from __future__ import annotations

import logging
import secrets
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from noticeboard.core.constants import ALLOWED_UPLOAD_TYPES
from noticeboard.core.exceptions import StorageFailure, ValidationFailed

logger = logging.getLogger(__name__)

_REFERENCE_PREFIX = "/uploads/"


@dataclass(frozen=True, slots=True)
class Upload:
    """An uploaded file as received from the transport layer."""

    content: bytes
    filename: str
    content_type: str | None = None


@dataclass(frozen=True, slots=True)
class StoredFile:
    reference: str
    name: str


class BlobStorage(Protocol):
    def save(self, content: bytes, original_name: str, mime_type: str | None) -> str:
        ...

    def delete(self, reference: str) -> None:
        ...


def store_upload(storage: BlobStorage, upload: Upload | None) -> StoredFile | None:
    """Persist *upload* if present; ``None`` in, ``None`` out.

    The content type is checked before anything is written.
    """
    if upload is None:
        return None
    if upload.content_type not in ALLOWED_UPLOAD_TYPES:
        raise ValidationFailed("Only PDF, JPEG, PNG and WEBP files are allowed.")
    reference = storage.save(upload.content, upload.filename, upload.content_type)
    return StoredFile(reference=reference, name=upload.filename)


class LocalBlobStorage:
    """Writes files under *root* and hands out ``/uploads/<name>`` references."""

    def __init__(self, root: str | Path, max_bytes: int | None = None) -> None:
        self.root = Path(root)
        self.max_bytes = max_bytes

    def _generate_name(self, original_name: str) -> str:
        suffix = Path(original_name).suffix.lower()
        return f"{int(time.time() * 1000)}-{secrets.token_hex(3)}{suffix}"

    def _resolve(self, reference: str) -> Path | None:
        if not reference.startswith(_REFERENCE_PREFIX):
            return None
        name = reference[len(_REFERENCE_PREFIX):]
        if not name or "/" in name or "\\" in name or name in {".", ".."}:
            return None
        return self.root / name

    def save(self, content: bytes, original_name: str, mime_type: str | None = None) -> str:
        if self.max_bytes is not None and len(content) > self.max_bytes:
            raise StorageFailure(
                f"File {original_name!r} exceeds the {self.max_bytes} byte upload limit"
            )
        name = self._generate_name(original_name)
        try:
            self.root.mkdir(parents=True, exist_ok=True)
            (self.root / name).write_bytes(content)
        except OSError as exc:
            logger.error("Failed to store upload: %s", exc)
            raise StorageFailure("Could not store the uploaded file") from exc
        logger.info("Stored upload %s (%d bytes)", name, len(content))
        return f"{_REFERENCE_PREFIX}{name}"

    def delete(self, reference: str) -> None:
        path = self._resolve(reference)
        if path is None:
            logger.warning("Ignoring delete for foreign reference %s", reference)
            return
        try:
            path.unlink(missing_ok=True)
        except OSError as exc:
            logger.warning("Failed to delete stored file %s: %s", reference, exc)
            return
        logger.info("Deleted stored file %s", reference)

    def exists(self, reference: str) -> bool:
        path = self._resolve(reference)
        return path is not None and path.is_file()


def get_storage(settings=None) -> LocalBlobStorage:
    from noticeboard.core.settings import get_settings

    settings = settings or get_settings()
    return LocalBlobStorage(settings.upload_dir, max_bytes=settings.max_upload_bytes)
