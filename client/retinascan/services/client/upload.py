from __future__ import annotations

"""client/retinascan/services/client/upload.py

Local upload validation and preview ownership.

This module provides:
- UploadCandidate: the selected file, validated before any network activity
- validate_upload: extension / size checks against Settings
- PreviewHandle: an in-memory view over the candidate's bytes (no copy)
- UploadSlot: owns at most one candidate and one live preview handle

Ownership rule: selecting a new file releases the previous preview; clearing
the slot or closing the session releases the current one.
"""

import logging
from dataclasses import dataclass
from pathlib import PurePath
from typing import Optional

from retinascan.config import Settings
from retinascan.errors import ValidationError
from retinascan.schemas import UploadInfo

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UploadCandidate:
    filename: str
    data: bytes
    extension: str

    @property
    def size_bytes(self) -> int:
        return len(self.data)

    @property
    def content_type(self) -> str:
        return "image/png" if self.extension == ".png" else "image/jpeg"

    def info(self) -> UploadInfo:
        return UploadInfo(filename=self.filename, size_bytes=self.size_bytes, extension=self.extension)


def validate_upload(filename: str, data: bytes, settings: Settings) -> UploadCandidate:
    """Build a candidate or raise ValidationError. Never touches the network."""
    extension = PurePath(filename or "").suffix.lower()
    allowed = {ext.lower() for ext in settings.allowed_extensions}
    if extension not in allowed:
        raise ValidationError("Invalid file type. Please upload PNG, JPG, or JPEG.")

    if len(data) > settings.max_upload_bytes:
        raise ValidationError(
            f"File too large. Maximum allowed size is {settings.max_upload_megabytes} MB."
        )

    return UploadCandidate(filename=filename, data=data, extension=extension)


class PreviewHandle:
    """Read-only view over a candidate's bytes."""

    def __init__(self, candidate: UploadCandidate) -> None:
        self._view: Optional[memoryview] = memoryview(candidate.data)

    @property
    def released(self) -> bool:
        return self._view is None

    @property
    def view(self) -> memoryview:
        if self._view is None:
            raise ValueError("preview handle already released")
        return self._view

    def release(self) -> None:
        # idempotent
        if self._view is not None:
            self._view.release()
            self._view = None


class UploadSlot:
    """Holds the selected candidate and its single live preview."""

    def __init__(self) -> None:
        self._candidate: Optional[UploadCandidate] = None
        self._preview: Optional[PreviewHandle] = None

    @property
    def candidate(self) -> Optional[UploadCandidate]:
        return self._candidate

    @property
    def preview(self) -> Optional[PreviewHandle]:
        return self._preview

    def select(self, candidate: UploadCandidate) -> PreviewHandle:
        preview = PreviewHandle(candidate)
        self._release_preview()
        self._candidate = candidate
        self._preview = preview
        logger.debug("Selected %s (%d bytes)", candidate.filename, candidate.size_bytes)
        return preview

    def clear(self) -> None:
        self._candidate = None
        self._release_preview()

    close = clear

    def _release_preview(self) -> None:
        if self._preview is not None:
            self._preview.release()
            self._preview = None
