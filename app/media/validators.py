"""
Attachment upload validators.

Uploads are handed to the blob store as-is; these checks only bound their
size and count and normalize the metadata stored with them.
"""

from __future__ import annotations

import mimetypes
import os
from dataclasses import dataclass
from typing import TYPE_CHECKING

from chat.constants import ATTACHMENT_CONFIG

if TYPE_CHECKING:
    from django.core.files.uploadedfile import UploadedFile

DEFAULT_MIME_TYPE = "application/octet-stream"


@dataclass
class UploadInfo:
    """Normalized metadata of one upload."""

    filename: str
    size: int
    mime_type: str


@dataclass
class ValidationResult:
    """Result of validating a batch of uploads."""

    is_valid: bool
    error: str | None = None
    uploads: list[UploadInfo] | None = None


def sanitize_filename(filename: str) -> str:
    """
    Strip directory components and control characters from a filename.

    Returns "file" when nothing usable is left.
    """
    name = os.path.basename((filename or "").replace("\\", "/"))
    name = "".join(ch for ch in name if ch.isprintable()).strip()
    return name[:255] or "file"


def detect_mime_type(filename: str, reported: str | None = None) -> str:
    """
    Pick the MIME type to store.

    The client-reported content type wins; otherwise it is guessed from
    the extension.
    """
    if reported and "/" in reported:
        return reported[:100]
    guessed, _ = mimetypes.guess_type(filename)
    return guessed or DEFAULT_MIME_TYPE


def validate_uploads(files: list[UploadedFile]) -> ValidationResult:
    """
    Validate the files posted with one message.

    Checks:
        - At most MAX_ATTACHMENTS_PER_MESSAGE files
        - Each file is non-empty and within MAX_FILE_SIZE_BYTES
    """
    if len(files) > ATTACHMENT_CONFIG.MAX_ATTACHMENTS_PER_MESSAGE:
        return ValidationResult(
            is_valid=False,
            error=(
                f"At most {ATTACHMENT_CONFIG.MAX_ATTACHMENTS_PER_MESSAGE} "
                "attachments per message"
            ),
        )

    uploads = []
    for upload in files:
        filename = sanitize_filename(upload.name)
        if not upload.size:
            return ValidationResult(is_valid=False, error=f"{filename} is empty")
        if upload.size > ATTACHMENT_CONFIG.MAX_FILE_SIZE_BYTES:
            limit_mb = ATTACHMENT_CONFIG.MAX_FILE_SIZE_BYTES // (1024 * 1024)
            return ValidationResult(
                is_valid=False,
                error=f"{filename} exceeds the {limit_mb} MB limit",
            )
        uploads.append(
            UploadInfo(
                filename=filename,
                size=upload.size,
                mime_type=detect_mime_type(
                    filename, getattr(upload, "content_type", None)
                ),
            )
        )

    return ValidationResult(is_valid=True, uploads=uploads)
