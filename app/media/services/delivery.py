"""
FileDeliveryService for serving attachment blobs.

Provides:
- Storage detection (local FileSystem or S3)
- Signed read URLs (presigned S3 URLs, protected endpoint locally)
- File responses for the protected endpoint (FileResponse in DEBUG,
  X-Accel-Redirect for nginx in production)
- Content-Disposition handling
"""

from __future__ import annotations

from typing import TYPE_CHECKING
from urllib.parse import quote

from django.conf import settings
from django.core.files.storage import default_storage
from django.http import FileResponse, HttpResponse
from django.urls import reverse

from chat.constants import ATTACHMENT_CONFIG
from core.services import BaseService

if TYPE_CHECKING:
    from media.models import Attachment


class FileDeliveryService(BaseService):
    """
    Service for delivering attachment blobs to users.

    Abstracts storage backend differences:
    - S3 storage: Presigned GET URLs for direct browser access
    - Local storage: URL of the protected download endpoint, which checks
      access on every request

    Usage:
        url = FileDeliveryService.get_signed_url(attachment)

        # In the protected endpoint, after access control
        return FileDeliveryService.serve_file_response(attachment)
    """

    @classmethod
    def is_s3_storage(cls) -> bool:
        """
        Check if the default storage is S3.

        Detects S3Storage by checking for the 'bucket' attribute.
        """
        return hasattr(default_storage, "bucket")

    @classmethod
    def get_signed_url(
        cls,
        attachment: Attachment,
        expires_in: int = ATTACHMENT_CONFIG.SIGNED_URL_EXPIRY_SECONDS,
    ) -> str:
        """
        Get a time-limited URL for reading an attachment inline.

        Args:
            attachment: The attachment to generate the URL for
            expires_in: Expiration in seconds (S3 only, default 1 hour)

        Returns:
            URL string
        """
        if cls.is_s3_storage():
            return cls._get_s3_presigned_url(
                attachment,
                response_content_disposition=(
                    f'inline; filename="{cls._encode_filename(attachment.original_filename)}"'
                ),
                expires_in=expires_in,
            )

        return reverse(
            "media:attachment-download",
            kwargs={"attachment_id": str(attachment.id)},
        )

    @classmethod
    def serve_file_response(
        cls,
        attachment: Attachment,
        as_attachment: bool = False,
    ) -> HttpResponse:
        """
        Create HTTP response for serving a blob.

        In DEBUG mode: Returns Django FileResponse (Django serves the file)
        In production: Returns X-Accel-Redirect for nginx to serve the file

        Must only be called after access control has been verified.

        Raises:
            FileNotFoundError: If the blob doesn't exist in storage
        """
        if not attachment.file or not default_storage.exists(attachment.file.name):
            raise FileNotFoundError(f"File not found: {attachment.file.name}")

        filename = cls._encode_filename(attachment.original_filename)
        content_type = attachment.mime_type or "application/octet-stream"
        kind = "attachment" if as_attachment else "inline"
        disposition = f'{kind}; filename="{filename}"'

        if settings.DEBUG:
            response = FileResponse(
                default_storage.open(attachment.file.name, "rb"),
                content_type=content_type,
            )
            response["Content-Disposition"] = disposition
            return response

        response = HttpResponse(content_type=content_type)
        response["Content-Disposition"] = disposition
        # Must match the internal location in the nginx configuration
        response["X-Accel-Redirect"] = f"/protected-media/{attachment.file.name}"
        return response

    # =========================================================================
    # Private Helper Methods
    # =========================================================================

    @classmethod
    def _get_s3_presigned_url(
        cls,
        attachment: Attachment,
        response_content_disposition: str,
        expires_in: int,
    ) -> str:
        """Generate a presigned S3 GET URL with custom response headers."""
        client = default_storage.connection.meta.client
        return client.generate_presigned_url(
            "get_object",
            Params={
                "Bucket": default_storage.bucket_name,
                "Key": attachment.file.name,
                "ResponseContentDisposition": response_content_disposition,
                "ResponseContentType": attachment.mime_type
                or "application/octet-stream",
            },
            ExpiresIn=expires_in,
        )

    @classmethod
    def _encode_filename(cls, filename: str) -> str:
        """URL-encode a filename for the Content-Disposition header."""
        return quote(filename, safe="")
