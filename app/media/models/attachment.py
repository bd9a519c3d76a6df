"""
Attachment model for files posted with messages.

Provides:
- UUID primary key
- Exactly one owning message (channel or direct), enforced in the database
- Storage key of the blob in Django's default storage
"""

from __future__ import annotations

from django.conf import settings
from django.db import models
from django.db.models import Q

from core.model_mixins import UUIDPrimaryKeyMixin
from core.models import BaseModel


def attachment_upload_path(owner_id, filename: str) -> str:
    """
    Build the storage key for a new attachment blob.

    Pattern: attachments/<uploader id>/<random hex>/<filename>

    The random segment keeps keys unique without a round trip to the
    database, so blobs can be stored before any row exists.
    """
    import uuid

    from chat.constants import ATTACHMENT_CONFIG

    return f"{ATTACHMENT_CONFIG.STORAGE_PREFIX}/{owner_id}/{uuid.uuid4().hex}/{filename}"


class Attachment(UUIDPrimaryKeyMixin, BaseModel):
    """
    A file attached to a channel message or a direct message.

    Attributes:
        message: Owning channel message (null for direct messages)
        direct_message: Owning direct message (null for channel messages)
        uploaded_by: User who uploaded the file
        file: Blob in default storage; the name is the storage key
        original_filename: Name of the file as uploaded
        file_size: Size in bytes
        mime_type: Content type reported by the client or guessed from
            the extension

    Constraints:
        - Exactly one of message / direct_message is set
    """

    message = models.ForeignKey(
        "chat.Message",
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name="attachments",
    )

    direct_message = models.ForeignKey(
        "chat.DirectMessage",
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name="attachments",
    )

    uploaded_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        db_column="user_id",
        related_name="attachments",
    )

    file = models.FileField(
        max_length=500,
        help_text="Blob in default storage (name is the storage key)",
    )

    original_filename = models.CharField(max_length=255)

    file_size = models.PositiveBigIntegerField(default=0)

    mime_type = models.CharField(max_length=100, blank=True, default="")

    class Meta:
        db_table = "attachments"
        ordering = ["created_at", "id"]
        constraints = [
            models.CheckConstraint(
                condition=(
                    Q(message__isnull=False, direct_message__isnull=True)
                    | Q(message__isnull=True, direct_message__isnull=False)
                ),
                name="attachment_exactly_one_message",
            ),
        ]

    def __str__(self) -> str:
        return self.original_filename

    @property
    def storage_key(self) -> str:
        return self.file.name
