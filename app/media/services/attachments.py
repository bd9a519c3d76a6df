"""
AttachmentService for files posted with messages.

Upload flow (message with attachments):
    1. store_blobs(): every file is written to default storage. A failed
       upload deletes the blobs already written and aborts before any row
       exists.
    2. The message service inserts the message and calls
       create_attachment_rows() inside the same transaction.
    3. If that transaction fails, the caller hands the stored keys to
       discard_blobs(), which queues their deletion (Celery, with retries).

Deleting an attachment row (directly or through a message cascade)
queues deletion of its blob once the transaction commits; see
media.signals.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass
from typing import TYPE_CHECKING

from django.core.files.storage import default_storage

from chat.authorization import ChatAuthorizationService
from chat.constants import ATTACHMENT_CONFIG
from chat.models import Message
from core.services import BaseService, ServiceResult, service_operation
from media.models import Attachment, attachment_upload_path
from media.services.delivery import FileDeliveryService
from media.validators import validate_uploads

if TYPE_CHECKING:
    from collections.abc import Iterable

    from django.core.files.uploadedfile import UploadedFile

    from authentication.models import User
    from chat.models import BaseMessage

logger = logging.getLogger(__name__)


@dataclass
class StoredBlob:
    """A blob written to storage that has no attachment row yet."""

    key: str
    filename: str
    size: int
    mime_type: str


class AttachmentService(BaseService):
    """
    Service for message attachments.

    Methods:
        store_blobs: Write uploads to the blob store
        discard_blobs: Queue deletion of blobs whose rows were never written
        create_attachment_rows: Insert rows for stored blobs (caller's transaction)
        upload_attachment: Attach one file to an existing message
        get_attachments: Attachments of one message
        get_attachments_for_messages: Attachments of many messages, one query
        delete_attachment: Remove an attachment (uploader only)
        get_signed_url: Time-limited read URL
    """

    @staticmethod
    def owner_field(message_model) -> str:
        """Name of the Attachment FK pointing at this kind of message."""
        return "message" if message_model is Message else "direct_message"

    @classmethod
    @service_operation("Failed to upload attachments")
    def store_blobs(
        cls,
        files: list[UploadedFile],
        uploader: User,
    ) -> ServiceResult[list[StoredBlob]]:
        """
        Write every upload to default storage.

        Error codes:
            VALIDATION_ERROR: Too many, empty or oversized files
            UPLOAD_FAILED: The blob store rejected a file
        """
        validation = validate_uploads(files)
        if not validation.is_valid:
            return ServiceResult.failure(
                validation.error,
                error_code="VALIDATION_ERROR",
            )

        stored: list[StoredBlob] = []
        for upload, info in zip(files, validation.uploads):
            try:
                key = default_storage.save(
                    attachment_upload_path(uploader.id, info.filename),
                    upload,
                )
            except Exception:
                logger.exception(f"Storing {info.filename} for user {uploader.id} failed")
                for blob in stored:
                    default_storage.delete(blob.key)
                return ServiceResult.failure(
                    f"Failed to upload {info.filename}",
                    error_code="UPLOAD_FAILED",
                )
            stored.append(
                StoredBlob(
                    key=key,
                    filename=info.filename,
                    size=info.size,
                    mime_type=info.mime_type,
                )
            )

        cls.get_logger().info(f"Stored {len(stored)} blobs for user {uploader.id}")
        return ServiceResult.success(stored, "Files uploaded successfully")

    @classmethod
    def discard_blobs(cls, blobs: Iterable[StoredBlob]) -> None:
        """Queue deletion of blobs that never got an attachment row."""
        from media.tasks import delete_blobs

        keys = [blob.key for blob in blobs]
        if not keys:
            return
        cls.get_logger().warning(f"Discarding {len(keys)} orphaned blobs")
        delete_blobs.delay(keys)

    @classmethod
    def create_attachment_rows(
        cls,
        message: BaseMessage,
        uploader: User,
        blobs: Iterable[StoredBlob],
    ) -> list[Attachment]:
        """
        Insert one attachment row per stored blob.

        Runs inside the caller's transaction; rows are created one by one
        so each emits its change feed event.
        """
        field = cls.owner_field(type(message))
        return [
            Attachment.objects.create(
                **{field: message},
                uploaded_by=uploader,
                file=blob.key,
                original_filename=blob.filename,
                file_size=blob.size,
                mime_type=blob.mime_type,
            )
            for blob in blobs
        ]

    @classmethod
    @service_operation("Failed to upload attachment")
    def upload_attachment(
        cls,
        user: User,
        message: BaseMessage,
        upload: UploadedFile,
    ) -> ServiceResult[Attachment]:
        """
        Attach one file to an existing message.

        Error codes:
            NOT_AUTHOR: Only the author may attach files
            VALIDATION_ERROR / UPLOAD_FAILED: see store_blobs
        """
        if message.author_id != user.id:
            return ServiceResult.failure(
                "Only the author can attach files to this message",
                error_code="NOT_AUTHOR",
            )

        stored = cls.store_blobs([upload], user)
        if not stored.success:
            return stored

        try:
            with cls.atomic():
                attachments = cls.create_attachment_rows(message, user, stored.data)
        except Exception:
            cls.discard_blobs(stored.data)
            raise

        return ServiceResult.success(attachments[0], "Attachment uploaded successfully")

    @classmethod
    @service_operation("Failed to get attachments")
    def get_attachments(
        cls,
        user: User,
        message: BaseMessage,
    ) -> ServiceResult[list[Attachment]]:
        """
        Attachments of one message, oldest first.

        Error codes:
            NOT_MEMBER: The user cannot read the message
        """
        if not ChatAuthorizationService.can_access_message(user, message):
            return ServiceResult.failure(
                "You do not have access to this conversation",
                error_code="NOT_MEMBER",
            )

        field = cls.owner_field(type(message))
        attachments = list(Attachment.objects.filter(**{field: message}))
        return ServiceResult.success(attachments, "Attachments retrieved successfully")

    @classmethod
    @service_operation("Failed to get attachments")
    def get_attachments_for_messages(
        cls,
        message_model,
        message_ids: Iterable,
    ) -> ServiceResult[dict[str, list[Attachment]]]:
        """
        Attachments of many messages in one query.

        Access is the caller's responsibility (the ids come from a
        conversation it already checked).

        Returns:
            ServiceResult with {message id (str): [Attachment, ...]};
            messages without attachments are absent
        """
        ids = [message_id for message_id in message_ids if message_id]
        if not ids:
            return ServiceResult.success({}, "Attachments retrieved successfully")

        field = cls.owner_field(message_model)
        grouped: dict[str, list[Attachment]] = defaultdict(list)
        for attachment in Attachment.objects.filter(**{f"{field}_id__in": ids}):
            grouped[str(getattr(attachment, f"{field}_id"))].append(attachment)

        return ServiceResult.success(dict(grouped), "Attachments retrieved successfully")

    @classmethod
    def _get_accessible(cls, user: User, attachment_id) -> ServiceResult[Attachment]:
        attachment = (
            Attachment.objects.select_related(
                "message__channel", "direct_message__chat"
            )
            .filter(id=attachment_id)
            .first()
        )
        if attachment is None:
            return ServiceResult.failure(
                "Attachment not found",
                error_code="ATTACHMENT_NOT_FOUND",
            )

        message = attachment.message or attachment.direct_message
        if not ChatAuthorizationService.can_access_message(user, message):
            return ServiceResult.failure(
                "You do not have access to this attachment",
                error_code="NOT_MEMBER",
            )
        return ServiceResult.success(attachment)

    @classmethod
    @service_operation("Failed to get attachment")
    def get_attachment(cls, user: User, attachment_id) -> ServiceResult[Attachment]:
        """
        Fetch one attachment the user may read.

        Error codes:
            ATTACHMENT_NOT_FOUND: No such attachment
            NOT_MEMBER: The user cannot read the owning message
        """
        return cls._get_accessible(user, attachment_id)

    @classmethod
    @service_operation("Failed to delete attachment")
    def delete_attachment(cls, user: User, attachment_id) -> ServiceResult[None]:
        """
        Delete an attachment row; its blob is removed after commit.

        Error codes:
            ATTACHMENT_NOT_FOUND: No such attachment
            PERMISSION_DENIED: Only the uploader may delete
        """
        attachment = Attachment.objects.filter(id=attachment_id).first()
        if attachment is None:
            return ServiceResult.failure(
                "Attachment not found",
                error_code="ATTACHMENT_NOT_FOUND",
            )
        if attachment.uploaded_by_id != user.id:
            return ServiceResult.failure(
                "Only the uploader can delete this attachment",
                error_code="PERMISSION_DENIED",
            )

        with cls.atomic():
            attachment.delete()

        cls.get_logger().info(f"User {user.id} deleted attachment {attachment_id}")
        return ServiceResult.success(None, "Attachment deleted successfully")

    @classmethod
    @service_operation("Failed to generate download URL")
    def get_signed_url(cls, user: User, attachment_id) -> ServiceResult[dict]:
        """
        Time-limited read URL for an attachment.

        Returns:
            ServiceResult with {"url": str, "expires_in": int}

        Error codes:
            ATTACHMENT_NOT_FOUND / NOT_MEMBER: see get_attachment
        """
        result = cls._get_accessible(user, attachment_id)
        if not result.success:
            return result

        url = FileDeliveryService.get_signed_url(result.data)
        return ServiceResult.success(
            {"url": url, "expires_in": ATTACHMENT_CONFIG.SIGNED_URL_EXPIRY_SECONDS},
            "Download URL generated successfully",
        )
