"""Media services for attachment storage and delivery."""

from media.services.attachments import AttachmentService, StoredBlob
from media.services.delivery import FileDeliveryService

__all__ = [
    "AttachmentService",
    "FileDeliveryService",
    "StoredBlob",
]
