"""
Media models package.

Exports:
    Attachment: File attached to a channel or direct message
"""

from media.models.attachment import Attachment, attachment_upload_path

__all__ = [
    "Attachment",
    "attachment_upload_path",
]
