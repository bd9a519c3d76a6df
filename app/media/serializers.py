"""
Serializers for attachments.

Attachment URLs are not part of the representation; clients request a
signed URL when they need to read the blob.
"""

from rest_framework import serializers

from media.models import Attachment


class AttachmentSerializer(serializers.ModelSerializer):
    message = serializers.UUIDField(source="message_id", read_only=True)
    direct_message = serializers.UUIDField(source="direct_message_id", read_only=True)
    uploaded_by = serializers.UUIDField(source="uploaded_by_id", read_only=True)

    class Meta:
        model = Attachment
        fields = [
            "id",
            "message",
            "direct_message",
            "uploaded_by",
            "original_filename",
            "file_size",
            "mime_type",
            "created_at",
        ]
        read_only_fields = fields


class SignedUrlSerializer(serializers.Serializer):
    url = serializers.CharField()
    expires_in = serializers.IntegerField()


class AttachmentUploadSerializer(serializers.Serializer):
    """Multipart body for attaching a file to an existing message."""

    file = serializers.FileField()
