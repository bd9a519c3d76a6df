"""Django admin configuration for media app."""

from django.contrib import admin

from media.models import Attachment


@admin.register(Attachment)
class AttachmentAdmin(admin.ModelAdmin):
    """Admin configuration for Attachment model."""

    list_display = [
        "id",
        "original_filename",
        "mime_type",
        "file_size",
        "uploaded_by",
        "created_at",
    ]
    list_filter = ["mime_type"]
    search_fields = ["original_filename", "uploaded_by__email"]
    readonly_fields = ["id", "file_size", "mime_type", "created_at", "updated_at"]
    raw_id_fields = ["uploaded_by", "message", "direct_message"]
    date_hierarchy = "created_at"
    ordering = ["-created_at"]
