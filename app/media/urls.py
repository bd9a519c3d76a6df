"""
URL configuration for attachments.

All URLs are prefixed with /api/v1/ in the main URL configuration.
"""

from django.urls import path

from media.views import (
    AttachmentDetailView,
    AttachmentDownloadView,
    AttachmentSignedUrlView,
)

app_name = "media"

urlpatterns = [
    path(
        "attachments/<uuid:attachment_id>/",
        AttachmentDetailView.as_view(),
        name="attachment-detail",
    ),
    path(
        "attachments/<uuid:attachment_id>/signed-url/",
        AttachmentSignedUrlView.as_view(),
        name="attachment-signed-url",
    ),
    path(
        "attachments/<uuid:attachment_id>/download/",
        AttachmentDownloadView.as_view(),
        name="attachment-download",
    ),
]
