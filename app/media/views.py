"""
Views for attachments.

URL Structure:
    /api/v1/attachments/{id}/             GET, DELETE
    /api/v1/attachments/{id}/signed-url/  GET
    /api/v1/attachments/{id}/download/    GET (local storage only)

Design Decisions:
    - Access is checked by AttachmentService on every request
    - With S3 storage clients read blobs through presigned URLs; the
      download endpoint serves local storage only
"""

from __future__ import annotations

import logging

from django.http import Http404
from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import extend_schema
from rest_framework.permissions import IsAuthenticated
from rest_framework.views import APIView

from core.viewset_mixins import ServiceResponseMixin
from media.serializers import AttachmentSerializer, SignedUrlSerializer
from media.services import AttachmentService, FileDeliveryService

logger = logging.getLogger(__name__)


class AttachmentDetailView(ServiceResponseMixin, APIView):
    """
    Read or delete one attachment.

    GET    /api/v1/attachments/{id}/
    DELETE /api/v1/attachments/{id}/
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="get_attachment",
        summary="Get attachment",
        responses={200: AttachmentSerializer},
        tags=["Attachments"],
    )
    def get(self, request, attachment_id):
        result = AttachmentService.get_attachment(request.user, attachment_id)
        return self.service_response(result, AttachmentSerializer)

    @extend_schema(
        operation_id="delete_attachment",
        summary="Delete attachment",
        description="Uploader only. The blob is removed after the row is deleted.",
        tags=["Attachments"],
    )
    def delete(self, request, attachment_id):
        result = AttachmentService.delete_attachment(request.user, attachment_id)
        return self.service_response(result)


class AttachmentSignedUrlView(ServiceResponseMixin, APIView):
    """
    Time-limited read URL for an attachment (expires after one hour).

    GET /api/v1/attachments/{id}/signed-url/
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="get_attachment_signed_url",
        summary="Get signed URL",
        responses={200: SignedUrlSerializer},
        tags=["Attachments"],
    )
    def get(self, request, attachment_id):
        result = AttachmentService.get_signed_url(request.user, attachment_id)
        return self.service_response(result)


class AttachmentDownloadView(APIView):
    """
    Serve an attachment blob from local storage.

    GET /api/v1/attachments/{id}/download/
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="download_attachment",
        summary="Download attachment",
        responses={200: OpenApiTypes.BINARY},
        tags=["Attachments"],
    )
    def get(self, request, attachment_id):
        result = AttachmentService.get_attachment(request.user, attachment_id)
        if not result.success:
            raise Http404(result.message)

        try:
            return FileDeliveryService.serve_file_response(result.data)
        except FileNotFoundError:
            logger.warning(f"Blob missing for attachment {attachment_id}")
            raise Http404("File not found")
