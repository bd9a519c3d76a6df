"""
ViewSet mixins for common DRF functionality.

This module provides generic, non-domain-specific mixins for views:
- ServiceResponseMixin: Render a ServiceResult as the uniform
  ``{success, message, data}`` envelope with a matching HTTP status

Usage:
    from core.viewset_mixins import ServiceResponseMixin

    class ChannelViewSet(ServiceResponseMixin, viewsets.ViewSet):
        def retrieve(self, request, pk=None):
            result = ChannelService.get_channel(pk, request.user)
            return self.service_response(result, ChannelSerializer)
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from rest_framework import status
from rest_framework.response import Response

if TYPE_CHECKING:
    from core.services import ServiceResult

logger = logging.getLogger(__name__)

# Error codes that map to something other than 400 Bad Request
FORBIDDEN_CODES = frozenset(
    {
        "PERMISSION_DENIED",
        "NOT_MEMBER",
        "NOT_AUTHOR",
        "NOT_PARTICIPANT",
    }
)


def status_for_error(error_code: str | None) -> int:
    """
    Map a ServiceResult error code to an HTTP status.

    ``*_NOT_FOUND`` -> 404, authorization codes -> 403,
    ``INTERNAL_ERROR`` -> 500, everything else -> 400.
    """
    if not error_code:
        return status.HTTP_400_BAD_REQUEST
    if error_code.endswith("_NOT_FOUND"):
        return status.HTTP_404_NOT_FOUND
    if error_code in FORBIDDEN_CODES:
        return status.HTTP_403_FORBIDDEN
    if error_code == "INTERNAL_ERROR":
        return status.HTTP_500_INTERNAL_SERVER_ERROR
    return status.HTTP_400_BAD_REQUEST


class ServiceResponseMixin:
    """
    Render ServiceResults from views.

    Successful results are serialized with the given serializer class
    (``many`` is inferred from list/tuple/queryset data) and wrapped in the
    response envelope. Failures keep their message and error code and get
    the HTTP status from ``status_for_error``.
    """

    def service_response(
        self,
        result: ServiceResult,
        serializer_class=None,
        success_status: int = status.HTTP_200_OK,
        serializer_context: dict | None = None,
    ) -> Response:
        if not result.success:
            return Response(
                result.to_response(),
                status=status_for_error(result.error_code),
            )

        if serializer_class is not None and result.data is not None:
            many = not hasattr(result.data, "_meta") and not isinstance(
                result.data, dict
            )
            context = serializer_context or {}
            if hasattr(self, "request"):
                context.setdefault("request", self.request)
            result = result.map(
                lambda data: serializer_class(data, many=many, context=context).data
            )

        return Response(result.to_response(), status=success_status)
