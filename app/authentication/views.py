"""
User directory views.

This module provides API views for:
- The current user (read and update public profile)
- User search (username or full name, caller excluded)
- Batch lookup of users by id

Related files:
    - serializers.py: Request/response serialization
    - services.py: UserService
    - urls.py: URL routing

Note:
    Token endpoints (obtain/refresh) come from djangorestframework-simplejwt
    and are wired in urls.py.
"""

from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import OpenApiParameter, extend_schema
from rest_framework import status
from rest_framework.permissions import IsAuthenticated
from rest_framework.views import APIView

from authentication.serializers import (
    UserBatchSerializer,
    UserSerializer,
    UserSummarySerializer,
    UserUpdateSerializer,
)
from authentication.services import UserService
from core.viewset_mixins import ServiceResponseMixin


class CurrentUserView(ServiceResponseMixin, APIView):
    """
    Read or update the authenticated user.

    GET   /api/v1/users/me/
    PATCH /api/v1/users/me/
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="get_current_user",
        summary="Get current user",
        responses={200: UserSerializer},
        tags=["Users"],
    )
    def get(self, request):
        result = UserService.get_user(request.user.id)
        return self.service_response(result, UserSerializer)

    @extend_schema(
        operation_id="update_current_user",
        summary="Update current user",
        request=UserUpdateSerializer,
        responses={200: UserSerializer},
        tags=["Users"],
    )
    def patch(self, request):
        serializer = UserUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = UserService.update_user(request.user.id, **serializer.validated_data)
        return self.service_response(result, UserSerializer)


class UserSearchView(ServiceResponseMixin, APIView):
    """
    Search users by username or full name.

    GET /api/v1/users/search/?q=<text>
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="search_users",
        summary="Search users",
        parameters=[
            OpenApiParameter(
                name="q",
                type=OpenApiTypes.STR,
                location=OpenApiParameter.QUERY,
                description="Substring of username or full name",
                required=True,
            ),
        ],
        responses={200: UserSummarySerializer(many=True)},
        tags=["Users"],
    )
    def get(self, request):
        result = UserService.search_users(
            query=request.query_params.get("q", ""),
            current_user=request.user,
        )
        return self.service_response(result, UserSummarySerializer)


class UserBatchView(ServiceResponseMixin, APIView):
    """
    Fetch many users in one request.

    POST /api/v1/users/batch/  {"user_ids": [...]}
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="get_users_batch",
        summary="Get users by ids",
        request=UserBatchSerializer,
        responses={200: UserSummarySerializer(many=True)},
        tags=["Users"],
    )
    def post(self, request):
        serializer = UserBatchSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = UserService.get_cached_users(serializer.validated_data["user_ids"])
        return self.service_response(result, success_status=status.HTTP_200_OK)
