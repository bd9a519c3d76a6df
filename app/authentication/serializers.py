"""
Serializers for the user directory.

This module provides DRF serializers for:
- User model (current user and public summaries)
- Profile updates (username, full name, avatar)
- Batch lookup requests

Related files:
    - models.py: User
    - views.py: Views that use these serializers
    - services.py: UserService
"""

from rest_framework import serializers

from authentication.models import User


class UserSerializer(serializers.ModelSerializer):
    """Full representation of the authenticated user."""

    class Meta:
        model = User
        fields = [
            "id",
            "email",
            "username",
            "full_name",
            "image_url",
            "date_joined",
        ]
        read_only_fields = fields


class UserSummarySerializer(serializers.ModelSerializer):
    """Public fields shown next to messages and in search results."""

    class Meta:
        model = User
        fields = ["id", "username", "full_name", "image_url"]
        read_only_fields = fields


class UserUpdateSerializer(serializers.Serializer):
    """Partial update of the current user's public profile."""

    username = serializers.RegexField(
        r"^[a-zA-Z0-9_.-]{2,50}$",
        required=False,
        error_messages={
            "invalid": "Username may contain letters, numbers, dots, dashes and underscores."
        },
    )
    full_name = serializers.CharField(max_length=150, required=False, allow_blank=True)
    image_url = serializers.URLField(max_length=500, required=False, allow_blank=True)


class UserBatchSerializer(serializers.Serializer):
    """Request body for fetching many users at once."""

    user_ids = serializers.ListField(
        child=serializers.UUIDField(),
        allow_empty=True,
        max_length=200,
    )
