"""
Authentication models.

This module defines the user model shared by every chat component:
- User: email-based account carrying the public identity shown next to
  messages (username, full name, avatar URL)

Related files:
    - managers.py: Custom user manager for email-based creation
    - services.py: UserService (upsert, lookup, search, batch fetch)

Note:
    Users are created or refreshed through UserService.upsert_user, keyed
    on id, so an external identity source can push its records without
    caring whether the row exists yet.
"""

import uuid

from django.contrib.auth.models import AbstractBaseUser, PermissionsMixin
from django.db import models

from authentication.managers import UserManager


class User(AbstractBaseUser, PermissionsMixin):
    """
    Custom User model using email as the login identifier.

    Fields:
        id: UUID primary key, referenced by messages, memberships, presence
        email: Login identifier, unique
        username: Handle shown in the UI and matched by user search
        full_name: Display name, also matched by user search
        image_url: Avatar URL (may be empty)
        is_active: Whether the user account is active
        is_staff: Whether the user can access Django admin
        date_joined: When the user account was created
        updated_at: When the user record was last modified

    Usage:
        user = User.objects.create_user(
            email="ada@example.com",
            username="ada",
            full_name="Ada Lovelace",
        )
    """

    id = models.UUIDField(
        primary_key=True,
        default=uuid.uuid4,
        editable=False,
    )

    email = models.EmailField(
        unique=True,
        max_length=254,
        help_text="User's email address (login identifier)",
    )

    username = models.CharField(
        max_length=50,
        unique=True,
        help_text="Public handle shown in conversations",
    )

    full_name = models.CharField(
        max_length=150,
        blank=True,
        default="",
        help_text="Display name",
    )

    image_url = models.URLField(
        max_length=500,
        blank=True,
        default="",
        help_text="Avatar image URL",
    )

    is_active = models.BooleanField(
        default=True,
        help_text="Whether this user account is active. Deselect instead of deleting.",
    )
    is_staff = models.BooleanField(
        default=False,
        help_text="Whether the user can access the admin site.",
    )

    date_joined = models.DateTimeField(
        auto_now_add=True,
        help_text="When the user account was created",
    )
    updated_at = models.DateTimeField(
        auto_now=True,
        help_text="When the user record was last modified",
    )

    USERNAME_FIELD = "email"
    REQUIRED_FIELDS = ["username"]

    objects = UserManager()

    class Meta:
        db_table = "users"
        verbose_name = "user"
        verbose_name_plural = "users"
        ordering = ["username"]

    def __str__(self):
        return self.username or self.email

    def get_full_name(self):
        """Return the display name, falling back to the username."""
        return self.full_name or self.username

    def get_short_name(self):
        return self.username
