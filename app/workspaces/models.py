"""
Workspace models.

A workspace is the top-level container of the chat system: channels and
direct chats always belong to exactly one workspace, and workspace
membership gates access to everything inside it.

Models:
    Workspace: Named container, public (anyone may join) or private
    WorkspaceMembership: User membership in a workspace, unique per pair

Design Decisions:
    - Deleting a workspace cascades to its channels and direct chats
    - The creator is always a member
    - Joining is idempotent: the (workspace, user) pair is unique
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from django.conf import settings
from django.db import models

from core.model_mixins import UUIDPrimaryKeyMixin
from core.models import BaseModel

if TYPE_CHECKING:
    from authentication.models import User


class Visibility(models.TextChoices):
    """
    Visibility of a workspace or channel.

    PUBLIC: Listed for everyone; anyone may join (workspace) or read
            without membership (channel, for workspace members)
    PRIVATE: Only members can see it
    """

    PUBLIC = "public", "Public"
    PRIVATE = "private", "Private"


class Workspace(UUIDPrimaryKeyMixin, BaseModel):
    """
    A team workspace.

    Fields:
        name: Display name
        description: Optional description
        visibility: public or private
        created_by: Creator (kept null if the user is deleted)

    Relationships:
        memberships: WorkspaceMembership rows
        channels: Channel rows (chat app)
        direct_chats: DirectChat rows (chat app)
    """

    name = models.CharField(
        max_length=100,
        help_text="Workspace display name",
    )

    description = models.TextField(
        blank=True,
        default="",
        help_text="Optional description",
    )

    visibility = models.CharField(
        max_length=10,
        choices=Visibility.choices,
        default=Visibility.PUBLIC,
        db_index=True,
        help_text="Public workspaces are listed for and joinable by everyone",
    )

    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="created_workspaces",
    )

    members = models.ManyToManyField(
        settings.AUTH_USER_MODEL,
        through="WorkspaceMembership",
        related_name="workspaces",
    )

    class Meta:
        db_table = "workspaces"
        ordering = ["name"]

    def __str__(self) -> str:
        return self.name

    def is_member(self, user: User) -> bool:
        """Check whether the user belongs to this workspace."""
        return self.memberships.filter(user=user).exists()


class WorkspaceMembership(UUIDPrimaryKeyMixin, BaseModel):
    """
    Membership of a user in a workspace.

    Constraints:
        - One row per (workspace, user)
    """

    workspace = models.ForeignKey(
        Workspace,
        on_delete=models.CASCADE,
        related_name="memberships",
    )

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="workspace_memberships",
    )

    class Meta:
        db_table = "workspace_members"
        ordering = ["created_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["workspace", "user"],
                name="workspace_member_unique",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.user_id} in {self.workspace_id}"
