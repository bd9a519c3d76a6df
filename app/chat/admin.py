"""
Django admin configuration for chat models.

Provides admin interfaces for:
- Channel management with memberships
- Direct chat viewing
- Message moderation (channel and direct)
- Presence inspection
"""

from django.contrib import admin

from chat.models import (
    Channel,
    ChannelMembership,
    DirectChat,
    DirectMessage,
    Message,
    Presence,
)


class ChannelMembershipInline(admin.TabularInline):
    """Inline display of members in channel admin."""

    model = ChannelMembership
    extra = 0
    readonly_fields = ["created_at"]
    raw_id_fields = ["user"]


@admin.register(Channel)
class ChannelAdmin(admin.ModelAdmin):
    list_display = ["name", "workspace", "visibility", "created_by", "created_at"]
    list_filter = ["visibility", "created_at"]
    search_fields = ["name", "workspace__name"]
    readonly_fields = ["created_at", "updated_at"]
    raw_id_fields = ["workspace", "created_by"]
    inlines = [ChannelMembershipInline]


@admin.register(DirectChat)
class DirectChatAdmin(admin.ModelAdmin):
    list_display = ["id", "workspace", "user1", "user2", "created_at"]
    search_fields = ["user1__email", "user2__email"]
    readonly_fields = ["created_at", "updated_at"]
    raw_id_fields = ["workspace", "user1", "user2"]


class BaseMessageAdmin(admin.ModelAdmin):
    """Shared moderation view of channel and direct messages."""

    list_display = ["id", "author", "content_preview", "reply_count", "created_at"]
    list_filter = ["created_at"]
    search_fields = ["content", "author__email"]
    readonly_fields = ["reactions", "reply_count", "edited_at", "created_at", "updated_at"]
    raw_id_fields = ["author", "parent"]

    @admin.display(description="Content")
    def content_preview(self, obj):
        return obj.content[:80]


@admin.register(Message)
class MessageAdmin(BaseMessageAdmin):
    raw_id_fields = ["channel", "author", "parent"]


@admin.register(DirectMessage)
class DirectMessageAdmin(BaseMessageAdmin):
    raw_id_fields = ["chat", "author", "parent"]


@admin.register(Presence)
class PresenceAdmin(admin.ModelAdmin):
    list_display = ["user", "status", "status_text", "last_seen"]
    list_filter = ["status"]
    search_fields = ["user__email"]
    raw_id_fields = ["user"]
