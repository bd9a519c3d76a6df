"""
Chat application configuration.

This app provides the conversation store of a workspace:
- Public and private channels with membership
- Direct chats between two workspace members
- Messages with single-level threads, reactions and attachments
- Presence and message search
"""

from django.apps import AppConfig


class ChatConfig(AppConfig):
    """Configuration for the chat application."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "chat"
    verbose_name = "Chat"
