"""
Initial migration for chat.

Creates:
    - channels, channel_members
    - direct_chats (unique per workspace and canonical pair)
    - messages, direct_messages (single-level threads via parent)
    - message_reactions, direct_message_reactions
    - presence (one row per user)
"""

import uuid

import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models


def timestamps():
    return [
        (
            "created_at",
            models.DateTimeField(
                auto_now_add=True,
                db_index=True,
                help_text="Timestamp when this record was created",
            ),
        ),
        (
            "updated_at",
            models.DateTimeField(
                auto_now=True,
                help_text="Timestamp when this record was last modified",
            ),
        ),
    ]


def uuid_pk():
    return (
        "id",
        models.UUIDField(
            default=uuid.uuid4,
            editable=False,
            help_text="Unique identifier for this record",
            primary_key=True,
            serialize=False,
        ),
    )


def message_fields():
    return [
        *timestamps(),
        uuid_pk(),
        ("content", models.TextField()),
        (
            "reactions",
            models.JSONField(
                blank=True,
                default=dict,
                help_text="emoji -> ordered list of user ids (projection of reaction rows)",
            ),
        ),
        (
            "reply_count",
            models.PositiveIntegerField(
                default=0, help_text="Number of replies to this message"
            ),
        ),
        ("edited_at", models.DateTimeField(blank=True, null=True)),
    ]


VISIBILITY_CHOICES = [("public", "Public"), ("private", "Private")]


class Migration(migrations.Migration):
    initial = True

    dependencies = [
        ("workspaces", "0001_initial"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        # Channels
        migrations.CreateModel(
            name="Channel",
            fields=[
                *timestamps(),
                uuid_pk(),
                (
                    "name",
                    models.CharField(
                        help_text="Channel name, unique within the workspace",
                        max_length=80,
                    ),
                ),
                ("description", models.TextField(blank=True, default="")),
                (
                    "visibility",
                    models.CharField(
                        choices=VISIBILITY_CHOICES,
                        db_index=True,
                        default="public",
                        max_length=10,
                    ),
                ),
                (
                    "created_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="created_channels",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "workspace",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="channels",
                        to="workspaces.workspace",
                    ),
                ),
            ],
            options={
                "db_table": "channels",
                "ordering": ["name"],
                "constraints": [
                    models.UniqueConstraint(
                        fields=("workspace", "name"),
                        name="channel_name_unique_per_workspace",
                    )
                ],
            },
        ),
        migrations.CreateModel(
            name="ChannelMembership",
            fields=[
                *timestamps(),
                uuid_pk(),
                (
                    "channel",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="memberships",
                        to="chat.channel",
                    ),
                ),
                (
                    "user",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="channel_memberships",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "db_table": "channel_members",
                "ordering": ["created_at"],
                "constraints": [
                    models.UniqueConstraint(
                        fields=("channel", "user"), name="channel_member_unique"
                    )
                ],
            },
        ),
        # Direct chats
        migrations.CreateModel(
            name="DirectChat",
            fields=[
                *timestamps(),
                uuid_pk(),
                (
                    "user1",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="direct_chats_as_user1",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "user2",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="direct_chats_as_user2",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "workspace",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="direct_chats",
                        to="workspaces.workspace",
                    ),
                ),
            ],
            options={
                "db_table": "direct_chats",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["workspace", "user2"], name="direct_chat_user2_idx")
                ],
                "constraints": [
                    models.UniqueConstraint(
                        fields=("workspace", "user1", "user2"),
                        name="direct_chat_unique_pair",
                    )
                ],
            },
        ),
        # Messages
        migrations.CreateModel(
            name="Message",
            fields=[
                *message_fields(),
                (
                    "author",
                    models.ForeignKey(
                        db_column="user_id",
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="channel_messages",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "channel",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="messages",
                        to="chat.channel",
                    ),
                ),
                (
                    "parent",
                    models.ForeignKey(
                        blank=True,
                        help_text="Root message of the thread (null for top-level messages)",
                        null=True,
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="replies",
                        to="chat.message",
                    ),
                ),
            ],
            options={
                "db_table": "messages",
                "ordering": ["created_at", "id"],
                "abstract": False,
                "indexes": [
                    models.Index(
                        fields=["channel", "created_at"],
                        name="messages_channel_created_idx",
                    ),
                    models.Index(
                        condition=models.Q(parent__isnull=False),
                        fields=["parent", "created_at"],
                        name="messages_parent_idx",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="DirectMessage",
            fields=[
                *message_fields(),
                (
                    "author",
                    models.ForeignKey(
                        db_column="sender_id",
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="direct_messages_sent",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "chat",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="messages",
                        to="chat.directchat",
                    ),
                ),
                (
                    "parent",
                    models.ForeignKey(
                        blank=True,
                        help_text="Root message of the thread (null for top-level messages)",
                        null=True,
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="replies",
                        to="chat.directmessage",
                    ),
                ),
            ],
            options={
                "db_table": "direct_messages",
                "ordering": ["created_at", "id"],
                "abstract": False,
                "indexes": [
                    models.Index(fields=["chat", "created_at"], name="dm_chat_created_idx"),
                    models.Index(
                        condition=models.Q(parent__isnull=False),
                        fields=["parent", "created_at"],
                        name="dm_parent_idx",
                    ),
                ],
            },
        ),
        # Reactions
        migrations.CreateModel(
            name="MessageReaction",
            fields=[
                *timestamps(),
                uuid_pk(),
                ("emoji", models.CharField(max_length=32)),
                (
                    "message",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="reaction_rows",
                        to="chat.message",
                    ),
                ),
                (
                    "user",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="message_reactions",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "db_table": "message_reactions",
                "ordering": ["created_at", "id"],
                "constraints": [
                    models.UniqueConstraint(
                        fields=("message", "user", "emoji"),
                        name="message_reaction_unique",
                    )
                ],
            },
        ),
        migrations.CreateModel(
            name="DirectMessageReaction",
            fields=[
                *timestamps(),
                uuid_pk(),
                ("emoji", models.CharField(max_length=32)),
                (
                    "message",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="reaction_rows",
                        to="chat.directmessage",
                    ),
                ),
                (
                    "user",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="direct_message_reactions",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "db_table": "direct_message_reactions",
                "ordering": ["created_at", "id"],
                "constraints": [
                    models.UniqueConstraint(
                        fields=("message", "user", "emoji"),
                        name="direct_message_reaction_unique",
                    )
                ],
            },
        ),
        # Presence
        migrations.CreateModel(
            name="Presence",
            fields=[
                *timestamps(),
                (
                    "user",
                    models.OneToOneField(
                        on_delete=django.db.models.deletion.CASCADE,
                        primary_key=True,
                        related_name="presence",
                        serialize=False,
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("online", "Online"),
                            ("away", "Away"),
                            ("offline", "Offline"),
                        ],
                        db_index=True,
                        default="online",
                        max_length=10,
                    ),
                ),
                ("status_text", models.CharField(blank=True, default="", max_length=100)),
                ("status_emoji", models.CharField(blank=True, default="", max_length=32)),
                (
                    "last_seen",
                    models.DateTimeField(db_index=True, default=django.utils.timezone.now),
                ),
            ],
            options={
                "db_table": "presence",
                "ordering": ["-last_seen"],
            },
        ),
    ]
