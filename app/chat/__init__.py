"""
Chat app for workspace conversations.

This app handles:
- Channels and channel membership
- Direct chats
- Message sending, threads and reactions
- Presence and search

Related apps:
    - workspaces: Workspace membership gates every conversation
    - media: Attachments posted with messages
    - realtime: Change feed, synchronized views and WebSocket consumers

Usage:
    from chat.services import ChannelMessageService

    result = ChannelMessageService.create_message(
        user=user,
        conversation_id=channel.id,
        content="Hello!",
    )
"""
