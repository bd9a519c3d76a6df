"""
Realtime layer.

Publishes committed row changes of the chat tables to channel layer
groups, lets WebSocket clients subscribe to them with equality filters,
and keeps conversation, thread and presence views in sync with the feed.
"""
