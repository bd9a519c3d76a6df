"""
WebSocket URL routing for the realtime layer.

URL Patterns:
    ws/realtime/ - Generic change feed subscriptions
    ws/presence/ - Presence of watched users
    ws/conversations/<kind>/<conversation_id>/ - Synchronized conversation
    ws/conversations/<kind>/<conversation_id>/threads/<parent_id>/ - Thread

Authentication:
    JWT token should be passed as query parameter: ?token=<jwt_access_token>
    or as the "jwt" subprotocol. JWTAuthMiddleware validates it and
    attaches the user to the consumer's scope.
"""

from django.urls import path, re_path

from realtime import consumers

CONVERSATION_PREFIX = (
    r"^ws/conversations/(?P<kind>channel|direct)/(?P<conversation_id>[0-9a-f-]{36})/"
)

websocket_urlpatterns = [
    path("ws/realtime/", consumers.ChangeFeedConsumer.as_asgi()),
    path("ws/presence/", consumers.PresenceConsumer.as_asgi()),
    re_path(CONVERSATION_PREFIX + r"$", consumers.ConversationConsumer.as_asgi()),
    re_path(
        CONVERSATION_PREFIX + r"threads/(?P<parent_id>[0-9a-f-]{36})/$",
        consumers.ConversationConsumer.as_asgi(),
    ),
]
