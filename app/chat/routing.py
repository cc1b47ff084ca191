"""
WebSocket URL routing for the chat application.

This module defines the URL patterns for WebSocket connections,
mapping paths to their corresponding consumers.

URL Patterns:
    ws/chat/<conversation_id>/ - Events for one conversation
    ws/inbox/                  - Conversation list updates for the caller

Authentication:
    JWT token should be passed as query parameter (?token=<jwt_access_token>)
    or as the second subprotocol after "jwt". JWTAuthMiddleware validates
    the token and attaches the user to the consumer's scope.
"""

from django.urls import path

from chat import consumers

websocket_urlpatterns = [
    path(
        "ws/chat/<int:conversation_id>/",
        consumers.ConversationConsumer.as_asgi(),
    ),
    path(
        "ws/inbox/",
        consumers.InboxConsumer.as_asgi(),
    ),
]
