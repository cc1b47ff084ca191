"""
WebSocket consumers for the chat application.

This module implements the realtime side of the chat: subscribers join
channel groups and receive the events chat.events publishes after each
committed change. Clients treat events as hints and re-query the HTTP
endpoints for the authoritative state.

Consumers:
    ConversationConsumer: One open conversation (messages, typing, details)
    InboxConsumer: The caller's conversation list (unread counts, previews)

Authentication:
    Users are authenticated via JWT token passed as query parameter or
    subprotocol. chat.middleware.JWTAuthMiddleware attaches the user to
    self.scope["user"].

Close Codes:
    4001: Unauthenticated
    4003: No read access to the conversation (at connect, or after
          leaving with history deleted)
    4004: Conversation not found

Message Types (from client):
    - typing.start / typing.stop: Typing indicator
    - read: Mark the conversation as read
    - heartbeat: Presence heartbeat

Message Types (to client):
    - message.created, message.updated, typing.updated, conversation.updated
    - membership.revoked: The caller left or was removed; live events stop
    - inbox.updated (InboxConsumer)
    - error: Error response
"""

from __future__ import annotations

import logging

from channels.db import database_sync_to_async
from channels.generic.websocket import AsyncJsonWebsocketConsumer

from authentication.services import UserService
from chat import events
from chat.services import ConversationService, TypingService

logger = logging.getLogger(__name__)

CLOSE_UNAUTHENTICATED = 4001
CLOSE_FORBIDDEN = 4003
CLOSE_NOT_FOUND = 4004


class AuthenticatedJsonConsumer(AsyncJsonWebsocketConsumer):
    """Shared connect/heartbeat handling for authenticated consumers."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.group_names: list[str] = []

    @property
    def user(self):
        return self.scope.get("user")

    def is_authenticated(self) -> bool:
        return bool(self.user and self.user.is_authenticated)

    async def accept_with_subprotocol(self):
        """Echo the "jwt" subprotocol when the client used it to send its token."""
        if "jwt" in self.scope.get("subprotocols", []):
            await self.accept(subprotocol="jwt")
        else:
            await self.accept()

    async def join_group(self, group_name: str):
        self.group_names.append(group_name)
        await self.channel_layer.group_add(group_name, self.channel_name)

    async def leave_group(self, group_name: str):
        if group_name in self.group_names:
            self.group_names.remove(group_name)
            await self.channel_layer.group_discard(group_name, self.channel_name)

    async def disconnect(self, close_code):
        for group_name in list(self.group_names):
            await self.leave_group(group_name)
        if self.is_authenticated():
            logger.info(f"User {self.user.id} disconnected (close code {close_code})")

    async def send_error(self, message: str, error_code: str | None = None):
        await self.send_json({"type": "error", "message": message, "error_code": error_code})

    async def handle_heartbeat(self):
        await database_sync_to_async(UserService.update_presence)(self.user)
        await self.send_json({"type": "heartbeat.ack"})


class ConversationConsumer(AuthenticatedJsonConsumer):
    """
    WebSocket consumer for one conversation.

    Handles:
        - Connection authentication and read-access check
        - Joining/leaving the conversation channel group
        - Typing indicators, read markers and presence heartbeats
        - Forwarding committed conversation events

    Attributes:
        conversation_id: ID of the connected conversation
    """

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.conversation_id: int | None = None

    async def connect(self):
        """
        Handle WebSocket connection.

        Validates:
            1. User is authenticated
            2. Conversation exists
            3. User can read the conversation

        On success, accepts the connection. Only active members join the
        live conversation group; past members can still read their history
        over HTTP but get no events past the moment they left.
        """
        self.conversation_id = int(self.scope["url_route"]["kwargs"]["conversation_id"])

        if not self.is_authenticated():
            logger.warning(
                f"Rejected unauthenticated connection to conversation {self.conversation_id}"
            )
            await self.close(code=CLOSE_UNAUTHENTICATED)
            return

        result = await database_sync_to_async(ConversationService.get_conversation)(
            self.user, self.conversation_id
        )
        if not result.success:
            code = CLOSE_NOT_FOUND if result.error_code == "NOT_FOUND" else CLOSE_FORBIDDEN
            logger.warning(
                f"Rejected user {self.user.id} from conversation {self.conversation_id}: "
                f"{result.error_code}"
            )
            await self.close(code=code)
            return

        if result.data.participant.is_active:
            await self.join_group(events.conversation_group(self.conversation_id))
            await self.join_group(events.member_group(self.conversation_id, self.user.pk))
        await self.accept_with_subprotocol()
        logger.info(f"User {self.user.id} connected to conversation {self.conversation_id}")

    async def receive_json(self, content):
        """
        Handle incoming WebSocket frames.

        Expected frame format:
            {"type": "typing.start"}
            {"type": "typing.stop"}
            {"type": "read"}
            {"type": "heartbeat"}
        """
        frame_type = content.get("type") if isinstance(content, dict) else None

        if frame_type == "typing.start":
            result = await database_sync_to_async(TypingService.start)(
                self.user, self.conversation_id
            )
        elif frame_type == "typing.stop":
            result = await database_sync_to_async(TypingService.stop)(
                self.user, self.conversation_id
            )
        elif frame_type == "read":
            result = await database_sync_to_async(ConversationService.mark_as_read)(
                self.user, self.conversation_id
            )
        elif frame_type == "heartbeat":
            await self.handle_heartbeat()
            return
        else:
            await self.send_error(f"Unknown message type: {frame_type}")
            return

        if not result.success:
            await self.send_error(result.error, result.error_code)

    async def forward(self, event):
        await self.send_json(event)

    async def message_created(self, event):
        await self.forward(event)

    async def message_updated(self, event):
        await self.forward(event)

    async def conversation_updated(self, event):
        await self.forward(event)

    async def typing_updated(self, event):
        """Forward typing changes to everyone except the typist."""
        if event.get("user_id") == self.user.external_id:
            return
        await self.forward(event)

    async def membership_revoked(self, event):
        """
        Stop live delivery once the user left or was removed.

        Closes with 4003 when they also lost read access (left and
        deleted their history); otherwise the socket stays open so the
        client can keep showing the history it may still read.
        """
        for group_name in list(self.group_names):
            await self.leave_group(group_name)

        result = await database_sync_to_async(ConversationService.get_conversation)(
            self.user, self.conversation_id
        )
        if not result.success:
            logger.info(
                f"Closing socket of user {self.user.id} on conversation "
                f"{self.conversation_id}: access revoked"
            )
            await self.close(code=CLOSE_FORBIDDEN)
            return
        await self.forward(event)


class InboxConsumer(AuthenticatedJsonConsumer):
    """
    WebSocket consumer for the caller's conversation list.

    Receives inbox.updated whenever the summary of one of the user's
    conversations may have changed (new message, read marker, membership).
    """

    async def connect(self):
        if not self.is_authenticated():
            logger.warning("Rejected unauthenticated inbox connection")
            await self.close(code=CLOSE_UNAUTHENTICATED)
            return

        await self.join_group(events.user_group(self.user.pk))
        await self.accept_with_subprotocol()
        await database_sync_to_async(UserService.update_presence)(self.user)
        logger.info(f"User {self.user.id} connected to inbox")

    async def receive_json(self, content):
        frame_type = content.get("type") if isinstance(content, dict) else None
        if frame_type == "heartbeat":
            await self.handle_heartbeat()
            return
        await self.send_error(f"Unknown message type: {frame_type}")

    async def inbox_updated(self, event):
        await self.send_json(event)
