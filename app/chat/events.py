"""
Realtime fan-out for committed chat changes.

Services call these helpers inside their transaction; delivery is deferred
with ``transaction.on_commit`` so subscribers only ever hear about state
that actually committed. Payloads carry ids and event kinds; clients
re-query the HTTP read endpoints to converge on the latest state.

Channel Groups:
    conversation_{conversation_id}: Everyone viewing one conversation
        - message.created, message.updated, typing.updated, conversation.updated
    user_{user_pk}: One user's inbox (all their devices)
        - inbox.updated
    conversation_{conversation_id}_user_{user_pk}: One member's open sockets
        on one conversation
        - membership.revoked (kicked or left)

Related files:
    - consumers.py: Consumers joining these groups and forwarding events
    - services.py: Callers
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer
from django.db import transaction

if TYPE_CHECKING:
    from collections.abc import Iterable

logger = logging.getLogger(__name__)


class EventType:
    """Event names as sent to clients (and channel-layer handler types)."""

    MESSAGE_CREATED = "message.created"
    MESSAGE_UPDATED = "message.updated"
    TYPING_UPDATED = "typing.updated"
    CONVERSATION_UPDATED = "conversation.updated"
    INBOX_UPDATED = "inbox.updated"
    MEMBERSHIP_REVOKED = "membership.revoked"


def conversation_group(conversation_id: int) -> str:
    """Channel-layer group for one conversation."""
    return f"conversation_{conversation_id}"


def user_group(user_pk: int) -> str:
    """Channel-layer group for one user's inbox."""
    return f"user_{user_pk}"


def member_group(conversation_id: int, user_pk: int) -> str:
    """Channel-layer group for one user's sockets on one conversation."""
    return f"conversation_{conversation_id}_user_{user_pk}"


def _group_send(group: str, event: dict) -> None:
    channel_layer = get_channel_layer()
    if channel_layer is None:
        return
    async_to_sync(channel_layer.group_send)(group, event)


def publish(group: str, event_type: str, **payload) -> None:
    """
    Queue one event for delivery after the current transaction commits.

    Delivery failures are logged by Django (robust on_commit) and never
    undo or fail the committed write.
    """
    event = {"type": event_type, **payload}
    transaction.on_commit(lambda: _group_send(group, event), robust=True)
    logger.debug(f"Queued {event_type} for {group}")


def publish_to_conversation(conversation_id: int, event_type: str, **payload) -> None:
    publish(
        conversation_group(conversation_id),
        event_type,
        conversation_id=conversation_id,
        **payload,
    )


def publish_inbox(user_pks: Iterable[int], conversation_id: int, reason: str) -> None:
    """Tell each user their summary of ``conversation_id`` may have changed."""
    for user_pk in set(user_pks):
        publish(
            user_group(user_pk),
            EventType.INBOX_UPDATED,
            conversation_id=conversation_id,
            reason=reason,
        )


def publish_membership_revoked(conversation_id: int, user_pk: int, reason: str) -> None:
    """Tell the user's open conversation sockets they stopped being a member."""
    publish(
        member_group(conversation_id, user_pk),
        EventType.MEMBERSHIP_REVOKED,
        conversation_id=conversation_id,
        reason=reason,
    )
