"""
Chat system models.

This module defines the data models for the chat system supporting:
- Direct (1:1) conversations between exactly two users
- Group conversations with a single admin

Models:
    Conversation: Tagged record, either a direct chat or a group
    DirectConversationPair: Enforces one direct conversation per user pair
    Participant: One row per (conversation, user) holding membership state
    Message: Append-only message log entry with edit and tombstone overlays
    HiddenMessage: Per-user "delete for me" marker
    MessageReaction: One (user, emoji) reaction on a message
    TypingIndicator: Ephemeral, time-expiring typing marker

Design Decisions:
    - Membership, pin, hide and last-read state all live on Participant, so
      "member" and "past member" are disjoint by construction
    - Participant rows are never deleted; leaving or being removed changes
      status and sets left_at, which also bounds what history stays readable
    - Tombstoned messages keep their row (content cleared) so replies and
      thread position survive
    - Typing rows may outlive their expiry; readers filter on expires_at
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from django.conf import settings
from django.db import models
from django.db.models import F, Q
from django.utils import timezone

from chat.constants import GROUP_CONFIG, REACTION_CONFIG
from core.model_mixins import SoftDeleteMixin
from core.models import BaseModel

if TYPE_CHECKING:
    from datetime import datetime

    from authentication.models import User


class ConversationType(models.TextChoices):
    """
    Variant of a conversation.

    DIRECT: Exactly two participants, no name, no admin
    GROUP: Named, one admin, mutable membership
    """

    DIRECT = "direct", "Direct Message"
    GROUP = "group", "Group"


class MembershipStatus(models.TextChoices):
    """
    A participant's standing in a conversation.

    ACTIVE: Current member; can read and send
    LEFT: Left voluntarily; keeps read access to history up to left_at
          unless they also hid the conversation
    REMOVED: Kicked by the admin; keeps read access to history up to left_at

    Direct conversation participants are always ACTIVE.
    """

    ACTIVE = "active", "Active"
    LEFT = "left", "Left"
    REMOVED = "removed", "Removed"


class Conversation(BaseModel):
    """
    A conversation between two or more users.

    Conversation Types:
        DIRECT: Exactly 2 participants, unique per user pair (enforced via
                DirectConversationPair). name/description/image_url are empty
                and admin is NULL.

        GROUP: Creator becomes admin. Exactly one admin at all times; the
               admin is a current member or, when everyone has left, the
               last admin is kept on record.

    Fields:
        conversation_type: Variant tag (direct or group)
        name: Group name (empty for direct)
        description: Optional group description
        image_url: Optional group avatar
        admin: The group's single admin (NULL for direct)
        created_by: User who created the conversation
        last_message_at: Timestamp of most recent message (for sorting)

    Relationships:
        participants: All Participant rows for this conversation
        messages: All Message rows for this conversation
        direct_pair: DirectConversationPair if type is DIRECT
    """

    conversation_type = models.CharField(
        max_length=10,
        choices=ConversationType.choices,
        db_index=True,
        help_text="Type of conversation (direct or group)",
    )

    name = models.CharField(
        max_length=GROUP_CONFIG.MAX_NAME_LENGTH,
        blank=True,
        default="",
        help_text="Group name (empty for direct)",
    )

    description = models.TextField(
        max_length=GROUP_CONFIG.MAX_DESCRIPTION_LENGTH,
        blank=True,
        default="",
        help_text="Optional group description",
    )

    image_url = models.URLField(
        max_length=GROUP_CONFIG.MAX_IMAGE_URL_LENGTH,
        blank=True,
        default="",
        help_text="Optional group avatar URL",
    )

    admin = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="administered_conversations",
        help_text="Group admin (null for direct conversations)",
    )

    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="created_conversations",
        help_text="User who created this conversation",
    )

    last_message_at = models.DateTimeField(
        null=True,
        blank=True,
        db_index=True,
        help_text="Timestamp of most recent message (for sorting conversation lists)",
    )

    class Meta:
        db_table = "chat_conversation"
        ordering = ["-last_message_at", "-created_at"]
        constraints = [
            # Direct rows carry no group fields; group rows need name and admin
            models.CheckConstraint(
                condition=(
                    Q(conversation_type=ConversationType.DIRECT, admin__isnull=True, name="")
                    | (
                        Q(conversation_type=ConversationType.GROUP, admin__isnull=False)
                        & ~Q(name="")
                    )
                ),
                name="chat_conversation_variant_fields",
            ),
        ]

    def __str__(self) -> str:
        if self.is_direct:
            return f"Direct({self.pk})"
        return f"Group: {self.name}"

    @property
    def is_direct(self) -> bool:
        """Check if this is a direct (1:1) conversation."""
        return self.conversation_type == ConversationType.DIRECT

    @property
    def is_group(self) -> bool:
        """Check if this is a group conversation."""
        return self.conversation_type == ConversationType.GROUP

    def get_active_participants(self):
        """Participants who are current members, oldest first."""
        return self.participants.filter(status=MembershipStatus.ACTIVE).order_by(
            "joined_at", "id"
        )


class DirectConversationPair(models.Model):
    """
    Enforces uniqueness of direct conversations between two users.

    Stores the pair in canonical order (lower user id first) so that
    whichever user starts the chat, the same row is found. Two concurrent
    creations for one pair collide on the unique constraint; the loser
    re-reads the winner's conversation.

    Constraints:
        - UniqueConstraint(user_lower, user_higher): One conversation per pair
        - CheckConstraint(user_lower_id < user_higher_id): Canonical order
    """

    conversation = models.OneToOneField(
        Conversation,
        on_delete=models.CASCADE,
        primary_key=True,
        related_name="direct_pair",
        help_text="The direct conversation this pair represents",
    )

    user_lower = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="+",
        help_text="User with lower ID in this conversation pair",
    )

    user_higher = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="+",
        help_text="User with higher ID in this conversation pair",
    )

    class Meta:
        db_table = "chat_direct_conversation_pair"
        constraints = [
            models.UniqueConstraint(
                fields=["user_lower", "user_higher"],
                name="unique_direct_conversation_pair",
            ),
            models.CheckConstraint(
                condition=Q(user_lower_id__lt=F("user_higher_id")),
                name="user_lower_less_than_higher",
            ),
        ]

    def __str__(self) -> str:
        return f"DirectPair({self.user_lower_id}, {self.user_higher_id})"

    @staticmethod
    def canonical(user_a: User, user_b: User) -> tuple[User, User]:
        """Return the two users ordered as (lower id, higher id)."""
        if user_a.pk < user_b.pk:
            return user_a, user_b
        return user_b, user_a


class Participant(BaseModel):
    """
    A user's membership state in one conversation.

    One row per (conversation, user), kept for the life of the
    conversation. Re-adding a former member reactivates the same row.

    Visibility:
        - can_read: ACTIVE, or a past member who did not hide the conversation
        - can_send: ACTIVE only
        - Past members read history up to left_at; their unread count
          stops there too

    Fields:
        conversation: Conversation this participation belongs to
        user: Participating user
        status: ACTIVE, LEFT or REMOVED
        is_hidden: User deleted the conversation from their list (irreversible)
        is_pinned: Per-user display preference
        last_read_at: Last-read marker (NULL for a group never opened)
        joined_at: When the user (last) became an active member
        left_at: When the user left or was removed (NULL while active)
    """

    conversation = models.ForeignKey(
        Conversation,
        on_delete=models.CASCADE,
        related_name="participants",
        help_text="Conversation this participation belongs to",
    )

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="conversation_participations",
        help_text="User participating in the conversation",
    )

    status = models.CharField(
        max_length=10,
        choices=MembershipStatus.choices,
        default=MembershipStatus.ACTIVE,
        db_index=True,
        help_text="Membership status",
    )

    is_hidden = models.BooleanField(
        default=False,
        help_text="User deleted this conversation from their list",
    )

    is_pinned = models.BooleanField(
        default=False,
        help_text="User pinned this conversation",
    )

    last_read_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="Last-read marker used for unread counts",
    )

    joined_at = models.DateTimeField(
        default=timezone.now,
        help_text="When the user became an active member",
    )

    left_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the user left or was removed (null while active)",
    )

    class Meta:
        db_table = "chat_participant"
        ordering = ["joined_at", "id"]
        indexes = [
            models.Index(
                fields=["user", "is_hidden"],
                name="chat_part_user_listed_idx",
            ),
            models.Index(
                fields=["conversation", "status", "joined_at"],
                name="chat_part_conv_status_idx",
            ),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["conversation", "user"],
                name="unique_conversation_participant",
            ),
            # Active rows never carry a departure time
            models.CheckConstraint(
                condition=(
                    Q(status=MembershipStatus.ACTIVE, left_at__isnull=True)
                    | (~Q(status=MembershipStatus.ACTIVE) & Q(left_at__isnull=False))
                ),
                name="chat_participant_left_at_matches_status",
            ),
        ]

    def __str__(self) -> str:
        return f"Participant: {self.user_id} in {self.conversation_id} [{self.status}]"

    @property
    def is_active(self) -> bool:
        return self.status == MembershipStatus.ACTIVE

    @property
    def can_read(self) -> bool:
        return self.is_active or not self.is_hidden

    @property
    def can_send(self) -> bool:
        return self.is_active

    @property
    def read_cutoff(self) -> datetime | None:
        """Latest message timestamp this participant may see (None = no limit)."""
        return None if self.is_active else self.left_at

    @property
    def effective_last_read_at(self) -> datetime:
        """Last-read marker, defaulting to the conversation's creation time."""
        return self.last_read_at or self.conversation.created_at


class Message(SoftDeleteMixin, BaseModel):
    """
    A message within a conversation.

    Lifecycle overlays:
        - edit: content replaced, is_edited set permanently (sender only)
        - delete for everyone: tombstone, content cleared (sender only)
        - delete for me: HiddenMessage row for that viewer
        - reactions: MessageReaction rows

    Ordering:
        (created_at, id). Ties on created_at are broken by insertion order.

    Fields:
        conversation: Conversation this message belongs to
        sender: User who sent the message
        content: Message text (empty once tombstoned)
        reply_to: Message this one replies to (same conversation)
        is_edited: Content was changed after sending
    """

    conversation = models.ForeignKey(
        Conversation,
        on_delete=models.CASCADE,
        related_name="messages",
        help_text="Conversation this message belongs to",
    )

    sender = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="sent_messages",
        help_text="User who sent this message",
    )

    content = models.TextField(
        blank=True,
        help_text="Message text (cleared when deleted for everyone)",
    )

    reply_to = models.ForeignKey(
        "self",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="replies",
        help_text="Message this one replies to",
    )

    is_edited = models.BooleanField(
        default=False,
        help_text="Whether the content was edited after sending",
    )

    class Meta:
        db_table = "chat_message"
        ordering = ["created_at", "id"]
        indexes = [
            models.Index(
                fields=["conversation", "created_at", "id"],
                name="chat_msg_conv_order_idx",
            ),
            models.Index(
                fields=["sender", "-created_at"],
                name="chat_msg_sender_idx",
            ),
        ]

    def __str__(self) -> str:
        content_preview = (
            self.content[:50] + "..." if len(self.content) > 50 else self.content
        )
        deleted_str = " [deleted]" if self.is_deleted else ""
        return f"User {self.sender_id}: {content_preview}{deleted_str}"

    @property
    def is_reply(self) -> bool:
        return self.reply_to_id is not None

    def get_soft_delete_update_fields(self) -> list[str]:
        return super().get_soft_delete_update_fields() + ["content"]

    def soft_delete(self) -> None:
        """Tombstone the message: clear content and mark deleted."""
        if self.is_deleted:
            return
        self.content = ""
        super().soft_delete()

    def get_display_content(self) -> str:
        """Content as shown to readers ("" for tombstones)."""
        return "" if self.is_deleted else self.content


class HiddenMessage(models.Model):
    """
    A message a user deleted for themselves only.

    Presence of a row hides the message from that user's message list,
    search, and conversation preview. There is no way to unhide.
    """

    message = models.ForeignKey(
        Message,
        on_delete=models.CASCADE,
        related_name="hidden_entries",
        help_text="Hidden message",
    )

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="hidden_messages",
        help_text="User who hid the message",
    )

    created_at = models.DateTimeField(
        auto_now_add=True,
        help_text="When the message was hidden",
    )

    class Meta:
        db_table = "chat_hidden_message"
        constraints = [
            models.UniqueConstraint(
                fields=["message", "user"],
                name="unique_hidden_message_per_user",
            ),
        ]

    def __str__(self) -> str:
        return f"Hidden: message {self.message_id} for user {self.user_id}"


class MessageReaction(models.Model):
    """
    One emoji reaction by one user on one message.

    A user holds at most REACTION_CONFIG.MAX_USER_REACTIONS_PER_MESSAGE
    distinct emoji per message; the service evicts the oldest (by
    created_at, then id) when a new one would exceed the cap.
    """

    message = models.ForeignKey(
        Message,
        on_delete=models.CASCADE,
        related_name="reactions",
        help_text="Message being reacted to",
    )

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="message_reactions",
        help_text="User who reacted",
    )

    emoji = models.CharField(
        max_length=REACTION_CONFIG.MAX_EMOJI_LENGTH,
        help_text="Emoji character(s)",
    )

    created_at = models.DateTimeField(
        auto_now_add=True,
        help_text="When the reaction was added",
    )

    class Meta:
        db_table = "chat_message_reaction"
        ordering = ["created_at", "id"]
        indexes = [
            models.Index(
                fields=["message", "user", "created_at"],
                name="chat_reaction_user_order_idx",
            ),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["message", "user", "emoji"],
                name="unique_user_message_emoji_reaction",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.emoji} by {self.user_id} on message {self.message_id}"


class TypingIndicator(models.Model):
    """
    Ephemeral "user is typing" marker.

    One row per (conversation, user). Starting to type upserts expires_at;
    stopping deletes the row. Readers treat a row whose expires_at has
    passed as absent, whether or not it was ever deleted.
    """

    conversation = models.ForeignKey(
        Conversation,
        on_delete=models.CASCADE,
        related_name="typing_indicators",
        help_text="Conversation being typed in",
    )

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="typing_indicators",
        help_text="User who is typing",
    )

    expires_at = models.DateTimeField(
        db_index=True,
        help_text="Indicator counts as active until this instant",
    )

    class Meta:
        db_table = "chat_typing_indicator"
        constraints = [
            models.UniqueConstraint(
                fields=["conversation", "user"],
                name="unique_typing_indicator_per_user",
            ),
        ]

    def __str__(self) -> str:
        return f"Typing: user {self.user_id} in {self.conversation_id}"

    @property
    def is_active(self) -> bool:
        return self.expires_at > timezone.now()
