"""
Serializers for chat API.

This module provides serializers for the chat system:
- Conversation summaries (list and detail)
- Conversation/group creation and group updates
- Messages (read, send, edit), reactions and search

Serializer Hierarchy:
    ConversationSummarySerializer: One ConversationSummary as seen by the caller
    DirectConversationCreateSerializer: Start or reopen a direct chat
    GroupCreateSerializer: New group with initial members
    GroupUpdateSerializer: Rename / describe / re-image a group
    MembersAddSerializer: Add members to a group
    LeaveGroupSerializer: Leave, optionally deleting history

    MessageSerializer: Message with tombstone handling and reactions
    MessagePreviewSerializer: Minimal message for list preview
    MessageCreateSerializer / MessageUpdateSerializer: Send / edit
    ReactionToggleSerializer: Toggle one emoji

Design Decisions:
    - Read and write serializers are separate for clarity
    - Users are always identified by their public id (external_id)
    - Tombstoned message content is returned empty; clients render the placeholder
"""

from __future__ import annotations

from rest_framework import serializers

from authentication.serializers import UserSerializer
from chat.constants import GROUP_CONFIG, MESSAGE_CONFIG, REACTION_CONFIG
from chat.models import Message, MessageReaction


def _validate_message_content(value: str) -> str:
    if not value.strip():
        raise serializers.ValidationError("Message content cannot be blank.")
    return value


# =============================================================================
# Message Serializers
# =============================================================================


class ReactionSerializer(serializers.ModelSerializer):
    """One (user, emoji) reaction."""

    user_id = serializers.CharField(source="user.external_id", read_only=True)

    class Meta:
        model = MessageReaction
        fields = ["user_id", "emoji", "created_at"]
        read_only_fields = fields


class MessagePreviewSerializer(serializers.ModelSerializer):
    """
    Minimal message serializer for conversation list preview.

    Used to show the last message in conversation lists.
    """

    sender_id = serializers.CharField(source="sender.external_id", read_only=True)
    sender_name = serializers.CharField(source="sender.name", read_only=True)
    content = serializers.CharField(source="get_display_content", read_only=True)

    class Meta:
        model = Message
        fields = [
            "id",
            "sender_id",
            "sender_name",
            "content",
            "is_deleted",
            "created_at",
        ]
        read_only_fields = fields


class MessageSerializer(serializers.ModelSerializer):
    """
    Full message serializer for message lists.

    Includes the reply preview and reactions in insertion order.
    """

    sender_id = serializers.CharField(source="sender.external_id", read_only=True)
    content = serializers.CharField(source="get_display_content", read_only=True)
    reply_preview = serializers.SerializerMethodField(
        help_text="Sender and truncated content of the replied-to message"
    )
    reactions = ReactionSerializer(many=True, read_only=True)

    class Meta:
        model = Message
        fields = [
            "id",
            "conversation_id",
            "sender_id",
            "content",
            "reply_to_id",
            "reply_preview",
            "is_edited",
            "is_deleted",
            "reactions",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields

    def get_reply_preview(self, obj: Message) -> dict | None:
        parent = obj.reply_to
        if parent is None:
            return None
        return {
            "id": parent.id,
            "sender_id": parent.sender.external_id,
            "sender_name": parent.sender.name,
            "content": parent.get_display_content()[: MESSAGE_CONFIG.REPLY_PREVIEW_LENGTH],
            "is_deleted": parent.is_deleted,
        }


class MessageCreateSerializer(serializers.Serializer):
    """
    Serializer for sending messages.

    Content is stored as sent (no trimming), but must contain something
    other than whitespace.
    """

    content = serializers.CharField(
        max_length=MESSAGE_CONFIG.MAX_CONTENT_LENGTH,
        trim_whitespace=False,
        help_text="Message content (max 10,000 characters)",
    )
    reply_to = serializers.IntegerField(
        required=False,
        allow_null=True,
        help_text="ID of the message being replied to (same conversation)",
    )

    def validate_content(self, value: str) -> str:
        return _validate_message_content(value)


class MessageUpdateSerializer(serializers.Serializer):
    """Serializer for editing a message. The service trims the new content."""

    content = serializers.CharField(
        max_length=MESSAGE_CONFIG.MAX_CONTENT_LENGTH,
        trim_whitespace=False,
        help_text="New message content",
    )

    def validate_content(self, value: str) -> str:
        return _validate_message_content(value)


class ReactionToggleSerializer(serializers.Serializer):
    """Serializer for toggling a reaction."""

    emoji = serializers.CharField(
        max_length=REACTION_CONFIG.MAX_EMOJI_LENGTH,
        help_text="Emoji to add or remove",
    )


class ReactionToggleResponseSerializer(serializers.Serializer):
    """Result of a reaction toggle."""

    action = serializers.ChoiceField(choices=["added", "removed"])
    evicted = serializers.CharField(allow_null=True)
    reactions = ReactionSerializer(many=True)


# =============================================================================
# Conversation Serializers
# =============================================================================


class ConversationSummarySerializer(serializers.Serializer):
    """
    Serializer for chat.services.ConversationSummary.

    Includes computed fields:
    - unread_count: Messages after the caller's last-read marker not sent by them
    - last_message: Most recent message visible to the caller
    - other_user: The other participant (direct conversations only)
    - membership_status: The caller's own standing (active, left, removed)
    """

    id = serializers.IntegerField(source="conversation.id")
    type = serializers.CharField(source="conversation.conversation_type")
    name = serializers.CharField(source="conversation.name")
    description = serializers.CharField(source="conversation.description")
    image_url = serializers.CharField(source="conversation.image_url")
    admin_id = serializers.SerializerMethodField()
    members = UserSerializer(many=True)
    other_user = serializers.SerializerMethodField()
    last_message = MessagePreviewSerializer(allow_null=True)
    unread_count = serializers.IntegerField()
    is_pinned = serializers.BooleanField(source="participant.is_pinned")
    membership_status = serializers.CharField(source="participant.status")
    last_read_at = serializers.DateTimeField(source="participant.last_read_at", allow_null=True)
    last_message_at = serializers.DateTimeField(
        source="conversation.last_message_at", allow_null=True
    )
    created_at = serializers.DateTimeField(source="conversation.created_at")

    def get_admin_id(self, obj) -> str | None:
        admin = obj.conversation.admin
        return admin.external_id if admin else None

    def get_other_user(self, obj) -> dict | None:
        if not obj.conversation.is_direct:
            return None
        viewer_id = obj.participant.user_id
        for member in obj.members:
            if member.pk != viewer_id:
                return UserSerializer(member).data
        return None


class DirectConversationCreateSerializer(serializers.Serializer):
    """Serializer for starting (or reopening) a direct conversation."""

    user_id = serializers.CharField(help_text="Public id of the other user")


class GroupCreateSerializer(serializers.Serializer):
    """
    Serializer for creating a group conversation.

    The creator is added automatically and becomes the admin.
    """

    name = serializers.CharField(
        max_length=GROUP_CONFIG.MAX_NAME_LENGTH,
        help_text="Group name",
    )
    member_ids = serializers.ListField(
        child=serializers.CharField(),
        allow_empty=True,
        default=list,
        help_text="Public ids of the initial members",
    )
    description = serializers.CharField(
        max_length=GROUP_CONFIG.MAX_DESCRIPTION_LENGTH,
        required=False,
        allow_blank=True,
        default="",
    )
    image_url = serializers.URLField(
        max_length=GROUP_CONFIG.MAX_IMAGE_URL_LENGTH,
        required=False,
        allow_blank=True,
        default="",
    )


class GroupUpdateSerializer(serializers.Serializer):
    """Serializer for updating group details. Omitted fields are unchanged."""

    name = serializers.CharField(
        max_length=GROUP_CONFIG.MAX_NAME_LENGTH,
        required=False,
        allow_blank=True,
    )
    description = serializers.CharField(
        max_length=GROUP_CONFIG.MAX_DESCRIPTION_LENGTH,
        required=False,
        allow_blank=True,
    )
    image_url = serializers.URLField(
        max_length=GROUP_CONFIG.MAX_IMAGE_URL_LENGTH,
        required=False,
        allow_blank=True,
    )

    def validate(self, attrs: dict) -> dict:
        if not attrs:
            raise serializers.ValidationError("Provide at least one field to update.")
        return attrs


class MembersAddSerializer(serializers.Serializer):
    """Serializer for adding members to a group."""

    member_ids = serializers.ListField(
        child=serializers.CharField(),
        allow_empty=False,
        help_text="Public ids of users to add",
    )


class LeaveGroupSerializer(serializers.Serializer):
    """Serializer for leaving a group."""

    delete_history = serializers.BooleanField(
        default=False,
        help_text="Also remove the group and its history from your list",
    )


class PinResponseSerializer(serializers.Serializer):
    is_pinned = serializers.BooleanField()


class TypingStatusSerializer(serializers.Serializer):
    """Users currently typing (the caller excluded)."""

    user_ids = serializers.ListField(child=serializers.CharField())
