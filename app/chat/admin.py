"""
Django admin configuration for chat models.

Provides admin interfaces for:
- Conversation management (with participants inline)
- Message moderation (with reactions inline)
- Typing indicator inspection
"""

from django.contrib import admin

from chat.models import (
    Conversation,
    DirectConversationPair,
    Message,
    MessageReaction,
    Participant,
    TypingIndicator,
)


class ParticipantInline(admin.TabularInline):
    """Inline display of participants in conversation admin."""

    model = Participant
    extra = 0
    readonly_fields = [
        "joined_at",
        "left_at",
        "last_read_at",
    ]
    raw_id_fields = ["user"]


@admin.register(Conversation)
class ConversationAdmin(admin.ModelAdmin):
    """Admin interface for Conversation model."""

    list_display = [
        "id",
        "conversation_type",
        "name",
        "admin",
        "created_at",
        "last_message_at",
    ]
    list_filter = ["conversation_type", "created_at"]
    search_fields = ["name", "id"]
    readonly_fields = [
        "created_at",
        "updated_at",
        "last_message_at",
    ]
    raw_id_fields = ["admin", "created_by"]
    inlines = [ParticipantInline]
    ordering = ["-created_at"]


@admin.register(DirectConversationPair)
class DirectConversationPairAdmin(admin.ModelAdmin):
    """Admin interface for DirectConversationPair model."""

    list_display = ["conversation", "user_lower", "user_higher"]
    raw_id_fields = ["conversation", "user_lower", "user_higher"]


@admin.register(Participant)
class ParticipantAdmin(admin.ModelAdmin):
    """Admin interface for Participant model."""

    list_display = [
        "id",
        "conversation",
        "user",
        "status",
        "is_hidden",
        "is_pinned",
        "joined_at",
        "left_at",
    ]
    list_filter = ["status", "is_hidden", "is_pinned"]
    search_fields = ["user__email", "user__external_id", "conversation__name"]
    readonly_fields = ["created_at", "updated_at", "joined_at"]
    raw_id_fields = ["conversation", "user"]


class MessageReactionInline(admin.TabularInline):
    model = MessageReaction
    extra = 0
    readonly_fields = ["created_at"]
    raw_id_fields = ["user"]


@admin.register(Message)
class MessageAdmin(admin.ModelAdmin):
    """Admin interface for Message model."""

    list_display = [
        "id",
        "conversation",
        "sender",
        "content_preview",
        "is_edited",
        "is_deleted",
        "created_at",
    ]
    list_filter = ["is_edited", "is_deleted", "created_at"]
    search_fields = ["content", "sender__email"]
    readonly_fields = ["created_at", "updated_at", "deleted_at"]
    raw_id_fields = ["conversation", "sender", "reply_to"]
    inlines = [MessageReactionInline]
    ordering = ["-created_at"]

    @admin.display(description="Content")
    def content_preview(self, obj):
        """Truncated content for list display."""
        if obj.is_deleted:
            return "[Deleted]"
        return obj.content[:50] + "..." if len(obj.content) > 50 else obj.content


@admin.register(TypingIndicator)
class TypingIndicatorAdmin(admin.ModelAdmin):
    list_display = ["conversation", "user", "expires_at"]
    raw_id_fields = ["conversation", "user"]
