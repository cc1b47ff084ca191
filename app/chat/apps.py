"""
Chat application configuration.

This app provides the chat system with:
- Direct (1:1) and group conversations
- Single-admin group membership
- Message replies, edits, tombstones and reactions
- Read tracking, unread counts and typing indicators
"""

from django.apps import AppConfig


class ChatConfig(AppConfig):
    """Configuration for the chat application."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "chat"
    verbose_name = "Chat"
