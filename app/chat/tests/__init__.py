"""
Tests for chat app.

This package contains test modules for:
- test_models.py: Model properties and database constraints
- test_services.py: Conversation, group and message service tests
- test_reactions.py: Reaction toggle and per-user cap
- test_search.py: Message search
- test_typing.py: Typing indicators and the purge task
- test_events.py: Realtime events published after commit
- test_views.py: REST API endpoint tests
- test_consumers.py: WebSocket consumer tests

Usage:
    pytest chat/tests/
    pytest chat/tests/test_consumers.py
"""
