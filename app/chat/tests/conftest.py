"""
Test configuration and fixtures for chat tests.

This module provides:
- User fixtures (alice, bob, carol, outsider)
- Conversation fixtures (direct and group)
- API client helpers for authenticated requests
- A recorder for realtime events delivered after commit

Usage:
    def test_example(group_conversation, client_for, alice):
        client = client_for(alice)
        response = client.get(f'/api/v1/chat/conversations/{group_conversation.id}/')
        assert response.status_code == 200
"""

from unittest import mock

import pytest
from freezegun import freeze_time
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import RefreshToken

from authentication.tests.factories import UserFactory
from chat.tests.factories import DirectConversationFactory, GroupConversationFactory


# =============================================================================
# User Fixtures
# =============================================================================


@pytest.fixture
def alice(db):
    """Create the user who starts conversations and administers the group."""
    return UserFactory(name="Alice")


@pytest.fixture
def bob(db):
    """Create a second user."""
    return UserFactory(name="Bob")


@pytest.fixture
def carol(db):
    """Create a third user."""
    return UserFactory(name="Carol")


@pytest.fixture
def outsider(db):
    """Create a user who is not a participant in any test conversation."""
    return UserFactory(name="Mallory")


# =============================================================================
# Conversation Fixtures
# =============================================================================


@pytest.fixture
def direct_conversation(alice, bob):
    """Direct conversation between alice and bob."""
    return DirectConversationFactory(user1=alice, user2=bob)


@pytest.fixture
def group_conversation(alice, bob, carol):
    """Group administered by alice with bob and carol as members."""
    return GroupConversationFactory(name="Project Team", admin=alice, members=[bob, carol])


# =============================================================================
# API Client Fixtures
# =============================================================================


@pytest.fixture
def client_for():
    """
    Build an API client authenticated as any user.

    Usage:
        response = client_for(alice).get('/api/v1/chat/conversations/')
    """

    def _make_client(user):
        client = APIClient()
        refresh = RefreshToken.for_user(user)
        client.credentials(HTTP_AUTHORIZATION=f"Bearer {refresh.access_token}")
        return client

    return _make_client


@pytest.fixture
def access_token_for():
    """Raw access token string for a user (WebSocket tests)."""

    def _make_token(user):
        return str(RefreshToken.for_user(user).access_token)

    return _make_token


# =============================================================================
# Realtime Event Fixtures
# =============================================================================


@pytest.fixture
def published_events():
    """
    Record channel-layer sends instead of delivering them.

    Returns a list of (group, event) tuples. Sends are queued with
    transaction.on_commit, so wrap the call under test in
    ``django_capture_on_commit_callbacks(execute=True)``.

    Usage:
        def test_x(published_events, django_capture_on_commit_callbacks):
            with django_capture_on_commit_callbacks(execute=True):
                MessageService.send(...)
            assert published_events[0][0] == "conversation_1"
    """
    sent = []
    with mock.patch(
        "chat.events._group_send",
        side_effect=lambda group, event: sent.append((group, event)),
    ):
        yield sent


# =============================================================================
# Time Fixtures
# =============================================================================


@pytest.fixture
def clock():
    """
    Frozen clock that advances one second on every read.

    Every created_at, last_read_at and left_at taken under it is strictly
    later than the previous one, so ordering and unread assertions never
    depend on timer resolution.
    """
    with freeze_time("2030-01-01 09:00:00", auto_tick_seconds=1) as frozen:
        yield frozen
