"""
Test configuration and fixtures for authentication tests.

This module provides:
- User fixtures
- API client helpers for authenticated requests
- Identity tokens for users that do not exist locally yet

Usage:
    def test_example(user, authenticated_client):
        response = authenticated_client.get('/api/v1/auth/me/')
        assert response.status_code == 200
"""

import pytest
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import AccessToken, RefreshToken

from authentication.models import User
from authentication.tests.factories import UserFactory


# =============================================================================
# User Fixtures
# =============================================================================


@pytest.fixture
def user(db):
    """Create a basic active user."""
    return UserFactory(name="Ada Lovelace")


@pytest.fixture
def other_user(db):
    """Create a second user."""
    return UserFactory(name="Grace Hopper")


@pytest.fixture
def superuser(db):
    """Create a superuser with admin privileges."""
    return User.objects.create_superuser(
        external_id="ops_admin",
        email="admin@example.com",
        password="AdminPass123!",
    )


# =============================================================================
# API Client Fixtures
# =============================================================================


@pytest.fixture
def api_client():
    """Unauthenticated API client for public endpoints."""
    return APIClient()


@pytest.fixture
def authenticated_client(user):
    """API client with a bearer token for `user`."""
    client = APIClient()
    refresh = RefreshToken.for_user(user)
    client.credentials(HTTP_AUTHORIZATION=f"Bearer {refresh.access_token}")
    return client


@pytest.fixture
def identity_token_factory():
    """
    Build an identity token for an arbitrary subject.

    Mirrors what the identity provider issues on sign-in: the subject plus
    optional profile claims. The subject need not exist locally.

    Usage:
        token = identity_token_factory("user_new", email="new@example.com")
    """

    def _make_token(subject, **claims):
        token = AccessToken()
        token["sub"] = subject
        for key, value in claims.items():
            token[key] = value
        return str(token)

    return _make_token


@pytest.fixture
def identity_client_factory(identity_token_factory):
    """API client carrying an identity token for an arbitrary subject."""

    def _make_client(subject, **claims):
        client = APIClient()
        client.credentials(
            HTTP_AUTHORIZATION=f"Bearer {identity_token_factory(subject, **claims)}"
        )
        return client

    return _make_client
