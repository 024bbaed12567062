"""
Test configuration and fixtures for chat tests.

This module provides:
- Named users (alice, bob, carol, outsider)
- Conversation fixtures (group "Team" and a direct conversation)
- API clients authenticated as a given user
- A mocked event publisher for view tests

Usage:
    def test_example(team, alice_client):
        response = alice_client.get(f"/api/v1/chat/conversations/{team.id}/")
        assert response.status_code == 200
"""

from unittest.mock import patch

import pytest
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import RefreshToken

from authentication.tests.factories import UserFactory
from chat.presence import PresenceRegistry
from chat.tests.factories import DirectConversationFactory, GroupConversationFactory


# =============================================================================
# User Fixtures
# =============================================================================


@pytest.fixture
def alice(db):
    return UserFactory(username="alice", email="alice@example.com")


@pytest.fixture
def bob(db):
    return UserFactory(username="bob", email="bob@example.com")


@pytest.fixture
def carol(db):
    return UserFactory(username="carol", email="carol@example.com")


@pytest.fixture
def outsider(db):
    """A user who is not a member of any fixture conversation."""
    return UserFactory(username="outsider", email="outsider@example.com")


# =============================================================================
# Conversation Fixtures
# =============================================================================


@pytest.fixture
def team(alice, bob, carol):
    """Group "Team" created by alice with bob and carol."""
    return GroupConversationFactory(name="Team", created_by=alice, members=[bob, carol])


@pytest.fixture
def direct(alice, bob):
    """Direct conversation between alice and bob."""
    return DirectConversationFactory(user1=alice, user2=bob)


# =============================================================================
# API Client Fixtures
# =============================================================================


@pytest.fixture
def api_client():
    """Unauthenticated API client."""
    return APIClient()


@pytest.fixture
def client_for():
    """Build an API client authenticated with a JWT for the given user."""

    def build(user):
        client = APIClient()
        refresh = RefreshToken.for_user(user)
        client.credentials(HTTP_AUTHORIZATION=f"Bearer {refresh.access_token}")
        return client

    return build


@pytest.fixture
def alice_client(client_for, alice):
    return client_for(alice)


@pytest.fixture
def bob_client(client_for, bob):
    return client_for(bob)


@pytest.fixture
def outsider_client(client_for, outsider):
    return client_for(outsider)


# =============================================================================
# Live Channel Fixtures
# =============================================================================


@pytest.fixture
def publisher():
    """Replace the event publisher used by views with a mock."""
    with patch("chat.views.ChatEventPublisher") as mock_publisher:
        yield mock_publisher


@pytest.fixture(autouse=True)
def presence_registry(monkeypatch):
    """Each test starts with no open connections recorded."""
    fresh = PresenceRegistry()
    monkeypatch.setattr("chat.services.registry", fresh)
    return fresh
