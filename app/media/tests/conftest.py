"""
Test configuration and fixtures for media tests.

Uploads are written to a per-test MEDIA_ROOT (see app/conftest.py).
"""

import pytest
from django.core.files.uploadedfile import SimpleUploadedFile
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import RefreshToken

from authentication.tests.factories import UserFactory


@pytest.fixture
def user(db):
    return UserFactory()


@pytest.fixture
def api_client():
    return APIClient()


@pytest.fixture
def authenticated_client(user):
    client = APIClient()
    refresh = RefreshToken.for_user(user)
    client.credentials(HTTP_AUTHORIZATION=f"Bearer {refresh.access_token}")
    return client


@pytest.fixture
def png_file():
    """A small PNG upload with a matching content type."""
    return SimpleUploadedFile(
        name="cat.png",
        content=b"\x89PNG\r\n\x1a\n" + b"\x00" * 64,
        content_type="image/png",
    )


@pytest.fixture
def text_file():
    return SimpleUploadedFile(
        name="notes.txt",
        content=b"meeting at noon",
        content_type="text/plain",
    )
