"""
Serializers for authentication models.

This module provides DRF serializers for:
- User model (public profile shown to other members)
- Current user (own profile, including email)
- Registration (create user)

Related files:
    - models.py: User model
    - views.py: Views that use these serializers

Security:
    - Password fields are write-only
    - Presence fields are read-only; only the live channel writes them
"""

import re

from rest_framework import serializers

from authentication.models import RESERVED_USERNAMES, User


def clean_username(value):
    """Normalize and validate a username, raising DRF validation errors."""
    username = value.lower().strip()

    if not re.match(r"^[a-zA-Z0-9_-]{3,30}$", username):
        raise serializers.ValidationError(
            "Username must be 3-30 characters and contain only "
            "letters, numbers, underscores, and hyphens."
        )
    if username in RESERVED_USERNAMES:
        raise serializers.ValidationError(
            f"The username '{username}' is reserved and cannot be used."
        )
    return username


class UserSerializer(serializers.ModelSerializer):
    """
    Public profile of a user.

    Embedded in conversation members, message senders and search results.
    """

    class Meta:
        model = User
        fields = [
            "id",
            "username",
            "avatar",
            "is_online",
            "last_seen",
        ]
        read_only_fields = fields


class CurrentUserSerializer(serializers.ModelSerializer):
    """Own profile for /api/v1/auth/me/. Username and avatar are editable."""

    class Meta:
        model = User
        fields = [
            "id",
            "email",
            "username",
            "avatar",
            "is_online",
            "last_seen",
            "date_joined",
        ]
        read_only_fields = ["id", "email", "is_online", "last_seen", "date_joined"]

    def validate_username(self, value):
        username = clean_username(value)
        taken = User.objects.filter(username=username).exclude(pk=self.instance.pk)
        if taken.exists():
            raise serializers.ValidationError("This username is already taken.")
        return username


class RegisterSerializer(serializers.Serializer):
    """
    Serializer for user registration.

    Used by POST /api/v1/auth/register/.
    """

    email = serializers.EmailField(required=True)
    username = serializers.CharField(min_length=3, max_length=30)
    password = serializers.CharField(
        write_only=True,
        min_length=8,
        style={"input_type": "password"},
        help_text="Password must be at least 8 characters.",
    )

    def validate_email(self, value):
        """Validate that email is not already in use."""
        email = value.lower().strip()
        if User.objects.filter(email__iexact=email).exists():
            raise serializers.ValidationError("A user with this email already exists.")
        return email

    def validate_username(self, value):
        username = clean_username(value)
        if User.objects.filter(username=username).exists():
            raise serializers.ValidationError("This username is already taken.")
        return username

    def create(self, validated_data):
        return User.objects.create_user(
            email=validated_data["email"],
            username=validated_data["username"],
            password=validated_data["password"],
        )


class UserSearchQuerySerializer(serializers.Serializer):
    """Query parameters for user search."""

    q = serializers.CharField(min_length=2, max_length=100, trim_whitespace=True)
