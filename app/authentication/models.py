"""
Authentication models.

This module defines the User model: the identity every chat operation runs
as. Besides credentials it carries the public profile shown to other
members (username, avatar) and the presence fields maintained by the live
channel (is_online, last_seen).

Related files:
    - managers.py: Custom user manager for email-based creation
    - chat/services.py: PresenceService, the only writer of presence fields

Security:
    - User passwords hashed with Django's PBKDF2
"""

import re

from django.contrib.auth.models import AbstractBaseUser, PermissionsMixin
from django.core.exceptions import ValidationError
from django.db import models

from authentication.managers import UserManager
from core.model_mixins import UUIDPrimaryKeyMixin


# Reserved usernames that cannot be used
RESERVED_USERNAMES = frozenset([
    "admin", "administrator", "root", "system", "api", "www",
    "support", "help", "about", "security", "account", "login",
    "logout", "register", "signup", "auth", "user", "users",
    "me", "null", "undefined", "anonymous", "guest", "staff",
    "moderator", "bot", "everyone", "here",
])


def validate_username_not_reserved(value):
    """Validate that username is not in the reserved list."""
    if value.lower() in RESERVED_USERNAMES:
        raise ValidationError(
            f"The username '{value}' is reserved and cannot be used."
        )


def validate_username_format(value):
    """Validate username format: 3-30 chars, alphanumeric + _ + -."""
    if not re.match(r"^[a-zA-Z0-9_-]{3,30}$", value):
        raise ValidationError(
            "Username must be 3-30 characters and contain only "
            "letters, numbers, underscores, and hyphens."
        )


class User(UUIDPrimaryKeyMixin, AbstractBaseUser, PermissionsMixin):
    """
    Custom User model using email as the login identifier.

    Fields:
        email: Login identifier, unique
        username: Public display name, unique (stored lowercase)
        avatar: Optional avatar URL
        is_online: True while the user has at least one open live connection
        last_seen: When the user's last live connection closed
        is_active: Whether the user account is active
        is_staff: Whether the user can access Django admin
        date_joined: When the user account was created
        updated_at: When the user record was last modified

    Usage:
        user = User.objects.create_user(
            email="alice@example.com",
            username="alice",
            password="securepassword",
        )
    """

    email = models.EmailField(
        unique=True,
        db_index=True,
        max_length=254,
        help_text="User's email address (login identifier)",
    )
    username = models.CharField(
        max_length=30,
        unique=True,
        validators=[validate_username_format, validate_username_not_reserved],
        help_text="Unique public name (3-30 chars, alphanumeric + _ + -)",
    )
    avatar = models.URLField(
        max_length=500,
        blank=True,
        help_text="URL of the user's avatar image",
    )

    # Presence, written only by the live channel
    is_online = models.BooleanField(
        default=False,
        help_text="Whether the user currently has an open live connection",
    )
    last_seen = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the user's last live connection closed",
    )

    # Account status flags
    is_active = models.BooleanField(
        default=True,
        help_text="Whether this user account is active. Deselect instead of deleting.",
    )
    is_staff = models.BooleanField(
        default=False,
        help_text="Whether the user can access the admin site.",
    )

    date_joined = models.DateTimeField(
        auto_now_add=True,
        help_text="When the user account was created",
    )
    updated_at = models.DateTimeField(
        auto_now=True,
        help_text="When the user record was last modified",
    )

    USERNAME_FIELD = "email"
    REQUIRED_FIELDS = ["username"]

    objects = UserManager()

    class Meta:
        verbose_name = "user"
        verbose_name_plural = "users"
        ordering = ["-date_joined"]

    def __str__(self):
        return self.username or self.email

    def get_full_name(self):
        return self.username or self.email

    def get_short_name(self):
        return self.username or self.email.split("@")[0]

    def save(self, *args, **kwargs):
        """Normalize username before saving."""
        if self.username:
            self.username = self.username.lower()
        super().save(*args, **kwargs)
