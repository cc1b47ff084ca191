"""
Authentication models.

This module defines the local user record mirrored from the external
identity provider:
- User: external_id-keyed user with profile fields, presence heartbeat
  and a one-directional block list

Related files:
    - managers.py: Custom user manager keyed on external_id
    - services.py: UserService business logic (sync, block, presence)

Notes:
    - Users are created on first sync and never hard-deleted by the app
    - The identity provider owns email/name/avatar; sync copies them here
"""

from __future__ import annotations

from datetime import timedelta

from django.contrib.auth.models import AbstractBaseUser, PermissionsMixin
from django.db import models
from django.utils import timezone

from authentication.constants import PRESENCE_CONFIG, PROFILE_CONFIG
from authentication.managers import UserManager


class User(AbstractBaseUser, PermissionsMixin):
    """
    Custom User model using the identity provider subject as identifier.

    Fields:
        external_id: Stable identity provider subject (the token's ``sub``)
        email: Email address copied on first sync
        name: Display name (refreshed on every sync)
        image_url: Avatar URL (refreshed on every sync)
        last_seen: Last presence heartbeat (null until the first one)
        blocked_users: Users this user has blocked (not symmetric)
        is_active: Whether the user account is active
        is_staff: Whether the user can access Django admin
        date_joined: When the user was first synced
        updated_at: When the user record was last modified

    Blocking:
        A blocks B is stored as one row (A -> B). Direct sends are rejected
        when a row exists in either direction, so B blocking A back adds a
        second, independent row.
    """

    external_id = models.CharField(
        max_length=PROFILE_CONFIG.MAX_EXTERNAL_ID_LENGTH,
        unique=True,
        help_text="Identity provider subject; exposed as the user's public id",
    )

    email = models.EmailField(
        max_length=254,
        db_index=True,
        help_text="User's email address as reported by the identity provider",
    )

    name = models.CharField(
        max_length=PROFILE_CONFIG.MAX_NAME_LENGTH,
        blank=True,
        default="",
        help_text="Display name",
    )

    image_url = models.URLField(
        max_length=PROFILE_CONFIG.MAX_IMAGE_URL_LENGTH,
        blank=True,
        default="",
        help_text="Avatar URL",
    )

    last_seen = models.DateTimeField(
        null=True,
        blank=True,
        help_text="Timestamp of the most recent presence heartbeat",
    )

    blocked_users = models.ManyToManyField(
        "self",
        symmetrical=False,
        blank=True,
        related_name="blocked_by",
        help_text="Users this user has blocked",
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

    # Timestamps
    date_joined = models.DateTimeField(
        auto_now_add=True,
        help_text="When the user was first synced",
    )
    updated_at = models.DateTimeField(
        auto_now=True,
        help_text="When the user record was last modified",
    )

    USERNAME_FIELD = "external_id"
    EMAIL_FIELD = "email"
    REQUIRED_FIELDS = ["email"]

    objects = UserManager()

    class Meta:
        verbose_name = "user"
        verbose_name_plural = "users"
        ordering = ["name", "id"]

    def __str__(self):
        return self.name or self.email

    def get_full_name(self):
        return self.name or self.email

    def get_short_name(self):
        return self.name.split(" ")[0] if self.name else self.email.split("@")[0]

    @property
    def is_online(self) -> bool:
        """
        Presence heuristic: online while the last heartbeat is recent.

        There is no disconnect signal, so a user who closes the app stays
        "online" for up to ONLINE_THRESHOLD_SECONDS.
        """
        if self.last_seen is None:
            return False
        threshold = timedelta(seconds=PRESENCE_CONFIG.ONLINE_THRESHOLD_SECONDS)
        return timezone.now() - self.last_seen < threshold

    def has_blocked(self, other: User) -> bool:
        """Check whether this user has ``other`` on their block list."""
        return self.blocked_users.filter(pk=other.pk).exists()
