"""
Identity services.

This module provides the UserService class: mirroring identity provider
users locally, the user directory, block lists, and the presence heartbeat.

Related files:
    - models.py: User
    - views.py: HTTP endpoints calling these methods
    - chat/services.py: Uses resolve_users() and is_blocked_between() (send guard)

Notes:
    - The caller is always passed in explicitly; nothing here reads request state
    - Blocking is one-directional storage, two-directional enforcement
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from django.db import IntegrityError
from django.db.models import Q
from django.utils import timezone

from authentication.models import User
from core.exceptions import BaseApplicationError, NotFoundError, ValidationError
from core.services import BaseService, ServiceResult

if TYPE_CHECKING:
    from collections.abc import Iterable
    from datetime import datetime

    from django.db.models import QuerySet


class UserService(BaseService):
    """
    Centralized identity business logic.

    Usage:
        from authentication.services import UserService

        # First sign-in or profile change at the identity provider
        result = UserService.sync_user(
            external_id="user_2abc", email="ada@example.com", name="Ada"
        )

        # Directory for starting new chats
        result = UserService.get_users(user=request.user, search="ad")

        # Block / unblock
        result = UserService.toggle_block_user(user=me, target_external_id="user_9xyz")
    """

    @classmethod
    def sync_user(
        cls,
        external_id: str,
        email: str | None,
        name: str | None = None,
        image_url: str | None = None,
    ) -> ServiceResult[tuple[User, bool]]:
        """
        Upsert the local user for an identity provider subject.

        Existing users get name and image_url refreshed (an omitted value
        clears the field, matching what the provider reports); email is
        kept as first synced. New users are created with every field.

        Args:
            external_id: Identity provider subject
            email: Email address (required only when creating)
            name: Display name
            image_url: Avatar URL

        Returns:
            ServiceResult with (user, created)
        """
        logger = cls.get_logger()

        if not external_id:
            return ServiceResult.failure(
                "Identity subject is required", error_code="VALIDATION_ERROR"
            )

        user = User.objects.filter(external_id=external_id).first()
        if user is not None:
            cls._refresh_profile(user, name, image_url)
            logger.info(f"Synced existing user {user.id} ({external_id})")
            return ServiceResult.success((user, False))

        if not email:
            return ServiceResult.failure(
                "Email is required for a new user",
                error_code="VALIDATION_ERROR",
                errors={"email": ["This field is required."]},
            )

        try:
            with cls.atomic():
                user = User.objects.create_user(
                    external_id=external_id,
                    email=email,
                    name=name or "",
                    image_url=image_url or "",
                )
        except IntegrityError:
            # Concurrent first sign-in; the other request created the row
            user = User.objects.get(external_id=external_id)
            cls._refresh_profile(user, name, image_url)
            logger.info(f"Synced user {user.id} after concurrent create ({external_id})")
            return ServiceResult.success((user, False))

        logger.info(f"Created user {user.id} for subject {external_id}")
        return ServiceResult.success((user, True))

    @classmethod
    def _refresh_profile(cls, user: User, name: str | None, image_url: str | None) -> None:
        user.name = name or ""
        user.image_url = image_url or ""
        user.save(update_fields=["name", "image_url", "updated_at"])

    @classmethod
    def get_users(cls, user: User, search: str | None = None) -> ServiceResult[QuerySet]:
        """
        List every other user, optionally filtered by name.

        Args:
            user: The caller (excluded from the result)
            search: Case-insensitive substring of the display name

        Returns:
            ServiceResult with a QuerySet ordered by name
        """
        users = User.objects.filter(is_active=True).exclude(pk=user.pk)
        if search and search.strip():
            users = users.filter(name__icontains=search.strip())
        return ServiceResult.success(users.order_by("name", "id"))

    @classmethod
    def toggle_block_user(
        cls, user: User, target_external_id: str
    ) -> ServiceResult[dict]:
        """
        Block the target, or unblock them if already blocked.

        Args:
            user: The caller
            target_external_id: Public id of the user to (un)block

        Returns:
            ServiceResult with {"blocked": bool, "blocked_user_ids": [...]}
        """
        logger = cls.get_logger()

        try:
            if target_external_id == user.external_id:
                raise ValidationError("You cannot block yourself")
            target = cls.get_user_by_external_id(target_external_id)

            with cls.atomic():
                if user.has_blocked(target):
                    user.blocked_users.remove(target)
                    blocked = False
                else:
                    user.blocked_users.add(target)
                    blocked = True
        except BaseApplicationError as e:
            return cls.handle_exception(e, f"Block toggle by user {user.id}")

        logger.info(
            f"User {user.id} {'blocked' if blocked else 'unblocked'} user {target.id}"
        )
        return ServiceResult.success(
            {"blocked": blocked, "blocked_user_ids": cls.blocked_external_ids(user)}
        )

    @classmethod
    def update_presence(cls, user: User) -> ServiceResult[datetime]:
        """
        Record a presence heartbeat.

        Returns:
            ServiceResult with the new last_seen timestamp
        """
        now = timezone.now()
        User.objects.filter(pk=user.pk).update(last_seen=now)
        user.last_seen = now
        return ServiceResult.success(now)

    # =========================================================================
    # Lookups used by the chat services
    # =========================================================================

    @classmethod
    def get_user_by_external_id(cls, external_id: str) -> User:
        """
        Resolve one public user id.

        Raises:
            NotFoundError: If no active user has that id
        """
        user = User.objects.filter(external_id=external_id, is_active=True).first()
        if user is None:
            raise NotFoundError(
                "User not found", details={"user_id": external_id}
            )
        return user

    @classmethod
    def resolve_users(cls, external_ids: Iterable[str]) -> list[User]:
        """
        Resolve public user ids, preserving first-seen order and dropping repeats.

        Raises:
            NotFoundError: If any id is unknown (details list the missing ids)
        """
        wanted = list(dict.fromkeys(external_ids))
        found = {
            u.external_id: u
            for u in User.objects.filter(external_id__in=wanted, is_active=True)
        }
        missing = [eid for eid in wanted if eid not in found]
        if missing:
            raise NotFoundError("User not found", details={"user_ids": missing})
        return [found[eid] for eid in wanted]

    @classmethod
    def is_blocked_between(cls, user_a: User, user_b: User) -> bool:
        """Check for a block row in either direction."""
        return User.blocked_users.through.objects.filter(
            Q(from_user_id=user_a.pk, to_user_id=user_b.pk)
            | Q(from_user_id=user_b.pk, to_user_id=user_a.pk)
        ).exists()

    @classmethod
    def blocked_external_ids(cls, user: User) -> list[str]:
        """Public ids of everyone the user has blocked."""
        return list(
            user.blocked_users.order_by("external_id").values_list(
                "external_id", flat=True
            )
        )
