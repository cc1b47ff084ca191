"""
Serializers for identity endpoints.

This module provides DRF serializers for:
- User model (public directory entry and the caller's own record)
- Sync payload (profile fields reported by the identity provider)

Related files:
    - models.py: User
    - views.py: Views that use these serializers

Notes:
    - The public ``id`` of a user is its external_id; internal primary
      keys never leave the service
"""

from rest_framework import serializers

from authentication.constants import PROFILE_CONFIG
from authentication.models import User


class UserSerializer(serializers.ModelSerializer):
    """
    Public user record.

    Used for the directory, conversation member lists and message senders.
    """

    id = serializers.CharField(source="external_id", read_only=True)
    is_online = serializers.BooleanField(read_only=True)

    class Meta:
        model = User
        fields = [
            "id",
            "email",
            "name",
            "image_url",
            "last_seen",
            "is_online",
        ]
        read_only_fields = fields


class CurrentUserSerializer(UserSerializer):
    """The caller's own record, including their block list."""

    blocked_user_ids = serializers.SerializerMethodField()

    class Meta(UserSerializer.Meta):
        fields = UserSerializer.Meta.fields + ["blocked_user_ids", "date_joined"]
        read_only_fields = fields

    def get_blocked_user_ids(self, obj):
        return list(
            obj.blocked_users.order_by("external_id").values_list(
                "external_id", flat=True
            )
        )


class SyncUserSerializer(serializers.Serializer):
    """
    Profile fields for sync.

    All fields are optional in the body; the view falls back to the
    identity token's claims for anything omitted.
    """

    email = serializers.EmailField(required=False)
    name = serializers.CharField(
        max_length=PROFILE_CONFIG.MAX_NAME_LENGTH,
        required=False,
        allow_blank=True,
    )
    image_url = serializers.URLField(
        max_length=PROFILE_CONFIG.MAX_IMAGE_URL_LENGTH,
        required=False,
        allow_blank=True,
    )


class BlockToggleResponseSerializer(serializers.Serializer):
    """Response for the block toggle endpoint."""

    blocked = serializers.BooleanField()
    blocked_user_ids = serializers.ListField(child=serializers.CharField())


class PresenceResponseSerializer(serializers.Serializer):
    """Response for the presence heartbeat endpoint."""

    last_seen = serializers.DateTimeField()
