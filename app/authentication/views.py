"""
Views for identity endpoints.

URL Structure:
    /api/v1/auth/sync/               POST  Upsert caller from identity token
    /api/v1/auth/me/                 GET   Caller's own record
    /api/v1/auth/users/              GET   Directory (everyone but the caller)
    /api/v1/auth/users/{id}/block/   POST  Toggle block on a user
    /api/v1/auth/presence/           POST  Presence heartbeat

Authentication:
    Every endpoint requires a bearer token. Sync uses stateless token
    authentication because the caller's row may not exist yet; all other
    endpoints resolve the token's subject to a local user.
"""

from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import OpenApiParameter, OpenApiResponse, extend_schema
from rest_framework import status
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView
from rest_framework_simplejwt.authentication import JWTStatelessUserAuthentication
from rest_framework_simplejwt.settings import api_settings as jwt_settings

from authentication.constants import PROFILE_CONFIG
from authentication.serializers import (
    BlockToggleResponseSerializer,
    CurrentUserSerializer,
    PresenceResponseSerializer,
    SyncUserSerializer,
    UserSerializer,
)
from authentication.services import UserService
from core.views import error_response


class SyncUserView(APIView):
    """
    Upsert the caller's local user record.

    Called by the client right after sign-in and whenever the identity
    provider reports a profile change. The subject always comes from the
    verified token; profile fields come from the body, falling back to the
    token's ``email``/``name``/``picture`` claims.
    """

    authentication_classes = [JWTStatelessUserAuthentication]
    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="sync_user",
        summary="Sync user from identity provider",
        request=SyncUserSerializer,
        responses={
            200: CurrentUserSerializer,
            201: CurrentUserSerializer,
            400: OpenApiResponse(description="Email missing for a new user"),
        },
        tags=["Auth - Users"],
    )
    def post(self, request):
        serializer = SyncUserSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        claims = request.auth

        result = UserService.sync_user(
            external_id=str(claims.get(jwt_settings.USER_ID_CLAIM, "")),
            email=data.get("email") or claims.get(PROFILE_CONFIG.EMAIL_CLAIM),
            name=data.get("name", claims.get(PROFILE_CONFIG.NAME_CLAIM)),
            image_url=data.get("image_url", claims.get(PROFILE_CONFIG.IMAGE_CLAIM)),
        )
        if not result.success:
            return error_response(result)

        user, created = result.data
        return Response(
            CurrentUserSerializer(user).data,
            status=status.HTTP_201_CREATED if created else status.HTTP_200_OK,
        )


class CurrentUserView(APIView):
    """Return the caller's own record."""

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="get_current_user",
        summary="Get current user",
        responses={200: CurrentUserSerializer},
        tags=["Auth - Users"],
    )
    def get(self, request):
        return Response(CurrentUserSerializer(request.user).data)


class UserListView(APIView):
    """
    User directory.

    Lists every user except the caller, for starting direct chats and
    picking group members. ``?search=`` filters by display name.
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="list_users",
        summary="List users",
        parameters=[
            OpenApiParameter(
                name="search",
                type=OpenApiTypes.STR,
                location=OpenApiParameter.QUERY,
                required=False,
                description="Case-insensitive substring of the display name",
            ),
        ],
        responses={200: UserSerializer(many=True)},
        tags=["Auth - Users"],
    )
    def get(self, request):
        result = UserService.get_users(
            user=request.user,
            search=request.query_params.get("search"),
        )
        if not result.success:
            return error_response(result)
        return Response(UserSerializer(result.data, many=True).data)


class BlockUserView(APIView):
    """Toggle the caller's block on another user."""

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="toggle_block_user",
        summary="Block or unblock a user",
        request=None,
        responses={
            200: BlockToggleResponseSerializer,
            400: OpenApiResponse(description="Cannot block yourself"),
            404: OpenApiResponse(description="User not found"),
        },
        tags=["Auth - Users"],
    )
    def post(self, request, user_id):
        result = UserService.toggle_block_user(
            user=request.user,
            target_external_id=user_id,
        )
        if not result.success:
            return error_response(result)
        return Response(BlockToggleResponseSerializer(result.data).data)


class PresenceView(APIView):
    """
    Presence heartbeat.

    Clients call this every HEARTBEAT_INTERVAL_SECONDS while active.
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="update_presence",
        summary="Update presence",
        request=None,
        responses={200: PresenceResponseSerializer},
        tags=["Auth - Presence"],
    )
    def post(self, request):
        result = UserService.update_presence(request.user)
        return Response(PresenceResponseSerializer({"last_seen": result.data}).data)
