"""
ViewSets for chat API.

This module provides REST API endpoints for the chat system:
- ConversationViewSet: Conversation directory, group management, messages
  and typing (nested under a conversation)
- MessageViewSet: Operations on one message (edit, delete, react)

URL Structure:
    /api/v1/chat/conversations/                              GET
    /api/v1/chat/conversations/direct/                       POST
    /api/v1/chat/conversations/group/                        POST
    /api/v1/chat/conversations/{id}/                         GET, PATCH, DELETE
    /api/v1/chat/conversations/{id}/read/                    POST
    /api/v1/chat/conversations/{id}/pin/                     POST
    /api/v1/chat/conversations/{id}/leave/                   POST
    /api/v1/chat/conversations/{id}/members/                 POST
    /api/v1/chat/conversations/{id}/members/{user_id}/       DELETE
    /api/v1/chat/conversations/{id}/messages/                GET, POST
    /api/v1/chat/conversations/{id}/messages/search/?q=      GET
    /api/v1/chat/conversations/{id}/typing/                  GET, POST, DELETE
    /api/v1/chat/messages/{id}/                              PATCH, DELETE
    /api/v1/chat/messages/{id}/react/                        POST

Design Decisions:
    - Views only parse input and shape output; every rule lives in
      chat.services and failures come back as ServiceResult
    - Failed results map to HTTP status via core.views.error_response
"""

from __future__ import annotations

from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import (
    OpenApiParameter,
    OpenApiResponse,
    extend_schema,
    extend_schema_view,
)
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from chat.constants import MESSAGE_CONFIG, DeleteMode
from chat.serializers import (
    ConversationSummarySerializer,
    DirectConversationCreateSerializer,
    GroupCreateSerializer,
    GroupUpdateSerializer,
    LeaveGroupSerializer,
    MembersAddSerializer,
    MessageCreateSerializer,
    MessageSerializer,
    MessageUpdateSerializer,
    PinResponseSerializer,
    ReactionSerializer,
    ReactionToggleResponseSerializer,
    ReactionToggleSerializer,
    TypingStatusSerializer,
)
from chat.services import (
    ConversationService,
    GroupService,
    MessageSearchService,
    MessageService,
    ReactionService,
    TypingService,
)
from core.views import error_response


@extend_schema_view(
    list=extend_schema(
        operation_id="list_conversations",
        summary="List conversations",
        description=(
            "Conversations the caller is a current or past member of, except "
            "those they deleted. Most recently active first."
        ),
        responses={200: ConversationSummarySerializer(many=True)},
        tags=["Chat - Conversations"],
    ),
    retrieve=extend_schema(
        operation_id="get_conversation",
        summary="Get conversation",
        responses={
            200: ConversationSummarySerializer,
            403: OpenApiResponse(description="No access to this conversation"),
            404: OpenApiResponse(description="Conversation not found"),
        },
        tags=["Chat - Conversations"],
    ),
    partial_update=extend_schema(
        operation_id="update_group",
        summary="Update group details",
        request=GroupUpdateSerializer,
        responses={
            200: ConversationSummarySerializer,
            403: OpenApiResponse(description="Caller is not the group admin"),
            409: OpenApiResponse(description="Direct conversations have no details"),
        },
        tags=["Chat - Groups"],
    ),
    destroy=extend_schema(
        operation_id="delete_conversation",
        summary="Delete conversation for me",
        description="Hides the conversation from the caller's list. Cannot be undone.",
        responses={204: None},
        tags=["Chat - Conversations"],
    ),
)
class ConversationViewSet(viewsets.ViewSet):
    """
    ViewSet for conversation operations.

    list:
        All of the caller's visible conversations with unread counts and
        last message preview.

    retrieve:
        One conversation summary.

    partial_update:
        Rename a group or change its description/avatar (admin only).

    destroy:
        Delete the conversation from the caller's list only.

    direct / group:
        Start a direct conversation (returns the existing one if any) or
        create a group.

    read / pin / leave / members:
        Per-user state and group membership.

    messages / search / typing:
        Message log and typing indicators of the conversation.
    """

    permission_classes = [IsAuthenticated]
    lookup_value_regex = r"\d+"

    def _summary_response(self, conversation_id, http_status=status.HTTP_200_OK):
        result = ConversationService.get_conversation(
            user=self.request.user, conversation_id=conversation_id
        )
        if not result.success:
            return error_response(result)
        return Response(ConversationSummarySerializer(result.data).data, status=http_status)

    def list(self, request):
        result = ConversationService.list_conversations(user=request.user)
        return Response(ConversationSummarySerializer(result.data, many=True).data)

    def retrieve(self, request, pk=None):
        return self._summary_response(int(pk))

    def partial_update(self, request, pk=None):
        """Update group details."""
        serializer = GroupUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = GroupService.update_details(
            user=request.user,
            conversation_id=int(pk),
            **serializer.validated_data,
        )
        if not result.success:
            return error_response(result)

        return self._summary_response(result.data.id)

    def destroy(self, request, pk=None):
        """Delete the conversation for the caller."""
        result = ConversationService.delete_conversation(
            user=request.user, conversation_id=int(pk)
        )
        if not result.success:
            return error_response(result)
        return Response(status=status.HTTP_204_NO_CONTENT)

    @extend_schema(
        operation_id="get_or_create_direct_conversation",
        summary="Start direct conversation",
        description="Returns the existing direct conversation with the user, or creates it.",
        request=DirectConversationCreateSerializer,
        responses={
            200: ConversationSummarySerializer,
            201: ConversationSummarySerializer,
            400: OpenApiResponse(description="Cannot start a conversation with yourself"),
            404: OpenApiResponse(description="User not found"),
        },
        tags=["Chat - Conversations"],
    )
    @action(detail=False, methods=["post"])
    def direct(self, request):
        serializer = DirectConversationCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = ConversationService.get_or_create_direct(
            user=request.user,
            other_user_id=serializer.validated_data["user_id"],
        )
        if not result.success:
            return error_response(result)

        conversation, created = result.data
        return self._summary_response(
            conversation.id,
            http_status=status.HTTP_201_CREATED if created else status.HTTP_200_OK,
        )

    @extend_schema(
        operation_id="create_group",
        summary="Create group",
        request=GroupCreateSerializer,
        responses={
            201: ConversationSummarySerializer,
            404: OpenApiResponse(description="A member id is unknown"),
        },
        tags=["Chat - Groups"],
    )
    @action(detail=False, methods=["post"])
    def group(self, request):
        serializer = GroupCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        result = ConversationService.create_group(
            creator=request.user,
            name=data["name"],
            member_ids=data["member_ids"],
            description=data.get("description", ""),
            image_url=data.get("image_url", ""),
        )
        if not result.success:
            return error_response(result)

        return self._summary_response(result.data.id, http_status=status.HTTP_201_CREATED)

    @extend_schema(
        operation_id="mark_conversation_read",
        summary="Mark conversation as read",
        request=None,
        responses={200: OpenApiTypes.OBJECT},
        tags=["Chat - Conversations"],
    )
    @action(detail=True, methods=["post"])
    def read(self, request, pk=None):
        result = ConversationService.mark_as_read(
            user=request.user, conversation_id=int(pk)
        )
        if not result.success:
            return error_response(result)
        return Response({"status": "read"})

    @extend_schema(
        operation_id="toggle_conversation_pin",
        summary="Pin or unpin conversation",
        request=None,
        responses={200: PinResponseSerializer},
        tags=["Chat - Conversations"],
    )
    @action(detail=True, methods=["post"])
    def pin(self, request, pk=None):
        result = ConversationService.toggle_pin(
            user=request.user, conversation_id=int(pk)
        )
        if not result.success:
            return error_response(result)
        return Response({"is_pinned": result.data})

    @extend_schema(
        operation_id="leave_group",
        summary="Leave group",
        request=LeaveGroupSerializer,
        responses={
            200: OpenApiTypes.OBJECT,
            409: OpenApiResponse(description="Direct conversations cannot be left"),
        },
        tags=["Chat - Groups"],
    )
    @action(detail=True, methods=["post"])
    def leave(self, request, pk=None):
        serializer = LeaveGroupSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = GroupService.leave(
            user=request.user,
            conversation_id=int(pk),
            delete_history=serializer.validated_data["delete_history"],
        )
        if not result.success:
            return error_response(result)
        return Response({"status": "left"})

    @extend_schema(
        operation_id="add_group_members",
        summary="Add group members",
        request=MembersAddSerializer,
        responses={
            200: ConversationSummarySerializer,
            403: OpenApiResponse(description="Caller is not the group admin"),
            404: OpenApiResponse(description="A member id is unknown"),
        },
        tags=["Chat - Groups"],
    )
    @action(detail=True, methods=["post"])
    def members(self, request, pk=None):
        serializer = MembersAddSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = GroupService.add_members(
            user=request.user,
            conversation_id=int(pk),
            member_ids=serializer.validated_data["member_ids"],
        )
        if not result.success:
            return error_response(result)
        return self._summary_response(int(pk))

    @extend_schema(
        operation_id="remove_group_member",
        summary="Remove group member",
        request=None,
        responses={
            204: None,
            403: OpenApiResponse(description="Caller is not the admin, or targeted themselves"),
            409: OpenApiResponse(description="Target is not a current member"),
        },
        tags=["Chat - Groups"],
    )
    @action(
        detail=True,
        methods=["delete"],
        url_path=r"members/(?P<user_id>[^/]+)",
        url_name="kick-member",
    )
    def kick_member(self, request, pk=None, user_id=None):
        result = GroupService.kick_member(
            user=request.user,
            conversation_id=int(pk),
            target_user_id=user_id,
        )
        if not result.success:
            return error_response(result)
        return Response(status=status.HTTP_204_NO_CONTENT)

    @extend_schema(
        methods=["GET"],
        operation_id="list_messages",
        summary="List messages",
        description="Messages visible to the caller, oldest first.",
        responses={200: MessageSerializer(many=True)},
        tags=["Chat - Messages"],
    )
    @extend_schema(
        methods=["POST"],
        operation_id="send_message",
        summary="Send message",
        request=MessageCreateSerializer,
        responses={
            201: MessageSerializer,
            400: OpenApiResponse(description="Invalid content or reply target"),
            403: OpenApiResponse(description="Not a current member, or blocked"),
        },
        tags=["Chat - Messages"],
    )
    @action(detail=True, methods=["get", "post"])
    def messages(self, request, pk=None):
        if request.method == "POST":
            return self._send_message(request, int(pk))

        result = MessageService.list_messages(
            user=request.user, conversation_id=int(pk)
        )
        if not result.success:
            return error_response(result)
        return Response(MessageSerializer(result.data, many=True).data)

    def _send_message(self, request, conversation_id):
        serializer = MessageCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = MessageService.send(
            user=request.user,
            conversation_id=conversation_id,
            content=serializer.validated_data["content"],
            reply_to_id=serializer.validated_data.get("reply_to"),
        )
        if not result.success:
            return error_response(result)

        return Response(MessageSerializer(result.data).data, status=status.HTTP_201_CREATED)

    @extend_schema(
        operation_id="search_messages",
        summary="Search messages",
        description=(
            "Full-text search within one conversation. Deleted messages are "
            f"never matched. At most {MESSAGE_CONFIG.SEARCH_MAX_RESULTS} results."
        ),
        parameters=[
            OpenApiParameter(
                name="q",
                type=OpenApiTypes.STR,
                location=OpenApiParameter.QUERY,
                required=True,
                description="Search text",
            ),
        ],
        responses={
            200: MessageSerializer(many=True),
            400: OpenApiResponse(description="Missing search query"),
        },
        tags=["Chat - Messages"],
    )
    @action(detail=True, methods=["get"], url_path="messages/search", url_name="message-search")
    def search(self, request, pk=None):
        query = request.query_params.get("q", "")[: MESSAGE_CONFIG.SEARCH_MAX_QUERY_LENGTH]
        result = MessageSearchService.search(
            user=request.user, conversation_id=int(pk), query=query
        )
        if not result.success:
            return error_response(result)
        return Response(MessageSerializer(result.data, many=True).data)

    @extend_schema(
        methods=["GET"],
        operation_id="get_typing_users",
        summary="Who is typing",
        responses={200: TypingStatusSerializer},
        tags=["Chat - Typing"],
    )
    @extend_schema(
        methods=["POST"],
        operation_id="start_typing",
        summary="Start typing",
        request=None,
        responses={204: None},
        tags=["Chat - Typing"],
    )
    @extend_schema(
        methods=["DELETE"],
        operation_id="stop_typing",
        summary="Stop typing",
        request=None,
        responses={204: None},
        tags=["Chat - Typing"],
    )
    @action(detail=True, methods=["get", "post", "delete"])
    def typing(self, request, pk=None):
        conversation_id = int(pk)
        if request.method == "POST":
            result = TypingService.start(user=request.user, conversation_id=conversation_id)
        elif request.method == "DELETE":
            result = TypingService.stop(user=request.user, conversation_id=conversation_id)
        else:
            result = TypingService.get_active_typers(
                user=request.user, conversation_id=conversation_id
            )
            if result.success:
                return Response({"user_ids": result.data})

        if not result.success:
            return error_response(result)
        return Response(status=status.HTTP_204_NO_CONTENT)


@extend_schema_view(
    partial_update=extend_schema(
        operation_id="edit_message",
        summary="Edit message",
        request=MessageUpdateSerializer,
        responses={
            200: MessageSerializer,
            403: OpenApiResponse(description="Only the sender can edit"),
            409: OpenApiResponse(description="Message was deleted"),
        },
        tags=["Chat - Messages"],
    ),
    destroy=extend_schema(
        operation_id="delete_message",
        summary="Delete message",
        parameters=[
            OpenApiParameter(
                name="mode",
                type=OpenApiTypes.STR,
                location=OpenApiParameter.QUERY,
                enum=list(DeleteMode.CHOICES),
                description="for_me (default) or for_everyone (sender only)",
            ),
        ],
        responses={
            204: None,
            403: OpenApiResponse(description="Only the sender can delete for everyone"),
        },
        tags=["Chat - Messages"],
    ),
)
class MessageViewSet(viewsets.ViewSet):
    """
    ViewSet for operations on a single message.

    partial_update:
        Edit the message (sender only). Marks it as edited.

    destroy:
        Delete for the caller only, or for everyone (sender only).

    react:
        Toggle one emoji reaction.
    """

    permission_classes = [IsAuthenticated]
    lookup_value_regex = r"\d+"

    def partial_update(self, request, pk=None):
        serializer = MessageUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = MessageService.edit(
            user=request.user,
            message_id=int(pk),
            content=serializer.validated_data["content"],
        )
        if not result.success:
            return error_response(result)
        return Response(MessageSerializer(result.data).data)

    def destroy(self, request, pk=None):
        result = MessageService.delete(
            user=request.user,
            message_id=int(pk),
            mode=request.query_params.get("mode", DeleteMode.FOR_ME),
        )
        if not result.success:
            return error_response(result)
        return Response(status=status.HTTP_204_NO_CONTENT)

    @extend_schema(
        operation_id="toggle_reaction",
        summary="Toggle reaction on message",
        description=(
            "Adds the emoji if the caller has not used it on this message, "
            "otherwise removes it. A caller holds at most two emoji per "
            "message; adding a third evicts their oldest."
        ),
        request=ReactionToggleSerializer,
        responses={200: ReactionToggleResponseSerializer},
        tags=["Chat - Reactions"],
    )
    @action(detail=True, methods=["post"])
    def react(self, request, pk=None):
        serializer = ReactionToggleSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = ReactionService.toggle(
            user=request.user,
            message_id=int(pk),
            emoji=serializer.validated_data["emoji"],
        )
        if not result.success:
            return error_response(result)

        message = result.data["message"]
        reactions = message.reactions.select_related("user").order_by("created_at", "id")
        return Response(
            {
                "action": result.data["action"],
                "evicted": result.data["evicted"],
                "reactions": ReactionSerializer(reactions, many=True).data,
            }
        )
