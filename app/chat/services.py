"""
Chat services.

This module contains the business rules of the chat system:
- ConversationService: Direct/group creation, listing with unread counts,
  read markers, pin and per-user delete
- GroupService: Admin-gated details and membership changes, leaving
- MessageService: Listing, sending, editing and deleting messages
- ReactionService: Per-user capped emoji toggles
- MessageSearchService: Full-text search within one conversation
- TypingService: Time-expiring typing indicators

Access Rules:
    read: a participant row exists and (status is ACTIVE or the user has
          not hidden the conversation). Past members read history up to
          their left_at.
    send: status is ACTIVE; for direct conversations, no block in either
          direction.
    admin: group conversations only, caller is the admin and ACTIVE.

Error codes (see core.exceptions):
    NOT_FOUND, PERMISSION_DENIED, BLOCKED, INVALID_STATE, VALIDATION_ERROR

Every mutation runs in one transaction and publishes realtime events
(chat.events) only after commit. Concurrent read-modify-write on the same
user's reactions or the same membership set is last-write-wins.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from typing import TYPE_CHECKING

from django.db import IntegrityError, connection
from django.db.models import (
    Case,
    Count,
    DateTimeField,
    Exists,
    F,
    IntegerField,
    OuterRef,
    Prefetch,
    Subquery,
    Value,
    When,
)
from django.db.models.functions import Coalesce
from django.utils import timezone

from authentication.services import UserService
from chat import events
from chat.constants import MESSAGE_CONFIG, REACTION_CONFIG, TYPING_CONFIG, DeleteMode
from chat.events import EventType
from chat.models import (
    Conversation,
    ConversationType,
    DirectConversationPair,
    HiddenMessage,
    MembershipStatus,
    Message,
    MessageReaction,
    Participant,
    TypingIndicator,
)
from core.exceptions import (
    BaseApplicationError,
    BlockedRelationshipError,
    InvalidStateError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from core.services import BaseService, ServiceResult

if TYPE_CHECKING:
    from collections.abc import Iterable

    from django.db.models import QuerySet

    from authentication.models import User


@dataclass
class ConversationSummary:
    """
    One conversation as seen by one user.

    Attributes:
        conversation: The conversation
        participant: The viewer's own participant row
        members: Current (ACTIVE) members, oldest first
        last_message: Most recent message the viewer can see (tombstones included)
        unread_count: Messages after the viewer's last-read marker not sent by them
    """

    conversation: Conversation
    participant: Participant
    members: list
    last_message: Message | None
    unread_count: int

    @property
    def activity_at(self):
        """Sort key: last visible message time, else creation time."""
        if self.last_message is not None:
            return self.last_message.created_at
        return self.conversation.created_at


class ChatServiceBase(BaseService):
    """Shared lookups and access checks for the chat services."""

    @classmethod
    def _get_conversation(cls, conversation_id: int) -> Conversation:
        conversation = (
            Conversation.objects.select_related("admin")
            .filter(pk=conversation_id)
            .first()
        )
        if conversation is None:
            raise NotFoundError(
                "Conversation not found",
                details={"conversation_id": conversation_id},
            )
        return conversation

    @classmethod
    def _get_participant(cls, user: User, conversation: Conversation) -> Participant | None:
        participant = Participant.objects.filter(
            conversation=conversation, user=user
        ).first()
        if participant is not None:
            # Reuse the already loaded conversation for effective_last_read_at
            participant.conversation = conversation
        return participant

    @classmethod
    def _require_reader(cls, user: User, conversation: Conversation) -> Participant:
        participant = cls._get_participant(user, conversation)
        if participant is None or not participant.can_read:
            raise PermissionDeniedError("You do not have access to this conversation")
        return participant

    @classmethod
    def _require_member(cls, user: User, conversation: Conversation) -> Participant:
        participant = cls._get_participant(user, conversation)
        if participant is None or not participant.can_send:
            raise PermissionDeniedError("You are not a member of this conversation")
        return participant

    @classmethod
    def _get_message(cls, message_id: int) -> Message:
        message = (
            Message.objects.select_related("conversation", "sender")
            .filter(pk=message_id)
            .first()
        )
        if message is None:
            raise NotFoundError("Message not found", details={"message_id": message_id})
        return message

    @classmethod
    def _require_message_reader(cls, user: User, message: Message) -> Participant:
        participant = cls._require_reader(user, message.conversation)
        cutoff = participant.read_cutoff
        if cutoff is not None and message.created_at > cutoff:
            raise PermissionDeniedError("You do not have access to this message")
        return participant

    @classmethod
    def _visible_messages(cls, user: User, participant: Participant) -> QuerySet:
        """Messages the viewer can see: not hidden for them, not after they left."""
        messages = Message.objects.filter(
            conversation_id=participant.conversation_id
        ).exclude(hidden_entries__user=user)
        cutoff = participant.read_cutoff
        if cutoff is not None:
            messages = messages.filter(created_at__lte=cutoff)
        return messages

    @classmethod
    def _unread_count(cls, user: User, participant: Participant) -> int:
        messages = Message.objects.filter(
            conversation_id=participant.conversation_id,
            created_at__gt=participant.effective_last_read_at,
        ).exclude(sender=user)
        cutoff = participant.read_cutoff
        if cutoff is not None:
            messages = messages.filter(created_at__lte=cutoff)
        return messages.count()

    @classmethod
    def _member_user_ids(cls, conversation: Conversation) -> list[int]:
        return list(
            conversation.participants.filter(
                status=MembershipStatus.ACTIVE
            ).values_list("user_id", flat=True)
        )


# =============================================================================
# Conversation Directory
# =============================================================================


class ConversationService(ChatServiceBase):
    """
    Service for conversation lifecycle and per-user directory state.

    Usage:
        from chat.services import ConversationService

        result = ConversationService.get_or_create_direct(user=me, other_user_id="user_9xyz")
        conversation, created = result.data

        result = ConversationService.list_conversations(user=me)
        for summary in result.data:
            print(summary.conversation.id, summary.unread_count)
    """

    @classmethod
    def get_or_create_direct(
        cls,
        user: User,
        other_user_id: str,
    ) -> ServiceResult[tuple[Conversation, bool]]:
        """
        Return the direct conversation with another user, creating it if needed.

        Both last-read markers start at the creation time so nothing that
        predates the conversation can count as unread. Two concurrent calls
        for the same pair collide on the pair's unique constraint; the
        loser returns the winner's conversation.

        Args:
            user: The caller
            other_user_id: Public id of the other participant

        Returns:
            ServiceResult with (conversation, created)

        Error codes:
            VALIDATION_ERROR: other_user_id is the caller
            NOT_FOUND: Unknown user
        """
        logger = cls.get_logger()

        try:
            if other_user_id == user.external_id:
                raise ValidationError("Cannot start a direct conversation with yourself")
            other = UserService.get_user_by_external_id(other_user_id)
        except BaseApplicationError as e:
            return cls.handle_exception(e, "Direct conversation")

        user_lower, user_higher = DirectConversationPair.canonical(user, other)

        existing = cls._find_direct(user_lower, user_higher)
        if existing is not None:
            logger.debug(
                f"Found existing direct conversation {existing.id} "
                f"between users {user_lower.id} and {user_higher.id}"
            )
            return ServiceResult.success((existing, False))

        try:
            with cls.atomic():
                conversation = Conversation.objects.create(
                    conversation_type=ConversationType.DIRECT,
                    created_by=user,
                )
                DirectConversationPair.objects.create(
                    conversation=conversation,
                    user_lower=user_lower,
                    user_higher=user_higher,
                )
                for member in (user, other):
                    Participant.objects.create(
                        conversation=conversation,
                        user=member,
                        joined_at=conversation.created_at,
                        last_read_at=conversation.created_at,
                    )
                events.publish_inbox([user.pk, other.pk], conversation.id, "created")
        except IntegrityError:
            existing = cls._find_direct(user_lower, user_higher)
            if existing is None:
                raise
            logger.info(
                f"Direct conversation race for users {user_lower.id}/{user_higher.id}; "
                f"using {existing.id}"
            )
            return ServiceResult.success((existing, False))

        logger.info(
            f"Created direct conversation {conversation.id} "
            f"between users {user_lower.id} and {user_higher.id}"
        )
        return ServiceResult.success((conversation, True))

    @classmethod
    def _find_direct(cls, user_lower: User, user_higher: User) -> Conversation | None:
        pair = (
            DirectConversationPair.objects.select_related("conversation")
            .filter(user_lower=user_lower, user_higher=user_higher)
            .first()
        )
        return pair.conversation if pair else None

    @classmethod
    def create_group(
        cls,
        creator: User,
        name: str,
        member_ids: Iterable[str],
        description: str = "",
        image_url: str = "",
    ) -> ServiceResult[Conversation]:
        """
        Create a group conversation.

        The creator is always a member and becomes the admin. Repeated ids
        and the creator's own id in member_ids are ignored. Members'
        last-read markers start unset, so a never-opened group counts as
        unread from its creation.

        Args:
            creator: User creating the group
            name: Group name (required, trimmed)
            member_ids: Public ids of the other initial members
            description: Optional description
            image_url: Optional avatar URL

        Error codes:
            VALIDATION_ERROR: Blank name
            NOT_FOUND: A member id is unknown
        """
        try:
            name = (name or "").strip()
            if not name:
                raise ValidationError(
                    "Group name is required", details={"name": ["This field may not be blank."]}
                )
            others = [
                u
                for u in UserService.resolve_users(member_ids)
                if u.pk != creator.pk
            ]
        except BaseApplicationError as e:
            return cls.handle_exception(e, "Group creation")

        with cls.atomic():
            conversation = Conversation.objects.create(
                conversation_type=ConversationType.GROUP,
                name=name,
                description=description or "",
                image_url=image_url or "",
                admin=creator,
                created_by=creator,
            )
            joined_at = conversation.created_at
            Participant.objects.bulk_create(
                [
                    Participant(conversation=conversation, user=member, joined_at=joined_at)
                    for member in [creator, *others]
                ]
            )
            events.publish_inbox(
                [creator.pk, *(u.pk for u in others)], conversation.id, "created"
            )

        cls.get_logger().info(
            f"Created group {conversation.id} by user {creator.id} "
            f"with {len(others) + 1} members"
        )
        return ServiceResult.success(conversation)

    @classmethod
    def list_conversations(cls, user: User) -> ServiceResult[list[ConversationSummary]]:
        """
        List the caller's conversations, most recently active first.

        Includes every conversation the caller is a current or past member
        of, except those they hid. Pinning does not affect the order;
        clients surface pinned rows themselves.
        """
        participants = cls._summary_queryset().filter(user=user, is_hidden=False)
        summaries = cls._build_summaries(participants)
        summaries.sort(key=lambda s: (s.activity_at, s.conversation.id), reverse=True)
        return ServiceResult.success(summaries)

    @classmethod
    def get_conversation(
        cls, user: User, conversation_id: int
    ) -> ServiceResult[ConversationSummary]:
        """Get one readable conversation as a summary."""
        try:
            conversation = cls._get_conversation(conversation_id)
            cls._require_reader(user, conversation)
        except BaseApplicationError as e:
            return cls.handle_exception(e, f"Get conversation {conversation_id}")

        participant = cls._summary_queryset().get(conversation=conversation, user=user)
        return ServiceResult.success(cls._build_summaries([participant])[0])

    @classmethod
    def _summary_queryset(cls) -> QuerySet:
        """
        Participant rows annotated with everything a summary needs.

        Adds last_message_pk and unread_total, computed per row by
        correlated subqueries, so listing N conversations costs a fixed
        number of queries.
        """
        members = Participant.objects.filter(
            status=MembershipStatus.ACTIVE
        ).select_related("user").order_by("joined_at", "id")
        visible = cls._summary_visible_messages()
        last_message = visible.order_by("-created_at", "-id").values("pk")[:1]
        unread = (
            visible.filter(created_at__gt=OuterRef("last_read_marker"))
            .exclude(sender=OuterRef("user"))
            .order_by()
            .values("conversation")
            .annotate(total=Count("pk"))
            .values("total")
        )
        return (
            Participant.objects.select_related("conversation", "conversation__admin")
            .prefetch_related(
                Prefetch("conversation__participants", queryset=members, to_attr="active_members")
            )
            .annotate(
                visible_until=Case(
                    When(status=MembershipStatus.ACTIVE, then=Value(None)),
                    default=F("left_at"),
                    output_field=DateTimeField(),
                ),
                last_read_marker=Coalesce(
                    "last_read_at", "conversation__created_at", output_field=DateTimeField()
                ),
            )
            .annotate(
                last_message_pk=Subquery(last_message),
                unread_total=Coalesce(Subquery(unread), Value(0), output_field=IntegerField()),
            )
        )

    @classmethod
    def _summary_visible_messages(cls) -> QuerySet:
        """Messages the outer participant row can see (see _visible_messages)."""
        hidden = HiddenMessage.objects.filter(
            message=OuterRef("pk"), user=OuterRef(OuterRef("user"))
        )
        return Message.objects.filter(
            ~Exists(hidden),
            conversation=OuterRef("conversation"),
            created_at__lte=Coalesce(
                OuterRef("visible_until"), F("created_at"), output_field=DateTimeField()
            ),
        )

    @classmethod
    def _build_summaries(cls, participants: Iterable[Participant]) -> list[ConversationSummary]:
        participants = list(participants)
        last_messages = Message.objects.select_related("sender").in_bulk(
            [p.last_message_pk for p in participants if p.last_message_pk is not None]
        )
        return [
            ConversationSummary(
                conversation=p.conversation,
                participant=p,
                members=[m.user for m in p.conversation.active_members],
                last_message=last_messages.get(p.last_message_pk),
                unread_count=p.unread_total,
            )
            for p in participants
        ]

    @classmethod
    def get_unread_count(cls, user: User, conversation_id: int) -> int:
        """Unread count for one conversation (0 if the caller is not a participant)."""
        participant = (
            Participant.objects.select_related("conversation")
            .filter(conversation_id=conversation_id, user=user)
            .first()
        )
        if participant is None:
            return 0
        return cls._unread_count(user, participant)

    @classmethod
    def mark_as_read(cls, user: User, conversation_id: int) -> ServiceResult[None]:
        """
        Move the caller's last-read marker to now.

        Replaces the previous marker. Ignored when the caller is not a
        participant.

        Error codes:
            NOT_FOUND: Unknown conversation
        """
        try:
            conversation = cls._get_conversation(conversation_id)
        except BaseApplicationError as e:
            return cls.handle_exception(e, "Mark as read")

        updated = Participant.objects.filter(
            conversation=conversation, user=user
        ).update(last_read_at=timezone.now())

        if updated:
            events.publish_inbox([user.pk], conversation.id, "read")
            cls.get_logger().debug(f"User {user.id} read conversation {conversation.id}")
        return ServiceResult.success(None)

    @classmethod
    def toggle_pin(cls, user: User, conversation_id: int) -> ServiceResult[bool]:
        """
        Pin or unpin a conversation for the caller only.

        Returns:
            ServiceResult with the new pinned state
        """
        try:
            conversation = cls._get_conversation(conversation_id)
            participant = cls._require_reader(user, conversation)
        except BaseApplicationError as e:
            return cls.handle_exception(e, "Toggle pin")

        participant.is_pinned = not participant.is_pinned
        participant.save(update_fields=["is_pinned", "updated_at"])
        events.publish_inbox([user.pk], conversation.id, "pinned")

        cls.get_logger().info(
            f"User {user.id} {'pinned' if participant.is_pinned else 'unpinned'} "
            f"conversation {conversation.id}"
        )
        return ServiceResult.success(participant.is_pinned)

    @classmethod
    def delete_conversation(cls, user: User, conversation_id: int) -> ServiceResult[None]:
        """
        Hide a conversation from the caller's list.

        Nothing is deleted for other participants, and there is no undo.
        Hiding an already hidden conversation succeeds without change.
        """
        try:
            conversation = cls._get_conversation(conversation_id)
            participant = cls._get_participant(user, conversation)
            if participant is None:
                raise PermissionDeniedError("You do not have access to this conversation")
        except BaseApplicationError as e:
            return cls.handle_exception(e, "Delete conversation")

        if not participant.is_hidden:
            participant.is_hidden = True
            participant.save(update_fields=["is_hidden", "updated_at"])
            events.publish_inbox([user.pk], conversation.id, "deleted")
            cls.get_logger().info(
                f"User {user.id} deleted conversation {conversation.id} from their list"
            )
        return ServiceResult.success(None)


# =============================================================================
# Group Membership Manager
# =============================================================================


class GroupService(ChatServiceBase):
    """
    Service for admin-gated group changes and leaving.

    Admin departure:
        When the admin leaves, the longest-standing active member (earliest
        joined_at, then lowest id) becomes admin. If nobody is left, the
        departed admin stays on record and the group is read-only.

    Re-adding:
        add_members on a former member reactivates their existing row:
        status ACTIVE, left_at and hide cleared, joined_at reset, previous
        last-read marker kept.
    """

    @classmethod
    def _require_admin(cls, user: User, conversation: Conversation) -> Participant:
        if not conversation.is_group:
            raise InvalidStateError("Direct conversations cannot be administered")
        participant = cls._get_participant(user, conversation)
        if (
            participant is None
            or not participant.is_active
            or conversation.admin_id != user.pk
        ):
            raise PermissionDeniedError("Only the group admin can do that")
        return participant

    @classmethod
    def update_details(
        cls,
        user: User,
        conversation_id: int,
        name: str | None = None,
        description: str | None = None,
        image_url: str | None = None,
    ) -> ServiceResult[Conversation]:
        """
        Rename a group and/or change its description and avatar.

        Fields left as None are unchanged.

        Error codes:
            NOT_FOUND, INVALID_STATE (direct), PERMISSION_DENIED (not admin),
            VALIDATION_ERROR (blank name)
        """
        try:
            conversation = cls._get_conversation(conversation_id)
            cls._require_admin(user, conversation)

            update_fields = ["updated_at"]
            if name is not None:
                name = name.strip()
                if not name:
                    raise ValidationError(
                        "Group name is required",
                        details={"name": ["This field may not be blank."]},
                    )
                conversation.name = name
                update_fields.append("name")
            if description is not None:
                conversation.description = description
                update_fields.append("description")
            if image_url is not None:
                conversation.image_url = image_url
                update_fields.append("image_url")
        except BaseApplicationError as e:
            return cls.handle_exception(e, f"Update group {conversation_id}")

        with cls.atomic():
            conversation.save(update_fields=update_fields)
            events.publish_to_conversation(
                conversation.id, EventType.CONVERSATION_UPDATED, reason="details"
            )
            events.publish_inbox(cls._member_user_ids(conversation), conversation.id, "details")

        cls.get_logger().info(
            f"User {user.id} updated group {conversation.id}: {', '.join(update_fields[1:])}"
        )
        return ServiceResult.success(conversation)

    @classmethod
    def add_members(
        cls,
        user: User,
        conversation_id: int,
        member_ids: Iterable[str],
    ) -> ServiceResult[list]:
        """
        Add users to a group. Current members are skipped.

        Returns:
            ServiceResult with the users that were added or reactivated

        Error codes:
            NOT_FOUND, INVALID_STATE (direct), PERMISSION_DENIED (not admin)
        """
        try:
            conversation = cls._get_conversation(conversation_id)
            cls._require_admin(user, conversation)
            users = UserService.resolve_users(member_ids)
        except BaseApplicationError as e:
            return cls.handle_exception(e, f"Add members to {conversation_id}")

        now = timezone.now()
        added = []
        with cls.atomic():
            existing = {
                p.user_id: p
                for p in Participant.objects.filter(
                    conversation=conversation, user__in=users
                )
            }
            for member in users:
                participant = existing.get(member.pk)
                if participant is None:
                    Participant.objects.create(
                        conversation=conversation, user=member, joined_at=now
                    )
                elif participant.is_active:
                    continue
                else:
                    participant.status = MembershipStatus.ACTIVE
                    participant.left_at = None
                    participant.is_hidden = False
                    participant.joined_at = now
                    participant.save(
                        update_fields=["status", "left_at", "is_hidden", "joined_at", "updated_at"]
                    )
                added.append(member)

            if added:
                events.publish_to_conversation(
                    conversation.id, EventType.CONVERSATION_UPDATED, reason="members"
                )
                events.publish_inbox(
                    cls._member_user_ids(conversation), conversation.id, "members"
                )

        cls.get_logger().info(
            f"User {user.id} added {len(added)} member(s) to group {conversation.id}"
        )
        return ServiceResult.success(added)

    @classmethod
    def kick_member(
        cls,
        user: User,
        conversation_id: int,
        target_user_id: str,
    ) -> ServiceResult[None]:
        """
        Remove a member from a group.

        The removed user keeps read access to history up to now but can no
        longer send.

        Error codes:
            NOT_FOUND, INVALID_STATE (direct, or target not a current member),
            PERMISSION_DENIED (not admin, or targeting self)
        """
        try:
            conversation = cls._get_conversation(conversation_id)
            cls._require_admin(user, conversation)
            if target_user_id == user.external_id:
                raise PermissionDeniedError("The admin cannot remove themselves")
            target = UserService.get_user_by_external_id(target_user_id)
            participant = cls._get_participant(target, conversation)
            if participant is None or not participant.is_active:
                raise InvalidStateError("User is not a member of this group")
        except BaseApplicationError as e:
            return cls.handle_exception(e, f"Kick from {conversation_id}")

        with cls.atomic():
            participant.status = MembershipStatus.REMOVED
            participant.left_at = timezone.now()
            participant.save(update_fields=["status", "left_at", "updated_at"])
            events.publish_to_conversation(
                conversation.id, EventType.CONVERSATION_UPDATED, reason="members"
            )
            events.publish_inbox(
                [target.pk, *cls._member_user_ids(conversation)], conversation.id, "members"
            )
            events.publish_membership_revoked(conversation.id, target.pk, "removed")

        cls.get_logger().info(
            f"User {user.id} removed user {target.id} from group {conversation.id}"
        )
        return ServiceResult.success(None)

    @classmethod
    def leave(
        cls,
        user: User,
        conversation_id: int,
        delete_history: bool = False,
    ) -> ServiceResult[None]:
        """
        Leave a group.

        Args:
            user: The leaving member
            conversation_id: Group to leave
            delete_history: Also hide the group (no read access afterwards)

        Error codes:
            NOT_FOUND, INVALID_STATE (direct), PERMISSION_DENIED (not a member)
        """
        try:
            conversation = cls._get_conversation(conversation_id)
            if not conversation.is_group:
                raise InvalidStateError(
                    "Cannot leave a direct conversation; delete it instead"
                )
            participant = cls._require_member(user, conversation)
        except BaseApplicationError as e:
            return cls.handle_exception(e, f"Leave {conversation_id}")

        with cls.atomic():
            participant.status = MembershipStatus.LEFT
            participant.left_at = timezone.now()
            participant.is_hidden = bool(delete_history)
            participant.save(update_fields=["status", "left_at", "is_hidden", "updated_at"])
            cls._transfer_admin_on_departure(conversation, user)
            events.publish_to_conversation(
                conversation.id, EventType.CONVERSATION_UPDATED, reason="members"
            )
            events.publish_inbox(
                [user.pk, *cls._member_user_ids(conversation)], conversation.id, "members"
            )
            events.publish_membership_revoked(conversation.id, user.pk, "left")

        cls.get_logger().info(
            f"User {user.id} left group {conversation.id}"
            f"{' and deleted its history' if delete_history else ''}"
        )
        return ServiceResult.success(None)

    @classmethod
    def _transfer_admin_on_departure(cls, conversation: Conversation, departing: User) -> None:
        """Hand the admin role to the longest-standing active member, if any."""
        if conversation.admin_id != departing.pk:
            return

        successor = conversation.get_active_participants().select_related("user").first()
        if successor is None:
            cls.get_logger().info(
                f"Group {conversation.id} has no members left; "
                f"user {departing.id} stays recorded as admin"
            )
            return

        conversation.admin = successor.user
        conversation.save(update_fields=["admin", "updated_at"])
        cls.get_logger().info(
            f"Group {conversation.id} admin passed from user {departing.id} "
            f"to user {successor.user_id}"
        )


# =============================================================================
# Message Store
# =============================================================================


class MessageService(ChatServiceBase):
    """
    Service for message operations.

    Usage:
        result = MessageService.send(user=me, conversation_id=conv.id, content="Hi")
        result = MessageService.edit(user=me, message_id=msg.id, content="Hi!")
        result = MessageService.delete(user=me, message_id=msg.id, mode=DeleteMode.FOR_ME)
    """

    @classmethod
    def list_messages(cls, user: User, conversation_id: int) -> ServiceResult[QuerySet]:
        """
        List the messages the caller can see, oldest first.

        Tombstoned messages stay in the sequence (content cleared);
        messages the caller deleted for themselves are left out.
        """
        try:
            conversation = cls._get_conversation(conversation_id)
            participant = cls._require_reader(user, conversation)
        except BaseApplicationError as e:
            return cls.handle_exception(e, f"List messages in {conversation_id}")

        messages = (
            cls._visible_messages(user, participant)
            .select_related("sender", "reply_to", "reply_to__sender")
            .prefetch_related(
                Prefetch(
                    "reactions",
                    queryset=MessageReaction.objects.select_related("user").order_by(
                        "created_at", "id"
                    ),
                )
            )
            .order_by("created_at", "id")
        )
        return ServiceResult.success(messages)

    @classmethod
    def send(
        cls,
        user: User,
        conversation_id: int,
        content: str,
        reply_to_id: int | None = None,
    ) -> ServiceResult[Message]:
        """
        Append a message to a conversation.

        Content is stored as given. Sending also moves the sender's
        last-read marker to the new message and clears their typing
        indicator.

        Error codes:
            NOT_FOUND: Unknown conversation
            PERMISSION_DENIED: Caller is not a current member
            BLOCKED: Direct conversation where either side blocked the other
            VALIDATION_ERROR: reply_to is not a message of this conversation
        """
        logger = cls.get_logger()

        try:
            conversation = cls._get_conversation(conversation_id)
            participant = cls._require_member(user, conversation)
            if conversation.is_direct:
                cls._check_not_blocked(user, conversation)
            reply_to = None
            if reply_to_id is not None:
                reply_to = Message.objects.filter(
                    pk=reply_to_id, conversation=conversation
                ).first()
                if reply_to is None:
                    raise ValidationError(
                        "Reply target must be a message in this conversation",
                        details={"reply_to": [str(reply_to_id)]},
                    )
        except BaseApplicationError as e:
            return cls.handle_exception(e, f"Send to {conversation_id} by user {user.id}")

        with cls.atomic():
            message = Message.objects.create(
                conversation=conversation,
                sender=user,
                content=content,
                reply_to=reply_to,
            )
            conversation.last_message_at = message.created_at
            conversation.save(update_fields=["last_message_at", "updated_at"])

            participant.last_read_at = message.created_at
            participant.save(update_fields=["last_read_at", "updated_at"])

            stopped, _ = TypingIndicator.objects.filter(
                conversation=conversation, user=user
            ).delete()

            events.publish_to_conversation(
                conversation.id,
                EventType.MESSAGE_CREATED,
                message_id=message.id,
                sender_id=user.external_id,
            )
            if stopped:
                events.publish_to_conversation(
                    conversation.id,
                    EventType.TYPING_UPDATED,
                    user_id=user.external_id,
                    is_typing=False,
                )
            events.publish_inbox(cls._member_user_ids(conversation), conversation.id, "message")

        logger.info(
            f"Message {message.id} sent to conversation {conversation.id} by user {user.id}"
        )
        return ServiceResult.success(message)

    @classmethod
    def _check_not_blocked(cls, user: User, conversation: Conversation) -> None:
        other = (
            Participant.objects.filter(conversation=conversation)
            .exclude(user=user)
            .select_related("user")
            .first()
        )
        if other is None or not UserService.is_blocked_between(user, other.user):
            return
        if user.has_blocked(other.user):
            raise BlockedRelationshipError(
                "You have blocked this user. Unblock them to send messages."
            )
        raise BlockedRelationshipError("You cannot send a message to this user.")

    @classmethod
    def edit(cls, user: User, message_id: int, content: str) -> ServiceResult[Message]:
        """
        Replace a message's content (sender only).

        Content is trimmed; is_edited stays set for good. A tombstoned
        message can never be edited by anyone who can read it.

        Error codes:
            NOT_FOUND, INVALID_STATE (tombstoned),
            PERMISSION_DENIED (no read access, or not sender)
        """
        try:
            message = cls._get_message(message_id)
            cls._require_message_reader(user, message)
            if message.is_deleted:
                raise InvalidStateError("Cannot edit a deleted message")
            if message.sender_id != user.pk:
                raise PermissionDeniedError("You can only edit your own messages")
        except BaseApplicationError as e:
            return cls.handle_exception(e, f"Edit message {message_id}")

        with cls.atomic():
            message.content = content.strip()
            message.is_edited = True
            message.save(update_fields=["content", "is_edited", "updated_at"])
            events.publish_to_conversation(
                message.conversation_id,
                EventType.MESSAGE_UPDATED,
                message_id=message.id,
                reason="edited",
            )
            events.publish_inbox(
                cls._member_user_ids(message.conversation), message.conversation_id, "message"
            )

        cls.get_logger().info(f"Message {message.id} edited by user {user.id}")
        return ServiceResult.success(message)

    @classmethod
    def delete(
        cls,
        user: User,
        message_id: int,
        mode: str = DeleteMode.FOR_ME,
    ) -> ServiceResult[Message]:
        """
        Delete a message for everyone (sender only) or for the caller only.

        for_everyone tombstones the message: content cleared, shown to all
        as deleted, irreversible. for_me hides it from the caller only;
        repeating it changes nothing.

        Error codes:
            NOT_FOUND, PERMISSION_DENIED, VALIDATION_ERROR (unknown mode)
        """
        try:
            if mode not in DeleteMode.CHOICES:
                raise ValidationError(
                    f"Unknown delete mode: {mode}",
                    details={"mode": [f"Must be one of {', '.join(DeleteMode.CHOICES)}."]},
                )
            message = cls._get_message(message_id)
            cls._require_message_reader(user, message)
            if mode == DeleteMode.FOR_EVERYONE and message.sender_id != user.pk:
                raise PermissionDeniedError(
                    "You can only delete your own messages for everyone"
                )
        except BaseApplicationError as e:
            return cls.handle_exception(e, f"Delete message {message_id}")

        with cls.atomic():
            if mode == DeleteMode.FOR_EVERYONE:
                if not message.is_deleted:
                    message.soft_delete()
                    events.publish_to_conversation(
                        message.conversation_id,
                        EventType.MESSAGE_UPDATED,
                        message_id=message.id,
                        reason="deleted",
                    )
                    events.publish_inbox(
                        cls._member_user_ids(message.conversation),
                        message.conversation_id,
                        "message",
                    )
            else:
                _, created = HiddenMessage.objects.get_or_create(message=message, user=user)
                if created:
                    events.publish_inbox([user.pk], message.conversation_id, "message")

        cls.get_logger().info(f"Message {message.id} deleted ({mode}) by user {user.id}")
        return ServiceResult.success(message)


class ReactionService(ChatServiceBase):
    """Service for emoji reactions."""

    @classmethod
    def toggle(cls, user: User, message_id: int, emoji: str) -> ServiceResult[dict]:
        """
        Toggle one emoji reaction for the caller.

        Removing: the caller already has this emoji on the message.
        Adding: otherwise; if the caller already holds the maximum number
        of emoji on this message, their oldest one is evicted first.

        Returns:
            ServiceResult with {"action": "added"|"removed",
            "evicted": emoji or None, "message": Message}

        Error codes:
            NOT_FOUND, PERMISSION_DENIED, VALIDATION_ERROR (bad emoji)
        """
        try:
            emoji = (emoji or "").strip()
            if not emoji or len(emoji) > REACTION_CONFIG.MAX_EMOJI_LENGTH:
                raise ValidationError(
                    "Invalid emoji",
                    details={
                        "emoji": [
                            f"Must be 1 to {REACTION_CONFIG.MAX_EMOJI_LENGTH} characters."
                        ]
                    },
                )
            message = cls._get_message(message_id)
            cls._require_message_reader(user, message)
        except BaseApplicationError as e:
            return cls.handle_exception(e, f"React to message {message_id}")

        evicted = None
        with cls.atomic():
            mine = list(
                MessageReaction.objects.filter(message=message, user=user).order_by(
                    "created_at", "id"
                )
            )
            existing = next((r for r in mine if r.emoji == emoji), None)
            if existing is not None:
                existing.delete()
                action = "removed"
            else:
                overflow = len(mine) - REACTION_CONFIG.MAX_USER_REACTIONS_PER_MESSAGE + 1
                for oldest in mine[: max(overflow, 0)]:
                    evicted = oldest.emoji
                    oldest.delete()
                MessageReaction.objects.create(message=message, user=user, emoji=emoji)
                action = "added"

            events.publish_to_conversation(
                message.conversation_id,
                EventType.MESSAGE_UPDATED,
                message_id=message.id,
                reason="reactions",
            )

        cls.get_logger().info(
            f"User {user.id} {action} reaction {emoji} on message {message.id}"
            f"{f' (evicted {evicted})' if evicted else ''}"
        )
        return ServiceResult.success(
            {"action": action, "evicted": evicted, "message": message}
        )


class MessageSearchService(ChatServiceBase):
    """
    Full-text search within one conversation.

    PostgreSQL databases use SearchVector/SearchQuery ranking; other
    backends fall back to a case-insensitive substring match ordered
    newest first. Tombstoned and caller-hidden messages never match, and
    results never leave the requested conversation.
    """

    @classmethod
    def search(
        cls, user: User, conversation_id: int, query: str
    ) -> ServiceResult[list[Message]]:
        """
        Search message content.

        Returns:
            ServiceResult with at most MESSAGE_CONFIG.SEARCH_MAX_RESULTS messages

        Error codes:
            NOT_FOUND, PERMISSION_DENIED, VALIDATION_ERROR (empty query)
        """
        try:
            query = (query or "").strip()
            if not query:
                raise ValidationError(
                    "Search query is required", details={"q": ["This field is required."]}
                )
            conversation = cls._get_conversation(conversation_id)
            participant = cls._require_reader(user, conversation)
        except BaseApplicationError as e:
            return cls.handle_exception(e, f"Search in {conversation_id}")

        candidates = (
            cls._visible_messages(user, participant)
            .filter(is_deleted=False)
            .select_related("sender")
        )

        if connection.vendor == "postgresql":
            results = cls._ranked_search(candidates, query)
        else:
            results = candidates.filter(content__icontains=query).order_by(
                "-created_at", "-id"
            )

        return ServiceResult.success(list(results[: MESSAGE_CONFIG.SEARCH_MAX_RESULTS]))

    @classmethod
    def _ranked_search(cls, candidates: QuerySet, query: str) -> QuerySet:
        from django.contrib.postgres.search import SearchQuery, SearchRank, SearchVector

        vector = SearchVector("content")
        search_query = SearchQuery(query, search_type="websearch")
        return (
            candidates.annotate(rank=SearchRank(vector, search_query))
            .filter(rank__gt=0)
            .order_by("-rank", "-created_at")
        )


# =============================================================================
# Typing Indicators
# =============================================================================


class TypingService(ChatServiceBase):
    """
    Service for typing indicators.

    Expiry is enforced when reading; rows that simply time out are left in
    place until refreshed, stopped, or purged by the housekeeping task.
    """

    @classmethod
    def _window(cls) -> timedelta:
        return timedelta(milliseconds=TYPING_CONFIG.TYPING_WINDOW_MS)

    @classmethod
    def start(cls, user: User, conversation_id: int) -> ServiceResult[TypingIndicator]:
        """
        Start or refresh the caller's typing indicator.

        Error codes:
            NOT_FOUND, PERMISSION_DENIED (not a current member)
        """
        try:
            conversation = cls._get_conversation(conversation_id)
            cls._require_member(user, conversation)
        except BaseApplicationError as e:
            return cls.handle_exception(e, f"Start typing in {conversation_id}")

        expires_at = timezone.now() + cls._window()
        with cls.atomic():
            indicator, _ = TypingIndicator.objects.update_or_create(
                conversation=conversation,
                user=user,
                defaults={"expires_at": expires_at},
            )
            events.publish_to_conversation(
                conversation.id,
                EventType.TYPING_UPDATED,
                user_id=user.external_id,
                is_typing=True,
                expires_at=expires_at.isoformat(),
            )
        return ServiceResult.success(indicator)

    @classmethod
    def stop(cls, user: User, conversation_id: int) -> ServiceResult[None]:
        """
        Remove the caller's typing indicator immediately.

        Succeeds when there is nothing to remove.
        """
        try:
            conversation = cls._get_conversation(conversation_id)
        except BaseApplicationError as e:
            return cls.handle_exception(e, f"Stop typing in {conversation_id}")

        with cls.atomic():
            deleted, _ = TypingIndicator.objects.filter(
                conversation=conversation, user=user
            ).delete()
            if deleted:
                events.publish_to_conversation(
                    conversation.id,
                    EventType.TYPING_UPDATED,
                    user_id=user.external_id,
                    is_typing=False,
                )
        return ServiceResult.success(None)

    @classmethod
    def get_active_typers(cls, user: User, conversation_id: int) -> ServiceResult[list[str]]:
        """
        Public ids of users currently typing, excluding the caller.

        Error codes:
            NOT_FOUND, PERMISSION_DENIED
        """
        try:
            conversation = cls._get_conversation(conversation_id)
            cls._require_reader(user, conversation)
        except BaseApplicationError as e:
            return cls.handle_exception(e, f"Typing status for {conversation_id}")

        user_ids = list(
            TypingIndicator.objects.filter(
                conversation=conversation,
                expires_at__gt=timezone.now(),
            )
            .exclude(user=user)
            .order_by("user__external_id")
            .values_list("user__external_id", flat=True)
        )
        return ServiceResult.success(user_ids)

    @classmethod
    def purge_expired(cls, grace_seconds: int = TYPING_CONFIG.PURGE_GRACE_SECONDS) -> int:
        """
        Delete indicators that expired more than ``grace_seconds`` ago.

        Returns:
            Number of rows deleted
        """
        cutoff = timezone.now() - timedelta(seconds=grace_seconds)
        deleted, _ = TypingIndicator.objects.filter(expires_at__lt=cutoff).delete()
        if deleted:
            cls.get_logger().info(f"Purged {deleted} expired typing indicator(s)")
        return deleted
