"""
Tests for chat conversation, group and message services.

This module tests:
- ConversationService: direct/group creation, listing, unread counts,
  read markers, pin and per-user delete
- GroupService: admin-gated changes, kick, leave and admin hand-off
- MessageService: send, edit, delete (for me / for everyone) and listing

Test Organization:
    - Each service method has its own test class
    - Tests use descriptive names following: test_<scenario>_<expected_outcome>
    - The ``clock`` fixture advances one second per read, so every
      timestamp in these tests is strictly ordered
"""

from unittest import mock

import pytest

from authentication.services import UserService
from chat.constants import DeleteMode
from chat.models import (
    Conversation,
    ConversationType,
    HiddenMessage,
    MembershipStatus,
    Message,
    Participant,
    TypingIndicator,
)
from chat.services import ConversationService, GroupService, MessageService
from chat.tests.factories import (
    DirectConversationFactory,
    GroupConversationFactory,
    MessageFactory,
    TypingIndicatorFactory,
)

pytestmark = [pytest.mark.django_db, pytest.mark.usefixtures("clock")]


def send(user, conversation, content="hello", **kwargs):
    """Send through the service and return the message, failing loudly."""
    result = MessageService.send(
        user=user, conversation_id=conversation.id, content=content, **kwargs
    )
    assert result.success, result.error
    return result.data


def summary_for(user, conversation):
    result = ConversationService.get_conversation(user=user, conversation_id=conversation.id)
    assert result.success, result.error
    return result.data


# =============================================================================
# TestGetOrCreateDirect
# =============================================================================


class TestGetOrCreateDirect:
    """Tests for ConversationService.get_or_create_direct."""

    def test_creates_conversation_with_both_participants(self, alice, bob):
        result = ConversationService.get_or_create_direct(
            user=alice, other_user_id=bob.external_id
        )

        assert result.success
        conversation, created = result.data
        assert created is True
        assert conversation.conversation_type == ConversationType.DIRECT
        participants = Participant.objects.filter(conversation=conversation)
        assert {p.user_id for p in participants} == {alice.pk, bob.pk}
        for participant in participants:
            assert participant.last_read_at == conversation.created_at

    def test_same_pair_returns_same_conversation_either_way(self, alice, bob):
        first, _ = ConversationService.get_or_create_direct(
            user=alice, other_user_id=bob.external_id
        ).data

        again, created_again = ConversationService.get_or_create_direct(
            user=alice, other_user_id=bob.external_id
        ).data
        reverse, created_reverse = ConversationService.get_or_create_direct(
            user=bob, other_user_id=alice.external_id
        ).data

        assert again.id == first.id == reverse.id
        assert created_again is False
        assert created_reverse is False
        assert Conversation.objects.filter(conversation_type=ConversationType.DIRECT).count() == 1

    def test_self_conversation_fails_validation(self, alice):
        result = ConversationService.get_or_create_direct(
            user=alice, other_user_id=alice.external_id
        )

        assert not result.success
        assert result.error_code == "VALIDATION_ERROR"

    def test_unknown_user_returns_not_found(self, alice):
        result = ConversationService.get_or_create_direct(
            user=alice, other_user_id="user_ghost"
        )

        assert not result.success
        assert result.error_code == "NOT_FOUND"

    def test_concurrent_create_returns_winner(self, alice, bob):
        winner = DirectConversationFactory(user1=bob, user2=alice)

        # The lookup misses, then the insert collides with the winner's pair
        with mock.patch.object(
            ConversationService, "_find_direct", side_effect=[None, winner]
        ):
            result = ConversationService.get_or_create_direct(
                user=alice, other_user_id=bob.external_id
            )

        assert result.success
        assert result.data == (winner, False)
        assert Conversation.objects.count() == 1

    def test_hidden_conversation_stays_hidden(self, alice, bob, direct_conversation):
        ConversationService.delete_conversation(user=alice, conversation_id=direct_conversation.id)

        conversation, created = ConversationService.get_or_create_direct(
            user=alice, other_user_id=bob.external_id
        ).data

        assert conversation.id == direct_conversation.id
        assert created is False
        assert Participant.objects.get(conversation=conversation, user=alice).is_hidden


# =============================================================================
# TestCreateGroup
# =============================================================================


class TestCreateGroup:
    """Tests for ConversationService.create_group."""

    def test_creator_becomes_admin_and_member(self, alice, bob, carol):
        result = ConversationService.create_group(
            creator=alice,
            name="  Book Club  ",
            member_ids=[bob.external_id, carol.external_id, bob.external_id, alice.external_id],
            description="Monthly reads",
        )

        assert result.success
        group = result.data
        assert group.name == "Book Club"
        assert group.description == "Monthly reads"
        assert group.admin == alice
        members = [p.user for p in group.get_active_participants()]
        assert sorted(u.pk for u in members) == sorted([alice.pk, bob.pk, carol.pk])
        assert all(
            p.last_read_at is None for p in Participant.objects.filter(conversation=group)
        )

    def test_blank_name_fails_validation(self, alice, bob):
        result = ConversationService.create_group(
            creator=alice, name="   ", member_ids=[bob.external_id]
        )

        assert not result.success
        assert result.error_code == "VALIDATION_ERROR"
        assert "name" in result.errors

    def test_unknown_member_creates_nothing(self, alice, bob):
        result = ConversationService.create_group(
            creator=alice, name="Team", member_ids=[bob.external_id, "user_ghost"]
        )

        assert not result.success
        assert result.error_code == "NOT_FOUND"
        assert result.errors == {"user_ids": ["user_ghost"]}
        assert not Conversation.objects.exists()

    def test_unopened_group_counts_every_message_as_unread(self, alice, bob, carol):
        group = ConversationService.create_group(
            creator=alice, name="Team", member_ids=[bob.external_id, carol.external_id]
        ).data

        send(bob, group, "one")
        send(bob, group, "two")

        assert ConversationService.get_unread_count(carol, group.id) == 2
        assert ConversationService.get_unread_count(alice, group.id) == 2
        assert ConversationService.get_unread_count(bob, group.id) == 0


# =============================================================================
# TestListConversations
# =============================================================================


class TestListConversations:
    """Tests for ConversationService.list_conversations."""

    def test_orders_by_latest_visible_activity(self, alice, bob, carol):
        older = DirectConversationFactory(user1=alice, user2=bob)
        newer = GroupConversationFactory(admin=alice, members=[carol])
        send(bob, older, "bump")

        result = ConversationService.list_conversations(user=alice)

        assert result.success
        assert [s.conversation.id for s in result.data] == [older.id, newer.id]

    def test_conversation_without_messages_sorts_by_creation(self, alice, bob, carol):
        first = DirectConversationFactory(user1=alice, user2=bob)
        second = DirectConversationFactory(user1=alice, user2=carol)

        summaries = ConversationService.list_conversations(user=alice).data

        assert [s.conversation.id for s in summaries] == [second.id, first.id]
        assert all(s.last_message is None for s in summaries)

    def test_summary_carries_members_last_message_and_unread(
        self, alice, bob, carol, group_conversation
    ):
        send(alice, group_conversation, "from alice")
        latest = send(bob, group_conversation, "from bob")

        summary = ConversationService.list_conversations(user=carol).data[0]

        assert summary.conversation.id == group_conversation.id
        assert [u.pk for u in summary.members] == [alice.pk, bob.pk, carol.pk]
        assert summary.last_message.id == latest.id
        assert summary.unread_count == 2
        assert summary.participant.user_id == carol.pk

    def test_hidden_conversations_are_excluded(self, alice, direct_conversation):
        ConversationService.delete_conversation(user=alice, conversation_id=direct_conversation.id)

        assert ConversationService.list_conversations(user=alice).data == []

    def test_past_members_still_see_group(self, bob, group_conversation):
        GroupService.leave(user=bob, conversation_id=group_conversation.id)

        summaries = ConversationService.list_conversations(user=bob).data

        assert [s.conversation.id for s in summaries] == [group_conversation.id]
        assert summaries[0].participant.status == MembershipStatus.LEFT

    def test_last_message_skips_messages_deleted_for_me(self, alice, bob, direct_conversation):
        kept = send(bob, direct_conversation, "keep")
        hidden = send(bob, direct_conversation, "hide")
        MessageService.delete(user=alice, message_id=hidden.id, mode=DeleteMode.FOR_ME)

        assert summary_for(alice, direct_conversation).last_message.id == kept.id
        assert summary_for(bob, direct_conversation).last_message.id == hidden.id

    def test_last_message_includes_tombstones(self, alice, bob, direct_conversation):
        send(alice, direct_conversation, "first")
        gone = send(bob, direct_conversation, "oops")
        MessageService.delete(user=bob, message_id=gone.id, mode=DeleteMode.FOR_EVERYONE)

        last = summary_for(alice, direct_conversation).last_message

        assert last.id == gone.id
        assert last.is_deleted
        assert last.get_display_content() == ""

    def test_pinning_does_not_change_order(self, alice, bob, carol):
        pinned = DirectConversationFactory(user1=alice, user2=bob)
        other = DirectConversationFactory(user1=alice, user2=carol)
        ConversationService.toggle_pin(user=alice, conversation_id=pinned.id)

        summaries = ConversationService.list_conversations(user=alice).data

        assert [s.conversation.id for s in summaries] == [other.id, pinned.id]
        assert summaries[1].participant.is_pinned

    def test_query_count_does_not_grow_with_conversations(
        self, alice, bob, carol, django_assert_num_queries
    ):
        for other in (bob, carol):
            send(other, DirectConversationFactory(user1=alice, user2=other), "hi")
        for _ in range(3):
            group = GroupConversationFactory(admin=alice, members=[bob, carol])
            send(bob, group, "hello group")
            send(alice, group, "hello back")

        with django_assert_num_queries(3):
            summaries = ConversationService.list_conversations(user=alice).data
            previews = [(s.last_message.sender.pk, s.unread_count) for s in summaries]

        assert len(summaries) == 5
        assert previews[:3] == [(alice.pk, 0)] * 3
        assert sorted(previews[3:]) == sorted([(bob.pk, 1), (carol.pk, 1)])

    def test_past_member_summary_stops_at_departure(self, alice, bob, group_conversation):
        before = send(alice, group_conversation, "before")
        GroupService.leave(user=bob, conversation_id=group_conversation.id)
        send(alice, group_conversation, "after")

        summary = ConversationService.list_conversations(user=bob).data[0]

        assert summary.last_message.id == before.id
        assert summary.unread_count == 1


# =============================================================================
# TestUnreadAndMarkAsRead
# =============================================================================


class TestUnreadAndMarkAsRead:
    """Tests for unread counts and ConversationService.mark_as_read."""

    def test_own_messages_never_count(self, alice, bob, direct_conversation):
        send(alice, direct_conversation, "mine")

        assert ConversationService.get_unread_count(alice, direct_conversation.id) == 0
        assert ConversationService.get_unread_count(bob, direct_conversation.id) == 1

    def test_mark_as_read_clears_unread(self, bob, alice, direct_conversation):
        send(alice, direct_conversation, "one")
        send(alice, direct_conversation, "two")

        result = ConversationService.mark_as_read(user=bob, conversation_id=direct_conversation.id)

        assert result.success
        assert ConversationService.get_unread_count(bob, direct_conversation.id) == 0

        send(alice, direct_conversation, "three")
        assert ConversationService.get_unread_count(bob, direct_conversation.id) == 1

    def test_sending_marks_earlier_messages_read(self, alice, bob, direct_conversation):
        send(alice, direct_conversation, "ping")

        send(bob, direct_conversation, "pong")

        assert ConversationService.get_unread_count(bob, direct_conversation.id) == 0

    def test_tombstones_still_count_as_unread(self, alice, bob, direct_conversation):
        message = send(alice, direct_conversation, "oops")
        MessageService.delete(user=alice, message_id=message.id, mode=DeleteMode.FOR_EVERYONE)

        assert ConversationService.get_unread_count(bob, direct_conversation.id) == 1

    def test_non_participant_is_silently_ignored(self, outsider, direct_conversation):
        result = ConversationService.mark_as_read(
            user=outsider, conversation_id=direct_conversation.id
        )

        assert result.success
        assert not Participant.objects.filter(user=outsider).exists()
        assert ConversationService.get_unread_count(outsider, direct_conversation.id) == 0

    def test_unknown_conversation_returns_not_found(self, alice):
        result = ConversationService.mark_as_read(user=alice, conversation_id=999999)

        assert not result.success
        assert result.error_code == "NOT_FOUND"


# =============================================================================
# TestTogglePinAndDelete
# =============================================================================


class TestTogglePinAndDelete:
    """Tests for per-user pin and hide."""

    def test_pin_toggles_for_caller_only(self, alice, bob, direct_conversation):
        first = ConversationService.toggle_pin(user=alice, conversation_id=direct_conversation.id)
        second = ConversationService.toggle_pin(user=alice, conversation_id=direct_conversation.id)

        assert first.data is True
        assert second.data is False
        assert not Participant.objects.get(conversation=direct_conversation, user=bob).is_pinned

    def test_pin_by_outsider_is_denied(self, outsider, direct_conversation):
        result = ConversationService.toggle_pin(
            user=outsider, conversation_id=direct_conversation.id
        )

        assert result.error_code == "PERMISSION_DENIED"

    def test_delete_hides_for_caller_only(self, alice, bob, direct_conversation):
        message = send(bob, direct_conversation, "still here")

        result = ConversationService.delete_conversation(
            user=alice, conversation_id=direct_conversation.id
        )

        assert result.success
        assert ConversationService.list_conversations(user=alice).data == []
        bob_view = MessageService.list_messages(user=bob, conversation_id=direct_conversation.id)
        assert list(bob_view.data) == [message]

    def test_delete_twice_is_a_no_op(self, alice, direct_conversation):
        ConversationService.delete_conversation(user=alice, conversation_id=direct_conversation.id)

        result = ConversationService.delete_conversation(
            user=alice, conversation_id=direct_conversation.id
        )

        assert result.success

    def test_delete_by_outsider_is_denied(self, outsider, direct_conversation):
        result = ConversationService.delete_conversation(
            user=outsider, conversation_id=direct_conversation.id
        )

        assert result.error_code == "PERMISSION_DENIED"


# =============================================================================
# TestGroupDetails
# =============================================================================


class TestGroupDetails:
    """Tests for GroupService.update_details."""

    def test_admin_renames_and_describes(self, alice, group_conversation):
        result = GroupService.update_details(
            user=alice,
            conversation_id=group_conversation.id,
            name=" Renamed ",
            description="New topic",
        )

        assert result.success
        group_conversation.refresh_from_db()
        assert group_conversation.name == "Renamed"
        assert group_conversation.description == "New topic"

    def test_omitted_fields_are_unchanged(self, alice, group_conversation):
        GroupService.update_details(
            user=alice, conversation_id=group_conversation.id, image_url="https://img.example.com/g.png"
        )

        group_conversation.refresh_from_db()
        assert group_conversation.name == "Project Team"
        assert group_conversation.image_url == "https://img.example.com/g.png"

    def test_member_cannot_rename(self, bob, group_conversation):
        result = GroupService.update_details(
            user=bob, conversation_id=group_conversation.id, name="Mine now"
        )

        assert result.error_code == "PERMISSION_DENIED"

    def test_blank_name_fails_validation(self, alice, group_conversation):
        result = GroupService.update_details(
            user=alice, conversation_id=group_conversation.id, name="  "
        )

        assert result.error_code == "VALIDATION_ERROR"

    def test_direct_conversation_is_invalid_state(self, alice, direct_conversation):
        result = GroupService.update_details(
            user=alice, conversation_id=direct_conversation.id, name="Nope"
        )

        assert result.error_code == "INVALID_STATE"


# =============================================================================
# TestAddMembers
# =============================================================================


class TestAddMembers:
    """Tests for GroupService.add_members."""

    def test_adds_new_member(self, alice, outsider, group_conversation):
        result = GroupService.add_members(
            user=alice,
            conversation_id=group_conversation.id,
            member_ids=[outsider.external_id],
        )

        assert result.success
        assert result.data == [outsider]
        participant = Participant.objects.get(conversation=group_conversation, user=outsider)
        assert participant.is_active
        assert participant.last_read_at is None

    def test_current_members_are_skipped(self, alice, bob, group_conversation):
        result = GroupService.add_members(
            user=alice, conversation_id=group_conversation.id, member_ids=[bob.external_id]
        )

        assert result.success
        assert result.data == []

    def test_readding_past_member_reactivates_row(self, alice, bob, group_conversation):
        GroupService.leave(user=bob, conversation_id=group_conversation.id, delete_history=True)
        old = Participant.objects.get(conversation=group_conversation, user=bob)
        old.last_read_at = old.left_at
        old.save(update_fields=["last_read_at"])

        result = GroupService.add_members(
            user=alice, conversation_id=group_conversation.id, member_ids=[bob.external_id]
        )

        assert result.data == [bob]
        participant = Participant.objects.get(conversation=group_conversation, user=bob)
        assert participant.pk == old.pk
        assert participant.status == MembershipStatus.ACTIVE
        assert participant.left_at is None
        assert participant.is_hidden is False
        assert participant.joined_at > old.joined_at
        assert participant.last_read_at == old.last_read_at

    def test_non_admin_cannot_add(self, bob, outsider, group_conversation):
        result = GroupService.add_members(
            user=bob, conversation_id=group_conversation.id, member_ids=[outsider.external_id]
        )

        assert result.error_code == "PERMISSION_DENIED"

    def test_unknown_user_returns_not_found(self, alice, group_conversation):
        result = GroupService.add_members(
            user=alice, conversation_id=group_conversation.id, member_ids=["user_ghost"]
        )

        assert result.error_code == "NOT_FOUND"


# =============================================================================
# TestKickMember
# =============================================================================


class TestKickMember:
    """Tests for GroupService.kick_member."""

    def test_kicked_member_keeps_history_but_cannot_send(self, alice, bob, group_conversation):
        before = send(alice, group_conversation, "before")

        result = GroupService.kick_member(
            user=alice, conversation_id=group_conversation.id, target_user_id=bob.external_id
        )
        send(alice, group_conversation, "after")

        assert result.success
        participant = Participant.objects.get(conversation=group_conversation, user=bob)
        assert participant.status == MembershipStatus.REMOVED
        assert participant.left_at is not None
        visible = MessageService.list_messages(user=bob, conversation_id=group_conversation.id)
        assert list(visible.data) == [before]
        denied = MessageService.send(
            user=bob, conversation_id=group_conversation.id, content="let me back"
        )
        assert denied.error_code == "PERMISSION_DENIED"

    def test_admin_cannot_kick_self(self, alice, group_conversation):
        result = GroupService.kick_member(
            user=alice, conversation_id=group_conversation.id, target_user_id=alice.external_id
        )

        assert result.error_code == "PERMISSION_DENIED"

    def test_kicking_non_member_is_invalid_state(self, alice, outsider, group_conversation):
        result = GroupService.kick_member(
            user=alice,
            conversation_id=group_conversation.id,
            target_user_id=outsider.external_id,
        )

        assert result.error_code == "INVALID_STATE"

    def test_member_cannot_kick(self, bob, carol, group_conversation):
        result = GroupService.kick_member(
            user=bob, conversation_id=group_conversation.id, target_user_id=carol.external_id
        )

        assert result.error_code == "PERMISSION_DENIED"


# =============================================================================
# TestLeaveGroup
# =============================================================================


class TestLeaveGroup:
    """Tests for GroupService.leave and admin hand-off."""

    def test_past_member_reads_only_up_to_departure(self, alice, bob, group_conversation):
        before = send(alice, group_conversation, "before")

        GroupService.leave(user=bob, conversation_id=group_conversation.id)
        after = send(alice, group_conversation, "after")

        visible = MessageService.list_messages(user=bob, conversation_id=group_conversation.id)
        assert list(visible.data) == [before]
        assert ConversationService.get_unread_count(bob, group_conversation.id) == 1
        assert summary_for(bob, group_conversation).last_message.id == before.id
        denied = MessageService.edit(user=bob, message_id=after.id, content="x")
        assert denied.error_code == "PERMISSION_DENIED"

    def test_leave_with_delete_history_removes_access(self, bob, group_conversation):
        GroupService.leave(
            user=bob, conversation_id=group_conversation.id, delete_history=True
        )

        listed = MessageService.list_messages(user=bob, conversation_id=group_conversation.id)
        assert listed.error_code == "PERMISSION_DENIED"
        assert ConversationService.list_conversations(user=bob).data == []

    def test_admin_leaving_promotes_longest_standing_member(self, alice, bob, carol):
        group = GroupConversationFactory(admin=alice)
        GroupService.add_members(user=alice, conversation_id=group.id, member_ids=[carol.external_id])
        GroupService.add_members(user=alice, conversation_id=group.id, member_ids=[bob.external_id])

        GroupService.leave(user=alice, conversation_id=group.id)

        group.refresh_from_db()
        assert group.admin == carol

    def test_last_member_leaving_keeps_admin_on_record(self, alice):
        group = GroupConversationFactory(admin=alice)

        result = GroupService.leave(user=alice, conversation_id=group.id)

        assert result.success
        group.refresh_from_db()
        assert group.admin == alice
        assert not group.get_active_participants().exists()

    def test_former_admin_cannot_administer(self, alice, bob, group_conversation):
        GroupService.leave(user=alice, conversation_id=group_conversation.id)

        result = GroupService.update_details(
            user=alice, conversation_id=group_conversation.id, name="Still mine?"
        )

        assert result.error_code == "PERMISSION_DENIED"
        group_conversation.refresh_from_db()
        assert group_conversation.admin == bob

    def test_leaving_direct_is_invalid_state(self, alice, direct_conversation):
        result = GroupService.leave(user=alice, conversation_id=direct_conversation.id)

        assert result.error_code == "INVALID_STATE"

    def test_leaving_twice_is_denied(self, bob, group_conversation):
        GroupService.leave(user=bob, conversation_id=group_conversation.id)

        result = GroupService.leave(user=bob, conversation_id=group_conversation.id)

        assert result.error_code == "PERMISSION_DENIED"


# =============================================================================
# TestSendMessage
# =============================================================================


class TestSendMessage:
    """Tests for MessageService.send."""

    def test_send_updates_conversation_and_sender_marker(self, alice, direct_conversation):
        message = send(alice, direct_conversation, "  spaced  ")

        direct_conversation.refresh_from_db()
        assert message.content == "  spaced  "
        assert direct_conversation.last_message_at == message.created_at
        participant = Participant.objects.get(conversation=direct_conversation, user=alice)
        assert participant.last_read_at == message.created_at

    def test_send_clears_sender_typing_indicator(self, alice, bob, direct_conversation):
        TypingIndicatorFactory(conversation=direct_conversation, user=alice)
        TypingIndicatorFactory(conversation=direct_conversation, user=bob)

        send(alice, direct_conversation)

        assert list(
            TypingIndicator.objects.filter(conversation=direct_conversation).values_list(
                "user_id", flat=True
            )
        ) == [bob.pk]

    def test_outsider_cannot_send(self, outsider, direct_conversation):
        result = MessageService.send(
            user=outsider, conversation_id=direct_conversation.id, content="hi"
        )

        assert result.error_code == "PERMISSION_DENIED"

    def test_unknown_conversation_returns_not_found(self, alice):
        result = MessageService.send(user=alice, conversation_id=424242, content="hi")

        assert result.error_code == "NOT_FOUND"

    @pytest.mark.parametrize("blocker", ["sender", "recipient"])
    def test_block_in_either_direction_rejects_direct_send(
        self, alice, bob, direct_conversation, blocker
    ):
        if blocker == "sender":
            alice.blocked_users.add(bob)
        else:
            bob.blocked_users.add(alice)

        result = MessageService.send(
            user=alice, conversation_id=direct_conversation.id, content="hi"
        )

        assert result.error_code == "BLOCKED"
        assert not Message.objects.exists()

    def test_unblocking_restores_direct_send(self, alice, bob, direct_conversation):
        UserService.toggle_block_user(user=bob, target_external_id=alice.external_id)

        blocked = MessageService.send(
            user=alice, conversation_id=direct_conversation.id, content="hi"
        )
        UserService.toggle_block_user(user=bob, target_external_id=alice.external_id)
        message = send(alice, direct_conversation, "hi again")

        assert blocked.error_code == "BLOCKED"
        assert blocked.error == "You cannot send a message to this user."
        assert list(Message.objects.values_list("id", flat=True)) == [message.id]

    def test_block_does_not_affect_groups(self, alice, bob, group_conversation):
        bob.blocked_users.add(alice)

        message = send(alice, group_conversation, "group hello")

        assert message.pk is not None

    def test_reply_in_same_conversation(self, alice, bob, direct_conversation):
        original = send(alice, direct_conversation, "question")

        reply = send(bob, direct_conversation, "answer", reply_to_id=original.id)

        assert reply.reply_to == original

    def test_reply_to_other_conversation_fails_validation(
        self, alice, direct_conversation, group_conversation
    ):
        elsewhere = send(alice, group_conversation, "elsewhere")

        result = MessageService.send(
            user=alice,
            conversation_id=direct_conversation.id,
            content="reply",
            reply_to_id=elsewhere.id,
        )

        assert result.error_code == "VALIDATION_ERROR"


# =============================================================================
# TestEditMessage
# =============================================================================


class TestEditMessage:
    """Tests for MessageService.edit."""

    def test_sender_edits_and_flag_sticks(self, alice, direct_conversation):
        message = send(alice, direct_conversation, "draft")

        result = MessageService.edit(user=alice, message_id=message.id, content="  final  ")

        assert result.success
        message.refresh_from_db()
        assert message.content == "final"
        assert message.is_edited

    def test_other_participant_cannot_edit(self, alice, bob, direct_conversation):
        message = send(alice, direct_conversation, "mine")

        result = MessageService.edit(user=bob, message_id=message.id, content="yours")

        assert result.error_code == "PERMISSION_DENIED"

    def test_tombstone_cannot_be_edited(self, alice, direct_conversation):
        message = send(alice, direct_conversation, "gone")
        MessageService.delete(user=alice, message_id=message.id, mode=DeleteMode.FOR_EVERYONE)

        result = MessageService.edit(user=alice, message_id=message.id, content="back")

        assert result.error_code == "INVALID_STATE"

    def test_tombstone_edit_by_other_participant_is_invalid_state(
        self, alice, bob, direct_conversation
    ):
        message = send(alice, direct_conversation, "gone")
        MessageService.delete(user=alice, message_id=message.id, mode=DeleteMode.FOR_EVERYONE)

        result = MessageService.edit(user=bob, message_id=message.id, content="back")

        assert result.error_code == "INVALID_STATE"

    def test_outsider_editing_tombstone_is_denied(self, alice, outsider, direct_conversation):
        message = send(alice, direct_conversation, "gone")
        MessageService.delete(user=alice, message_id=message.id, mode=DeleteMode.FOR_EVERYONE)

        result = MessageService.edit(user=outsider, message_id=message.id, content="back")

        assert result.error_code == "PERMISSION_DENIED"

    def test_unknown_message_returns_not_found(self, alice):
        result = MessageService.edit(user=alice, message_id=777777, content="x")

        assert result.error_code == "NOT_FOUND"


# =============================================================================
# TestDeleteMessage
# =============================================================================


class TestDeleteMessage:
    """Tests for MessageService.delete."""

    def test_for_everyone_leaves_tombstone_in_sequence(self, alice, bob, direct_conversation):
        first = send(alice, direct_conversation, "first")
        second = send(alice, direct_conversation, "second")

        result = MessageService.delete(
            user=alice, message_id=first.id, mode=DeleteMode.FOR_EVERYONE
        )

        assert result.success
        listed = list(
            MessageService.list_messages(user=bob, conversation_id=direct_conversation.id).data
        )
        assert [m.id for m in listed] == [first.id, second.id]
        assert listed[0].is_deleted
        assert listed[0].content == ""

    def test_for_everyone_by_non_sender_is_denied(self, alice, bob, direct_conversation):
        message = send(alice, direct_conversation, "mine")

        result = MessageService.delete(
            user=bob, message_id=message.id, mode=DeleteMode.FOR_EVERYONE
        )

        assert result.error_code == "PERMISSION_DENIED"
        message.refresh_from_db()
        assert not message.is_deleted

    def test_for_everyone_twice_is_a_no_op(self, alice, direct_conversation):
        message = send(alice, direct_conversation, "bye")
        MessageService.delete(user=alice, message_id=message.id, mode=DeleteMode.FOR_EVERYONE)
        deleted_at = Message.objects.get(pk=message.pk).deleted_at

        result = MessageService.delete(
            user=alice, message_id=message.id, mode=DeleteMode.FOR_EVERYONE
        )

        assert result.success
        assert Message.objects.get(pk=message.pk).deleted_at == deleted_at

    def test_for_me_hides_only_for_caller(self, alice, bob, direct_conversation):
        message = send(alice, direct_conversation, "hide me")

        first = MessageService.delete(user=bob, message_id=message.id, mode=DeleteMode.FOR_ME)
        again = MessageService.delete(user=bob, message_id=message.id, mode=DeleteMode.FOR_ME)

        assert first.success and again.success
        assert HiddenMessage.objects.filter(message=message, user=bob).count() == 1
        bob_view = MessageService.list_messages(user=bob, conversation_id=direct_conversation.id)
        alice_view = MessageService.list_messages(
            user=alice, conversation_id=direct_conversation.id
        )
        assert list(bob_view.data) == []
        assert list(alice_view.data) == [message]

    def test_unknown_mode_fails_validation(self, alice, direct_conversation):
        message = send(alice, direct_conversation)

        result = MessageService.delete(user=alice, message_id=message.id, mode="for_nobody")

        assert result.error_code == "VALIDATION_ERROR"

    def test_past_member_cannot_touch_later_messages(self, alice, bob, group_conversation):
        GroupService.leave(user=bob, conversation_id=group_conversation.id)
        later = send(alice, group_conversation, "after you left")

        result = MessageService.delete(user=bob, message_id=later.id, mode=DeleteMode.FOR_ME)

        assert result.error_code == "PERMISSION_DENIED"


# =============================================================================
# TestListMessages
# =============================================================================


class TestListMessages:
    """Tests for MessageService.list_messages."""

    def test_orders_oldest_first_with_id_tiebreak(self, alice, direct_conversation, clock):
        clock.update_step_width(0)
        a = MessageFactory(conversation=direct_conversation, sender=alice)
        b = MessageFactory(conversation=direct_conversation, sender=alice)
        assert a.created_at == b.created_at

        result = MessageService.list_messages(user=alice, conversation_id=direct_conversation.id)

        assert [m.id for m in result.data] == [a.id, b.id]

    def test_outsider_is_denied(self, outsider, direct_conversation):
        result = MessageService.list_messages(
            user=outsider, conversation_id=direct_conversation.id
        )

        assert result.error_code == "PERMISSION_DENIED"
