"""
Tests for typing indicators and their housekeeping task.

Typing rows expire TYPING_WINDOW_MS after the last start; readers filter
on expires_at, and the Celery task purges long-expired rows.
"""

from datetime import timedelta

import pytest
from django.utils import timezone
from freezegun import freeze_time

from chat.constants import TYPING_CONFIG
from chat.models import TypingIndicator
from chat.services import GroupService, TypingService
from chat.tasks import purge_expired_typing_indicators
from chat.tests.factories import TypingIndicatorFactory

pytestmark = pytest.mark.django_db

WINDOW = timedelta(milliseconds=TYPING_CONFIG.TYPING_WINDOW_MS)


# =============================================================================
# TestTypingService
# =============================================================================


class TestTypingService:
    """Tests for start, stop and get_active_typers."""

    def test_start_is_visible_to_others_not_self(self, alice, bob, group_conversation):
        TypingService.start(user=bob, conversation_id=group_conversation.id)

        seen_by_alice = TypingService.get_active_typers(
            user=alice, conversation_id=group_conversation.id
        )
        seen_by_bob = TypingService.get_active_typers(
            user=bob, conversation_id=group_conversation.id
        )

        assert seen_by_alice.data == [bob.external_id]
        assert seen_by_bob.data == []

    def test_indicator_expires_after_window(self, alice, bob, group_conversation):
        with freeze_time("2030-01-01 09:00:00") as frozen:
            TypingService.start(user=bob, conversation_id=group_conversation.id)

            frozen.tick(WINDOW - timedelta(milliseconds=100))
            assert TypingService.get_active_typers(
                user=alice, conversation_id=group_conversation.id
            ).data == [bob.external_id]

            frozen.tick(timedelta(milliseconds=200))
            assert TypingService.get_active_typers(
                user=alice, conversation_id=group_conversation.id
            ).data == []

        # Expiry is read-side only; the row is still there
        assert TypingIndicator.objects.filter(user=bob).exists()

    def test_start_again_refreshes_expiry(self, bob, group_conversation):
        with freeze_time("2030-01-01 09:00:00") as frozen:
            TypingService.start(user=bob, conversation_id=group_conversation.id)
            frozen.tick(timedelta(seconds=2))

            result = TypingService.start(user=bob, conversation_id=group_conversation.id)

            assert result.data.expires_at == timezone.now() + WINDOW
        assert TypingIndicator.objects.filter(user=bob).count() == 1

    def test_stop_removes_indicator(self, alice, bob, group_conversation):
        TypingService.start(user=bob, conversation_id=group_conversation.id)

        result = TypingService.stop(user=bob, conversation_id=group_conversation.id)

        assert result.success
        assert TypingService.get_active_typers(
            user=alice, conversation_id=group_conversation.id
        ).data == []

    def test_stop_without_indicator_succeeds(self, bob, group_conversation):
        result = TypingService.stop(user=bob, conversation_id=group_conversation.id)

        assert result.success

    def test_active_typers_sorted_by_public_id(self, alice, bob, carol, group_conversation):
        TypingService.start(user=carol, conversation_id=group_conversation.id)
        TypingService.start(user=bob, conversation_id=group_conversation.id)

        result = TypingService.get_active_typers(
            user=alice, conversation_id=group_conversation.id
        )

        assert result.data == sorted([bob.external_id, carol.external_id])

    def test_past_member_cannot_start(self, bob, group_conversation):
        GroupService.leave(user=bob, conversation_id=group_conversation.id)

        result = TypingService.start(user=bob, conversation_id=group_conversation.id)

        assert result.error_code == "PERMISSION_DENIED"

    def test_outsider_cannot_read_typers(self, outsider, group_conversation):
        result = TypingService.get_active_typers(
            user=outsider, conversation_id=group_conversation.id
        )

        assert result.error_code == "PERMISSION_DENIED"

    def test_unknown_conversation_returns_not_found(self, bob):
        result = TypingService.start(user=bob, conversation_id=8080)

        assert result.error_code == "NOT_FOUND"


# =============================================================================
# TestPurgeExpiredTypingIndicators
# =============================================================================


class TestPurgeExpiredTypingIndicators:
    """Tests for the purge_expired_typing_indicators Celery task."""

    @freeze_time("2030-01-01 09:00:00")
    def test_purges_only_rows_past_grace(self, alice, bob, carol, group_conversation):
        now = timezone.now()
        grace = timedelta(seconds=TYPING_CONFIG.PURGE_GRACE_SECONDS)
        TypingIndicatorFactory(
            conversation=group_conversation, user=alice, expires_at=now - grace - timedelta(seconds=1)
        )
        TypingIndicatorFactory(
            conversation=group_conversation, user=bob, expires_at=now - timedelta(seconds=5)
        )
        TypingIndicatorFactory(
            conversation=group_conversation, user=carol, expires_at=now + WINDOW
        )

        deleted = purge_expired_typing_indicators()

        assert deleted == 1
        assert set(TypingIndicator.objects.values_list("user_id", flat=True)) == {
            bob.pk,
            carol.pk,
        }

    def test_custom_grace_via_apply(self, bob, group_conversation):
        TypingIndicatorFactory(
            conversation=group_conversation,
            user=bob,
            expires_at=timezone.now() - timedelta(seconds=10),
        )

        # apply() runs the task in-process
        result = purge_expired_typing_indicators.apply(kwargs={"grace_seconds": 5})

        assert result.get() == 1
        assert not TypingIndicator.objects.exists()
