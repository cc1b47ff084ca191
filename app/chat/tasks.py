"""
Celery tasks for chat app.

This module defines periodic housekeeping tasks:
- Purging typing indicators that expired long ago

Readers already ignore expired indicators; the purge only keeps the
table small.

Related files:
    - services.py: TypingService
    - migrations/0002_typing_purge_schedule.py: Beat schedule

Usage:
    from chat.tasks import purge_expired_typing_indicators

    purge_expired_typing_indicators.delay()
"""

import logging

from celery import shared_task

from chat.constants import TYPING_CONFIG

logger = logging.getLogger(__name__)


@shared_task
def purge_expired_typing_indicators(
    grace_seconds: int = TYPING_CONFIG.PURGE_GRACE_SECONDS,
) -> int:
    """
    Delete typing indicators that expired more than grace_seconds ago.

    Args:
        grace_seconds: How long past expiry a row is kept

    Returns:
        Number of rows deleted
    """
    from chat.services import TypingService

    deleted = TypingService.purge_expired(grace_seconds=grace_seconds)
    logger.info(f"Typing purge removed {deleted} row(s)")
    return deleted
