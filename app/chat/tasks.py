"""
Celery tasks for chat app.

This module defines periodic tasks for:
- Expiring calls nobody answered

Related files:
    - services.py: CallService
    - events.py: ChatEventPublisher
    - config/settings.py: CELERY_BEAT_SCHEDULE

Usage:
    from chat.tasks import expire_unanswered_calls

    expire_unanswered_calls.delay()
"""

import logging

from celery import shared_task
from django.db import DatabaseError

logger = logging.getLogger(__name__)


@shared_task(
    bind=True,
    autoretry_for=(DatabaseError,),
    retry_backoff=True,
    retry_kwargs={"max_retries": 3},
)
def expire_unanswered_calls(self) -> int:
    """
    Mark pending calls past the ring timeout as missed.

    Each expired call is published to its conversation's members as
    call_status_updated.

    Returns:
        Number of calls marked missed
    """
    from chat.events import ChatEventPublisher
    from chat.services import CallService

    calls = CallService.expire_unanswered()

    for call in calls:
        ChatEventPublisher.call_status_updated(call)

    if calls:
        logger.info(f"Expired {len(calls)} unanswered calls")
    return len(calls)
