"""
Celery task for meeting post-processing (transcript summary).
"""

import asyncio
import logging
from typing import Optional
from uuid import UUID

from celery import shared_task

from meetingai.celery_app.config import (
    MEETING_TASK_SOFT_TIME_LIMIT,
    MEETING_TASK_TIME_LIMIT,
    MEETINGS_QUEUE,
    RETRY_CONFIG,
    RETRYABLE_EXCEPTIONS,
)
from meetingai.celery_app.tasks.base import DatabaseTask

logger = logging.getLogger(__name__)


@shared_task(
    bind=True,
    base=DatabaseTask,
    name="meetingai.celery_app.tasks.meeting.process_meeting",
    queue=MEETINGS_QUEUE,
    autoretry_for=RETRYABLE_EXCEPTIONS,
    max_retries=RETRY_CONFIG["max_retries"],
    retry_backoff=RETRY_CONFIG["retry_backoff"],
    retry_backoff_max=RETRY_CONFIG["retry_backoff_max"],
    retry_jitter=RETRY_CONFIG["retry_jitter"],
    time_limit=MEETING_TASK_TIME_LIMIT,
    soft_time_limit=MEETING_TASK_SOFT_TIME_LIMIT,
)
def process_meeting_task(self, meeting_id: str, transcript_url: Optional[str] = None):
    """
    Summarize a finished meeting from its transcript.

    Args:
        meeting_id: Meeting UUID string
        transcript_url: Transcript location reported by the platform
    """
    from meetingai.core.exceptions import AppException
    from meetingai.services.llm_client import get_llm_client
    from meetingai.services.meeting_processor import process_meeting

    logger.info(f"Processing meeting: {meeting_id}")
    db = self.db

    try:
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        try:
            loop.run_until_complete(
                process_meeting(db, UUID(meeting_id), get_llm_client(), transcript_url)
            )
        finally:
            loop.close()

        logger.info(f"Meeting processed: {meeting_id}")
        return {"status": "completed", "meeting_id": meeting_id}

    except RETRYABLE_EXCEPTIONS as e:
        db.rollback()
        logger.warning(
            f"Retryable error for meeting {meeting_id}: {e}, "
            f"attempt {self.request.retries + 1}/{RETRY_CONFIG['max_retries'] + 1}"
        )
        raise

    except AppException as e:
        db.rollback()
        logger.error(f"Meeting processing failed: {e.message}")
        return {"status": "failed", "message": e.message}


def enqueue_meeting_processing(meeting_id: UUID, transcript_url: str) -> None:
    """Queue post-processing for a meeting whose transcript is ready."""
    process_meeting_task.delay(str(meeting_id), transcript_url)
    logger.info(f"Queued processing for meeting {meeting_id}")
