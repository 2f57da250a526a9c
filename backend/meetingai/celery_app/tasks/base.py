"""
Shared task plumbing: a per-task database session and recovery of meetings
whose post-processing was interrupted by a worker restart.
"""
import logging
from typing import Optional

from celery import Task
from sqlalchemy.orm import Session

from meetingai.celery_app.celery import celery_app
from meetingai.db.session import SessionLocal, session_scope
from meetingai.models.meeting import Meeting, MeetingStatus

logger = logging.getLogger(__name__)


class DatabaseTask(Task):
    """Task base class that lends one session per run and closes it afterwards."""

    _db_session: Optional[Session] = None

    @property
    def db(self) -> Session:
        if self._db_session is None:
            self._db_session = SessionLocal()
        return self._db_session

    def after_return(self, status, retval, task_id, args, kwargs, einfo):
        if self._db_session is not None:
            self._db_session.close()
            self._db_session = None


def find_interrupted_meetings(db: Session):
    """
    Meetings in 'processing' that already received their transcript.

    Meetings without a transcript URL are still waiting for the platform's
    transcription_ready event and are not touched.
    """
    return (
        db.query(Meeting)
        .filter(
            Meeting.status == MeetingStatus.PROCESSING,
            Meeting.transcript_url.isnot(None),
        )
        .order_by(Meeting.ended_at)
        .all()
    )


def recover_meeting_tasks(db: Session) -> int:
    """
    Re-enqueue post-processing for every interrupted meeting.

    Returns:
        Number of meetings re-enqueued
    """
    from meetingai.celery_app.tasks.meeting import process_meeting_task

    meetings = find_interrupted_meetings(db)
    logger.info(f"Found {len(meetings)} interrupted meetings")

    recovered = 0
    for meeting in meetings:
        try:
            process_meeting_task.delay(str(meeting.id), meeting.transcript_url)
        except Exception as e:
            logger.error(f"Could not re-enqueue meeting {meeting.id}: {e}")
            continue
        recovered += 1
        logger.info(f"Re-enqueued meeting {meeting.id}")
    return recovered


@celery_app.task(name="meetingai.celery_app.tasks.base.recover_processing_meetings")
def recover_processing_meetings() -> int:
    with session_scope() as db:
        recovered = recover_meeting_tasks(db)
    logger.info(f"Recovery complete: {recovered} meetings re-enqueued")
    return recovered
