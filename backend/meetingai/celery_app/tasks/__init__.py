"""
Celery tasks package.

- base: recovery of interrupted meeting processing
- meeting: transcript summarization for finished meetings
"""

from meetingai.celery_app.tasks.base import recover_processing_meetings
from meetingai.celery_app.tasks.meeting import process_meeting_task

__all__ = [
    "recover_processing_meetings",
    "process_meeting_task",
]
