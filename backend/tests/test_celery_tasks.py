"""
Tests for meeting processing tasks and worker-restart recovery.
"""

from unittest.mock import patch

from sqlalchemy.orm import Session

from meetingai.celery_app.tasks.base import recover_meeting_tasks
from meetingai.celery_app.tasks.meeting import (
    enqueue_meeting_processing,
    process_meeting_task,
)
from meetingai.models.meeting import MeetingStatus


class TestEnqueue:
    def test_enqueue_sends_string_id(self, test_meeting):
        with patch.object(process_meeting_task, "delay") as mock_delay:
            enqueue_meeting_processing(test_meeting.id, "https://cdn.example.com/t.jsonl")

        mock_delay.assert_called_once_with(str(test_meeting.id), "https://cdn.example.com/t.jsonl")


class TestRecovery:
    """Tests for re-enqueueing interrupted meetings."""

    def test_recovers_processing_meetings_with_transcript(self, db: Session, make_meeting):
        stuck = make_meeting(MeetingStatus.PROCESSING, transcript_url="https://cdn.example.com/a.jsonl")
        make_meeting(MeetingStatus.PROCESSING)
        make_meeting(MeetingStatus.COMPLETED, transcript_url="https://cdn.example.com/b.jsonl")

        with patch.object(process_meeting_task, "delay") as mock_delay:
            recovered = recover_meeting_tasks(db)

        assert recovered == 1
        mock_delay.assert_called_once_with(str(stuck.id), "https://cdn.example.com/a.jsonl")

    def test_nothing_to_recover(self, db: Session, test_meeting):
        with patch.object(process_meeting_task, "delay") as mock_delay:
            assert recover_meeting_tasks(db) == 0
        mock_delay.assert_not_called()
