"""
Meeting status endpoint for manual transitions (e.g. cancelling).
"""
import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from meetingai.core.deps import get_db, get_owned_meeting
from meetingai.models.meeting import Meeting
from meetingai.schemas.meeting import MeetingOut, MeetingStatusUpdate
from meetingai.services.meeting_lifecycle import transition_meeting_status

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/meetings", tags=["meetings"])


@router.get("/{meeting_id}", response_model=MeetingOut)
def get_meeting(meeting: Meeting = Depends(get_owned_meeting)):
    return meeting


@router.patch("/{meeting_id}/status", response_model=MeetingOut)
def update_meeting_status(
    data: MeetingStatusUpdate,
    meeting: Meeting = Depends(get_owned_meeting),
    db: Session = Depends(get_db),
):
    """Apply a validated status transition; 409 if it is not allowed."""
    return transition_meeting_status(db, meeting.id, data.status)
