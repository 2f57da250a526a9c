from datetime import datetime
from typing import Literal, Optional
from uuid import UUID

from pydantic import BaseModel

MeetingStatusValue = Literal["upcoming", "active", "completed", "processing", "cancelled"]


class MeetingStatusUpdate(BaseModel):
    status: MeetingStatusValue


class MeetingOut(BaseModel):
    id: UUID
    name: str
    agent_id: UUID
    status: str
    started_at: Optional[datetime] = None
    ended_at: Optional[datetime] = None
    transcript_url: Optional[str] = None
    recording_url: Optional[str] = None
    summary: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True
