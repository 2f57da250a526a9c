"""Meeting model and its lifecycle statuses."""

import uuid

from sqlalchemy import Column, DateTime, ForeignKey, String, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from meetingai.db.base import Base


class MeetingStatus:
    UPCOMING = "upcoming"
    ACTIVE = "active"
    COMPLETED = "completed"
    PROCESSING = "processing"
    CANCELLED = "cancelled"

    ALL = (UPCOMING, ACTIVE, COMPLETED, PROCESSING, CANCELLED)


class Meeting(Base):
    """
    A scheduled or running call between users and one agent.

    Status is driven by webhook events:
    upcoming -> active -> processing -> completed, or cancelled from
    upcoming/active.
    """

    __tablename__ = "meetings"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    agent_id = Column(
        UUID(as_uuid=True),
        ForeignKey("agents.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name = Column(String, nullable=False)
    status = Column(
        String(20), nullable=False, default=MeetingStatus.UPCOMING, index=True
    )
    started_at = Column(DateTime(timezone=True), nullable=True)
    ended_at = Column(DateTime(timezone=True), nullable=True)
    transcript_url = Column(Text, nullable=True)
    recording_url = Column(Text, nullable=True)
    summary = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    # Relationships
    agent = relationship("Agent", back_populates="meetings")
    guest_users = relationship(
        "GuestUser",
        back_populates="meeting",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
