from meetingai.db.base import Base  # noqa: F401

from .user import User  # noqa: F401
from .agent import Agent  # noqa: F401
from .agent_document import AgentDocument  # noqa: F401
from .document_chunk import DocumentChunk  # noqa: F401
from .meeting import Meeting, MeetingStatus  # noqa: F401
from .guest_user import GuestUser  # noqa: F401
