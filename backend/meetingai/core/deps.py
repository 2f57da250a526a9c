"""
Common dependencies for FastAPI endpoints.

External collaborators are provided through dependencies so tests can swap
them with ``app.dependency_overrides``.
"""
from typing import Generator
from uuid import UUID

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

from meetingai.core.exceptions import ForbiddenError, NotFoundError
from meetingai.db.session import SessionLocal
from meetingai.models.agent import Agent
from meetingai.models.meeting import Meeting
from meetingai.models.user import User
from meetingai.services.auth import read_token
from meetingai.services.call_platform import (
    CallPlatform,
    ChatPlatform,
    get_call_platform,
    get_chat_platform,
)
from meetingai.services.embedding import EmbeddingClient, get_embedding_client
from meetingai.services.llm_client import LLMClient, get_llm_client
from meetingai.services.meeting_lifecycle import EnqueueProcessing, MeetingLifecycle
from meetingai.services.rag import RAGService

# HTTP Bearer token security scheme
security = HTTPBearer()


def get_db() -> Generator[Session, None, None]:
    """
    Database session dependency.

    Yields a database session and ensures it's closed after the request.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: Session = Depends(get_db),
) -> User:
    """
    Get the current authenticated user from JWT token.

    Raises:
        HTTPException: If token is invalid or user not found
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Invalid authentication credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    token_data = read_token(credentials.credentials)
    if token_data is None:
        raise credentials_exception

    user = db.get(User, token_data.user_id)
    if user is None:
        raise credentials_exception

    return user


def get_owned_agent(
    agent_id: UUID,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Agent:
    """Resolve an agent path parameter: 404 if missing, 403 if not the caller's."""
    agent = db.get(Agent, agent_id)
    if agent is None:
        raise NotFoundError("Agent not found")
    if agent.user_id != current_user.id:
        raise ForbiddenError("You do not have access to this agent")
    return agent


def get_owned_meeting(
    meeting_id: UUID,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Meeting:
    """Resolve a meeting path parameter: 404 if missing, 403 if not the caller's."""
    meeting = db.get(Meeting, meeting_id)
    if meeting is None:
        raise NotFoundError("Meeting not found")
    if meeting.user_id != current_user.id:
        raise ForbiddenError("You do not have access to this meeting")
    return meeting


def get_embedding() -> EmbeddingClient:
    return get_embedding_client()


def get_llm() -> LLMClient:
    return get_llm_client()


def get_call() -> CallPlatform:
    return get_call_platform()


def get_chat() -> ChatPlatform:
    return get_chat_platform()


def get_enqueue_processing() -> EnqueueProcessing:
    from meetingai.celery_app.tasks.meeting import enqueue_meeting_processing

    return enqueue_meeting_processing


def get_rag_service(
    db: Session = Depends(get_db),
    embedding_client: EmbeddingClient = Depends(get_embedding),
) -> RAGService:
    return RAGService(db, embedding_client)


def get_meeting_lifecycle(
    db: Session = Depends(get_db),
    embedding_client: EmbeddingClient = Depends(get_embedding),
    llm_client: LLMClient = Depends(get_llm),
    call_platform: CallPlatform = Depends(get_call),
    chat_platform: ChatPlatform = Depends(get_chat),
    enqueue_processing: EnqueueProcessing = Depends(get_enqueue_processing),
) -> MeetingLifecycle:
    return MeetingLifecycle(
        db=db,
        rag_service_factory=lambda session: RAGService(session, embedding_client),
        llm_client=llm_client,
        call_platform=call_platform,
        chat_platform=chat_platform,
        enqueue_processing=enqueue_processing,
    )
