"""
Pytest configuration and fixtures for the test suite.
"""
import os
import pytest
from typing import Dict, Generator, List, Optional
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker, Session

# Set test environment before importing app
os.environ["ENV"] = "development"
os.environ["JWT_SECRET_KEY"] = "test-secret-key-for-testing-purposes-only-32chars"
os.environ["STREAM_API_KEY"] = "test-stream-key"
os.environ["STREAM_API_SECRET"] = "test-stream-secret"
os.environ["EMBEDDING_DIM"] = "8"

from meetingai.main import app
from meetingai.db.base import Base
from meetingai.core.deps import (
    get_call,
    get_chat,
    get_db,
    get_embedding,
    get_enqueue_processing,
    get_llm,
)
from meetingai.core.exceptions import EmbeddingError
from meetingai.models.agent import Agent
from meetingai.models.meeting import Meeting, MeetingStatus
from meetingai.models.user import User
from meetingai.services.auth import issue_token
from meetingai.services.call_platform import (
    CallPlatform,
    ChatMessage,
    ChatPlatform,
    ChatUser,
    RealtimeSession,
)

EMBEDDING_DIM = 8

# Use SQLite for testing
SQLALCHEMY_TEST_DATABASE_URL = os.getenv(
    "TEST_DATABASE_URL",
    "sqlite:///./test.db"
)

engine = create_engine(
    SQLALCHEMY_TEST_DATABASE_URL,
    connect_args={"check_same_thread": False} if "sqlite" in SQLALCHEMY_TEST_DATABASE_URL else {},
)


@event.listens_for(engine, "connect")
def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    if "sqlite" in SQLALCHEMY_TEST_DATABASE_URL:
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


# =============================================================================
# Fake collaborators
# =============================================================================


def text_vector(text: str) -> List[float]:
    """Deterministic, never-zero vector derived from letter counts."""
    return [1.0 + text.lower().count(c) for c in "aeiorstn"]


class FakeEmbeddingClient:
    """Embedding client returning deterministic vectors."""

    def __init__(self, vectors: Optional[Dict[str, List[float]]] = None, fail_after: Optional[int] = None):
        self.vectors = vectors or {}
        self.fail_after = fail_after
        self.calls: List[str] = []

    async def embed(self, text: str) -> List[float]:
        if self.fail_after is not None and len(self.calls) >= self.fail_after:
            raise EmbeddingError("embedding service unavailable")
        self.calls.append(text)
        return self.vectors.get(text, text_vector(text))

    async def health_check(self) -> Dict:
        return {"status": "healthy", "model": "fake-embedding", "dimension": EMBEDDING_DIM}


class FakeLLMClient:
    """Completion client recording every request."""

    def __init__(self, reply: str = "Here is what was discussed.", ping_ok: bool = True):
        self.reply = reply
        self.ping_ok = ping_ok
        self.ping_error: Optional[Exception] = None
        self.requests: List[List[Dict]] = []
        self.pings = 0

    async def chat(self, messages, temperature=0.1, max_tokens=None, timeout=None) -> str:
        self.requests.append(messages)
        return self.reply

    async def ping(self) -> bool:
        self.pings += 1
        if self.ping_error is not None:
            raise self.ping_error
        return self.ping_ok

    async def health_check(self) -> Dict:
        return {"status": "healthy", "provider": "openai", "model": "fake-llm"}


class FakeRealtimeSession(RealtimeSession):
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.configs: List[Dict] = []
        self.closed = False

    async def update_session(self, config: Dict) -> None:
        if self.fail:
            raise RuntimeError("session update rejected")
        self.configs.append(config)

    async def close(self) -> None:
        self.closed = True


class FakeCallPlatform(CallPlatform):
    def __init__(self):
        self.ended: List[str] = []
        self.participants: List[str] = []
        self.connect_error: Optional[Exception] = None
        self.connections: List[tuple] = []
        self.session = FakeRealtimeSession()

    async def end_call(self, call_id: str) -> None:
        self.ended.append(call_id)

    async def list_participant_ids(self, call_id: str) -> List[str]:
        return list(self.participants)

    async def connect_agent(self, call_id: str, agent_user_id: str) -> RealtimeSession:
        if self.connect_error is not None:
            raise self.connect_error
        self.connections.append((call_id, agent_user_id))
        return self.session


class FakeChatPlatform(ChatPlatform):
    def __init__(self):
        self.history: Dict[str, List[ChatMessage]] = {}
        self.users: List[ChatUser] = []
        self.sent: List[tuple] = []

    async def recent_messages(self, channel_id: str, limit: int) -> List[ChatMessage]:
        return self.history.get(channel_id, [])[-limit:]

    async def upsert_user(self, user: ChatUser) -> None:
        self.users.append(user)

    async def send_message(self, channel_id: str, text: str, user: ChatUser) -> None:
        self.sent.append((channel_id, text, user))


class EnqueueRecorder:
    def __init__(self):
        self.calls: List[tuple] = []

    def __call__(self, meeting_id, transcript_url) -> None:
        self.calls.append((meeting_id, transcript_url))


# =============================================================================
# Database / client fixtures
# =============================================================================


@pytest.fixture(scope="function")
def db() -> Generator[Session, None, None]:
    """Create a fresh database for each test."""
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def embedding_client() -> FakeEmbeddingClient:
    return FakeEmbeddingClient()


@pytest.fixture
def llm_client() -> FakeLLMClient:
    return FakeLLMClient()


@pytest.fixture
def call_platform() -> FakeCallPlatform:
    return FakeCallPlatform()


@pytest.fixture
def chat_platform() -> FakeChatPlatform:
    return FakeChatPlatform()


@pytest.fixture
def enqueue() -> EnqueueRecorder:
    return EnqueueRecorder()


@pytest.fixture(scope="function")
def client(
    db: Session,
    embedding_client: FakeEmbeddingClient,
    llm_client: FakeLLMClient,
    call_platform: FakeCallPlatform,
    chat_platform: FakeChatPlatform,
    enqueue: EnqueueRecorder,
) -> Generator[TestClient, None, None]:
    """Create a test client with database and collaborator overrides."""

    def override_get_db_with_session():
        """Return the test database session."""
        yield db

    app.dependency_overrides[get_db] = override_get_db_with_session
    app.dependency_overrides[get_embedding] = lambda: embedding_client
    app.dependency_overrides[get_llm] = lambda: llm_client
    app.dependency_overrides[get_call] = lambda: call_platform
    app.dependency_overrides[get_chat] = lambda: chat_platform
    app.dependency_overrides[get_enqueue_processing] = lambda: enqueue
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


# =============================================================================
# Data fixtures
# =============================================================================


@pytest.fixture
def test_user(db: Session) -> User:
    """Create a test user."""
    user = User(name="Test User", email="test@example.com")
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def other_user(db: Session) -> User:
    """Create another test user."""
    user = User(name="Other User", email="other@example.com")
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def auth_headers(test_user: User) -> dict:
    """Create authentication headers for test user."""
    token = issue_token(test_user.id, email=test_user.email)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def authenticated_client(client: TestClient, auth_headers: dict) -> TestClient:
    """Create an authenticated test client."""
    client.headers.update(auth_headers)
    return client


@pytest.fixture
def test_agent(db: Session, test_user: User) -> Agent:
    """Create an agent owned by the test user."""
    agent = Agent(
        user_id=test_user.id,
        name="Research Assistant",
        instructions="You are a concise research assistant.",
    )
    db.add(agent)
    db.commit()
    db.refresh(agent)
    return agent


@pytest.fixture
def other_user_agent(db: Session, other_user: User) -> Agent:
    """Create an agent owned by another user."""
    agent = Agent(
        user_id=other_user.id,
        name="Other Agent",
        instructions="Someone else's agent.",
    )
    db.add(agent)
    db.commit()
    db.refresh(agent)
    return agent


@pytest.fixture
def make_meeting(db: Session, test_user: User, test_agent: Agent):
    """Factory for meetings of the test agent in a given status."""

    def _make(status: str = MeetingStatus.UPCOMING, **kwargs) -> Meeting:
        meeting = Meeting(
            user_id=test_user.id,
            agent_id=test_agent.id,
            name="Weekly sync",
            status=status,
            **kwargs,
        )
        db.add(meeting)
        db.commit()
        db.refresh(meeting)
        return meeting

    return _make


@pytest.fixture
def test_meeting(make_meeting) -> Meeting:
    return make_meeting()
