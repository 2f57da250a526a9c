"""
Meeting lifecycle state machine driven by platform webhook events.

Status flow::

    upcoming -> active -> processing -> completed
    upcoming/active -> cancelled

Every transition is a conditional UPDATE whose WHERE clause pins the
expected prior status, so concurrent or replayed deliveries for the same
meeting apply at most once without an explicit lock.
"""
import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional
from uuid import UUID

from sqlalchemy import update
from sqlalchemy.orm import Session

from meetingai.core.config import settings
from meetingai.core.exceptions import (
    AppException,
    BadRequestError,
    ConflictError,
    NotFoundError,
    UpstreamError,
)
from meetingai.models.agent import Agent
from meetingai.models.meeting import Meeting, MeetingStatus
from meetingai.schemas.webhook import (
    CallSessionEndedEvent,
    CallSessionStartedEvent,
    MessageNewEvent,
    ParticipantJoinedEvent,
    ParticipantLeftEvent,
    RecordingReadyEvent,
    TranscriptionReadyEvent,
    WebhookEvent,
    event_summary,
)
from meetingai.services.call_platform import (
    CallPlatform,
    ChatMessage,
    ChatPlatform,
    ChatUser,
    RealtimeSession,
    generate_avatar_uri,
    parse_call_cid,
)
from meetingai.services.llm_client import LLMClient
from meetingai.services.rag import RAGService

logger = logging.getLogger(__name__)

RAGServiceFactory = Callable[[Session], RAGService]
EnqueueProcessing = Callable[[UUID, str], None]

# Statuses from which a call session may not start
NOT_STARTABLE = {
    MeetingStatus.COMPLETED,
    MeetingStatus.ACTIVE,
    MeetingStatus.CANCELLED,
    MeetingStatus.PROCESSING,
}

ALLOWED_TRANSITIONS: Dict[str, set] = {
    MeetingStatus.UPCOMING: {MeetingStatus.ACTIVE, MeetingStatus.CANCELLED},
    MeetingStatus.ACTIVE: {MeetingStatus.PROCESSING, MeetingStatus.CANCELLED},
    MeetingStatus.PROCESSING: {MeetingStatus.COMPLETED},
    MeetingStatus.COMPLETED: set(),
    MeetingStatus.CANCELLED: set(),
}

FOLLOW_UP_PROMPT = """You are an AI assistant helping the user revisit a recently completed meeting.
Below is a summary of the meeting, generated from the transcript:

{summary}

The following are your original instructions from the live meeting assistant. Please continue to follow these behavioral guidelines as you assist the user:

{instructions}

The user may ask questions about the meeting, request clarifications, or ask for follow-up actions.
Always base your responses on the meeting summary above.

You also have access to the recent conversation history between you and the user. Use the context of previous messages to provide relevant, coherent, and helpful responses. If the user's question refers to something discussed earlier, make sure to take that into account and maintain continuity in the conversation.

If the summary does not contain enough information to answer a question, politely let the user know.

Be concise, helpful, and focus on providing accurate information from the meeting and the ongoing conversation."""


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _to_uuid(value: Any) -> Optional[UUID]:
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except (TypeError, ValueError):
        return None


def build_realtime_session_config(instructions: str) -> Dict[str, Any]:
    """Session settings for the realtime voice agent."""
    return {
        "instructions": instructions,
        "voice": settings.REALTIME_VOICE,
        "input_audio_format": "pcm16",
        "output_audio_format": "pcm16",
        "input_audio_transcription": {"model": "whisper-1"},
        "turn_detection": {
            "type": "server_vad",
            "threshold": 0.5,
            "prefix_padding_ms": 300,
            "silence_duration_ms": 500,
        },
    }


def compare_and_set_status(
    db: Session,
    meeting_id: UUID,
    expected: str,
    target: str,
    **values: Any,
) -> bool:
    """
    Move a meeting from ``expected`` to ``target`` status and commit.

    Returns False (and writes nothing) when the row no longer holds the
    expected status.
    """
    result = db.execute(
        update(Meeting)
        .where(Meeting.id == meeting_id, Meeting.status == expected)
        .values(status=target, updated_at=_now(), **values)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        db.rollback()
        return False
    db.commit()
    return True


def transition_meeting_status(db: Session, meeting_id: UUID, target: str) -> Meeting:
    """
    Apply a single validated status transition.

    Raises:
        NotFoundError: If the meeting does not exist
        ConflictError: If the transition is not allowed from the current
            status, or the status changed concurrently
    """
    if target not in MeetingStatus.ALL:
        raise BadRequestError(f"Unknown meeting status: {target}")

    meeting = db.get(Meeting, meeting_id)
    if meeting is None:
        raise NotFoundError("Meeting not found")

    current = meeting.status
    if target not in ALLOWED_TRANSITIONS.get(current, set()):
        raise ConflictError(f"Cannot change meeting status from {current} to {target}")

    values: Dict[str, Any] = {}
    if target == MeetingStatus.ACTIVE:
        values["started_at"] = _now()
    elif target == MeetingStatus.PROCESSING:
        values["ended_at"] = _now()

    if not compare_and_set_status(db, meeting_id, current, target, **values):
        raise ConflictError("Meeting status changed concurrently")

    db.expire_all()
    logger.info(f"Meeting {meeting_id}: {current} -> {target}")
    return db.get(Meeting, meeting_id)


class MeetingLifecycle:
    """Dispatches verified webhook events to their state transitions."""

    def __init__(
        self,
        db: Session,
        rag_service_factory: RAGServiceFactory,
        llm_client: LLMClient,
        call_platform: CallPlatform,
        chat_platform: ChatPlatform,
        enqueue_processing: EnqueueProcessing,
    ):
        self.db = db
        self.rag_service_factory = rag_service_factory
        self.llm_client = llm_client
        self.call_platform = call_platform
        self.chat_platform = chat_platform
        self.enqueue_processing = enqueue_processing

        self._handlers = {
            "call.session_started": self._on_session_started,
            "call.session_participant_joined": self._on_participant_joined,
            "call.session_participant_left": self._on_participant_left,
            "call.session_ended": self._on_session_ended,
            "call.transcription_ready": self._on_transcription_ready,
            "call.recording_ready": self._on_recording_ready,
            "message.new": self._on_message_new,
        }

    async def handle(self, event: WebhookEvent) -> None:
        """
        Run the branch for ``event``.

        Raises:
            BadRequestError: Required identifiers missing from the payload
            NotFoundError: Referenced meeting or agent does not exist
            ConflictError: Meeting is not in the status the event requires
            UpstreamError: A collaborator failed
        """
        handler = self._handlers.get(event.type)
        if handler is None:
            logger.debug(f"Ignoring webhook event type {event.type}")
            return
        logger.info(f"Handling webhook event {event_summary(event)}")
        await handler(event)

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def _require_meeting_id(self, raw: Optional[str]) -> UUID:
        if not raw:
            raise BadRequestError("Missing meeting ID")
        meeting_id = _to_uuid(raw)
        if meeting_id is None:
            raise NotFoundError("Meeting not found")
        return meeting_id

    def _get_meeting(self, meeting_id: UUID) -> Meeting:
        meeting = self.db.get(Meeting, meeting_id)
        if meeting is None:
            raise NotFoundError("Meeting not found")
        return meeting

    def _get_agent(self, agent_id: UUID) -> Agent:
        agent = self.db.get(Agent, agent_id)
        if agent is None:
            raise NotFoundError("Agent not found")
        return agent

    # ------------------------------------------------------------------
    # Call events
    # ------------------------------------------------------------------

    async def _probe_llm(self) -> None:
        try:
            reachable = await self.llm_client.ping()
        except Exception as e:
            logger.error(f"LLM connectivity probe failed: {e}")
            raise AppException("LLM API connection failed") from e
        if not reachable:
            logger.error("LLM connectivity probe returned an empty response")
            raise AppException("LLM API connection failed")

    async def _on_session_started(self, event: CallSessionStartedEvent) -> None:
        meeting_id = self._require_meeting_id(event.meeting_id)
        meeting = self._get_meeting(meeting_id)
        if meeting.status in NOT_STARTABLE:
            raise ConflictError(f"Meeting {meeting_id} is {meeting.status}")

        agent = self._get_agent(meeting.agent_id)
        agent_id = agent.id
        base_instructions = agent.instructions or settings.DEFAULT_AGENT_INSTRUCTIONS

        # Probe and knowledge lookup precede the status change so a failure
        # here leaves the meeting startable.
        if settings.LLM_PROBE_ENABLED:
            await self._probe_llm()
            logger.info("LLM connectivity probe succeeded")

        instructions = self.rag_service_factory(self.db).enhance_instructions(
            agent_id, base_instructions
        )
        logger.info(
            f"Instructions for agent {agent_id}: base {len(base_instructions)} chars, "
            f"enhanced {len(instructions)} chars"
        )

        if not compare_and_set_status(
            self.db,
            meeting_id,
            MeetingStatus.UPCOMING,
            MeetingStatus.ACTIVE,
            started_at=_now(),
        ):
            raise ConflictError(f"Meeting {meeting_id} is no longer upcoming")
        logger.info(f"Meeting {meeting_id}: upcoming -> active")

        call_id = (event.call.id if event.call and event.call.id else None) or str(meeting_id)
        session: Optional[RealtimeSession] = None
        try:
            session = await self.call_platform.connect_agent(call_id, str(agent_id))
            await session.update_session(build_realtime_session_config(instructions))
        except Exception as e:
            logger.error(f"Failed to connect realtime agent for meeting {meeting_id}: {e}")
            if session is not None:
                await self._close_session(session, meeting_id)
            if compare_and_set_status(
                self.db,
                meeting_id,
                MeetingStatus.ACTIVE,
                MeetingStatus.UPCOMING,
                started_at=None,
            ):
                logger.info(f"Meeting {meeting_id}: reverted active -> upcoming")
            raise AppException("Failed to connect realtime agent") from e

        logger.info(f"Realtime agent {agent_id} joined meeting {meeting_id}")

    async def _close_session(self, session: RealtimeSession, meeting_id: UUID) -> None:
        try:
            await session.close()
        except Exception as e:
            logger.error(f"Failed to detach realtime agent from meeting {meeting_id}: {e}")

    async def _on_participant_joined(self, event: ParticipantJoinedEvent) -> None:
        meeting_id = self._require_meeting_id(parse_call_cid(event.call_cid))
        user_id = event.participant.user.id if event.participant and event.participant.user else None
        if not user_id:
            raise BadRequestError("Missing meeting ID or user ID")

        meeting = self._get_meeting(meeting_id)
        agent = self._get_agent(meeting.agent_id)
        if user_id != str(agent.id):
            logger.info(f"Participant {user_id} joined meeting {meeting_id}")

    async def _on_participant_left(self, event: ParticipantLeftEvent) -> None:
        meeting_id = self._require_meeting_id(parse_call_cid(event.call_cid))
        call_id = str(meeting_id)

        if settings.PARTICIPANT_LEFT_POLICY == "last_human":
            meeting = self._get_meeting(meeting_id)
            left_id = (
                event.participant.user.id
                if event.participant and event.participant.user
                else None
            )
            remaining = await self.call_platform.list_participant_ids(call_id)
            humans: List[str] = [
                user_id
                for user_id in remaining
                if user_id != str(meeting.agent_id) and user_id != left_id
            ]
            if humans:
                logger.info(
                    f"Participant left meeting {meeting_id}; "
                    f"{len(humans)} participant(s) still connected"
                )
                return

        await self.call_platform.end_call(call_id)
        logger.info(f"Call for meeting {meeting_id} ended after a participant left")

    async def _on_session_ended(self, event: CallSessionEndedEvent) -> None:
        meeting_id = self._require_meeting_id(event.meeting_id)
        if not compare_and_set_status(
            self.db,
            meeting_id,
            MeetingStatus.ACTIVE,
            MeetingStatus.PROCESSING,
            ended_at=_now(),
        ):
            self._get_meeting(meeting_id)
            raise ConflictError(f"Meeting {meeting_id} is not active")
        logger.info(f"Meeting {meeting_id}: active -> processing")

    async def _on_transcription_ready(self, event: TranscriptionReadyEvent) -> None:
        meeting_id = self._require_meeting_id(parse_call_cid(event.call_cid))
        url = event.call_transcription.url if event.call_transcription else None
        if not url:
            raise BadRequestError("Missing transcription URL")

        meeting = self._get_meeting(meeting_id)
        meeting.transcript_url = url
        self.db.commit()
        logger.info(f"Stored transcript URL for meeting {meeting_id}")

        self.enqueue_processing(meeting_id, url)

    async def _on_recording_ready(self, event: RecordingReadyEvent) -> None:
        meeting_id = self._require_meeting_id(parse_call_cid(event.call_cid))
        url = event.call_recording.url if event.call_recording else None
        if not url:
            raise BadRequestError("Missing recording URL")

        meeting = self._get_meeting(meeting_id)
        meeting.recording_url = url
        self.db.commit()
        logger.info(f"Stored recording URL for meeting {meeting_id}")

    # ------------------------------------------------------------------
    # Chat events
    # ------------------------------------------------------------------

    async def _on_message_new(self, event: MessageNewEvent) -> None:
        user_id = event.user_id
        channel_id = event.channel_id
        text = event.text
        if not user_id or not channel_id or not text:
            raise BadRequestError("Missing required fields")

        meeting_id = self._require_meeting_id(channel_id)
        meeting = self._get_meeting(meeting_id)
        if meeting.status != MeetingStatus.COMPLETED:
            raise ConflictError(f"Meeting {meeting_id} is not completed")

        agent = self._get_agent(meeting.agent_id)
        agent_user_id = str(agent.id)
        if user_id == agent_user_id:
            return

        history = await self.chat_platform.recent_messages(
            channel_id, settings.CHAT_HISTORY_MESSAGES
        )
        messages = [
            {
                "role": "system",
                "content": FOLLOW_UP_PROMPT.format(
                    summary=meeting.summary or "",
                    instructions=agent.instructions or "",
                ),
            }
        ]
        messages.extend(self._history_messages(history, agent_user_id))
        messages.append({"role": "user", "content": text})

        reply = await self.llm_client.chat(messages, temperature=0.7)
        if not reply:
            raise UpstreamError("No response from the language model")

        agent_user = ChatUser(
            id=agent_user_id,
            name=agent.name,
            image=generate_avatar_uri(agent.name, "botttsNeutral"),
        )
        await self.chat_platform.upsert_user(agent_user)
        await self.chat_platform.send_message(channel_id, reply, agent_user)
        logger.info(f"Agent {agent_user_id} replied in meeting channel {channel_id}")

    @staticmethod
    def _history_messages(history: List[ChatMessage], agent_user_id: str) -> List[Dict[str, str]]:
        recent = history[-settings.CHAT_HISTORY_MESSAGES:]
        return [
            {
                "role": "assistant" if message.user_id == agent_user_id else "user",
                "content": message.text,
            }
            for message in recent
            if message.text and message.text.strip()
        ]
