"""
Webhook event payloads from the video/chat platform.

Each delivery is one JSON object tagged by ``type``. Known types are parsed
into their own model; anything else becomes ``UnknownEvent`` and is
acknowledged without side effects.
"""
from typing import Annotated, Any, Dict, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from meetingai.core.exceptions import BadRequestError


class _EventBase(BaseModel):
    model_config = ConfigDict(extra="allow")


class EventUser(_EventBase):
    id: Optional[str] = None
    name: Optional[str] = None


class SessionParticipant(_EventBase):
    user: Optional[EventUser] = None
    user_session_id: Optional[str] = None


class CallCustom(_EventBase):
    meetingId: Optional[str] = None


class CallInfo(_EventBase):
    id: Optional[str] = None
    cid: Optional[str] = None
    custom: Optional[CallCustom] = None


class CallFile(_EventBase):
    url: Optional[str] = None


class ChatMessagePayload(_EventBase):
    id: Optional[str] = None
    text: Optional[str] = None
    user: Optional[EventUser] = None


class CallSessionStartedEvent(_EventBase):
    type: Literal["call.session_started"]
    call: Optional[CallInfo] = None

    @property
    def meeting_id(self) -> Optional[str]:
        if self.call and self.call.custom:
            return self.call.custom.meetingId
        return None


class ParticipantJoinedEvent(_EventBase):
    type: Literal["call.session_participant_joined"]
    call_cid: Optional[str] = None
    participant: Optional[SessionParticipant] = None


class ParticipantLeftEvent(_EventBase):
    type: Literal["call.session_participant_left"]
    call_cid: Optional[str] = None
    participant: Optional[SessionParticipant] = None


class CallSessionEndedEvent(_EventBase):
    type: Literal["call.session_ended"]
    call: Optional[CallInfo] = None

    @property
    def meeting_id(self) -> Optional[str]:
        if self.call and self.call.custom:
            return self.call.custom.meetingId
        return None


class TranscriptionReadyEvent(_EventBase):
    type: Literal["call.transcription_ready"]
    call_cid: Optional[str] = None
    call_transcription: Optional[CallFile] = None


class RecordingReadyEvent(_EventBase):
    type: Literal["call.recording_ready"]
    call_cid: Optional[str] = None
    call_recording: Optional[CallFile] = None


class MessageNewEvent(_EventBase):
    type: Literal["message.new"]
    channel_id: Optional[str] = None
    user: Optional[EventUser] = None
    message: Optional[ChatMessagePayload] = None

    @property
    def user_id(self) -> Optional[str]:
        if self.user and self.user.id:
            return self.user.id
        if self.message and self.message.user:
            return self.message.user.id
        return None

    @property
    def text(self) -> Optional[str]:
        return self.message.text if self.message else None


class UnknownEvent(_EventBase):
    type: str


KnownEvent = Annotated[
    Union[
        CallSessionStartedEvent,
        ParticipantJoinedEvent,
        ParticipantLeftEvent,
        CallSessionEndedEvent,
        TranscriptionReadyEvent,
        RecordingReadyEvent,
        MessageNewEvent,
    ],
    Field(discriminator="type"),
]

WebhookEvent = Union[
    CallSessionStartedEvent,
    ParticipantJoinedEvent,
    ParticipantLeftEvent,
    CallSessionEndedEvent,
    TranscriptionReadyEvent,
    RecordingReadyEvent,
    MessageNewEvent,
    UnknownEvent,
]

KNOWN_EVENT_TYPES = {
    "call.session_started",
    "call.session_participant_joined",
    "call.session_participant_left",
    "call.session_ended",
    "call.transcription_ready",
    "call.recording_ready",
    "message.new",
}

_known_event_adapter = TypeAdapter(KnownEvent)


def parse_webhook_event(payload: Any) -> WebhookEvent:
    """
    Validate a decoded webhook body into its event model.

    Raises:
        BadRequestError: If the body is not an object with a string ``type``,
            or a known event type has malformed fields
    """
    if not isinstance(payload, dict) or not isinstance(payload.get("type"), str):
        raise BadRequestError("Invalid webhook payload")

    try:
        if payload["type"] in KNOWN_EVENT_TYPES:
            return _known_event_adapter.validate_python(payload)
        return UnknownEvent.model_validate(payload)
    except ValidationError as e:
        raise BadRequestError(f"Invalid webhook payload: {e.error_count()} field errors")


class WebhookAck(BaseModel):
    status: str = "ok"


def event_summary(event: WebhookEvent) -> Dict[str, Any]:
    """Compact representation for log lines."""
    return event.model_dump(include={"type", "call_cid", "channel_id"}, exclude_none=True)
