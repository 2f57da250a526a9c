"""
Tests for meeting post-processing: transcript parsing, speaker names and
summary generation.
"""

import asyncio
import json
import uuid

import httpx
import pytest
from sqlalchemy.orm import Session

from meetingai.core.exceptions import LLMConnectionError, NotFoundError, UpstreamError
from meetingai.models.guest_user import GuestUser
from meetingai.models.meeting import MeetingStatus
from meetingai.services.meeting_processor import (
    GUEST_SPEAKER,
    UNKNOWN_SPEAKER,
    TranscriptItem,
    format_transcript,
    generate_meeting_summary,
    parse_transcript,
    process_meeting,
    resolve_speakers,
)

TRANSCRIPT_URL = "https://cdn.example.com/transcripts/abc.jsonl"


def jsonl(*lines) -> str:
    return "\n".join(json.dumps(line) for line in lines)


def serve(text: str, status_code: int = 200) -> httpx.MockTransport:
    return httpx.MockTransport(lambda request: httpx.Response(status_code, text=text))


class TestParseTranscript:
    """Tests for JSONL transcript parsing."""

    def test_parses_lines(self):
        raw = jsonl(
            {"speaker_id": "u1", "text": "Hello", "start_ts": 0, "stop_ts": 900},
            {"speaker_id": "u2", "text": "Hi there", "start_ts": 1000, "stop_ts": 1800},
        )

        items = parse_transcript(raw)

        assert [(i.speaker_id, i.text, i.start_ts) for i in items] == [
            ("u1", "Hello", 0),
            ("u2", "Hi there", 1000),
        ]

    def test_skips_blank_malformed_and_empty_lines(self):
        raw = "\n".join([
            json.dumps({"speaker_id": "u1", "text": "Kept"}),
            "",
            "{broken",
            json.dumps({"speaker_id": "u1", "text": ""}),
            json.dumps(["not", "an", "object"]),
        ])

        items = parse_transcript(raw)

        assert [i.text for i in items] == ["Kept"]


class TestResolveSpeakers:
    """Tests for speaker name lookup."""

    def test_users_agents_and_guests(self, db: Session, test_user, test_agent, test_meeting):
        guest = GuestUser(
            id="guest-abc", meeting_id=test_meeting.id, user_id=test_user.id, name="Visiting Vera"
        )
        db.add(guest)
        db.commit()

        items = resolve_speakers(db, [
            TranscriptItem(speaker_id=str(test_user.id), text="a"),
            TranscriptItem(speaker_id=str(test_agent.id), text="b"),
            TranscriptItem(speaker_id="guest-abc", text="c"),
            TranscriptItem(speaker_id="guest-gone", text="d"),
            TranscriptItem(speaker_id=str(uuid.uuid4()), text="e"),
            TranscriptItem(speaker_id="", text="f"),
        ])

        assert [i.speaker_name for i in items] == [
            "Test User",
            "Research Assistant",
            "Visiting Vera",
            GUEST_SPEAKER,
            UNKNOWN_SPEAKER,
            UNKNOWN_SPEAKER,
        ]

    def test_format_transcript(self):
        items = [
            TranscriptItem(speaker_id="u1", text="Hello", start_ts=0, speaker_name="Ana"),
            TranscriptItem(speaker_id="u2", text="Hi", speaker_name="Ben"),
        ]
        assert format_transcript(items) == "[0] Ana: Hello\nBen: Hi"


class TestGenerateSummary:
    """Tests for summary generation."""

    def test_empty_transcript_skips_llm(self, llm_client):
        assert asyncio.run(generate_meeting_summary(llm_client, "   ")) == ""
        assert llm_client.requests == []

    def test_llm_failure(self, llm_client):
        async def broken_chat(messages, **kwargs):
            raise RuntimeError("connection reset")

        llm_client.chat = broken_chat

        with pytest.raises(LLMConnectionError):
            asyncio.run(generate_meeting_summary(llm_client, "Ana: Hello"))


class TestProcessMeeting:
    """Tests for the full post-processing step."""

    def test_summarizes_and_completes(self, db: Session, make_meeting, test_user, llm_client):
        meeting = make_meeting(MeetingStatus.PROCESSING, transcript_url=TRANSCRIPT_URL)
        llm_client.reply = "### Overview\nBudget approved.\n"
        raw = jsonl({"speaker_id": str(test_user.id), "text": "Budget approved", "start_ts": 5})

        summary = asyncio.run(process_meeting(db, meeting.id, llm_client, transport=serve(raw)))

        assert summary == "### Overview\nBudget approved."
        prompt = llm_client.requests[0][1]["content"]
        assert "[5] Test User: Budget approved" in prompt

        db.expire_all()
        assert meeting.status == MeetingStatus.COMPLETED
        assert meeting.summary == summary

    def test_url_argument_overrides_stored_url(self, db: Session, make_meeting, llm_client):
        meeting = make_meeting(MeetingStatus.PROCESSING)
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(str(request.url))
            return httpx.Response(200, text=jsonl({"speaker_id": "x", "text": "hi"}))

        asyncio.run(process_meeting(
            db, meeting.id, llm_client,
            transcript_url=TRANSCRIPT_URL,
            transport=httpx.MockTransport(handler),
        ))

        assert seen == [TRANSCRIPT_URL]

    def test_summary_kept_when_meeting_no_longer_processing(
        self, db: Session, make_meeting, llm_client
    ):
        meeting = make_meeting(MeetingStatus.CANCELLED, transcript_url=TRANSCRIPT_URL)

        asyncio.run(process_meeting(
            db, meeting.id, llm_client,
            transport=serve(jsonl({"speaker_id": "x", "text": "hi"})),
        ))

        db.expire_all()
        assert meeting.status == MeetingStatus.CANCELLED
        assert meeting.summary == llm_client.reply

    def test_unknown_meeting(self, db: Session, llm_client):
        with pytest.raises(NotFoundError):
            asyncio.run(process_meeting(db, uuid.uuid4(), llm_client))

    def test_missing_transcript_url(self, db: Session, make_meeting, llm_client):
        meeting = make_meeting(MeetingStatus.PROCESSING)
        with pytest.raises(NotFoundError):
            asyncio.run(process_meeting(db, meeting.id, llm_client))

    def test_download_error(self, db: Session, make_meeting, llm_client):
        meeting = make_meeting(MeetingStatus.PROCESSING, transcript_url=TRANSCRIPT_URL)

        with pytest.raises(UpstreamError):
            asyncio.run(process_meeting(
                db, meeting.id, llm_client, transport=serve("gone", status_code=404)
            ))

        db.expire_all()
        assert meeting.status == MeetingStatus.PROCESSING
        assert meeting.summary is None
