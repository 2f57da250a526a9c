"""
Meeting post-processing - transcript download and summary generation.

Runs after the platform reports a transcript for a finished call:
download the JSONL transcript, attach speaker names, ask the LLM for a
summary and move the meeting from processing to completed.
"""
import json
import logging
from dataclasses import dataclass
from typing import Dict, List, Optional
from uuid import UUID

import httpx
from sqlalchemy.orm import Session

from meetingai.core.config import settings
from meetingai.core.exceptions import LLMConnectionError, NotFoundError, UpstreamError
from meetingai.models.agent import Agent
from meetingai.models.guest_user import GuestUser
from meetingai.models.meeting import Meeting, MeetingStatus
from meetingai.models.user import User
from meetingai.services.llm_client import LLMClient
from meetingai.services.meeting_lifecycle import compare_and_set_status

logger = logging.getLogger(__name__)

UNKNOWN_SPEAKER = "Unknown Speaker"
GUEST_SPEAKER = "Guest User"
GUEST_ID_PREFIX = "guest-"

SUMMARY_SYSTEM_PROMPT = """You are an expert summarizer. You write readable, concise, simple content. You are given a transcript of a meeting and you need to summarize it.

Use the following markdown structure for every output:

### Overview
Provide a detailed, engaging summary of the session's content. Focus on major features, user workflows, and any key takeaways. Write in a narrative style, using full sentences. Highlight unique or powerful aspects of the product, platform, or discussion.

### Notes
Break down key content into thematic sections with timestamp ranges. Each section should summarize key points, actions, or demos in bullet format.

Example:
#### Section Name
- Main point or demo shown here
- Another key insight or interaction
- Follow-up tool or explanation provided"""

SUMMARY_USER_TEMPLATE = """Summarize the following transcript:

{transcript}"""


@dataclass
class TranscriptItem:
    speaker_id: str
    text: str
    start_ts: Optional[int] = None
    stop_ts: Optional[int] = None
    speaker_name: str = UNKNOWN_SPEAKER


def parse_transcript(raw: str) -> List[TranscriptItem]:
    """Parse JSONL transcript lines; blank and malformed lines are skipped."""
    items = []
    for line_no, line in enumerate(raw.splitlines(), start=1):
        line = line.strip()
        if not line:
            continue
        try:
            data = json.loads(line)
        except json.JSONDecodeError:
            logger.warning(f"Skipping malformed transcript line {line_no}")
            continue
        if not isinstance(data, dict) or not data.get("text"):
            continue
        items.append(
            TranscriptItem(
                speaker_id=str(data.get("speaker_id") or ""),
                text=str(data["text"]),
                start_ts=data.get("start_ts"),
                stop_ts=data.get("stop_ts"),
            )
        )
    return items


def _as_uuids(ids: List[str]) -> List[UUID]:
    result = []
    for value in ids:
        try:
            result.append(UUID(value))
        except ValueError:
            continue
    return result


def resolve_speakers(db: Session, items: List[TranscriptItem]) -> List[TranscriptItem]:
    """Fill ``speaker_name`` from users, agents and guest users."""
    speaker_ids = list({item.speaker_id for item in items if item.speaker_id})
    names: Dict[str, str] = {}

    uuid_ids = _as_uuids(speaker_ids)
    if uuid_ids:
        for user in db.query(User).filter(User.id.in_(uuid_ids)).all():
            names[str(user.id)] = user.name
        for agent in db.query(Agent).filter(Agent.id.in_(uuid_ids)).all():
            names[str(agent.id)] = agent.name

    guest_ids = [i for i in speaker_ids if i.startswith(GUEST_ID_PREFIX)]
    if guest_ids:
        found = {
            guest.id: guest.name
            for guest in db.query(GuestUser).filter(GuestUser.id.in_(guest_ids)).all()
        }
        for guest_id in guest_ids:
            names[guest_id] = found.get(guest_id, GUEST_SPEAKER)

    for item in items:
        item.speaker_name = names.get(item.speaker_id, UNKNOWN_SPEAKER)
    return items


def format_transcript(items: List[TranscriptItem]) -> str:
    lines = []
    for item in items:
        prefix = f"[{item.start_ts}] " if item.start_ts is not None else ""
        lines.append(f"{prefix}{item.speaker_name}: {item.text}")
    return "\n".join(lines)


async def fetch_transcript(
    url: str,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> str:
    async with httpx.AsyncClient(
        timeout=settings.TRANSCRIPT_TIMEOUT,
        transport=transport,
        follow_redirects=True,
    ) as client:
        resp = await client.get(url)
        resp.raise_for_status()
        return resp.text


async def generate_meeting_summary(llm_client: LLMClient, transcript_text: str) -> str:
    """
    Summarize a speaker-labelled transcript.

    Raises:
        LLMConnectionError: If the LLM call fails
    """
    if not transcript_text.strip():
        return ""

    text = transcript_text[: settings.MAX_TRANSCRIPT_CHARS]
    if len(transcript_text) > settings.MAX_TRANSCRIPT_CHARS:
        logger.warning(
            f"Transcript truncated for summarization: "
            f"{len(transcript_text)} -> {settings.MAX_TRANSCRIPT_CHARS} chars"
        )

    messages = [
        {"role": "system", "content": SUMMARY_SYSTEM_PROMPT},
        {"role": "user", "content": SUMMARY_USER_TEMPLATE.format(transcript=text)},
    ]
    try:
        response = await llm_client.chat(messages, temperature=0.2)
    except Exception as e:
        error_msg = str(e) or type(e).__name__
        logger.error(f"Summary generation failed: {error_msg}", exc_info=True)
        raise LLMConnectionError(f"Summary generation failed: {error_msg}")
    return response.strip()


async def process_meeting(
    db: Session,
    meeting_id: UUID,
    llm_client: LLMClient,
    transcript_url: Optional[str] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> str:
    """
    Summarize a finished meeting and mark it completed.

    Args:
        db: Database session
        meeting_id: Meeting to process
        llm_client: Completion client used for the summary
        transcript_url: Override for the stored transcript URL
        transport: Optional httpx transport for the transcript download

    Returns:
        The stored summary

    Raises:
        NotFoundError: If the meeting does not exist
        UpstreamError: If the transcript cannot be downloaded
        LLMConnectionError: If summary generation fails
    """
    meeting = db.get(Meeting, meeting_id)
    if meeting is None:
        raise NotFoundError("Meeting not found")

    url = transcript_url or meeting.transcript_url
    if not url:
        raise NotFoundError(f"Meeting {meeting_id} has no transcript")

    try:
        raw = await fetch_transcript(url, transport=transport)
    except httpx.HTTPStatusError as e:
        raise UpstreamError(f"Transcript download failed: HTTP {e.response.status_code}") from e

    items = resolve_speakers(db, parse_transcript(raw))
    logger.info(f"Meeting {meeting_id}: {len(items)} transcript lines")

    summary = await generate_meeting_summary(llm_client, format_transcript(items))

    meeting.summary = summary
    db.commit()

    if compare_and_set_status(
        db, meeting_id, MeetingStatus.PROCESSING, MeetingStatus.COMPLETED
    ):
        logger.info(f"Meeting {meeting_id}: processing -> completed")
    else:
        logger.warning(f"Meeting {meeting_id} was not processing; summary stored only")

    return summary
