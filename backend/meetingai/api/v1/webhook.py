"""
Webhook receiver for video/chat platform events.

Each delivery is verified against its HMAC signature before the payload is
parsed or any state is touched.
"""
import json
import logging

from fastapi import APIRouter, Depends, Request

from meetingai.core.config import settings
from meetingai.core.deps import get_meeting_lifecycle
from meetingai.core.exceptions import (
    BadRequestError,
    ConflictError,
    NotFoundError,
    SignatureError,
)
from meetingai.schemas.webhook import WebhookAck, parse_webhook_event
from meetingai.services.call_platform import verify_webhook_signature
from meetingai.services.meeting_lifecycle import MeetingLifecycle

logger = logging.getLogger(__name__)

router = APIRouter(tags=["webhook"])


@router.post("/webhook", response_model=WebhookAck)
async def receive_webhook(
    request: Request,
    lifecycle: MeetingLifecycle = Depends(get_meeting_lifecycle),
):
    """
    Apply one platform event.

    Responses:
        400: Missing x-signature / x-api-key headers, or malformed payload
        401: Signature mismatch
        404: Meeting or agent missing, or the meeting is not in the status
            the event requires (replays land here)
        200: {"status": "ok"}, also for events that change nothing
    """
    signature = request.headers.get("x-signature")
    api_key = request.headers.get("x-api-key")
    if not signature or not api_key:
        raise BadRequestError("Missing signature or API key")

    body = await request.body()
    if not verify_webhook_signature(body, signature, settings.STREAM_API_SECRET):
        logger.warning("Rejected webhook with invalid signature")
        raise SignatureError()

    try:
        payload = json.loads(body)
    except (json.JSONDecodeError, UnicodeDecodeError):
        raise BadRequestError("Invalid JSON")

    event = parse_webhook_event(payload)

    try:
        await lifecycle.handle(event)
    except ConflictError as e:
        logger.info(f"Ignoring {event.type}: {e.message}")
        raise NotFoundError(e.message)

    return WebhookAck()
