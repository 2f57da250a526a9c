"""
Video/chat platform clients.

The meeting lifecycle only talks to the abstract ``CallPlatform`` and
``ChatPlatform`` interfaces so tests and other deployments can substitute
them. The default implementations call the Stream REST APIs with a server
token; the realtime voice agent is attached to a call by a separate bridge
server (REALTIME_BRIDGE_URL) which holds the audio connection to the
completion provider.
"""
import hashlib
import hmac
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, List, Optional
from urllib.parse import quote

import httpx
from jose import jwt

from meetingai.core.config import settings
from meetingai.core.exceptions import CallPlatformError

logger = logging.getLogger(__name__)


@dataclass
class ChatUser:
    id: str
    name: str
    image: Optional[str] = None


@dataclass
class ChatMessage:
    id: Optional[str]
    text: str
    user_id: Optional[str]


# =============================================================================
# Helpers
# =============================================================================


def verify_webhook_signature(body: bytes, signature: str, secret: str) -> bool:
    """Check an HMAC-SHA256 hex signature of the raw request body."""
    if not secret or not signature:
        return False
    expected = hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()
    return hmac.compare_digest(expected, signature.strip().lower())


def parse_call_cid(call_cid: Optional[str]) -> Optional[str]:
    """Extract the call id from a "type:id" composite identifier."""
    if not call_cid or ":" not in call_cid:
        return None
    call_id = call_cid.split(":", 1)[1]
    return call_id or None


def generate_avatar_uri(seed: str, variant: str = "botttsNeutral") -> str:
    """DiceBear avatar URL for a user or agent."""
    return f"https://api.dicebear.com/9.x/{variant}/svg?seed={quote(seed.strip())}"


def create_server_token(secret: str) -> str:
    """Server-side JWT accepted by the Stream REST APIs."""
    return jwt.encode({"server": True}, secret, algorithm="HS256")


# =============================================================================
# Interfaces
# =============================================================================


class RealtimeSession(ABC):
    """A realtime voice agent attached to a call."""

    @abstractmethod
    async def update_session(self, config: Dict[str, Any]) -> None:
        """Replace instructions, voice and turn detection settings."""

    @abstractmethod
    async def close(self) -> None:
        """Detach the agent from the call."""


class CallPlatform(ABC):

    @abstractmethod
    async def end_call(self, call_id: str) -> None:
        """End the call for every participant."""

    @abstractmethod
    async def list_participant_ids(self, call_id: str) -> List[str]:
        """User ids currently connected to the call."""

    @abstractmethod
    async def connect_agent(self, call_id: str, agent_user_id: str) -> RealtimeSession:
        """Attach the realtime voice agent to the call."""


class ChatPlatform(ABC):

    @abstractmethod
    async def recent_messages(self, channel_id: str, limit: int) -> List[ChatMessage]:
        """The newest ``limit`` messages of a channel, oldest first."""

    @abstractmethod
    async def upsert_user(self, user: ChatUser) -> None:
        ...

    @abstractmethod
    async def send_message(self, channel_id: str, text: str, user: ChatUser) -> None:
        ...


# =============================================================================
# Stream implementations
# =============================================================================


class _StreamHTTP:
    """Shared request plumbing for the Stream REST APIs."""

    def __init__(
        self,
        api_base: str,
        api_key: Optional[str] = None,
        api_secret: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_base = api_base.rstrip("/")
        self.api_key = api_key if api_key is not None else settings.STREAM_API_KEY
        self.api_secret = api_secret if api_secret is not None else settings.STREAM_API_SECRET
        self.timeout = timeout or settings.STREAM_TIMEOUT
        self.transport = transport

    async def _request(
        self,
        method: str,
        path: str,
        json: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        headers = {
            "Authorization": create_server_token(self.api_secret),
            "stream-auth-type": "jwt",
        }
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout, transport=self.transport
            ) as client:
                resp = await client.request(
                    method,
                    f"{self.api_base}{path}",
                    params={"api_key": self.api_key},
                    headers=headers,
                    json=json,
                )
                resp.raise_for_status()
                return resp.json() if resp.content else {}
        except httpx.HTTPError as e:
            logger.error(f"Stream request {method} {path} failed: {e}")
            raise CallPlatformError(f"Stream request failed: {str(e)}") from e


class BridgeRealtimeSession(RealtimeSession):
    """Realtime session handle managed by the bridge server."""

    def __init__(self, session_id: str, bridge_url: str, timeout: float,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        self.session_id = session_id
        self.bridge_url = bridge_url.rstrip("/")
        self.timeout = timeout
        self.transport = transport

    async def update_session(self, config: Dict[str, Any]) -> None:
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout, transport=self.transport
            ) as client:
                resp = await client.post(
                    f"{self.bridge_url}/sessions/{self.session_id}/update",
                    json=config,
                )
                resp.raise_for_status()
        except httpx.HTTPError as e:
            raise CallPlatformError(f"Realtime session update failed: {str(e)}") from e

    async def close(self) -> None:
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout, transport=self.transport
            ) as client:
                resp = await client.delete(f"{self.bridge_url}/sessions/{self.session_id}")
                resp.raise_for_status()
        except httpx.HTTPError as e:
            raise CallPlatformError(f"Realtime session close failed: {str(e)}") from e
        logger.info(f"Closed realtime session {self.session_id}")


class StreamCallPlatform(_StreamHTTP, CallPlatform):

    def __init__(
        self,
        call_type: Optional[str] = None,
        bridge_url: Optional[str] = None,
        **kwargs,
    ):
        super().__init__(kwargs.pop("api_base", settings.STREAM_VIDEO_API_BASE), **kwargs)
        self.call_type = call_type or settings.STREAM_CALL_TYPE
        self.bridge_url = (bridge_url or settings.REALTIME_BRIDGE_URL).rstrip("/")

    def _call_path(self, call_id: str) -> str:
        return f"/api/v2/video/call/{self.call_type}/{call_id}"

    async def end_call(self, call_id: str) -> None:
        await self._request("POST", f"{self._call_path(call_id)}/mark_ended", json={})
        logger.info(f"Ended call {call_id}")

    async def list_participant_ids(self, call_id: str) -> List[str]:
        data = await self._request(
            "POST", f"{self._call_path(call_id)}/participants", json={"filter_conditions": {}}
        )
        ids = []
        for participant in data.get("participants", []):
            user_id = participant.get("user_id") or (participant.get("user") or {}).get("id")
            if user_id:
                ids.append(user_id)
        return ids

    async def connect_agent(self, call_id: str, agent_user_id: str) -> RealtimeSession:
        try:
            async with httpx.AsyncClient(
                timeout=settings.REALTIME_TIMEOUT, transport=self.transport
            ) as client:
                resp = await client.post(
                    f"{self.bridge_url}/sessions",
                    json={
                        "call_type": self.call_type,
                        "call_id": call_id,
                        "agent_user_id": agent_user_id,
                    },
                )
                resp.raise_for_status()
                session_id = resp.json()["session_id"]
        except (httpx.HTTPError, KeyError, ValueError) as e:
            raise CallPlatformError(f"Failed to connect realtime agent: {str(e)}") from e

        logger.info(f"Realtime agent {agent_user_id} connected to call {call_id}")
        return BridgeRealtimeSession(
            session_id, self.bridge_url, settings.REALTIME_TIMEOUT, self.transport
        )


class StreamChatPlatform(_StreamHTTP, ChatPlatform):

    def __init__(self, channel_type: Optional[str] = None, **kwargs):
        super().__init__(kwargs.pop("api_base", settings.STREAM_CHAT_API_BASE), **kwargs)
        self.channel_type = channel_type or settings.STREAM_CHANNEL_TYPE

    async def recent_messages(self, channel_id: str, limit: int) -> List[ChatMessage]:
        data = await self._request(
            "POST",
            f"/channels/{self.channel_type}/{channel_id}/query",
            json={"state": True, "messages": {"limit": limit}},
        )
        messages = [
            ChatMessage(
                id=message.get("id"),
                text=message.get("text") or "",
                user_id=(message.get("user") or {}).get("id"),
            )
            for message in data.get("messages", [])
        ]
        return messages[-limit:]

    async def upsert_user(self, user: ChatUser) -> None:
        await self._request(
            "POST",
            "/users",
            json={"users": {user.id: {"id": user.id, "name": user.name, "image": user.image}}},
        )

    async def send_message(self, channel_id: str, text: str, user: ChatUser) -> None:
        await self._request(
            "POST",
            f"/channels/{self.channel_type}/{channel_id}/message",
            json={"message": {"text": text, "user_id": user.id}},
        )


_call_platform: Optional[CallPlatform] = None
_chat_platform: Optional[ChatPlatform] = None


def get_call_platform() -> CallPlatform:
    """Get the default call platform client (singleton)."""
    global _call_platform
    if _call_platform is None:
        _call_platform = StreamCallPlatform()
    return _call_platform


def get_chat_platform() -> ChatPlatform:
    """Get the default chat platform client (singleton)."""
    global _chat_platform
    if _chat_platform is None:
        _chat_platform = StreamChatPlatform()
    return _chat_platform
