"""
LLM Client - Abstraction layer for chat completion providers (OpenAI, Ollama).

Supports the OpenAI-compatible API (/v1/chat/completions) and the Ollama
native API (/api/chat). The provider can be switched via LLM_PROVIDER.
"""
from typing import Dict, List, Optional

import httpx

from meetingai.core.config import settings


class LLMClient:
    """
    Unified LLM client supporting multiple providers.

    Supported providers:
    - openai: OpenAI or any OpenAI-compatible server (/v1/chat/completions)
    - ollama: Local Ollama server using native API (/api/chat)
    """

    def __init__(
        self,
        api_base: Optional[str] = None,
        model: Optional[str] = None,
        provider: Optional[str] = None,
        api_key: Optional[str] = None,
        timeout: Optional[float] = None,
        max_tokens: Optional[int] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_base = (api_base or settings.LLM_API_BASE).rstrip("/")
        self.model = model or settings.LLM_MODEL
        self.provider = provider or settings.LLM_PROVIDER
        self.api_key = api_key if api_key is not None else settings.LLM_API_KEY
        self.timeout = timeout or settings.LLM_TIMEOUT
        self.max_tokens = max_tokens or settings.LLM_MAX_TOKENS
        self.transport = transport

    def _client(self, timeout: Optional[float] = None) -> httpx.AsyncClient:
        headers = {"Authorization": f"Bearer {self.api_key}"} if self.api_key else {}
        return httpx.AsyncClient(
            timeout=timeout or self.timeout,
            headers=headers,
            transport=self.transport,
        )

    async def chat(
        self,
        messages: List[Dict],
        temperature: float = 0.1,
        max_tokens: Optional[int] = None,
        timeout: Optional[float] = None,
    ) -> str:
        """
        Send chat completion request and return the response content.

        Args:
            messages: List of message dicts with 'role' and 'content' keys
            temperature: Sampling temperature (0.0 - 1.0)
            max_tokens: Maximum tokens to generate
            timeout: Per-call override of LLM_TIMEOUT

        Returns:
            The assistant's response content ("" if the provider returned none)
        """
        tokens_limit = max_tokens or self.max_tokens

        async with self._client(timeout) as client:
            if self.provider == "ollama":
                resp = await client.post(
                    f"{self.api_base}/api/chat",
                    json={
                        "model": self.model,
                        "messages": messages,
                        "stream": False,
                        "options": {
                            "temperature": temperature,
                            "num_predict": tokens_limit,
                        },
                    },
                )
                resp.raise_for_status()
                data = resp.json()
                return data["message"]["content"] or ""

            resp = await client.post(
                f"{self.api_base}/v1/chat/completions",
                json={
                    "model": self.model,
                    "messages": messages,
                    "temperature": temperature,
                    "max_tokens": tokens_limit,
                },
            )
            resp.raise_for_status()
            data = resp.json()
            return data["choices"][0]["message"]["content"] or ""

    async def ping(self) -> bool:
        """
        Connectivity probe: a tiny completion that must come back non-empty.

        Raises the provider error when the endpoint is unreachable.
        """
        answer = await self.chat(
            [{"role": "user", "content": "Hello"}],
            max_tokens=10,
            timeout=10.0,
        )
        return bool(answer)

    async def health_check(self) -> Dict:
        """
        Check if the LLM server is reachable and responsive.

        Returns:
            Dict with 'status', 'provider', 'model', and optional 'error' keys
        """
        try:
            async with self._client(timeout=10.0) as client:
                if self.provider == "ollama":
                    resp = await client.get(f"{self.api_base}/api/tags")
                else:
                    resp = await client.get(f"{self.api_base}/v1/models")

                if resp.status_code == 200:
                    return {
                        "status": "healthy",
                        "provider": self.provider,
                        "model": self.model,
                        "api_base": self.api_base,
                    }
                else:
                    return {
                        "status": "unhealthy",
                        "provider": self.provider,
                        "model": self.model,
                        "error": f"HTTP {resp.status_code}",
                    }
        except Exception as e:
            return {
                "status": "unreachable",
                "provider": self.provider,
                "model": self.model,
                "api_base": self.api_base,
                "error": str(e),
            }


# Default client instance
_default_client: Optional[LLMClient] = None


def get_llm_client() -> LLMClient:
    """Get the default LLM client instance (singleton)."""
    global _default_client
    if _default_client is None:
        _default_client = LLMClient()
    return _default_client
