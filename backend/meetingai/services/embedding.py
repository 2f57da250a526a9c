"""
Embedding Client - Abstraction layer for embedding providers (OpenAI, Ollama).

Supports the OpenAI-compatible API (/v1/embeddings) and the Ollama native API
(/api/embeddings). Every call embeds exactly one text; batches are realised
as sequential calls so that a failure can be attributed to a single chunk.
Embedding dimension is configured via EMBEDDING_DIM (1536 for
text-embedding-3-small) and checked on every response.
"""
import logging
from typing import Dict, List, Optional

import httpx

from meetingai.core.config import settings
from meetingai.core.exceptions import EmbeddingError

logger = logging.getLogger(__name__)


class EmbeddingClient:
    """
    Unified embedding client supporting multiple providers.

    Supported providers:
    - openai: OpenAI or any OpenAI-compatible server (/v1/embeddings)
    - ollama: Local Ollama server using native API (/api/embeddings)
    """

    def __init__(
        self,
        api_base: Optional[str] = None,
        model: Optional[str] = None,
        provider: Optional[str] = None,
        api_key: Optional[str] = None,
        dimension: Optional[int] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_base = (api_base or settings.EMBEDDING_API_BASE).rstrip("/")
        self.model = model or settings.EMBEDDING_MODEL
        self.provider = provider or settings.LLM_PROVIDER  # Use same provider as LLM
        self.api_key = api_key if api_key is not None else settings.LLM_API_KEY
        self.dimension = dimension or settings.EMBEDDING_DIM
        self.timeout = timeout or settings.EMBEDDING_TIMEOUT
        self.transport = transport

    def _headers(self) -> Dict[str, str]:
        if self.api_key:
            return {"Authorization": f"Bearer {self.api_key}"}
        return {}

    def _client(self, timeout: Optional[float] = None) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=timeout or self.timeout,
            headers=self._headers(),
            transport=self.transport,
        )

    async def _request_embedding(self, client: httpx.AsyncClient, text: str) -> List[float]:
        if self.provider == "ollama":
            resp = await client.post(
                f"{self.api_base}/api/embeddings",
                json={"model": self.model, "prompt": text},
            )
            resp.raise_for_status()
            return resp.json()["embedding"]

        resp = await client.post(
            f"{self.api_base}/v1/embeddings",
            json={"model": self.model, "input": text},
        )
        resp.raise_for_status()
        return resp.json()["data"][0]["embedding"]

    async def embed(self, text: str) -> List[float]:
        """
        Generate the embedding for a single text.

        Args:
            text: Text to embed (callers skip empty/whitespace-only input)

        Returns:
            Embedding vector of EMBEDDING_DIM floats

        Raises:
            httpx.HTTPError: Provider failures propagate unchanged
            EmbeddingError: If the provider returns the wrong dimensionality
        """
        async with self._client() as client:
            vector = await self._request_embedding(client, text)

        if len(vector) != self.dimension:
            raise EmbeddingError(
                f"Embedding dimension mismatch: expected {self.dimension}, got {len(vector)}"
            )
        return vector

    async def embed_batch(self, texts: List[str]) -> List[List[float]]:
        """Embed several texts with one sequential call per text."""
        vectors = []
        for text in texts:
            vectors.append(await self.embed(text))
        return vectors

    async def health_check(self) -> Dict:
        """
        Check if the embedding server is reachable and responsive.

        Returns:
            Dict with 'status', 'model', and optional 'dimension'/'error' keys
        """
        try:
            async with self._client(timeout=10.0) as client:
                vector = await self._request_embedding(client, "test")
            return {
                "status": "healthy",
                "model": self.model,
                "api_base": self.api_base,
                "dimension": len(vector),
            }
        except httpx.HTTPStatusError as e:
            return {
                "status": "unhealthy",
                "model": self.model,
                "error": f"HTTP {e.response.status_code}",
            }
        except Exception as e:
            return {
                "status": "unreachable",
                "model": self.model,
                "api_base": self.api_base,
                "error": str(e),
            }


# Default client instance
_default_client: Optional[EmbeddingClient] = None


def get_embedding_client() -> EmbeddingClient:
    """Get the default embedding client instance (singleton)."""
    global _default_client
    if _default_client is None:
        _default_client = EmbeddingClient()
    return _default_client
