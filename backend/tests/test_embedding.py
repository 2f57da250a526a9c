"""
Tests for the embedding and LLM HTTP clients.
"""

import asyncio
import json

import httpx
import pytest

from meetingai.core.exceptions import EmbeddingError
from meetingai.services.embedding import EmbeddingClient
from meetingai.services.llm_client import LLMClient


def _transport(handler):
    requests = []

    def wrapped(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return handler(request)

    return httpx.MockTransport(wrapped), requests


class TestEmbeddingClient:
    """Tests for EmbeddingClient."""

    def test_openai_embedding(self):
        transport, requests = _transport(
            lambda r: httpx.Response(200, json={"data": [{"embedding": [0.1] * 4}]})
        )
        client = EmbeddingClient(
            api_base="https://api.example.com/",
            model="text-embedding-3-small",
            provider="openai",
            api_key="sk-test",
            dimension=4,
            transport=transport,
        )

        vector = asyncio.run(client.embed("hello world"))

        assert vector == [0.1] * 4
        assert str(requests[0].url) == "https://api.example.com/v1/embeddings"
        assert requests[0].headers["Authorization"] == "Bearer sk-test"
        assert json.loads(requests[0].content) == {
            "model": "text-embedding-3-small",
            "input": "hello world",
        }

    def test_ollama_embedding(self):
        transport, requests = _transport(
            lambda r: httpx.Response(200, json={"embedding": [1.0, 2.0]})
        )
        client = EmbeddingClient(
            api_base="http://localhost:11434",
            model="nomic-embed-text",
            provider="ollama",
            api_key="",
            dimension=2,
            transport=transport,
        )

        assert asyncio.run(client.embed("text")) == [1.0, 2.0]
        assert requests[0].url.path == "/api/embeddings"
        assert "Authorization" not in requests[0].headers

    def test_dimension_mismatch(self):
        transport, _ = _transport(
            lambda r: httpx.Response(200, json={"data": [{"embedding": [0.1, 0.2]}]})
        )
        client = EmbeddingClient(provider="openai", dimension=3, transport=transport)

        with pytest.raises(EmbeddingError):
            asyncio.run(client.embed("text"))

    def test_provider_error_propagates(self):
        transport, _ = _transport(lambda r: httpx.Response(429, json={"error": "rate limited"}))
        client = EmbeddingClient(provider="openai", dimension=2, transport=transport)

        with pytest.raises(httpx.HTTPStatusError):
            asyncio.run(client.embed("text"))

    def test_embed_batch_is_sequential(self):
        transport, requests = _transport(
            lambda r: httpx.Response(200, json={"data": [{"embedding": [1.0, 0.0]}]})
        )
        client = EmbeddingClient(provider="openai", dimension=2, transport=transport)

        vectors = asyncio.run(client.embed_batch(["a", "b", "c"]))

        assert len(vectors) == 3
        assert [json.loads(r.content)["input"] for r in requests] == ["a", "b", "c"]

    def test_health_check_unhealthy(self):
        transport, _ = _transport(lambda r: httpx.Response(500))
        client = EmbeddingClient(provider="openai", dimension=2, transport=transport)

        result = asyncio.run(client.health_check())
        assert result["status"] == "unhealthy"
        assert result["error"] == "HTTP 500"


class TestLLMClient:
    """Tests for LLMClient."""

    def test_openai_chat(self):
        transport, requests = _transport(
            lambda r: httpx.Response(
                200, json={"choices": [{"message": {"content": "Hi there"}}]}
            )
        )
        client = LLMClient(
            api_base="https://api.example.com",
            model="gpt-4o",
            provider="openai",
            api_key="sk-test",
            transport=transport,
        )

        answer = asyncio.run(client.chat([{"role": "user", "content": "Hello"}], max_tokens=10))

        assert answer == "Hi there"
        body = json.loads(requests[0].content)
        assert requests[0].url.path == "/v1/chat/completions"
        assert body["model"] == "gpt-4o"
        assert body["max_tokens"] == 10

    def test_null_content_becomes_empty_string(self):
        transport, _ = _transport(
            lambda r: httpx.Response(200, json={"choices": [{"message": {"content": None}}]})
        )
        client = LLMClient(provider="openai", transport=transport)

        assert asyncio.run(client.chat([{"role": "user", "content": "x"}])) == ""

    def test_ping(self):
        transport, requests = _transport(
            lambda r: httpx.Response(200, json={"message": {"content": "Hello!"}})
        )
        client = LLMClient(provider="ollama", api_base="http://localhost:11434", transport=transport)

        assert asyncio.run(client.ping()) is True
        body = json.loads(requests[0].content)
        assert body["messages"] == [{"role": "user", "content": "Hello"}]
        assert body["options"]["num_predict"] == 10

    def test_ping_raises_when_unreachable(self):
        def refuse(request):
            raise httpx.ConnectError("connection refused", request=request)

        client = LLMClient(provider="openai", transport=httpx.MockTransport(refuse))

        with pytest.raises(httpx.ConnectError):
            asyncio.run(client.ping())
