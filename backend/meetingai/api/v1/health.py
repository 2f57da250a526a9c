"""
Liveness and dependency health endpoints.
"""
import asyncio
from typing import Dict

from fastapi import APIRouter, Depends

from meetingai import __version__
from meetingai.core.config import settings
from meetingai.core.deps import get_embedding, get_llm
from meetingai.services.embedding import EmbeddingClient
from meetingai.services.llm_client import LLMClient

router = APIRouter(prefix="/health", tags=["health"])


def _overall(*checks: Dict) -> str:
    return "healthy" if all(c.get("status") == "healthy" for c in checks) else "degraded"


@router.get("")
async def health_check():
    return {"status": "ok", "service": settings.PROJECT_NAME, "version": __version__}


@router.get("/llm")
async def llm_health_check(client: LLMClient = Depends(get_llm)):
    """Completion provider reachability, model and last error."""
    return await client.health_check()


@router.get("/embedding")
async def embedding_health_check(client: EmbeddingClient = Depends(get_embedding)):
    """Embedding provider reachability and vector dimension."""
    return await client.health_check()


@router.get("/full")
async def full_health_check(
    llm_client: LLMClient = Depends(get_llm),
    embedding_client: EmbeddingClient = Depends(get_embedding),
):
    """
    Probe both model providers concurrently.

    Always 200; ``status`` is "degraded" when either provider is unhealthy.
    """
    llm_status, embedding_status = await asyncio.gather(
        llm_client.health_check(),
        embedding_client.health_check(),
    )
    return {
        "status": _overall(llm_status, embedding_status),
        "services": {
            "api": {"status": "healthy"},
            "llm": llm_status,
            "embedding": embedding_status,
        },
        "config": {
            "llm_provider": settings.LLM_PROVIDER,
            "llm_model": settings.LLM_MODEL,
            "embedding_model": settings.EMBEDDING_MODEL,
            "embedding_dim": settings.EMBEDDING_DIM,
        },
    }
