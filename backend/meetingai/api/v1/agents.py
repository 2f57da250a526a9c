"""
Agent knowledge base endpoints: document upload, listing, deletion,
similarity query and instruction preview.
"""
import logging
from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile, status

from meetingai.core.config import settings
from meetingai.core.deps import get_owned_agent, get_rag_service
from meetingai.core.exceptions import NotFoundError
from meetingai.models.agent import Agent
from meetingai.schemas.agent import (
    AgentContextResponse,
    AgentDocumentOut,
    DocumentUploadResponse,
    KnowledgeChunkOut,
    KnowledgeQuery,
    KnowledgeQueryResponse,
)
from meetingai.services.file_validator import FileValidationError, validate_uploaded_file
from meetingai.services.rag import RAGService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/agents", tags=["agents"])


@router.post(
    "/{agent_id}/documents",
    response_model=DocumentUploadResponse,
    status_code=status.HTTP_201_CREATED,
)
async def upload_document(
    file: UploadFile = File(...),
    agent: Agent = Depends(get_owned_agent),
    rag: RAGService = Depends(get_rag_service),
):
    """
    Add a PDF to the agent's knowledge base.

    The file is extracted, chunked and embedded before anything is stored;
    a failure at any step leaves no document behind.
    """
    content = await file.read()

    try:
        validate_uploaded_file(
            filename=file.filename or "",
            content=content,
            max_size_mb=settings.MAX_UPLOAD_SIZE_MB,
            content_type=file.content_type,
        )
    except FileValidationError as e:
        logger.warning(f"File validation failed for agent {agent.id}: {e.message}")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=e.message,
        )

    result = await rag.ingest(content, agent.id, file.filename)
    logger.info(
        f"Document {result.document_id} added to agent {agent.id} "
        f"({result.chunk_count} chunks)"
    )

    return DocumentUploadResponse(
        message=f"Successfully processed {file.filename}",
        document_id=result.document_id,
        chunk_count=result.chunk_count,
    )


@router.get("/{agent_id}/documents", response_model=List[AgentDocumentOut])
def list_documents(
    agent: Agent = Depends(get_owned_agent),
    rag: RAGService = Depends(get_rag_service),
):
    return rag.store.list_documents(agent.id)


@router.delete("/{agent_id}/documents/{document_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_document(
    document_id: UUID,
    agent: Agent = Depends(get_owned_agent),
    rag: RAGService = Depends(get_rag_service),
):
    document = rag.store.get_document(document_id)
    if document is None or document.agent_id != agent.id:
        raise NotFoundError("Document not found")
    rag.store.delete_document(document_id)
    return None


@router.post("/{agent_id}/query", response_model=KnowledgeQueryResponse)
async def query_knowledge(
    data: KnowledgeQuery,
    agent: Agent = Depends(get_owned_agent),
    rag: RAGService = Depends(get_rag_service),
):
    """Rank the agent's chunks by similarity to a question."""
    results = await rag.query(agent.id, data.question, limit=data.limit)
    return KnowledgeQueryResponse(
        results=[KnowledgeChunkOut.model_validate(r) for r in results],
        formatted=RAGService.format_query_results(results),
    )


@router.get("/{agent_id}/context", response_model=AgentContextResponse)
def get_agent_context(
    agent: Agent = Depends(get_owned_agent),
    rag: RAGService = Depends(get_rag_service),
):
    """Preview the instructions the live agent would receive."""
    base = agent.instructions or settings.DEFAULT_AGENT_INSTRUCTIONS
    instructions = rag.enhance_instructions(agent.id, base)
    return AgentContextResponse(
        agent_id=agent.id,
        instructions=instructions,
        has_knowledge=instructions != base,
    )
