from typing import List, Optional
from uuid import UUID
from pydantic import BaseModel, Field


class AgentDocumentOut(BaseModel):
    id: UUID
    name: str

    class Config:
        from_attributes = True


class DocumentUploadResponse(BaseModel):
    success: bool = True
    message: str
    document_id: UUID
    chunk_count: int


class KnowledgeQuery(BaseModel):
    """Question against an agent's knowledge base"""
    question: str = Field(..., min_length=1, max_length=4000)
    limit: int = Field(5, ge=1, le=50)


class KnowledgeChunkOut(BaseModel):
    content: str
    page_number: int
    chunk_number: int
    similarity: Optional[float] = None
    document_id: Optional[UUID] = None

    class Config:
        from_attributes = True


class KnowledgeQueryResponse(BaseModel):
    results: List[KnowledgeChunkOut]
    formatted: str


class AgentContextResponse(BaseModel):
    agent_id: UUID
    instructions: str
    has_knowledge: bool
