"""
Document Store - persistence of agent documents and their embedded chunks.

Page and chunk numbers are persisted as text columns and parsed back to
integers on read.
"""
import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence
from uuid import UUID

from sqlalchemy import Integer, cast, select
from sqlalchemy.orm import Session

from meetingai.core.exceptions import NotFoundError
from meetingai.models.agent import Agent
from meetingai.models.agent_document import AgentDocument
from meetingai.models.document_chunk import DocumentChunk

logger = logging.getLogger(__name__)


@dataclass
class EmbeddedChunk:
    """A chunk ready to be stored."""
    content: str
    page_number: int
    chunk_number: int
    embedding: Sequence[float]


@dataclass
class StoredChunk:
    """A chunk read back from storage."""
    content: str
    page_number: int
    chunk_number: int
    document_id: Optional[UUID] = None
    embedding: Optional[Sequence[float]] = None


@dataclass
class DocumentSummary:
    id: UUID
    name: str


def encode_number(value: Optional[int]) -> Optional[str]:
    """Encode a page/chunk number for its text column."""
    if value is None:
        return None
    if value < 0:
        raise ValueError(f"Page/chunk numbers must be non-negative: {value}")
    return str(value)


def decode_number(value: Optional[str]) -> int:
    """Decode a page/chunk number; missing values read as 0."""
    if not value:
        return 0
    return int(value)


class DocumentStore:
    """Relational storage for documents and chunks belonging to agents."""

    def __init__(self, db: Session):
        self.db = db

    def _require_agent(self, agent_id: UUID) -> None:
        if self.db.get(Agent, agent_id) is None:
            raise NotFoundError("Agent not found")

    def _add_document(self, agent_id: UUID, name: str, url: Optional[str]) -> AgentDocument:
        self._require_agent(agent_id)
        document = AgentDocument(agent_id=agent_id, name=name, url=url)
        self.db.add(document)
        self.db.flush()
        return document

    def _add_chunks(self, document_id: UUID, chunks: Sequence[EmbeddedChunk]) -> None:
        self.db.add_all([
            DocumentChunk(
                document_id=document_id,
                content=chunk.content,
                page_number=encode_number(chunk.page_number),
                chunk_number=encode_number(chunk.chunk_number),
                embedding=list(chunk.embedding),
            )
            for chunk in chunks
        ])
        self.db.flush()

    def _commit_or_rollback(self) -> None:
        try:
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

    def create_document(self, agent_id: UUID, name: str, url: Optional[str] = None) -> UUID:
        """
        Create a document row for an agent.

        Raises:
            NotFoundError: If the agent does not exist
        """
        try:
            document = self._add_document(agent_id, name, url)
            self._commit_or_rollback()
        except Exception:
            self.db.rollback()
            raise
        logger.info(f"Created document {document.id} for agent {agent_id}")
        return document.id

    def append_chunks(self, document_id: UUID, chunks: Sequence[EmbeddedChunk]) -> None:
        """Bulk insert chunks; either every row is stored or none is."""
        if self.db.get(AgentDocument, document_id) is None:
            raise NotFoundError("Document not found")

        try:
            self._add_chunks(document_id, chunks)
            self._commit_or_rollback()
        except Exception:
            self.db.rollback()
            raise
        logger.info(f"Stored {len(chunks)} chunks for document {document_id}")

    def ingest_document(
        self,
        agent_id: UUID,
        name: str,
        chunks: Sequence[EmbeddedChunk],
        url: Optional[str] = None,
    ) -> UUID:
        """
        Create a document and its chunks in a single transaction.

        No document row survives if inserting any chunk fails.
        """
        try:
            document = self._add_document(agent_id, name, url)
            self._add_chunks(document.id, chunks)
            self._commit_or_rollback()
        except Exception:
            self.db.rollback()
            raise
        logger.info(
            f"Stored document {document.id} with {len(chunks)} chunks for agent {agent_id}"
        )
        return document.id

    def list_documents(self, agent_id: UUID) -> List[DocumentSummary]:
        rows = self.db.execute(
            select(AgentDocument.id, AgentDocument.name)
            .where(AgentDocument.agent_id == agent_id)
            .order_by(AgentDocument.created_at.asc(), AgentDocument.name.asc())
        ).all()
        return [DocumentSummary(id=row.id, name=row.name) for row in rows]

    def list_chunks(self, document_id: UUID, limit: Optional[int] = None) -> List[StoredChunk]:
        """Chunks of one document ordered numerically by chunk number, then page."""
        stmt = (
            select(
                DocumentChunk.content,
                DocumentChunk.page_number,
                DocumentChunk.chunk_number,
            )
            .where(DocumentChunk.document_id == document_id)
            .order_by(
                cast(DocumentChunk.chunk_number, Integer).asc(),
                cast(DocumentChunk.page_number, Integer).asc(),
            )
        )
        if limit is not None:
            stmt = stmt.limit(limit)

        return [
            StoredChunk(
                content=row.content,
                page_number=decode_number(row.page_number),
                chunk_number=decode_number(row.chunk_number),
                document_id=document_id,
            )
            for row in self.db.execute(stmt).all()
        ]

    def list_agent_chunks(self, agent_id: UUID) -> List[StoredChunk]:
        """Every chunk, with its embedding, across all documents of an agent."""
        rows = self.db.execute(
            select(
                DocumentChunk.document_id,
                DocumentChunk.content,
                DocumentChunk.page_number,
                DocumentChunk.chunk_number,
                DocumentChunk.embedding,
            )
            .join(AgentDocument, DocumentChunk.document_id == AgentDocument.id)
            .where(AgentDocument.agent_id == agent_id)
            .order_by(
                AgentDocument.created_at.asc(),
                AgentDocument.id.asc(),
                cast(DocumentChunk.page_number, Integer).asc(),
                cast(DocumentChunk.chunk_number, Integer).asc(),
            )
        ).all()

        return [
            StoredChunk(
                content=row.content,
                page_number=decode_number(row.page_number),
                chunk_number=decode_number(row.chunk_number),
                document_id=row.document_id,
                embedding=row.embedding,
            )
            for row in rows
        ]

    def get_document(self, document_id: UUID) -> Optional[AgentDocument]:
        return self.db.get(AgentDocument, document_id)

    def delete_document(self, document_id: UUID) -> None:
        """Delete a document; its chunks go with it."""
        document = self.db.get(AgentDocument, document_id)
        if document is None:
            raise NotFoundError("Document not found")
        self.db.delete(document)
        self._commit_or_rollback()
        logger.info(f"Deleted document {document_id}")
