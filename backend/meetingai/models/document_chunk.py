import uuid

from pgvector.sqlalchemy import Vector
from sqlalchemy import Column, DateTime, ForeignKey, String, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from meetingai.core.config import settings
from meetingai.db.base import Base


class DocumentChunk(Base):
    __tablename__ = "document_chunks"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    document_id = Column(
        UUID(as_uuid=True),
        ForeignKey("agent_documents.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    # Stored as text; parsed back to int on read
    page_number = Column(String, nullable=True)
    chunk_number = Column(String, nullable=True)
    content = Column(Text, nullable=False)
    # text-embedding-3-small outputs 1536 dimensions
    embedding = Column(Vector(dim=settings.EMBEDDING_DIM), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    document = relationship("AgentDocument", back_populates="chunks")
