"""
RAG (Retrieval-Augmented Generation) service for agent knowledge bases.

This module handles:
- PDF ingestion (extraction -> chunking -> embedding -> storage)
- Vector similarity search over an agent's documents
- Knowledge block construction for the live agent's system instructions
"""
import asyncio
import logging
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence, Tuple
from uuid import UUID

from sqlalchemy.orm import Session

from meetingai.core.config import settings
from meetingai.core.exceptions import (
    AppException,
    BadRequestError,
    EmbeddingError,
    ExtractionError,
    NotFoundError,
)
from meetingai.models.agent import Agent
from meetingai.services.document_store import DocumentStore, EmbeddedChunk
from meetingai.services.embedding import EmbeddingClient
from meetingai.services.similarity import ScoredChunk, rank
from meetingai.services.text_chunker import ChunkResult, chunk_pages
from meetingai.services.text_extractor import extract_text_from_pdf_bytes

logger = logging.getLogger(__name__)

Extractor = Callable[[bytes], List[Tuple[int, str]]]

KNOWLEDGE_BASE_START = "=== KNOWLEDGE BASE ==="
KNOWLEDGE_BASE_END = "=== END KNOWLEDGE BASE ==="

BEHAVIORAL_GUIDELINES = """Behavioral Guidelines:
1. Always prioritize information from the knowledge base when answering questions
2. Cite specific document names, pages, and sections when referencing information
3. If asked about something not in the knowledge base, clearly state that
4. Do not make up or hallucinate information - stick to what's in the documents
5. If you're unsure, acknowledge the uncertainty rather than guessing
6. Provide concise, accurate answers based on the source material"""

NO_RESULTS_MESSAGE = "No relevant information found in the knowledge base."


@dataclass
class IngestResult:
    document_id: UUID
    chunk_count: int


class RAGService:
    """Ingestion, retrieval and instruction augmentation for one DB session."""

    def __init__(
        self,
        db: Session,
        embedding_client: EmbeddingClient,
        extractor: Extractor = extract_text_from_pdf_bytes,
        store: Optional[DocumentStore] = None,
    ):
        self.db = db
        self.embedding_client = embedding_client
        self.extractor = extractor
        self.store = store or DocumentStore(db)

    # ------------------------------------------------------------------
    # Ingestion
    # ------------------------------------------------------------------

    async def _extract(self, file_bytes: bytes) -> List[Tuple[int, str]]:
        loop = asyncio.get_event_loop()
        try:
            return await asyncio.wait_for(
                loop.run_in_executor(None, self.extractor, file_bytes),
                timeout=settings.EXTRACTION_TIMEOUT,
            )
        except asyncio.TimeoutError:
            raise ExtractionError("Text extraction timed out")
        except Exception as e:
            logger.error(f"Text extraction failed: {e}")
            raise ExtractionError(f"Failed to extract text from PDF: {str(e)}") from e

    async def _embed_chunk(self, chunk: ChunkResult) -> EmbeddedChunk:
        try:
            vector = await self.embedding_client.embed(chunk.content)
        except EmbeddingError:
            raise
        except Exception as e:
            logger.error(
                f"Embedding failed for page {chunk.page_number}, "
                f"chunk {chunk.chunk_number}: {e}"
            )
            raise EmbeddingError(f"Embedding generation failed: {str(e)}") from e

        return EmbeddedChunk(
            content=chunk.content,
            page_number=chunk.page_number,
            chunk_number=chunk.chunk_number,
            embedding=vector,
        )

    async def _embed_chunks(self, chunks: Sequence[ChunkResult]) -> List[EmbeddedChunk]:
        """Embed every chunk; the first failure aborts the whole batch."""
        concurrency = max(1, settings.EMBEDDING_CONCURRENCY)

        if concurrency == 1:
            embedded = []
            for i, chunk in enumerate(chunks, start=1):
                logger.debug(f"Generating embedding for chunk {i}/{len(chunks)}")
                embedded.append(await self._embed_chunk(chunk))
            return embedded

        semaphore = asyncio.Semaphore(concurrency)

        async def bounded(chunk: ChunkResult) -> EmbeddedChunk:
            async with semaphore:
                return await self._embed_chunk(chunk)

        tasks = [asyncio.ensure_future(bounded(chunk)) for chunk in chunks]
        try:
            return list(await asyncio.gather(*tasks))
        except Exception:
            for task in tasks:
                task.cancel()
            raise

    async def ingest(
        self,
        file_bytes: bytes,
        agent_id: UUID,
        file_name: str,
        url: Optional[str] = None,
    ) -> IngestResult:
        """
        Process a PDF file and store its chunks with embeddings.

        The document row is written only after every embedding succeeded, in
        the same transaction as its chunks, so a failed ingest leaves nothing
        queryable behind.

        Args:
            file_bytes: Raw PDF content
            agent_id: Agent that owns the knowledge
            file_name: Display name for the document
            url: Optional location of the original file

        Returns:
            IngestResult with the new document id and stored chunk count

        Raises:
            NotFoundError: If the agent does not exist
            ExtractionError: If text extraction fails
            BadRequestError: If the PDF contains no extractable text
            EmbeddingError: If any embedding call fails
        """
        logger.info(f"Ingesting '{file_name}' for agent {agent_id} ({len(file_bytes)} bytes)")

        if self.db.get(Agent, agent_id) is None:
            raise NotFoundError("Agent not found")

        pages = await self._extract(file_bytes)
        logger.info(f"Extracted {len(pages)} pages from '{file_name}'")

        chunks = [
            chunk
            for chunk in chunk_pages(
                [(page_number, text.strip()) for page_number, text in pages],
                chunk_size=settings.RAG_CHUNK_SIZE,
                overlap=settings.RAG_CHUNK_OVERLAP,
            )
            if chunk.content.strip()
        ]
        if not chunks:
            raise BadRequestError("No extractable text found in the PDF")
        logger.info(f"Split '{file_name}' into {len(chunks)} chunks")

        embedded = await self._embed_chunks(chunks)
        logger.info(f"Generated embeddings for {len(embedded)} chunks")

        document_id = self.store.ingest_document(agent_id, file_name, embedded, url=url)

        return IngestResult(document_id=document_id, chunk_count=len(embedded))

    # ------------------------------------------------------------------
    # Retrieval
    # ------------------------------------------------------------------

    async def query(
        self,
        agent_id: UUID,
        question: str,
        limit: Optional[int] = None,
    ) -> List[ScoredChunk]:
        """
        Find the chunks most similar to a question across all agent documents.

        Args:
            agent_id: Agent whose knowledge base is searched
            question: Natural language question
            limit: Maximum number of chunks (default RAG_QUERY_LIMIT)

        Returns:
            ScoredChunk list, most similar first
        """
        if not question or not question.strip():
            raise BadRequestError("Question must not be empty")
        if limit is None:
            limit = settings.RAG_QUERY_LIMIT

        try:
            query_vector = await self.embedding_client.embed(question)
        except AppException:
            raise
        except Exception as e:
            logger.error(f"Query embedding failed: {e}")
            raise EmbeddingError(f"Embedding generation failed: {str(e)}") from e

        candidates = self.store.list_agent_chunks(agent_id)
        logger.debug(f"Scanning {len(candidates)} chunks for agent {agent_id}")
        if not candidates:
            return []

        results = rank(query_vector, candidates, limit=limit)
        logger.debug(f"Top similarities: {[r.similarity for r in results]}")
        return results

    @staticmethod
    def format_query_results(chunks: Sequence[ScoredChunk]) -> str:
        """Render query results as plain text for prompts."""
        if not chunks:
            return NO_RESULTS_MESSAGE
        return "\n\n".join(
            f"Document (Page {chunk.page_number}, Chunk {chunk.chunk_number}):\n{chunk.content}"
            for chunk in chunks
        )

    # ------------------------------------------------------------------
    # Instruction augmentation
    # ------------------------------------------------------------------

    def build_full_context(self, agent_id: UUID) -> str:
        """
        Build the labelled knowledge block for an agent.

        Takes up to RAG_CONTEXT_CHUNKS_PER_DOCUMENT chunks per document,
        ordered by chunk number. Returns "" when the agent has no stored
        chunks.
        """
        per_document = settings.RAG_CONTEXT_CHUNKS_PER_DOCUMENT
        sections: List[str] = []

        for document in self.store.list_documents(agent_id):
            chunks = self.store.list_chunks(document.id, limit=per_document)
            if not chunks:
                continue
            section = f"Document: {document.name}\n"
            for chunk in chunks:
                section += (
                    f"[Page {chunk.page_number}, Section {chunk.chunk_number}]\n"
                    f"{chunk.content}\n\n"
                )
            sections.append(section)

        if not sections:
            return ""

        context = (
            f"\n\n{KNOWLEDGE_BASE_START}\n"
            "You have access to the following documents. "
            "Use this information to answer questions accurately:\n\n"
        )
        context += "".join(sections)
        context += f"{KNOWLEDGE_BASE_END}\n\n"
        context += (
            "IMPORTANT: When answering questions, refer to the knowledge base above. "
            "If asked about specific information, cite the relevant document, page, "
            "and section numbers. If information is not in the knowledge base, clearly "
            "state that you don't have that information in your documents.\n"
        )
        logger.info(f"Knowledge context for agent {agent_id}: {len(context)} chars")
        return context

    def enhance_instructions(self, agent_id: UUID, base_instructions: str) -> str:
        """
        Append the agent's knowledge block and behavioural guidelines.

        Never raises: with no knowledge, or on any failure, the base
        instructions are returned unchanged.
        """
        try:
            context = self.build_full_context(agent_id)
            if not context:
                logger.info(f"No knowledge context for agent {agent_id}, using base instructions")
                return base_instructions

            enhanced = f"{base_instructions}\n\n{context}\n\n{BEHAVIORAL_GUIDELINES}"
            logger.info(f"Instructions enhanced for agent {agent_id}: {len(enhanced)} chars")
            return enhanced
        except Exception as e:
            logger.error(f"Instruction enhancement failed for agent {agent_id}: {e}", exc_info=True)
            self.db.rollback()
            return base_instructions
