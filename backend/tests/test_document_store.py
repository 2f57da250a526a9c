"""
Tests for the document store.
"""

import uuid

import pytest
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from meetingai.core.exceptions import NotFoundError
from meetingai.models.agent import Agent
from meetingai.models.agent_document import AgentDocument
from meetingai.models.document_chunk import DocumentChunk
from meetingai.services.document_store import (
    DocumentStore,
    EmbeddedChunk,
    decode_number,
    encode_number,
)


def _embedded(page: int, chunk: int, content: str = None) -> EmbeddedChunk:
    return EmbeddedChunk(
        content=content or f"page {page} chunk {chunk}",
        page_number=page,
        chunk_number=chunk,
        embedding=[float(page), float(chunk), 1.0, 0.0, 0.0, 0.0, 0.0, 0.0],
    )


class TestNumberEncoding:
    """Tests for page/chunk number text encoding."""

    def test_round_trip(self):
        assert decode_number(encode_number(12)) == 12
        assert encode_number(0) == "0"

    def test_missing_reads_as_zero(self):
        assert decode_number(None) == 0
        assert decode_number("") == 0

    def test_negative_rejected(self):
        with pytest.raises(ValueError):
            encode_number(-1)


class TestDocumentStore:
    """Tests for DocumentStore."""

    def test_create_document_and_append_chunks(self, db: Session, test_agent: Agent):
        store = DocumentStore(db)
        document_id = store.create_document(test_agent.id, "handbook.pdf")
        store.append_chunks(document_id, [_embedded(1, 1), _embedded(1, 2)])

        rows = db.query(DocumentChunk).filter(DocumentChunk.document_id == document_id).all()
        assert len(rows) == 2
        assert {r.page_number for r in rows} == {"1"}
        assert {r.chunk_number for r in rows} == {"1", "2"}

    def test_create_document_unknown_agent(self, db: Session):
        with pytest.raises(NotFoundError):
            DocumentStore(db).create_document(uuid.uuid4(), "orphan.pdf")
        assert db.query(AgentDocument).count() == 0

    def test_append_chunks_unknown_document(self, db: Session):
        with pytest.raises(NotFoundError):
            DocumentStore(db).append_chunks(uuid.uuid4(), [_embedded(1, 1)])

    def test_append_chunks_rejects_whole_batch_on_bad_number(self, db: Session, test_agent: Agent):
        store = DocumentStore(db)
        document_id = store.create_document(test_agent.id, "partial.pdf")

        with pytest.raises(ValueError):
            store.append_chunks(document_id, [_embedded(1, 1), _embedded(-1, 2)])

        assert store.list_chunks(document_id) == []
        assert store.get_document(document_id) is not None

    def test_append_chunks_rejects_whole_batch_on_insert_failure(
        self, db: Session, test_agent: Agent
    ):
        store = DocumentStore(db)
        document_id = store.create_document(test_agent.id, "partial.pdf")
        broken = _embedded(1, 2)
        broken.content = None

        with pytest.raises(IntegrityError):
            store.append_chunks(document_id, [_embedded(1, 1), broken])

        assert store.list_chunks(document_id) == []
        assert store.get_document(document_id) is not None

    def test_list_chunks_orders_numerically(self, db: Session, test_agent: Agent):
        store = DocumentStore(db)
        document_id = store.ingest_document(
            test_agent.id,
            "long.pdf",
            [_embedded(1, n) for n in (10, 2, 1, 11, 3)],
        )

        chunks = store.list_chunks(document_id)
        assert [c.chunk_number for c in chunks] == [1, 2, 3, 10, 11]
        assert all(isinstance(c.page_number, int) for c in chunks)

        limited = store.list_chunks(document_id, limit=2)
        assert [c.chunk_number for c in limited] == [1, 2]

    def test_list_agent_chunks_spans_documents(self, db: Session, test_agent: Agent):
        store = DocumentStore(db)
        first = store.ingest_document(test_agent.id, "a.pdf", [_embedded(1, 1), _embedded(1, 2)])
        second = store.ingest_document(test_agent.id, "b.pdf", [_embedded(1, 1)])

        chunks = store.list_agent_chunks(test_agent.id)

        assert len(chunks) == 3
        assert {c.document_id for c in chunks} == {first, second}
        assert all(len(c.embedding) == 8 for c in chunks)
        assert list(chunks[0].embedding[:3]) == [1.0, 1.0, 1.0]

    def test_list_documents(self, db: Session, test_agent: Agent, other_user_agent: Agent):
        store = DocumentStore(db)
        store.ingest_document(test_agent.id, "mine.pdf", [_embedded(1, 1)])
        store.ingest_document(other_user_agent.id, "theirs.pdf", [_embedded(1, 1)])

        documents = store.list_documents(test_agent.id)
        assert [d.name for d in documents] == ["mine.pdf"]

    def test_delete_document_cascades_to_chunks(self, db: Session, test_agent: Agent):
        store = DocumentStore(db)
        document_id = store.ingest_document(test_agent.id, "gone.pdf", [_embedded(1, 1)])

        store.delete_document(document_id)

        assert store.get_document(document_id) is None
        assert db.query(DocumentChunk).count() == 0

    def test_deleting_agent_removes_documents_and_chunks(self, db: Session, test_agent: Agent):
        store = DocumentStore(db)
        store.ingest_document(test_agent.id, "doc.pdf", [_embedded(1, 1), _embedded(2, 1)])

        db.delete(test_agent)
        db.commit()

        assert db.query(AgentDocument).count() == 0
        assert db.query(DocumentChunk).count() == 0

    def test_ingest_is_all_or_nothing(self, db: Session, test_agent: Agent):
        store = DocumentStore(db)
        bad = EmbeddedChunk(content=None, page_number=1, chunk_number=2, embedding=[0.0] * 8)

        with pytest.raises(IntegrityError):
            store.ingest_document(test_agent.id, "broken.pdf", [_embedded(1, 1), bad])

        assert db.query(AgentDocument).count() == 0
        assert db.query(DocumentChunk).count() == 0
