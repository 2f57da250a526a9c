"""
Similarity Engine - brute-force cosine ranking over a candidate set.

``rank`` is a pure function of the query vector and the candidates, so an
indexed nearest-neighbour search (e.g. pgvector's ``<=>`` operator) can
replace the scan without changing callers.
"""
from dataclasses import dataclass
from typing import List, Optional, Sequence
from uuid import UUID

import numpy as np

from meetingai.services.document_store import StoredChunk


@dataclass
class ScoredChunk:
    content: str
    page_number: int
    chunk_number: int
    similarity: Optional[float]
    document_id: Optional[UUID] = None


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> Optional[float]:
    """
    dot(a, b) / (||a|| * ||b||).

    Returns None when either vector has zero norm or the dimensions differ.
    The result is clipped to [-1, 1] to absorb floating point drift.
    """
    va = np.asarray(a, dtype=np.float64)
    vb = np.asarray(b, dtype=np.float64)
    if va.shape != vb.shape or va.ndim != 1:
        return None

    norm = np.linalg.norm(va) * np.linalg.norm(vb)
    if norm == 0 or not np.isfinite(norm):
        return None

    return float(np.clip(np.dot(va, vb) / norm, -1.0, 1.0))


def rank(
    query_vector: Sequence[float],
    candidates: Sequence[StoredChunk],
    limit: Optional[int] = None,
) -> List[ScoredChunk]:
    """
    Order candidates by descending cosine similarity to ``query_vector``.

    Candidates without an embedding, or whose similarity is undefined, sort
    after every scored candidate. Ties keep their input order.
    """
    scored = [
        ScoredChunk(
            content=chunk.content,
            page_number=chunk.page_number,
            chunk_number=chunk.chunk_number,
            similarity=(
                cosine_similarity(query_vector, chunk.embedding)
                if chunk.embedding is not None
                else None
            ),
            document_id=chunk.document_id,
        )
        for chunk in candidates
    ]

    # sorted() is stable
    ordered = sorted(
        scored,
        key=lambda c: (c.similarity is None, -(c.similarity or 0.0)),
    )
    if limit is not None:
        ordered = ordered[:limit]
    return ordered
