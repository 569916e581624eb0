"""
Retrieval Search - Rank knowledge chunks against a query vector.

Implements:
- Cosine similarity scoring (0.0 for zero norm or dimension mismatch)
- Phase filtering (single phase or phase set)
- Top-K retrieval with deterministic tie-breaks
"""

import logging
import time
from typing import Callable, Iterable, List, Optional, Sequence

from ..contracts.knowledge_contracts import KnowledgeChunk, KnowledgeResult
from ..core.utils import cosine_similarity

logger = logging.getLogger(__name__)


def rank_chunks(
    query_vector: Sequence[float],
    chunks: Iterable[KnowledgeChunk],
    limit: int,
    predicate: Optional[Callable[[KnowledgeChunk], bool]] = None,
) -> List[KnowledgeResult]:
    """
    Score candidate chunks and return the top ``limit`` results.

    Candidates are expected in insertion order (as returned by the store).
    The sort is stable, so equal scores keep that order: the earliest
    inserted chunk wins a tie.

    Args:
        query_vector: Embedding of the query
        chunks: Candidate chunks in ascending id order
        limit: Maximum number of results (<= 0 returns nothing)
        predicate: Optional filter applied before scoring

    Returns:
        List of KnowledgeResult sorted by score descending
    """
    if limit <= 0:
        return []

    start_time = time.time()

    scored = []
    total = 0
    for chunk in chunks:
        total += 1
        if predicate is not None and not predicate(chunk):
            continue
        score = cosine_similarity(query_vector, chunk.vector)
        scored.append(KnowledgeResult.from_chunk(chunk, score))

    scored.sort(key=lambda result: -result.score)
    results = scored[:limit]

    execution_ms = int((time.time() - start_time) * 1000)
    logger.debug(
        f"Ranked {len(scored)} of {total} candidates, "
        f"returning {len(results)} in {execution_ms}ms"
    )
    return results


def phase_filter(phase: str) -> Callable[[KnowledgeChunk], bool]:
    """Predicate matching chunks tagged with exactly ``phase``."""
    return lambda chunk: chunk.metadata.get("phase") == phase


def phases_filter(phases: Iterable[str]) -> Callable[[KnowledgeChunk], bool]:
    """Predicate matching chunks whose phase is in ``phases``."""
    allowed = set(phases)
    return lambda chunk: chunk.metadata.get("phase") in allowed
