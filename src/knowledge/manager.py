"""
Knowledge Manager - phase-scoped store / retrieve / delete / stats.

This is the contract pipeline-stage runners and the request server use.
Each call runs synchronously on the caller's thread:

    payload -> Chunker -> Embedder -> VectorStore          (store)
    query   -> Embedder -> VectorStore scan -> phase filter (retrieve)
"""

import json
import logging
import time
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from .config.config_loader import KnowledgeConfig
from .contracts.knowledge_contracts import KnowledgeChunk, KnowledgeResult, KnowledgeStats
from .core.exceptions import EmbeddingError, KnowledgeError, PersistenceError
from .core.logging import log_context
from .core.types import CancellationToken, ChunkStrategy, check_cancelled
from .embedders.base import Embedder
from .embedders.factory import create_embedder_from_config
from .retrieval.chunker import Chunker
from .retrieval.search import phase_filter, phases_filter, rank_chunks
from .storage.vector_store import VectorStore


logger = logging.getLogger(__name__)

PHASE_DESCRIPTIONS = {
    "phase1": "Database statistical analysis with table schemas, constraints, and sample data",
    "phase2": "AI-powered business logic analysis with LLM insights and recommendations",
    "phase3": "Business logic analysis and natural language description generation",
}


def phase_source(phase: str) -> str:
    """Source tag written on chunks stored for a phase."""
    return f"phase_{phase}"


def phase_header(phase: str) -> str:
    """Header prepended to generic text before splitting."""
    return f"Phase: {phase}\nDescription: {PHASE_DESCRIPTIONS.get(phase, '')}\n"


class KnowledgeManager:
    """
    Phase-scoped facade over Chunker, Embedder and VectorStore.

    The store handle is shared with whoever constructed it; the manager
    closes it only through close().

    Example:
        >>> manager = KnowledgeManager.from_config(KnowledgeConfig.load())
        >>> manager.store_phase_knowledge("phase1", phase1_output)
        4
        >>> manager.retrieve_phase_knowledge("phase1", "customer orders", 3)
    """

    def __init__(
        self,
        store: VectorStore,
        embedder: Embedder,
        chunker: Optional[Chunker] = None,
        enabled: bool = True,
    ):
        """
        Args:
            store: Open vector store
            embedder: Embedder for chunks and queries
            chunker: Chunker (default policy if not provided)
            enabled: When False, store calls write nothing and return 0;
                retrieval, delete and stats still work
        """
        self.store = store
        self.embedder = embedder
        self.chunker = chunker or Chunker()
        self.enabled = enabled

    @classmethod
    def from_config(cls, config: KnowledgeConfig) -> "KnowledgeManager":
        """
        Build a manager with store, embedder and chunker from configuration.

        Raises:
            ConfigError: On invalid embedder or chunk settings
            PersistenceError: If the database cannot be opened
        """
        vs = config.vectorstore
        chunker = Chunker(vs.chunking_policy())
        store = VectorStore(
            Path(vs.database_path),
            busy_timeout_seconds=vs.busy_timeout_seconds,
        )
        try:
            embedder = create_embedder_from_config(vs, config.llm)
        except KnowledgeError:
            store.close()
            raise
        return cls(store=store, embedder=embedder, chunker=chunker, enabled=vs.enabled)

    def chunk_phase_knowledge(self, phase: str, payload: Any) -> List[KnowledgeChunk]:
        """
        Chunk a payload the way store_phase_knowledge does, without embedding.

        Table-schema payloads (an object with a ``tables`` object) use the
        tables strategy; anything else is serialized with a phase header
        and split generically.

        Raises:
            InputError: If the payload is not JSON-shaped
        """
        return self.chunker.chunk(
            payload,
            phase_source(phase),
            strategy=ChunkStrategy.AUTO,
            header=phase_header(phase),
        )

    def store_phase_knowledge(
        self,
        phase: str,
        payload: Any,
        cancel_token: Optional[CancellationToken] = None,
    ) -> int:
        """
        Chunk, embed and persist a payload under ``phase``.

        Chunks are embedded and persisted in chunker order. A chunk whose
        embedding fails is logged and skipped; the call still succeeds.

        Args:
            phase: Phase tag written to metadata["phase"]
            payload: Nested JSON-shaped pipeline output
            cancel_token: Optional cancellation signal

        Returns:
            Number of chunks actually stored

        Raises:
            InputError: If the payload is not JSON-shaped
            PersistenceError: If a write fails (aborts the call)
            CancelledError: If cancellation was requested
        """
        run_id = str(uuid.uuid4())[:8]
        context = log_context(phase=phase, run_id=run_id, embedder=self.embedder.name)
        if not self.enabled:
            logger.info(f"Knowledge storage disabled, skipping phase {phase}", extra=context)
            return 0

        logger.info(f"Storing knowledge for phase: {phase}", extra=context)

        check_cancelled(cancel_token, "store_phase_knowledge")
        chunks = self.chunk_phase_knowledge(phase, payload)

        stored = 0
        skipped = 0
        for index, chunk in enumerate(chunks):
            check_cancelled(cancel_token, "store_phase_knowledge")
            try:
                vector = self.embedder.embed(chunk.content)
            except EmbeddingError as e:
                skipped += 1
                logger.warning(
                    f"Failed to generate embedding for chunk {index}: {e}",
                    extra=log_context(
                        phase=phase,
                        run_id=run_id,
                        embedder=self.embedder.name,
                        chunk_index=index,
                    ),
                )
                continue

            metadata = dict(chunk.metadata)
            metadata["phase"] = phase
            metadata["timestamp"] = int(time.time())

            check_cancelled(cancel_token, "store_phase_knowledge")
            self.store.add_chunk(chunk.content, metadata, vector)
            stored += 1

        if skipped:
            logger.warning(
                f"Stored {stored} of {len(chunks)} knowledge chunks for phase {phase} "
                f"({skipped} skipped)",
                extra=context,
            )
        else:
            logger.info(
                f"Successfully stored {stored} knowledge chunks for phase {phase}",
                extra=context,
            )
        return stored

    def replace_phase_knowledge(
        self,
        phase: str,
        payload: Any,
        cancel_token: Optional[CancellationToken] = None,
    ) -> int:
        """Delete everything stored under ``phase``, then store ``payload``."""
        self.delete_phase_knowledge(phase)
        return self.store_phase_knowledge(phase, payload, cancel_token=cancel_token)

    def retrieve_phase_knowledge(
        self,
        phase: str,
        query: str,
        limit: int,
        cancel_token: Optional[CancellationToken] = None,
    ) -> List[KnowledgeResult]:
        """
        Top ``limit`` chunks of ``phase`` by similarity to ``query``.

        Returns an empty list when the phase has no chunks.

        Raises:
            EmbeddingError: If the query cannot be embedded
            PersistenceError: If the scan fails
        """
        return self._retrieve(query, limit, phase_filter(phase), cancel_token)

    def retrieve_cross_phase_knowledge(
        self,
        query: str,
        phases: Iterable[str],
        limit: int,
        cancel_token: Optional[CancellationToken] = None,
    ) -> List[KnowledgeResult]:
        """Same as retrieve_phase_knowledge across a set of phases."""
        return self._retrieve(query, limit, phases_filter(phases), cancel_token)

    def _retrieve(self, query, limit, predicate, cancel_token) -> List[KnowledgeResult]:
        check_cancelled(cancel_token, "retrieve")
        query_vector = self.embedder.embed(query)

        chunks = self.store.get_all_chunks(cancel_token=cancel_token)
        check_cancelled(cancel_token, "retrieve")
        return rank_chunks(query_vector, chunks, limit, predicate=predicate)

    def delete_phase_knowledge(self, phase: str) -> int:
        """
        Delete every chunk tagged with ``phase``. Idempotent.

        Returns:
            Number of chunks deleted
        """
        logger.info(f"Deleting knowledge for phase: {phase}", extra=log_context(phase=phase))
        deleted = self.store.delete_by_metadata("phase", phase)
        logger.info(
            f"Successfully deleted {deleted} chunks for phase {phase}",
            extra=log_context(phase=phase),
        )
        return deleted

    def get_knowledge_stats(self) -> KnowledgeStats:
        """Total chunk count and chunk count per phase."""
        return KnowledgeStats.from_chunks(self.store.get_all_chunks())

    def export_knowledge(self, path: Path) -> Path:
        """
        Write every chunk, grouped by phase, to a JSON file.

        Raises:
            PersistenceError: If the file cannot be written
        """
        path = Path(path)
        chunks = self.store.get_all_chunks()

        phases: Dict[str, List[Dict[str, Any]]] = {}
        for chunk in chunks:
            phase = chunk.metadata.get("phase")
            if isinstance(phase, str):
                phases.setdefault(phase, []).append(chunk.to_dict())

        export_data = {
            "export_timestamp": datetime.now(timezone.utc).isoformat(),
            "total_chunks": len(chunks),
            "phases": phases,
        }

        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with open(path, "w", encoding="utf-8") as f:
                json.dump(export_data, f, indent=2, ensure_ascii=False)
        except OSError as e:
            raise PersistenceError(f"Failed to export knowledge to {path}: {e}", operation="export") from e

        logger.info(f"Exported {len(chunks)} chunks to {path}")
        return path

    def close(self) -> None:
        """Close the store and embedder."""
        self.store.close()
        self.embedder.close()

    def __enter__(self) -> "KnowledgeManager":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
