"""
Indexer - Bulk-index pipeline artifacts into the vector store.

Implements:
- Full rebuild (clear, then index every known artifact)
- Incremental update with an approximate duplicate pre-check
- Unscoped search and per-source statistics over the index

Artifacts are processed sequentially in a fixed order so that reindex runs
are reproducible.
"""

import json
import logging
import time
import uuid
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from ..contracts.knowledge_contracts import KnowledgeChunk, KnowledgeResult, KnowledgeStats
from ..core.exceptions import EmbeddingError, InputError
from ..core.logging import log_context
from ..core.types import CancellationToken, check_cancelled
from ..core.utils import compute_content_hash
from ..embedders.base import Embedder
from ..storage.vector_store import VectorStore
from .chunker import Chunker


logger = logging.getLogger(__name__)

KNOWN_ARTIFACTS = (
    "phase1_analysis.json",
    "phase2_analysis.json",
    "phase4_dimensions.json",
    "pre_phase3_summary.json",
)

DEFAULT_DUPLICATE_THRESHOLD = 0.99


@dataclass
class IndexRunStats:
    """
    Summary of one index or update run.

    Attributes:
        run_id: Identifier used in log context
        mode: "full" or "incremental"
        files_processed: Artifacts read and chunked
        files_skipped: Artifacts missing or undecodable
        chunks_created: Chunks produced by the chunker
        chunks_stored: Chunks persisted
        chunks_skipped: Chunks dropped (embedding failure or near-duplicate)
        artifact_hashes: SHA-256 of each processed artifact's text
        errors: Per-artifact error descriptions
        duration_seconds: Wall time of the run
    """
    run_id: str
    mode: str
    files_processed: int = 0
    files_skipped: int = 0
    chunks_created: int = 0
    chunks_stored: int = 0
    chunks_skipped: int = 0
    artifact_hashes: Dict[str, str] = field(default_factory=dict)
    errors: List[Dict[str, str]] = field(default_factory=list)
    duration_seconds: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "run_id": self.run_id,
            "mode": self.mode,
            "files_processed": self.files_processed,
            "files_skipped": self.files_skipped,
            "chunks_created": self.chunks_created,
            "chunks_stored": self.chunks_stored,
            "chunks_skipped": self.chunks_skipped,
            "artifact_hashes": dict(self.artifact_hashes),
            "errors": list(self.errors),
            "duration_seconds": self.duration_seconds,
        }


class KnowledgeIndexer:
    """
    Indexes a directory of pipeline artifacts.

    Each artifact's chunks are tagged with ``phase`` = file stem
    (e.g. ``phase1_analysis``) and ``source`` = file name.

    Example:
        >>> indexer = KnowledgeIndexer(store, HashEmbedder(384))
        >>> stats = indexer.index_knowledge_base(Path("knowledge"))
        >>> stats.chunks_stored
        12
    """

    def __init__(
        self,
        store: VectorStore,
        embedder: Embedder,
        chunker: Optional[Chunker] = None,
        duplicate_threshold: float = DEFAULT_DUPLICATE_THRESHOLD,
        artifacts: Sequence[str] = KNOWN_ARTIFACTS,
    ):
        """
        Initialize the indexer.

        Args:
            store: Vector store to populate
            embedder: Embedder used for chunks and queries
            chunker: Chunker (default policy if not provided)
            duplicate_threshold: update_index skips chunks whose best
                existing match scores at or above this
            artifacts: Artifact file names, in processing order
        """
        self.store = store
        self.embedder = embedder
        self.chunker = chunker or Chunker()
        self.duplicate_threshold = duplicate_threshold
        self.artifacts = tuple(artifacts)

    def index_knowledge_base(
        self,
        directory: Path,
        cancel_token: Optional[CancellationToken] = None,
    ) -> IndexRunStats:
        """
        Clear the store and index every known artifact in ``directory``.

        Missing or undecodable artifacts are logged and skipped.

        Raises:
            PersistenceError: If clearing or a write fails
            CancelledError: If cancellation was requested
        """
        check_cancelled(cancel_token, "index_knowledge_base")
        logger.info(f"Starting knowledge base indexing from: {directory}")
        self.store.clear()
        return self._run(Path(directory), "full", cancel_token)

    def update_index(
        self,
        directory: Path,
        cancel_token: Optional[CancellationToken] = None,
    ) -> IndexRunStats:
        """
        Add chunks from ``directory`` that are not already (nearly) indexed.

        Each chunk's vector is checked with search_similar(vector, 1); the
        chunk is added only when no existing chunk scores at or above
        duplicate_threshold. This is an approximate heuristic, not exact
        deduplication.
        """
        logger.info(f"Updating knowledge base index from: {directory}")
        return self._run(Path(directory), "incremental", cancel_token)

    def rebuild_index(
        self,
        directory: Path,
        cancel_token: Optional[CancellationToken] = None,
    ) -> IndexRunStats:
        """Full rebuild; same as index_knowledge_base."""
        logger.info("Rebuilding knowledge base index...")
        stats = self.index_knowledge_base(directory, cancel_token=cancel_token)
        logger.info("Knowledge base index rebuilt successfully")
        return stats

    def search_knowledge(self, query: str, limit: int) -> List[KnowledgeResult]:
        """Top ``limit`` chunks across the whole index."""
        return self.store.search_similar(self.embedder.embed(query), limit)

    def get_stats(self) -> KnowledgeStats:
        """Total chunks and chunk count per ``source``."""
        return KnowledgeStats.from_chunks(self.store.get_all_chunks(), key="source")

    def _run(
        self,
        directory: Path,
        mode: str,
        cancel_token: Optional[CancellationToken],
    ) -> IndexRunStats:
        start_time = time.time()
        stats = IndexRunStats(run_id=str(uuid.uuid4())[:8], mode=mode)

        for name in self.artifacts:
            check_cancelled(cancel_token, f"{mode} index")
            path = directory / name

            try:
                chunks = self._chunk_artifact(path, stats)
            except (InputError, OSError) as e:
                logger.warning(
                    f"Skipping artifact {name}: {e}",
                    extra=log_context(run_id=stats.run_id, source=name),
                )
                stats.files_skipped += 1
                stats.errors.append({"source": name, "error": str(e)})
                continue

            if chunks is None:
                stats.files_skipped += 1
                continue

            stats.files_processed += 1
            stats.chunks_created += len(chunks)
            for chunk in chunks:
                self._index_chunk(chunk, stats, mode, cancel_token)

        stats.duration_seconds = round(time.time() - start_time, 2)
        logger.info(
            f"Indexing run {stats.run_id} ({mode}) complete: "
            f"{stats.files_processed} files, "
            f"{stats.chunks_stored}/{stats.chunks_created} chunks stored, "
            f"{stats.chunks_skipped} skipped",
            extra=log_context(run_id=stats.run_id, embedder=self.embedder.name),
        )
        return stats

    def _chunk_artifact(self, path: Path, stats: IndexRunStats) -> Optional[List[KnowledgeChunk]]:
        """
        Read and chunk one artifact.

        Returns:
            Chunks tagged with phase and timestamp, or None if the file is absent

        Raises:
            InputError: If the file is not valid JSON
            OSError: If the file cannot be read
        """
        if not path.exists():
            logger.debug(f"Artifact not found: {path}")
            return None

        text = path.read_text(encoding="utf-8")
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise InputError(f"Invalid JSON in {path.name}: {e}", source=path.name) from e

        stats.artifact_hashes[path.name] = compute_content_hash(text)

        timestamp = int(time.time())
        chunks = []
        for chunk in self.chunker.chunk(data, source=path.name):
            metadata = dict(chunk.metadata)
            metadata["phase"] = path.stem
            metadata["timestamp"] = timestamp
            chunks.append(KnowledgeChunk(content=chunk.content, metadata=metadata))

        logger.info(f"Generated {len(chunks)} knowledge chunks from {path.name}")
        return chunks

    def _index_chunk(
        self,
        chunk: KnowledgeChunk,
        stats: IndexRunStats,
        mode: str,
        cancel_token: Optional[CancellationToken],
    ) -> None:
        check_cancelled(cancel_token, f"{mode} index")
        try:
            vector = self.embedder.embed(chunk.content)
        except EmbeddingError as e:
            logger.warning(
                f"Failed to generate embedding for chunk: {e}",
                extra=log_context(
                    run_id=stats.run_id,
                    source=chunk.metadata.get("source"),
                    embedder=self.embedder.name,
                ),
            )
            stats.chunks_skipped += 1
            return

        if mode == "incremental":
            existing = self.store.search_similar(vector, 1, cancel_token=cancel_token)
            if existing and existing[0].score >= self.duplicate_threshold:
                logger.debug(f"Skipping near-duplicate of chunk {existing[0].chunk_id}")
                stats.chunks_skipped += 1
                return

        self.store.add_chunk(chunk.content, chunk.metadata, vector, cancel_token=cancel_token)
        stats.chunks_stored += 1
