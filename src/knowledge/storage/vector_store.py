"""
SQLite-backed vector store for knowledge chunks.

Chunks are persisted as rows of ``vector_chunks`` with JSON-encoded metadata
and vectors. Similarity search is a full scan with Python-side cosine
similarity, which is adequate for the small corpora the pipeline produces.

Concurrent writers rely on SQLite's own file locking; the store holds one
connection per instance and adds no locking of its own.
"""

import json
import logging
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from ..contracts.knowledge_contracts import KnowledgeChunk, KnowledgeResult
from ..core.exceptions import PersistenceError
from ..core.types import CancellationToken, check_cancelled
from ..retrieval.search import rank_chunks


logger = logging.getLogger(__name__)

DEFAULT_BUSY_TIMEOUT_SECONDS = 5.0


class VectorStore:
    """
    Durable store of KnowledgeChunk rows.

    Example:
        >>> with VectorStore("knowledge.db") as store:
        ...     chunk_id = store.add_chunk("Table: customers", {"phase": "phase1"}, vec)
        ...     results = store.search_similar(query_vec, limit=5)
    """

    def __init__(
        self,
        db_path: Path,
        busy_timeout_seconds: float = DEFAULT_BUSY_TIMEOUT_SECONDS,
    ):
        """
        Open (and create if needed) the store.

        Args:
            db_path: Path to the SQLite database file
            busy_timeout_seconds: How long a write waits on a locked database

        Raises:
            PersistenceError: If the database cannot be opened
        """
        self.db_path = Path(db_path)
        self.busy_timeout_seconds = busy_timeout_seconds
        self.conn: Optional[sqlite3.Connection] = None
        self._connect()
        self._init_schema()

    def _connect(self) -> None:
        """Establish database connection."""
        try:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            self.conn = sqlite3.connect(
                str(self.db_path),
                timeout=self.busy_timeout_seconds,
                check_same_thread=False,
            )
        except (OSError, sqlite3.Error) as e:
            raise PersistenceError(
                f"Failed to open vector store at {self.db_path}: {e}",
                operation="open",
            ) from e

        self.conn.row_factory = sqlite3.Row
        logger.debug(f"Connected to vector store: {self.db_path}")

    def _init_schema(self) -> None:
        """Initialize database schema."""
        try:
            cursor = self.conn.cursor()
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS vector_chunks (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    content TEXT NOT NULL,
                    metadata TEXT,
                    vector TEXT NOT NULL,
                    created_at TEXT NOT NULL
                )
            """)
            self.conn.commit()
        except sqlite3.Error as e:
            raise PersistenceError(
                f"Failed to initialize vector store schema: {e}",
                operation="init",
            ) from e

        logger.debug("Initialized vector store schema")

    def _require_connection(self) -> sqlite3.Connection:
        if self.conn is None:
            raise PersistenceError("Vector store is closed", operation="connect")
        return self.conn

    def add_chunk(
        self,
        content: str,
        metadata: Dict[str, Any],
        vector: Sequence[float],
        cancel_token: Optional[CancellationToken] = None,
    ) -> int:
        """
        Append a chunk. Duplicate content is accepted.

        Args:
            content: Chunk text
            metadata: Chunk metadata (JSON-serializable)
            vector: Embedding vector
            cancel_token: Optional cancellation signal checked before writing

        Returns:
            Row id of the new chunk

        Raises:
            PersistenceError: If the insert fails
            CancelledError: If cancellation was requested
        """
        check_cancelled(cancel_token, "add_chunk")
        conn = self._require_connection()

        try:
            metadata_json = json.dumps(metadata or {}, ensure_ascii=False)
            vector_json = json.dumps([float(v) for v in vector])
        except (TypeError, ValueError) as e:
            raise PersistenceError(
                f"Chunk cannot be serialized: {e}", operation="add_chunk"
            ) from e

        created_at = datetime.now(timezone.utc).isoformat()

        try:
            cursor = conn.cursor()
            cursor.execute(
                """
                INSERT INTO vector_chunks (content, metadata, vector, created_at)
                VALUES (?, ?, ?, ?)
                """,
                (content, metadata_json, vector_json, created_at),
            )
            conn.commit()
        except sqlite3.Error as e:
            logger.error(f"Failed to insert chunk: {e}")
            raise PersistenceError(f"Failed to insert chunk: {e}", operation="add_chunk") from e

        return cursor.lastrowid

    def get_all_chunks(
        self,
        cancel_token: Optional[CancellationToken] = None,
    ) -> List[KnowledgeChunk]:
        """
        Read every chunk in insertion (id) order.

        Rows whose JSON columns cannot be decoded are skipped with a warning.

        Raises:
            PersistenceError: If the scan fails
        """
        check_cancelled(cancel_token, "get_all_chunks")
        conn = self._require_connection()

        try:
            cursor = conn.cursor()
            cursor.execute(
                "SELECT id, content, metadata, vector, created_at "
                "FROM vector_chunks ORDER BY id"
            )
            rows = cursor.fetchall()
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to scan chunks: {e}", operation="scan") from e

        chunks = []
        for row in rows:
            chunk = self._row_to_chunk(row)
            if chunk is not None:
                chunks.append(chunk)
        return chunks

    def search_similar(
        self,
        query_vector: Sequence[float],
        limit: int,
        cancel_token: Optional[CancellationToken] = None,
    ) -> List[KnowledgeResult]:
        """
        Return the ``limit`` chunks most similar to ``query_vector``.

        Ties keep insertion order.

        Raises:
            PersistenceError: If the scan fails
        """
        chunks = self.get_all_chunks(cancel_token=cancel_token)
        check_cancelled(cancel_token, "search_similar")
        return rank_chunks(query_vector, chunks, limit)

    def delete_by_metadata(
        self,
        key: str,
        value: Any,
        cancel_token: Optional[CancellationToken] = None,
    ) -> int:
        """
        Delete every chunk whose ``metadata[key]`` equals ``value`` exactly
        (same JSON type; ``true`` never matches ``1``).

        Deleting nothing is not an error.

        Returns:
            Number of chunks deleted

        Raises:
            PersistenceError: If the scan or delete fails
        """
        chunk_ids = [
            chunk.id
            for chunk in self.get_all_chunks(cancel_token=cancel_token)
            if key in chunk.metadata and _metadata_equal(chunk.metadata[key], value)
        ]
        if not chunk_ids:
            logger.debug(f"No chunks matched {key}={value!r}")
            return 0

        check_cancelled(cancel_token, "delete_by_metadata")
        conn = self._require_connection()
        try:
            cursor = conn.cursor()
            cursor.executemany(
                "DELETE FROM vector_chunks WHERE id = ?",
                [(chunk_id,) for chunk_id in chunk_ids],
            )
            conn.commit()
        except sqlite3.Error as e:
            logger.error(f"Failed to delete chunks for {key}={value!r}: {e}")
            raise PersistenceError(f"Failed to delete chunks: {e}", operation="delete") from e

        logger.info(f"Deleted {len(chunk_ids)} chunks with {key}={value!r}")
        return len(chunk_ids)

    def clear(self) -> int:
        """
        Remove all chunks.

        Returns:
            Number of chunks removed
        """
        conn = self._require_connection()
        try:
            cursor = conn.cursor()
            cursor.execute("DELETE FROM vector_chunks")
            conn.commit()
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to clear vector store: {e}", operation="clear") from e

        logger.info(f"Cleared {cursor.rowcount} chunks from vector store")
        return cursor.rowcount

    def count(self) -> int:
        """Number of persisted chunks."""
        conn = self._require_connection()
        try:
            cursor = conn.cursor()
            cursor.execute("SELECT COUNT(*) FROM vector_chunks")
            return cursor.fetchone()[0]
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to count chunks: {e}", operation="count") from e

    def close(self) -> None:
        """Close database connection."""
        if self.conn:
            self.conn.close()
            self.conn = None
            logger.debug("Closed vector store connection")

    def __enter__(self) -> "VectorStore":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def _row_to_chunk(self, row: sqlite3.Row) -> Optional[KnowledgeChunk]:
        """Convert a database row to a KnowledgeChunk."""
        try:
            metadata = json.loads(row["metadata"]) if row["metadata"] else {}
            vector = json.loads(row["vector"])
            created_at = datetime.fromisoformat(row["created_at"])
        except (TypeError, ValueError) as e:
            logger.warning(f"Skipping undecodable chunk {row['id']}: {e}")
            return None

        return KnowledgeChunk(
            content=row["content"],
            metadata=metadata,
            vector=vector,
            id=row["id"],
            created_at=created_at,
        )


def _metadata_equal(stored: Any, wanted: Any) -> bool:
    """
    JSON value equality.

    Integers and floats compare as one numeric kind; booleans only equal
    booleans. Lists and objects compare element-wise under the same rule.
    """
    if isinstance(stored, bool) or isinstance(wanted, bool):
        return isinstance(stored, bool) and isinstance(wanted, bool) and stored == wanted
    if isinstance(stored, list) and isinstance(wanted, (list, tuple)):
        return len(stored) == len(wanted) and all(
            _metadata_equal(a, b) for a, b in zip(stored, wanted)
        )
    if isinstance(stored, dict) and isinstance(wanted, dict):
        return stored.keys() == wanted.keys() and all(
            _metadata_equal(stored[k], wanted[k]) for k in stored
        )
    return stored == wanted
