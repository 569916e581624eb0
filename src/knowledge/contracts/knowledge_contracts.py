"""
Knowledge Contracts - data models for chunking, storage and retrieval.

Uses dataclasses following the pattern of the retrieval contracts:
plain attributes, to_dict()/from_dict() for serialization.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional, Sequence, Tuple

from ..core.exceptions import ConfigError


# Chunk types written to metadata["type"]
CHUNK_TYPE_TEXT = "knowledge_chunk"
CHUNK_TYPE_TABLE_SCHEMA = "table_schema"
CHUNK_TYPE_TABLE_SAMPLES = "table_samples"


@dataclass
class ChunkingPolicy:
    """
    Policy for splitting knowledge payloads into chunks.

    Attributes:
        chunk_size: Window size in characters
        overlap: Characters shared by consecutive windows
        max_samples: Maximum sample rows kept in a table_samples chunk
    """
    chunk_size: int = 1000
    overlap: int = 200
    max_samples: int = 3

    def validate(self) -> None:
        """
        Check the policy is usable.

        Raises:
            ConfigError: If sizes are out of range
        """
        if self.chunk_size <= 0:
            raise ConfigError("chunk_size must be positive")
        if self.overlap < 0:
            raise ConfigError("overlap must be non-negative")
        if self.overlap >= self.chunk_size:
            raise ConfigError("overlap must be less than chunk_size")
        if self.max_samples < 0:
            raise ConfigError("max_samples must be non-negative")

    @property
    def step(self) -> int:
        return self.chunk_size - self.overlap

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "chunk_size": self.chunk_size,
            "overlap": self.overlap,
            "max_samples": self.max_samples,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ChunkingPolicy":
        """Create from dictionary."""
        return cls(
            chunk_size=data.get("chunk_size", 1000),
            overlap=data.get("overlap", 200),
            max_samples=data.get("max_samples", 3),
        )


@dataclass(frozen=True)
class KnowledgeChunk:
    """
    An atomic unit of retrievable text.

    Chunks produced by the chunker have no vector and no id yet; chunks read
    back from the store carry both. Instances are immutable: metadata is
    copied on construction and the vector is held as a tuple.

    Attributes:
        content: Trimmed, non-empty text
        metadata: Scalar / list values (type, table, source, phase, timestamp)
        vector: Embedding vector (empty until embedded)
        id: Row id once persisted
        created_at: Persistence timestamp (UTC)
    """
    content: str
    metadata: Dict[str, Any] = field(default_factory=dict)
    vector: Tuple[float, ...] = ()
    id: Optional[int] = None
    created_at: Optional[datetime] = None

    def __post_init__(self):
        object.__setattr__(self, "metadata", dict(self.metadata or {}))
        object.__setattr__(self, "vector", tuple(self.vector or ()))

    @property
    def phase(self) -> Optional[str]:
        return self.metadata.get("phase")

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the persisted record shape."""
        return {
            "id": self.id,
            "content": self.content,
            "metadata": dict(self.metadata),
            "vector": list(self.vector),
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "KnowledgeChunk":
        """Create from dictionary."""
        created = data.get("created_at")
        if isinstance(created, str):
            created = datetime.fromisoformat(created)

        return cls(
            content=data["content"],
            metadata=data.get("metadata") or {},
            vector=data.get("vector") or (),
            id=data.get("id"),
            created_at=created,
        )


@dataclass
class KnowledgeResult:
    """
    A single retrieval hit. Never persisted.

    Attributes:
        content: Chunk text
        metadata: Chunk metadata
        score: Cosine similarity against the query vector
        chunk_id: Row id of the matched chunk
    """
    content: str
    metadata: Dict[str, Any]
    score: float
    chunk_id: Optional[int] = None

    @classmethod
    def from_chunk(cls, chunk: KnowledgeChunk, score: float) -> "KnowledgeResult":
        return cls(
            content=chunk.content,
            metadata=dict(chunk.metadata),
            score=score,
            chunk_id=chunk.id,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "chunk_id": self.chunk_id,
            "content": self.content,
            "metadata": self.metadata,
            "score": self.score,
        }


@dataclass
class KnowledgeStats:
    """
    Corpus statistics grouped by phase.

    Attributes:
        total_chunks: Number of persisted chunks
        phases: Chunk count per metadata["phase"]
    """
    total_chunks: int = 0
    phases: Dict[str, int] = field(default_factory=dict)

    @classmethod
    def from_chunks(cls, chunks: Sequence[KnowledgeChunk], key: str = "phase") -> "KnowledgeStats":
        """Group chunks by a metadata field."""
        counts: Dict[str, int] = {}
        for chunk in chunks:
            value = chunk.metadata.get(key)
            if isinstance(value, str):
                counts[value] = counts.get(value, 0) + 1
        return cls(total_chunks=len(chunks), phases=counts)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "total_chunks": self.total_chunks,
            "phases": dict(self.phases),
        }


__all__ = [
    "CHUNK_TYPE_TEXT",
    "CHUNK_TYPE_TABLE_SCHEMA",
    "CHUNK_TYPE_TABLE_SAMPLES",
    "ChunkingPolicy",
    "KnowledgeChunk",
    "KnowledgeResult",
    "KnowledgeStats",
]
