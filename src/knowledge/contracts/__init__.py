"""
Contracts for the knowledge store.

- payload: tagged variants for nested pipeline output
- knowledge_contracts: chunk, result and stats models
"""

from .knowledge_contracts import (
    CHUNK_TYPE_TABLE_SAMPLES,
    CHUNK_TYPE_TABLE_SCHEMA,
    CHUNK_TYPE_TEXT,
    ChunkingPolicy,
    KnowledgeChunk,
    KnowledgeResult,
    KnowledgeStats,
)
from .payload import (
    ArrayValue,
    BoolValue,
    NullValue,
    NumberValue,
    ObjectValue,
    Payload,
    StringValue,
    payload_from_json,
)

__all__ = [
    "CHUNK_TYPE_TABLE_SAMPLES",
    "CHUNK_TYPE_TABLE_SCHEMA",
    "CHUNK_TYPE_TEXT",
    "ChunkingPolicy",
    "KnowledgeChunk",
    "KnowledgeResult",
    "KnowledgeStats",
    "ArrayValue",
    "BoolValue",
    "NullValue",
    "NumberValue",
    "ObjectValue",
    "Payload",
    "StringValue",
    "payload_from_json",
]
