"""
Chunker - Split knowledge payloads into searchable units.

Implements two strategies:
- Generic: serialize the payload to indented text, then slide a fixed
  window of chunk_size characters advancing by chunk_size - overlap
- Tables: one table_schema chunk (and optionally one table_samples chunk)
  per entry of a ``tables`` map
"""

import logging
from typing import Any, List, Optional, Tuple

from ..contracts.knowledge_contracts import (
    CHUNK_TYPE_TABLE_SAMPLES,
    CHUNK_TYPE_TABLE_SCHEMA,
    CHUNK_TYPE_TEXT,
    ChunkingPolicy,
    KnowledgeChunk,
)
from ..contracts.payload import (
    ArrayValue,
    BoolValue,
    NullValue,
    NumberValue,
    ObjectValue,
    Payload,
    StringValue,
    format_scalar,
    payload_from_json,
)
from ..core.exceptions import InputError
from ..core.types import ChunkStrategy


logger = logging.getLogger(__name__)

INDENT = "  "


class Chunker:
    """
    Chunks knowledge payloads into KnowledgeChunk drafts (no vectors).

    Output order is deterministic: windows in text order, tables in the
    key order of the ``tables`` map.

    Example:
        >>> chunker = Chunker(ChunkingPolicy(chunk_size=1000, overlap=200))
        >>> chunks = chunker.chunk({"tables": {...}}, source="phase_phase1")
    """

    def __init__(self, policy: Optional[ChunkingPolicy] = None):
        """
        Initialize the chunker.

        Args:
            policy: Chunking policy (uses default if not provided)

        Raises:
            ConfigError: If overlap >= chunk_size or sizes are negative
        """
        self.policy = policy or ChunkingPolicy()
        self.policy.validate()

    def chunk(
        self,
        payload: Any,
        source: str,
        strategy: ChunkStrategy = ChunkStrategy.AUTO,
        header: Optional[str] = None,
    ) -> List[KnowledgeChunk]:
        """
        Split a payload into chunks.

        Args:
            payload: Payload variant or plain JSON-shaped value
            source: Source tag written to metadata["source"]
            strategy: AUTO picks TABLES when the payload has a ``tables`` map
            header: Optional text prepended before generic serialization

        Returns:
            List of KnowledgeChunk drafts

        Raises:
            InputError: If TABLES was requested and there is no ``tables`` map
        """
        payload = payload_from_json(payload)

        if payload.is_empty():
            return []

        if strategy == ChunkStrategy.AUTO:
            strategy = ChunkStrategy.TABLES if has_tables(payload) else ChunkStrategy.GENERIC

        if strategy == ChunkStrategy.TABLES:
            return self.chunk_tables(payload, source)

        text = payload_to_text(payload)
        if header:
            text = f"{header}\n{text}"
        return self.chunk_text(text, source)

    def chunk_text(self, text: str, source: str) -> List[KnowledgeChunk]:
        """
        Split raw text with the sliding window.

        Args:
            text: Text to split
            source: Source tag written to metadata["source"]

        Returns:
            List of KnowledgeChunk drafts (empty windows dropped)
        """
        chunks = []
        for content, start, end in split_text(
            text,
            chunk_size=self.policy.chunk_size,
            overlap=self.policy.overlap,
        ):
            content = content.strip()
            if not content:
                continue
            chunks.append(KnowledgeChunk(
                content=content,
                metadata={
                    "source": source,
                    "type": CHUNK_TYPE_TEXT,
                    "chunk_index": len(chunks),
                },
            ))

        logger.debug(f"Created {len(chunks)} text chunks from source {source}")
        return chunks

    def chunk_tables(self, payload: Payload, source: str) -> List[KnowledgeChunk]:
        """
        Emit schema and sample chunks for every table in ``tables``.

        Args:
            payload: Object with a ``tables`` object
            source: Source tag written to metadata["source"]

        Returns:
            List of KnowledgeChunk drafts

        Raises:
            InputError: If the payload has no ``tables`` map
        """
        payload = payload_from_json(payload)
        if not has_tables(payload):
            raise InputError("No tables found in knowledge payload", source=source)

        tables = payload.get("tables")
        logger.debug(f"Found {len(tables)} tables to process in {source}")

        chunks = []
        for table_name, table_info in tables.items():
            if not isinstance(table_info, ObjectValue):
                logger.warning(f"Skipping table {table_name}: descriptor is not an object")
                continue

            chunks.append(KnowledgeChunk(
                content=render_table_schema(table_name, table_info),
                metadata={
                    "source": source,
                    "type": CHUNK_TYPE_TABLE_SCHEMA,
                    "table": table_name,
                },
            ))

            samples = table_info.get("samples")
            if isinstance(samples, ArrayValue) and len(samples) > 0:
                chunks.append(KnowledgeChunk(
                    content=render_table_samples(
                        table_name, samples, self.policy.max_samples
                    ),
                    metadata={
                        "source": source,
                        "type": CHUNK_TYPE_TABLE_SAMPLES,
                        "table": table_name,
                    },
                ))

        logger.debug(f"Generated {len(chunks)} chunks for tables in {source}")
        return chunks


def has_tables(payload: Payload) -> bool:
    """True when the payload is an object carrying a ``tables`` object."""
    return isinstance(payload, ObjectValue) and isinstance(payload.get("tables"), ObjectValue)


def split_text(
    text: str,
    chunk_size: int = 1000,
    overlap: int = 200,
) -> List[Tuple[str, int, int]]:
    """
    Split text into overlapping windows.

    Windows start at 0, step, 2*step, ... (step = chunk_size - overlap) and
    stop after the first window that reaches the end of the text, so the
    union of windows always covers the whole input.

    Args:
        text: Text content to split
        chunk_size: Window size in characters
        overlap: Overlap between windows in characters

    Returns:
        List of tuples: (window_text, start_offset, end_offset)
    """
    if not text:
        return []

    ChunkingPolicy(chunk_size=chunk_size, overlap=overlap).validate()

    windows = []
    text_len = len(text)
    step = chunk_size - overlap

    start = 0
    while start < text_len:
        end = min(start + chunk_size, text_len)
        windows.append((text[start:end], start, end))
        if end >= text_len:
            break
        start += step

    return windows


def payload_to_text(payload: Any, depth: int = 0) -> str:
    """
    Serialize a payload into indented text.

    Objects render ``key:`` lines with children one level deeper, arrays
    render ``[i]:`` lines, scalars render on their own line.
    """
    lines: List[str] = []
    _append_payload(lines, payload_from_json(payload), depth)
    return "\n".join(lines) + ("\n" if lines else "")


def _append_payload(lines: List[str], value: Payload, depth: int) -> None:
    indent = INDENT * depth

    if isinstance(value, ObjectValue):
        for key, item in value.items():
            lines.append(f"{indent}{key}:")
            _append_payload(lines, item, depth + 1)
    elif isinstance(value, ArrayValue):
        for i, item in enumerate(value):
            lines.append(f"{indent}[{i}]:")
            _append_payload(lines, item, depth + 1)
    elif isinstance(value, (NullValue, BoolValue, NumberValue, StringValue)):
        lines.append(f"{indent}{format_scalar(value)}")
    else:
        raise TypeError(f"Unknown payload variant: {type(value).__name__}")


def render_table_schema(table_name: str, table_info: ObjectValue) -> str:
    """Summarize columns, constraints and indexes of one table."""
    lines = [f"Table: {table_name}"]

    stats = table_info.get("stats")
    if isinstance(stats, ObjectValue) and not _is_null(stats.get("row_count")):
        lines.append(f"Row count: {format_scalar(stats.get('row_count'))}")

    schema = table_info.get("schema")
    if isinstance(schema, ArrayValue):
        lines.append("Columns:")
        for column in schema:
            if not isinstance(column, ObjectValue):
                continue
            line = (
                f"  - {_field(column, 'name')} "
                f"({_field(column, 'type')}, nullable: {_field(column, 'nullable')}"
            )
            if not _is_null(column.get("default")):
                line += f", default: {_field(column, 'default')}"
            lines.append(line + ")")
    elif isinstance(schema, ObjectValue):
        lines.append("Schema:")
        for key, value in schema.items():
            lines.append(f"  {key}: {format_scalar(value)}")

    constraints = table_info.get("constraints")
    if isinstance(constraints, ObjectValue):
        lines.append("Constraints:")
        primary_keys = constraints.get("primary_keys")
        if isinstance(primary_keys, ArrayValue) and len(primary_keys) > 0:
            lines.append(f"  Primary Keys: {format_scalar(primary_keys)}")
        foreign_keys = constraints.get("foreign_keys")
        if isinstance(foreign_keys, ArrayValue) and len(foreign_keys) > 0:
            lines.append("  Foreign Keys:")
            for fk in foreign_keys:
                if isinstance(fk, ObjectValue):
                    lines.append(
                        f"    - {_field(fk, 'column')} -> "
                        f"{_field(fk, 'referenced_table')}.{_field(fk, 'referenced_column')}"
                    )
        unique_keys = constraints.get("unique_keys")
        if isinstance(unique_keys, ArrayValue) and len(unique_keys) > 0:
            lines.append(f"  Unique Keys: {format_scalar(unique_keys)}")
    elif isinstance(constraints, ArrayValue):
        lines.append("Constraints:")
        for constraint in constraints:
            lines.append(f"  {format_scalar(constraint)}")

    indexes = table_info.get("indexes")
    if isinstance(indexes, ArrayValue) and len(indexes) > 0:
        lines.append("Indexes:")
        for index in indexes:
            if isinstance(index, ObjectValue):
                lines.append(
                    f"  - {_field(index, 'name')} on {_field(index, 'columns')} "
                    f"(unique: {_field(index, 'is_unique')})"
                )
            else:
                lines.append(f"  - {format_scalar(index)}")

    return "\n".join(lines)


def render_table_samples(table_name: str, samples: ArrayValue, max_samples: int) -> str:
    """Render at most max_samples sample rows of one table."""
    lines = [f"Sample data for table: {table_name}"]
    for i, sample in enumerate(samples):
        if i >= max_samples:
            break
        lines.append(f"Sample {i + 1}: {format_scalar(sample)}")
    return "\n".join(lines)


def _is_null(value: Optional[Payload]) -> bool:
    return value is None or isinstance(value, NullValue)


def _field(obj: ObjectValue, key: str) -> str:
    value = obj.get(key)
    if value is None:
        return "null"
    return format_scalar(value)
