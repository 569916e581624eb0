"""
Retrieval module for the knowledge store.

This module provides:
- Chunking: Split knowledge payloads into searchable units
- Search: Rank chunks against a query vector with phase filters
- Indexing (retrieval.indexer): Bulk-index pipeline artifacts
"""

from .chunker import Chunker, payload_to_text, split_text
from .search import phase_filter, phases_filter, rank_chunks

__all__ = [
    "Chunker",
    "payload_to_text",
    "split_text",
    "phase_filter",
    "phases_filter",
    "rank_chunks",
]
