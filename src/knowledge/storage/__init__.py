"""
Durable chunk storage.
"""

from .vector_store import VectorStore

__all__ = ["VectorStore"]
