"""
Core subpackage for the knowledge store.

Contains types, exceptions, logging and vector utilities.
"""

from .exceptions import (
    KnowledgeError,
    InputError,
    EmbeddingError,
    PersistenceError,
    CancelledError,
    ConfigError,
)
from .types import (
    CancellationToken,
    ChunkStrategy,
    EmbedderKind,
)
from .utils import cosine_similarity, l2_normalize

__all__ = [
    # Types
    "CancellationToken",
    "ChunkStrategy",
    "EmbedderKind",
    # Exceptions
    "KnowledgeError",
    "InputError",
    "EmbeddingError",
    "PersistenceError",
    "CancelledError",
    "ConfigError",
    # Utils
    "cosine_similarity",
    "l2_normalize",
]
