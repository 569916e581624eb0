"""
Embedding strategies.

- HashEmbedder: digest-derived vectors, offline
- LexicalEmbedder: weighted domain vocabulary, offline
- RemoteEmbedder (knowledge.providers): OpenAI-compatible endpoint

Use knowledge.embedders.factory.create_embedder to build one from config.
"""

from .base import Embedder
from .hash_embedder import HashEmbedder
from .lexical_embedder import LexicalEmbedder

__all__ = [
    "Embedder",
    "HashEmbedder",
    "LexicalEmbedder",
]
