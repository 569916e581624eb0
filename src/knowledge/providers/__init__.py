"""
Remote providers for the knowledge store.
"""

from .remote_embedder import RemoteEmbedder, resolve_embedding_model

__all__ = [
    "RemoteEmbedder",
    "resolve_embedding_model",
]
