"""
Configuration for the knowledge store.
"""

from .config_loader import EmbeddingServiceConfig, KnowledgeConfig, VectorStoreConfig

__all__ = [
    "EmbeddingServiceConfig",
    "KnowledgeConfig",
    "VectorStoreConfig",
]
