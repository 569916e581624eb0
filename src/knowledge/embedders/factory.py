"""
Embedder factory - resolve the configured kind once at startup.
"""

import logging
from typing import Optional, Union

from ..config.config_loader import EmbeddingServiceConfig, VectorStoreConfig
from ..core.types import EmbedderKind
from .base import Embedder
from .hash_embedder import HashEmbedder
from .lexical_embedder import LexicalEmbedder


logger = logging.getLogger(__name__)


def create_embedder(
    kind: Union[EmbedderKind, str],
    dimension: int,
    service: Optional[EmbeddingServiceConfig] = None,
) -> Embedder:
    """
    Build an embedder.

    Args:
        kind: EmbedderKind or a configured name (aliases accepted)
        dimension: Vector length
        service: Connection settings, used by the remote kind only

    Returns:
        Embedder instance

    Raises:
        ConfigError: If the kind is unknown or the dimension invalid
    """
    kind = EmbedderKind.parse(kind)

    if kind == EmbedderKind.HASH:
        embedder = HashEmbedder(dimension)
    elif kind == EmbedderKind.LEXICAL:
        embedder = LexicalEmbedder(dimension)
    else:
        from ..providers.remote_embedder import RemoteEmbedder

        service = service or EmbeddingServiceConfig()
        embedder = RemoteEmbedder(
            base_url=service.base_url,
            model=service.model,
            dimension=dimension,
            api_key=service.api_key,
            timeout_seconds=service.timeout_seconds,
        )

    logger.info(f"Using {kind.value} embedder (dimension={dimension})")
    return embedder


def create_embedder_from_config(
    vectorstore: VectorStoreConfig,
    service: Optional[EmbeddingServiceConfig] = None,
) -> Embedder:
    """Build the embedder described by the vectorstore config section."""
    return create_embedder(
        vectorstore.embedder_type,
        vectorstore.embedding_dimension,
        service=service,
    )
