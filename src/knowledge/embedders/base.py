"""
Embedder interface.
"""

from abc import ABC, abstractmethod
from typing import List

from ..core.exceptions import ConfigError


class Embedder(ABC):
    """
    Turns text into a fixed-dimension vector.

    Implementations must return exactly ``dimension`` floats for any input,
    including the empty string.
    """

    name: str = "embedder"

    def __init__(self, dimension: int):
        if isinstance(dimension, bool) or not isinstance(dimension, int) or dimension <= 0:
            raise ConfigError(f"Embedding dimension must be a positive integer, got {dimension!r}")
        self._dimension = dimension

    @property
    def dimension(self) -> int:
        return self._dimension

    @abstractmethod
    def embed(self, text: str) -> List[float]:
        """
        Embed a single text.

        Raises:
            EmbeddingError: Remote embedders only
        """
        raise NotImplementedError

    def close(self) -> None:
        """Release any held resources."""

    def __repr__(self) -> str:
        return f"{type(self).__name__}(dimension={self.dimension})"
