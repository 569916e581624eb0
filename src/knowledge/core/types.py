"""
Core types shared across the knowledge store.
"""

import threading
from enum import Enum
from typing import Optional

from .exceptions import CancelledError, ConfigError


class EmbedderKind(str, Enum):
    """Embedding strategy, resolved once at startup by create_embedder()."""
    HASH = "hash"
    LEXICAL = "lexical"
    REMOTE = "remote"

    @classmethod
    def parse(cls, value: str) -> "EmbedderKind":
        """
        Resolve a configured embedder name.

        Accepts the enum values plus the historical names used in existing
        config files (``simple``, ``qwen``, ``openai``).
        """
        if isinstance(value, cls):
            return value

        name = (value or "").strip().lower()
        aliases = {
            "simple": cls.HASH,
            "qwen": cls.LEXICAL,
            "openai": cls.REMOTE,
        }
        if name in aliases:
            return aliases[name]

        try:
            return cls(name)
        except ValueError:
            valid = ", ".join([k.value for k in cls] + sorted(aliases))
            raise ConfigError(f"Unknown embedder type '{value}' (expected one of: {valid})")


class ChunkStrategy(str, Enum):
    """How a payload is split into chunks."""
    AUTO = "auto"
    GENERIC = "generic"
    TABLES = "tables"


class CancellationToken:
    """
    Cooperative cancellation signal.

    Long operations call ``raise_if_cancelled()`` between steps; another
    thread (or a signal handler) calls ``cancel()``.

    Example:
        >>> token = CancellationToken()
        >>> token.cancel()
        >>> token.raise_if_cancelled("store")  # raises CancelledError
    """

    def __init__(self):
        self._event = threading.Event()
        self.reason: Optional[str] = None

    def cancel(self, reason: Optional[str] = None) -> None:
        """Request cancellation."""
        self.reason = reason
        self._event.set()

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self, operation: str = "operation") -> None:
        """Raise CancelledError if cancellation was requested."""
        if self._event.is_set():
            message = f"{operation} cancelled"
            if self.reason:
                message = f"{message}: {self.reason}"
            raise CancelledError(message)


def check_cancelled(token: Optional[CancellationToken], operation: str) -> None:
    """Helper for optional tokens."""
    if token is not None:
        token.raise_if_cancelled(operation)
