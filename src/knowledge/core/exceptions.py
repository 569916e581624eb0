"""
Custom exceptions for the knowledge store.
"""


class KnowledgeError(Exception):
    """Base exception for all knowledge store errors."""
    pass


class InputError(KnowledgeError):
    """
    Malformed or incomplete knowledge payload.

    Raised when:
    - A specific chunking strategy was requested but the payload lacks
      the structure it needs (e.g. no ``tables`` map)
    - A knowledge artifact cannot be decoded as JSON
    """

    def __init__(self, message: str, source: str = None):
        super().__init__(message)
        self.source = source


class EmbeddingError(KnowledgeError):
    """
    Error generating an embedding vector.

    Raised when:
    - The embedding endpoint is unreachable or times out
    - The endpoint returns a non-2xx status
    - The response does not carry a vector at the expected path

    Deterministic (hash / lexical) embedders never raise this.
    """

    def __init__(self, message: str, provider: str = None, status_code: int = None):
        super().__init__(message)
        self.provider = provider
        self.status_code = status_code


class PersistenceError(KnowledgeError):
    """
    Error reading from or writing to the durable chunk store.

    Raised when:
    - The database file cannot be opened or created
    - An insert, scan or delete fails
    """

    def __init__(self, message: str, operation: str = None):
        super().__init__(message)
        self.operation = operation


class CancelledError(KnowledgeError):
    """
    Caller-initiated abort of a store, retrieve or index operation.

    Distinct from PersistenceError / EmbeddingError so callers can tell
    "I asked it to stop" apart from "it broke".
    """
    pass


class ConfigError(KnowledgeError, ValueError):
    """
    Error in knowledge store configuration.

    Raised when:
    - Configuration file is missing or invalid
    - Chunk overlap is not smaller than chunk size
    - Embedding dimension or embedder kind is invalid
    """
    pass
