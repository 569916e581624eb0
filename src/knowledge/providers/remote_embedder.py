"""
Remote embedding provider.

Thin HTTP client for OpenAI-compatible ``/embeddings`` endpoints.
One request per text, no retries at this layer.
"""

import json
import logging
from typing import Any, Dict, List, Optional

import requests

from ..core.exceptions import EmbeddingError
from ..embedders.base import Embedder


logger = logging.getLogger(__name__)

DEFAULT_EMBEDDING_MODEL = "text-embedding-3-small"
DEFAULT_BASE_URL = "https://api.openai.com/v1"

# Completion models commonly left in LLM_MODEL; they cannot embed
CHAT_MODELS = {"gpt-4o", "gpt-4", "gpt-3.5-turbo"}


def resolve_embedding_model(model: Optional[str]) -> str:
    """Map an empty or chat-only model name to the default embedding model."""
    if not model or model in CHAT_MODELS:
        return DEFAULT_EMBEDDING_MODEL
    return model


class RemoteEmbedder(Embedder):
    """
    Embedder backed by an OpenAI-compatible embeddings endpoint.

    Example:
        >>> embedder = RemoteEmbedder(
        ...     base_url="http://localhost:8080/v1",
        ...     model="text-embedding-3-small",
        ...     dimension=1536,
        ... )
        >>> vector = embedder.embed("customer retention by segment")
    """

    name = "remote"

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        model: Optional[str] = None,
        dimension: int = 1536,
        api_key: Optional[str] = None,
        timeout_seconds: float = 30.0,
        session: Optional[requests.Session] = None,
    ):
        """
        Initialize the remote embedder.

        Args:
            base_url: Endpoint root; requests go to ``{base_url}/embeddings``
            model: Embedding model name
            dimension: Expected vector length
            api_key: Optional bearer token
            timeout_seconds: Per-request timeout
            session: Optional pre-configured requests session
        """
        super().__init__(dimension)
        self.base_url = (base_url or DEFAULT_BASE_URL).rstrip("/")
        self.model = resolve_embedding_model(model)
        self.api_key = api_key
        self.timeout = timeout_seconds
        self.session = session or requests.Session()

        logger.debug(
            f"Initialized RemoteEmbedder: base_url={self.base_url}, "
            f"model={self.model}, dimension={self.dimension}"
        )

    @property
    def url(self) -> str:
        return f"{self.base_url}/embeddings"

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    def embed(self, text: str) -> List[float]:
        """
        Embed one text with a single POST.

        Raises:
            EmbeddingError: On transport failure, timeout, non-2xx status,
                a malformed body or a vector of the wrong length
        """
        payload = {"model": self.model, "input": text or ""}

        try:
            response = self.session.post(
                self.url,
                headers=self._headers(),
                data=json.dumps(payload),
                timeout=self.timeout,
            )
        except requests.exceptions.Timeout as e:
            logger.error(f"Embedding request timed out after {self.timeout}s: {e}")
            raise EmbeddingError(
                f"Embedding request to {self.url} timed out", provider=self.name
            ) from e
        except requests.exceptions.RequestException as e:
            logger.error(f"Failed to reach embedding endpoint: {e}")
            raise EmbeddingError(
                f"Failed to connect to embedding endpoint at {self.url}: {e}",
                provider=self.name,
            ) from e

        if not 200 <= response.status_code < 300:
            logger.error(f"HTTP error from embedding endpoint: {response.status_code} - {response.text}")
            raise EmbeddingError(
                f"Embedding API error: {response.status_code} - {response.text}",
                provider=self.name,
                status_code=response.status_code,
            )

        try:
            result = response.json()
        except ValueError as e:
            raise EmbeddingError(
                f"Invalid JSON response from embedding endpoint: {e}",
                provider=self.name,
                status_code=response.status_code,
            ) from e

        return self._parse_vector(result)

    def _parse_vector(self, result: Any) -> List[float]:
        """Extract ``data[0].embedding`` and check its length."""
        try:
            embedding = result["data"][0]["embedding"]
        except (KeyError, IndexError, TypeError) as e:
            raise EmbeddingError(
                "No embedding found in response (expected data[0].embedding)",
                provider=self.name,
            ) from e

        if not isinstance(embedding, list):
            raise EmbeddingError("Embedding in response is not a list", provider=self.name)

        try:
            vector = [float(v) for v in embedding]
        except (TypeError, ValueError) as e:
            raise EmbeddingError(f"Embedding contains non-numeric values: {e}", provider=self.name) from e

        if len(vector) != self.dimension:
            raise EmbeddingError(
                f"Embedding dimension mismatch: expected {self.dimension}, got {len(vector)}",
                provider=self.name,
            )

        return vector

    def close(self) -> None:
        self.session.close()
