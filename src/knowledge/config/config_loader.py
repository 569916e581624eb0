"""
Configuration loader for the knowledge store.

YAML sections used:

    vectorstore:
      database_path: knowledge/vectors.db
      embedder_type: hash          # hash | lexical | remote (simple/qwen/openai)
      embedding_dimension: 384
      chunk_size: 1000
      chunk_overlap: 200
    llm:
      base_url: https://api.openai.com/v1
      model: text-embedding-3-small
      api_key: ...
      timeout_seconds: 30
    logging:
      level: INFO
      format: text                 # text | json
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from ..contracts.knowledge_contracts import ChunkingPolicy
from ..core.exceptions import ConfigError
from ..core.types import EmbedderKind


logger = logging.getLogger(__name__)


@dataclass
class VectorStoreConfig:
    """
    Settings for chunking, embedding and the chunk database.

    Attributes:
        enabled: Whether phase runners should write knowledge at all
        database_path: SQLite file holding vector_chunks
        embedder_type: Embedder kind name (see EmbedderKind.parse)
        embedding_dimension: Vector length for deterministic embedders and
            expected length for the remote one
        chunk_size: Generic chunk window in characters
        chunk_overlap: Characters shared by consecutive windows
        max_samples: Sample rows kept per table_samples chunk
        duplicate_threshold: Similarity at or above which update_index skips a chunk
        busy_timeout_seconds: SQLite lock wait
    """
    enabled: bool = True
    database_path: str = "knowledge/vectors.db"
    embedder_type: str = "hash"
    embedding_dimension: int = 384
    chunk_size: int = 1000
    chunk_overlap: int = 200
    max_samples: int = 3
    duplicate_threshold: float = 0.99
    busy_timeout_seconds: float = 5.0

    @property
    def embedder_kind(self) -> EmbedderKind:
        return EmbedderKind.parse(self.embedder_type)

    def chunking_policy(self) -> ChunkingPolicy:
        return ChunkingPolicy(
            chunk_size=self.chunk_size,
            overlap=self.chunk_overlap,
            max_samples=self.max_samples,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "enabled": self.enabled,
            "database_path": self.database_path,
            "embedder_type": self.embedder_type,
            "embedding_dimension": self.embedding_dimension,
            "chunk_size": self.chunk_size,
            "chunk_overlap": self.chunk_overlap,
            "max_samples": self.max_samples,
            "duplicate_threshold": self.duplicate_threshold,
            "busy_timeout_seconds": self.busy_timeout_seconds,
        }


@dataclass
class EmbeddingServiceConfig:
    """Connection settings for the remote embedder."""
    base_url: str = "https://api.openai.com/v1"
    model: str = ""
    api_key: Optional[str] = None
    timeout_seconds: float = 30.0

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization (API key masked)."""
        return {
            "base_url": self.base_url,
            "model": self.model,
            "api_key": "***" if self.api_key else None,
            "timeout_seconds": self.timeout_seconds,
        }


@dataclass
class KnowledgeConfig:
    """
    Configuration for the knowledge store.

    Loads YAML configuration files and applies environment overrides.

    Example:
        >>> config = KnowledgeConfig.load(Path("config/knowledge.yaml"))
        >>> config.vectorstore.database_path
        'knowledge/vectors.db'
    """
    vectorstore: VectorStoreConfig = field(default_factory=VectorStoreConfig)
    llm: EmbeddingServiceConfig = field(default_factory=EmbeddingServiceConfig)
    logging: Dict[str, Any] = field(default_factory=lambda: {"level": "INFO", "format": "text"})
    config_path: Optional[Path] = None

    @classmethod
    def load(cls, config_path: Optional[Path] = None) -> "KnowledgeConfig":
        """
        Build configuration from an optional YAML file plus environment.

        Args:
            config_path: Path to YAML config file (defaults when omitted)

        Returns:
            Validated KnowledgeConfig

        Raises:
            ConfigError: If the file is missing, unparsable or invalid
        """
        data = _load_yaml(Path(config_path)) if config_path else {}
        config = cls.from_dict(data)
        config.config_path = Path(config_path) if config_path else None
        config.apply_env_overrides()
        config.validate()
        return config

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "KnowledgeConfig":
        """Create from a parsed YAML mapping."""
        if not isinstance(data, dict):
            raise ConfigError("Config root must be a mapping")

        vs = data.get("vectorstore") or {}
        llm = data.get("llm") or {}
        defaults = VectorStoreConfig()
        service_defaults = EmbeddingServiceConfig()

        try:
            vectorstore = VectorStoreConfig(
                enabled=bool(vs.get("enabled", defaults.enabled)),
                database_path=str(vs.get("database_path") or defaults.database_path),
                embedder_type=str(vs.get("embedder_type") or defaults.embedder_type),
                embedding_dimension=int(vs.get("embedding_dimension", defaults.embedding_dimension)),
                chunk_size=int(vs.get("chunk_size", defaults.chunk_size)),
                chunk_overlap=int(vs.get("chunk_overlap", defaults.chunk_overlap)),
                max_samples=int(vs.get("max_samples", defaults.max_samples)),
                duplicate_threshold=float(vs.get("duplicate_threshold", defaults.duplicate_threshold)),
                busy_timeout_seconds=float(vs.get("busy_timeout_seconds", defaults.busy_timeout_seconds)),
            )
            service = EmbeddingServiceConfig(
                base_url=str(llm.get("base_url") or service_defaults.base_url),
                model=str(llm.get("embedding_model") or llm.get("model") or ""),
                api_key=llm.get("api_key") or None,
                timeout_seconds=float(llm.get("timeout_seconds") or service_defaults.timeout_seconds),
            )
        except (TypeError, ValueError) as e:
            raise ConfigError(f"Invalid config value: {e}") from e

        logging_config = {"level": "INFO", "format": "text"}
        logging_config.update(data.get("logging") or {})

        return cls(vectorstore=vectorstore, llm=service, logging=logging_config)

    def apply_env_overrides(self) -> None:
        """Apply environment variable overrides to loaded config."""
        vs = self.vectorstore

        db_path = os.environ.get("KNOWLEDGE_DB_PATH")
        if db_path:
            vs.database_path = db_path

        embedder = os.environ.get("KNOWLEDGE_EMBEDDER")
        if embedder:
            vs.embedder_type = embedder

        vs.embedding_dimension = _env_int("KNOWLEDGE_EMBEDDING_DIM", vs.embedding_dimension)
        vs.chunk_size = _env_int("KNOWLEDGE_CHUNK_SIZE", vs.chunk_size)
        vs.chunk_overlap = _env_int("KNOWLEDGE_CHUNK_OVERLAP", vs.chunk_overlap)

        api_key = os.environ.get("OPENAI_API_KEY")
        if api_key:
            self.llm.api_key = api_key
        base_url = os.environ.get("OPENAI_BASE_URL")
        if base_url:
            self.llm.base_url = base_url
        model = os.environ.get("LLM_MODEL")
        if model:
            self.llm.model = model

    def validate(self) -> None:
        """
        Check the configuration is usable.

        Raises:
            ConfigError: On an unknown embedder, bad dimension or chunk policy
        """
        vs = self.vectorstore
        EmbedderKind.parse(vs.embedder_type)
        if vs.embedding_dimension <= 0:
            raise ConfigError(
                f"embedding_dimension must be positive, got {vs.embedding_dimension}"
            )
        if not 0.0 <= vs.duplicate_threshold <= 1.0:
            raise ConfigError(
                f"duplicate_threshold must be between 0 and 1, got {vs.duplicate_threshold}"
            )
        vs.chunking_policy().validate()

    def get(self, key: str, default: Any = None) -> Any:
        """Get a configuration value by dotted key (e.g. 'vectorstore.chunk_size')."""
        value: Any = {
            "vectorstore": self.vectorstore.to_dict(),
            "llm": self.llm.to_dict(),
            "logging": self.logging,
        }
        for k in key.split("."):
            if isinstance(value, dict):
                value = value.get(k)
            else:
                return default

        return value if value is not None else default


def _load_yaml(config_path: Path) -> Dict[str, Any]:
    """Load configuration from YAML file."""
    if not config_path.exists():
        raise ConfigError(f"Config file not found: {config_path}")

    logger.info(f"Loading config from: {config_path}")

    try:
        with open(config_path, "r", encoding="utf-8") as f:
            config = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Failed to parse config file {config_path}: {e}") from e

    return config or {}


def _env_int(name: str, current: int) -> int:
    raw = os.environ.get(name)
    if not raw:
        return current
    try:
        return int(raw)
    except ValueError:
        raise ConfigError(f"Environment variable {name} must be an integer, got {raw!r}")
