"""
Shared test fixtures and configuration for pytest.
"""

import logging
import sys
from pathlib import Path

import pytest

# Add src directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))


logger = logging.getLogger(__name__)


ENV_OVERRIDES = [
    "KNOWLEDGE_DB_PATH",
    "KNOWLEDGE_EMBEDDER",
    "KNOWLEDGE_EMBEDDING_DIM",
    "KNOWLEDGE_CHUNK_SIZE",
    "KNOWLEDGE_CHUNK_OVERLAP",
    "OPENAI_API_KEY",
    "OPENAI_BASE_URL",
    "LLM_MODEL",
]


# ============================================================================
# Pytest hooks
# ============================================================================

def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests (no external dependencies)")
    config.addinivalue_line("markers", "slow: Tests that take a long time to run")


# ============================================================================
# Fixtures
# ============================================================================

@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Keep developer environment variables out of config resolution."""
    for name in ENV_OVERRIDES:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def db_path(tmp_path) -> Path:
    """Fixture providing a fresh SQLite database path."""
    return tmp_path / "knowledge" / "vectors.db"


@pytest.fixture
def vector_store(db_path):
    """Fixture providing a vector store on a temporary database."""
    from knowledge.storage.vector_store import VectorStore

    store = VectorStore(db_path)
    yield store
    store.close()


@pytest.fixture
def hash_embedder():
    """Fixture providing an offline embedder."""
    from knowledge.embedders.hash_embedder import HashEmbedder

    return HashEmbedder(64)


@pytest.fixture
def manager(vector_store, hash_embedder):
    """Fixture providing a KnowledgeManager over a temporary store."""
    from knowledge.manager import KnowledgeManager
    from knowledge.retrieval.chunker import Chunker

    return KnowledgeManager(store=vector_store, embedder=hash_embedder, chunker=Chunker())


@pytest.fixture
def customers_payload() -> dict:
    """Minimal table-schema payload with one table and one sample row."""
    return {
        "tables": {
            "customers": {
                "schema": [{"name": "id", "type": "int", "nullable": False}],
                "samples": [{"id": 1}],
            }
        }
    }


@pytest.fixture
def phase1_payload() -> dict:
    """Richer table-schema payload resembling phase1 analysis output."""
    return {
        "database_info": {"type": "postgres", "name": "shop"},
        "tables": {
            "customers": {
                "stats": {"row_count": 1200},
                "schema": [
                    {"name": "id", "type": "integer", "nullable": False, "default": None},
                    {"name": "email", "type": "varchar(255)", "nullable": True},
                    {"name": "status", "type": "varchar(20)", "nullable": False, "default": "'active'"},
                ],
                "constraints": {
                    "primary_keys": ["id"],
                    "foreign_keys": [],
                    "unique_keys": ["email"],
                },
                "indexes": [
                    {"name": "customers_pkey", "columns": ["id"], "is_unique": True},
                ],
                "samples": [
                    {"id": 1, "email": "a@example.com", "status": "active"},
                    {"id": 2, "email": "b@example.com", "status": "active"},
                    {"id": 3, "email": "c@example.com", "status": "closed"},
                    {"id": 4, "email": "d@example.com", "status": "active"},
                ],
            },
            "orders": {
                "stats": {"row_count": 5400},
                "schema": [
                    {"name": "id", "type": "integer", "nullable": False},
                    {"name": "customer_id", "type": "integer", "nullable": False},
                    {"name": "total", "type": "numeric(10,2)", "nullable": True},
                ],
                "constraints": {
                    "primary_keys": ["id"],
                    "foreign_keys": [
                        {
                            "column": "customer_id",
                            "referenced_table": "customers",
                            "referenced_column": "id",
                        }
                    ],
                },
                "samples": [],
            },
        },
    }
