"""
Unit tests for KnowledgeManager.

Tests for:
- Store / retrieve / delete per phase
- Phase isolation and cross-phase retrieval
- Embedding failures and cancellation during store
- Stats and export
"""

import json
import logging
import time

import pytest

from knowledge.config.config_loader import KnowledgeConfig
from knowledge.core.exceptions import (
    CancelledError,
    ConfigError,
    EmbeddingError,
    PersistenceError,
)
from knowledge.core.types import CancellationToken
from knowledge.embedders.base import Embedder
from knowledge.embedders.hash_embedder import HashEmbedder
from knowledge.embedders.lexical_embedder import LexicalEmbedder
from knowledge.manager import KnowledgeManager, phase_header, phase_source
from knowledge.storage.vector_store import VectorStore


class FlakyEmbedder(Embedder):
    """Fails for every text containing ``marker``."""

    def __init__(self, marker, dimension=16):
        super().__init__(dimension)
        self.marker = marker
        self.inner = HashEmbedder(dimension)

    def embed(self, text):
        if self.marker in text:
            raise EmbeddingError("service unavailable", provider="test", status_code=503)
        return self.inner.embed(text)


class CancellingEmbedder(Embedder):
    """Cancels a token the first time it embeds."""

    def __init__(self, token, dimension=16):
        super().__init__(dimension)
        self.token = token
        self.inner = HashEmbedder(dimension)

    def embed(self, text):
        self.token.cancel("caller gave up")
        return self.inner.embed(text)


class TestStorePhaseKnowledge:
    """Tests for store_phase_knowledge."""

    def test_customers_scenario(self, manager, customers_payload):
        stored = manager.store_phase_knowledge("phase1", customers_payload)

        assert stored == 2
        assert manager.get_knowledge_stats().phases == {"phase1": 2}

        results = manager.retrieve_phase_knowledge("phase1", "customer id", 1)
        assert len(results) == 1
        assert results[0].metadata["phase"] == "phase1"

    def test_metadata(self, manager, customers_payload):
        before = int(time.time())
        manager.store_phase_knowledge("phase1", customers_payload)
        after = int(time.time())

        chunks = manager.store.get_all_chunks()
        for chunk in chunks:
            assert chunk.metadata["phase"] == "phase1"
            assert chunk.metadata["source"] == "phase_phase1"
            assert chunk.metadata["table"] == "customers"
            assert before <= chunk.metadata["timestamp"] <= after
        assert [c.metadata["type"] for c in chunks] == ["table_schema", "table_samples"]

    def test_generic_payload_gets_phase_header(self, manager):
        manager.store_phase_knowledge("phase2", {"insights": ["Revenue grows in Q4"]})

        [chunk] = manager.store.get_all_chunks()
        assert chunk.content.startswith("Phase: phase2\nDescription: AI-powered")
        assert chunk.metadata["type"] == "knowledge_chunk"
        assert chunk.metadata["chunk_index"] == 0

    def test_unknown_phase_header(self):
        assert phase_header("custom") == "Phase: custom\nDescription: \n"
        assert phase_source("custom") == "phase_custom"

    def test_empty_payload_stores_nothing(self, manager):
        assert manager.store_phase_knowledge("phase1", {}) == 0
        assert manager.store.count() == 0

    def test_round_trip(self, manager, phase1_payload):
        expected = [c.content for c in manager.chunk_phase_knowledge("phase1", phase1_payload)]

        manager.store_phase_knowledge("phase1", phase1_payload)
        results = manager.retrieve_phase_knowledge("phase1", "", 100)

        assert sorted(r.content for r in results) == sorted(expected)

    def test_storing_twice_duplicates(self, manager, customers_payload):
        manager.store_phase_knowledge("phase1", customers_payload)
        manager.store_phase_knowledge("phase1", customers_payload)

        assert manager.get_knowledge_stats().phases["phase1"] == 4

    def test_embedding_failure_skips_chunk(self, vector_store, customers_payload):
        manager = KnowledgeManager(vector_store, FlakyEmbedder("Sample data"))

        stored = manager.store_phase_knowledge("phase1", customers_payload)

        assert stored == 1
        assert [c.metadata["type"] for c in vector_store.get_all_chunks()] == ["table_schema"]

    def test_cancelled_before_start(self, manager, customers_payload):
        token = CancellationToken()
        token.cancel("shutdown")

        with pytest.raises(CancelledError, match="shutdown"):
            manager.store_phase_knowledge("phase1", customers_payload, cancel_token=token)

        assert manager.store.count() == 0

    def test_cancelled_between_embed_and_persist(self, vector_store, customers_payload):
        token = CancellationToken()
        manager = KnowledgeManager(vector_store, CancellingEmbedder(token))

        with pytest.raises(CancelledError):
            manager.store_phase_knowledge("phase1", customers_payload, cancel_token=token)

        assert vector_store.count() == 0

    def test_persistence_error_propagates(self, manager, customers_payload):
        manager.store.close()

        with pytest.raises(PersistenceError):
            manager.store_phase_knowledge("phase1", customers_payload)

    def test_replace(self, manager, customers_payload):
        manager.store_phase_knowledge("phase1", customers_payload)
        manager.store_phase_knowledge("phase2", {"summary": "kept"})

        stored = manager.replace_phase_knowledge("phase1", {"summary": "new"})

        assert stored == 1
        assert manager.get_knowledge_stats().phases == {"phase1": 1, "phase2": 1}


class TestRetrievePhaseKnowledge:
    """Tests for phase-scoped and cross-phase retrieval."""

    @pytest.fixture
    def populated(self, manager, customers_payload):
        manager.store_phase_knowledge("phase1", customers_payload)
        manager.store_phase_knowledge("phase2", {"insights": "Customers in the north buy more"})
        manager.store_phase_knowledge("phase3", {"description": "Order lifecycle"})
        return manager

    def test_phase_isolation(self, populated):
        results = populated.retrieve_phase_knowledge("phase2", "Table: customers", 10)

        assert len(results) == 1
        assert all(r.metadata["phase"] == "phase2" for r in results)

    def test_limit(self, populated):
        assert len(populated.retrieve_phase_knowledge("phase1", "customers", 1)) == 1
        assert len(populated.retrieve_phase_knowledge("phase1", "customers", 10)) == 2
        assert populated.retrieve_phase_knowledge("phase1", "customers", 0) == []

    def test_unknown_phase_is_empty(self, populated):
        assert populated.retrieve_phase_knowledge("phase9", "customers", 5) == []

    def test_sorted_by_score(self, populated):
        results = populated.retrieve_cross_phase_knowledge(
            "customers", ["phase1", "phase2", "phase3"], 10
        )

        scores = [r.score for r in results]
        assert scores == sorted(scores, reverse=True)
        assert len(results) == 4

    def test_cross_phase_subset(self, populated):
        results = populated.retrieve_cross_phase_knowledge("orders", ["phase1", "phase3"], 10)

        assert {r.metadata["phase"] for r in results} == {"phase1", "phase3"}
        assert len(results) == 3

    def test_cross_phase_empty_set(self, populated):
        assert populated.retrieve_cross_phase_knowledge("orders", [], 10) == []

    def test_exact_content_query_ranks_first(self, populated):
        content = populated.store.get_all_chunks()[0].content

        results = populated.retrieve_phase_knowledge("phase1", content, 2)

        assert results[0].content == content
        assert results[0].score == pytest.approx(1.0)

    def test_empty_query_keeps_insertion_order(self, vector_store, customers_payload):
        manager = KnowledgeManager(vector_store, LexicalEmbedder(128))
        manager.store_phase_knowledge("phase1", customers_payload)

        results = manager.retrieve_phase_knowledge("phase1", "", 10)

        assert [r.metadata["type"] for r in results] == ["table_schema", "table_samples"]
        assert all(r.score == 0.0 for r in results)

    def test_cancelled_retrieve(self, populated):
        token = CancellationToken()
        token.cancel()

        with pytest.raises(CancelledError):
            populated.retrieve_phase_knowledge("phase1", "customers", 5, cancel_token=token)


class TestDeleteAndStats:
    """Tests for delete_phase_knowledge, stats and export."""

    def test_delete_is_idempotent(self, manager, customers_payload):
        manager.store_phase_knowledge("phase1", customers_payload)
        manager.store_phase_knowledge("phase2", {"summary": "text"})

        assert manager.delete_phase_knowledge("phase1") == 2
        assert manager.delete_phase_knowledge("phase1") == 0
        assert manager.retrieve_phase_knowledge("phase1", "customers", 5) == []
        assert manager.get_knowledge_stats().phases == {"phase2": 1}

    def test_empty_stats(self, manager):
        stats = manager.get_knowledge_stats()

        assert stats.total_chunks == 0
        assert stats.phases == {}

    def test_export(self, manager, customers_payload, tmp_path):
        manager.store_phase_knowledge("phase1", customers_payload)
        manager.store_phase_knowledge("phase2", {"summary": "text"})

        path = manager.export_knowledge(tmp_path / "exports" / "knowledge.json")

        data = json.loads(path.read_text(encoding="utf-8"))
        assert data["total_chunks"] == 3
        assert sorted(data["phases"]) == ["phase1", "phase2"]
        assert len(data["phases"]["phase1"]) == 2
        exported = data["phases"]["phase2"][0]
        assert exported["metadata"]["phase"] == "phase2"
        assert len(exported["vector"]) == 64
        assert "export_timestamp" in data


class TestFromConfig:

    def test_builds_from_config(self, tmp_path, customers_payload):
        config = KnowledgeConfig.from_dict({
            "vectorstore": {
                "database_path": str(tmp_path / "kb" / "vectors.db"),
                "embedder_type": "lexical",
                "embedding_dimension": 96,
                "chunk_size": 500,
                "chunk_overlap": 50,
            }
        })

        with KnowledgeManager.from_config(config) as manager:
            assert isinstance(manager.embedder, LexicalEmbedder)
            assert manager.embedder.dimension == 96
            assert manager.chunker.policy.chunk_size == 500
            assert manager.store_phase_knowledge("phase1", customers_payload) == 2

        assert (tmp_path / "kb" / "vectors.db").exists()
        assert manager.store.conn is None

    def test_disabled_config_stores_nothing(self, tmp_path, customers_payload):
        config = KnowledgeConfig.from_dict({
            "vectorstore": {
                "enabled": False,
                "database_path": str(tmp_path / "vectors.db"),
            }
        })

        with KnowledgeManager.from_config(config) as manager:
            assert manager.enabled is False
            assert manager.store_phase_knowledge("phase1", customers_payload) == 0
            assert manager.store.count() == 0
            assert manager.retrieve_phase_knowledge("phase1", "customers", 5) == []

    def test_store_failure_builds_no_embedder(self, tmp_path, monkeypatch):
        calls = []
        monkeypatch.setattr(
            "knowledge.manager.create_embedder_from_config",
            lambda *args: calls.append(args),
        )
        unopenable = tmp_path / "is_a_directory"
        unopenable.mkdir()
        config = KnowledgeConfig.from_dict({
            "vectorstore": {"embedder_type": "remote", "database_path": str(unopenable)}
        })

        with pytest.raises(PersistenceError):
            KnowledgeManager.from_config(config)

        assert calls == []

    def test_embedder_failure_closes_store(self, tmp_path, monkeypatch):
        closed = []
        original_close = VectorStore.close

        def recording_close(store):
            closed.append(store.db_path)
            original_close(store)

        def failing_factory(*args):
            raise ConfigError("Unknown embedder type 'bert'")

        monkeypatch.setattr(VectorStore, "close", recording_close)
        monkeypatch.setattr("knowledge.manager.create_embedder_from_config", failing_factory)
        config = KnowledgeConfig.from_dict({
            "vectorstore": {"database_path": str(tmp_path / "vectors.db")}
        })

        with pytest.raises(ConfigError):
            KnowledgeManager.from_config(config)

        assert closed == [tmp_path / "vectors.db"]


class TestLogContext:

    def test_store_logs_embedder_name(self, manager, customers_payload, caplog):
        caplog.set_level(logging.INFO, logger="knowledge")

        manager.store_phase_knowledge("phase1", customers_payload)

        [record] = [r for r in caplog.records if r.getMessage().startswith("Storing knowledge")]
        assert record.embedder == "hash"
        assert record.phase == "phase1"

    def test_disabled_manager_logs_skip(self, vector_store, hash_embedder, caplog):
        caplog.set_level(logging.INFO, logger="knowledge")
        manager = KnowledgeManager(vector_store, hash_embedder, enabled=False)

        assert manager.store_phase_knowledge("phase2", {"summary": "text"}) == 0
        assert any("disabled" in r.getMessage() for r in caplog.records)
