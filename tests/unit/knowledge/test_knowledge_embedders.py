"""
Unit tests for the offline embedders and the embedder factory.
"""

import hashlib
import math

import pytest

from knowledge.config.config_loader import EmbeddingServiceConfig, VectorStoreConfig
from knowledge.core.exceptions import ConfigError
from knowledge.core.types import EmbedderKind
from knowledge.core.utils import cosine_similarity
from knowledge.embedders.factory import create_embedder, create_embedder_from_config
from knowledge.embedders.hash_embedder import HashEmbedder
from knowledge.embedders.lexical_embedder import (
    LexicalEmbedder,
    build_vocabulary,
    term_weight,
)
from knowledge.providers.remote_embedder import RemoteEmbedder


def norm(vector):
    return math.sqrt(sum(v * v for v in vector))


TEXTS = [
    "Table: customers\nColumns:\n  - id (int, nullable: false)",
    "customer retention by segment and channel",
    "客戶 銷售 分析",
    "x",
]


class TestHashEmbedder:
    """Tests for HashEmbedder."""

    @pytest.mark.parametrize("dimension", [1, 8, 64, 384])
    def test_dimension_and_unit_length(self, dimension):
        vector = HashEmbedder(dimension).embed("customer orders")

        assert len(vector) == dimension
        assert norm(vector) == pytest.approx(1.0)

    def test_matches_digest_groups(self):
        text = "phase1"
        hex_digest = hashlib.sha256(text.encode("utf-8")).hexdigest()
        raw = [int(hex_digest[i * 8:(i + 1) * 8], 16) / 2 ** 32 for i in range(8)]
        expected = [v / norm(raw) for v in raw]

        assert HashEmbedder(8).embed(text) == pytest.approx(expected)

    def test_prefix_stable_across_dimensions(self):
        small = HashEmbedder(8).embed("orders")
        large = HashEmbedder(32).embed("orders")

        ratio = large[0] / small[0]
        assert [v * ratio for v in small] == pytest.approx(large[:8])
        assert all(v > 0 for v in large[8:])

    @pytest.mark.parametrize("text", TEXTS)
    def test_self_match(self, text):
        embedder = HashEmbedder(128)

        assert cosine_similarity(embedder.embed(text), embedder.embed(text)) == pytest.approx(1.0)

    def test_different_texts_differ(self):
        embedder = HashEmbedder(64)

        assert embedder.embed("customers") != embedder.embed("orders")

    def test_empty_string(self):
        vector = HashEmbedder(16).embed("")

        assert len(vector) == 16
        assert norm(vector) == pytest.approx(1.0)

    @pytest.mark.parametrize("dimension", [0, -3, True, False, 8.0, "8"])
    def test_invalid_dimension(self, dimension):
        with pytest.raises(ConfigError):
            HashEmbedder(dimension)


class TestLexicalEmbedder:
    """Tests for LexicalEmbedder."""

    def test_vocabulary_slots(self):
        vocabulary = build_vocabulary()

        assert vocabulary["table"] == 0
        assert vocabulary["order"] == 22
        assert vocabulary["customer"] == 39
        assert vocabulary["metric"] == 56
        assert vocabulary["growth"] == 60

    def test_term_weights(self):
        assert term_weight("customer") == 1.0
        assert term_weight("product") == 1.0
        assert term_weight("table") == 2.0

    @pytest.mark.parametrize("text", TEXTS)
    def test_self_match(self, text):
        embedder = LexicalEmbedder(384)

        assert cosine_similarity(embedder.embed(text), embedder.embed(text)) == pytest.approx(1.0)

    def test_unit_length(self):
        vector = LexicalEmbedder(384).embed("Revenue trend by product, per channel!")

        assert len(vector) == 384
        assert norm(vector) == pytest.approx(1.0)

    def test_vocabulary_term_sets_its_slot(self):
        vector = LexicalEmbedder(384).embed("table")

        assert vector[0] > 0
        assert vector[1] == 0.0
        assert vector[40] == 0.0

    def test_punctuation_and_case_ignored(self):
        embedder = LexicalEmbedder(128)

        assert embedder.embed("Customer, churn") == pytest.approx(embedder.embed("customer  churn"))

    def test_domain_keyword_slots(self):
        dimension = 64
        vector = LexicalEmbedder(dimension).embed("客戶 客戶 分析")

        base = dimension - 10
        assert vector[base + 4] > 0
        assert vector[base + 7] == pytest.approx(2 * vector[base + 4])
        assert vector[base + 5] == 0.0

    def test_related_text_scores_higher(self):
        embedder = LexicalEmbedder(384)
        query = embedder.embed("customer retention campaign")

        related = embedder.embed("customer retention and churn by campaign")
        unrelated = embedder.embed("index constraint on primary key column")

        assert cosine_similarity(query, related) > cosine_similarity(query, unrelated)

    def test_small_dimension_without_stats(self):
        vector = LexicalEmbedder(5).embed("row column table")

        assert len(vector) == 5
        assert norm(vector) == pytest.approx(1.0)

    def test_empty_string_is_zero_vector(self):
        embedder = LexicalEmbedder(32)
        vector = embedder.embed("")

        assert vector == [0.0] * 32
        assert cosine_similarity(vector, embedder.embed("table")) == 0.0


class TestCreateEmbedder:
    """Tests for the embedder factory."""

    @pytest.mark.parametrize("kind,cls", [
        ("hash", HashEmbedder),
        ("simple", HashEmbedder),
        ("qwen", LexicalEmbedder),
        (EmbedderKind.LEXICAL, LexicalEmbedder),
    ])
    def test_offline_kinds(self, kind, cls):
        embedder = create_embedder(kind, 32)

        assert isinstance(embedder, cls)
        assert embedder.dimension == 32

    def test_remote_kind(self):
        service = EmbeddingServiceConfig(
            base_url="http://localhost:8080/v1/",
            model="gpt-4o",
            api_key="secret",
            timeout_seconds=5,
        )

        embedder = create_embedder("openai", 1536, service=service)

        assert isinstance(embedder, RemoteEmbedder)
        assert embedder.url == "http://localhost:8080/v1/embeddings"
        assert embedder.model == "text-embedding-3-small"
        assert embedder.timeout == 5
        assert embedder.dimension == 1536

    def test_unknown_kind(self):
        with pytest.raises(ConfigError):
            create_embedder("bert", 32)

    def test_invalid_dimension(self):
        with pytest.raises(ConfigError):
            create_embedder("hash", -1)

    def test_from_config(self):
        embedder = create_embedder_from_config(
            VectorStoreConfig(embedder_type="lexical", embedding_dimension=100)
        )

        assert isinstance(embedder, LexicalEmbedder)
        assert embedder.dimension == 100
