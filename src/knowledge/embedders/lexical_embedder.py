"""
Lexical embedder - weighted term frequencies over a fixed domain vocabulary.

Vector layout:
- [0, len(vocabulary)): tf * weight per vocabulary term
- [0, n_words): plus a small positional ramp
- last 10 slots (dimension >= 10): text statistics and domain keyword counts
"""

import re
from typing import Dict, List

from ..core.utils import l2_normalize
from .base import Embedder


DATABASE_TERMS = [
    "table", "column", "row", "database", "sql", "query", "select", "insert", "update", "delete",
    "primary", "foreign", "key", "index", "constraint", "join", "where", "group", "order", "limit",
    "customer", "product", "order", "sale", "revenue", "price", "quantity", "total", "date", "time",
    "analysis", "report", "metric", "trend", "performance", "efficiency", "optimization",
]

MARKETING_TERMS = [
    "marketing", "sales", "customer", "segment", "campaign", "conversion", "retention", "churn",
    "acquisition", "lifetime", "value", "cohort", "funnel", "engagement", "loyalty", "brand",
    "channel", "roi", "kpi", "metric", "analytics", "insight", "strategy", "growth",
]

# Keywords counted in the trailing statistics slots (analysis, query, sales,
# customer, product, data)
DOMAIN_KEYWORDS = ["分析", "查詢", "銷售", "客戶", "產品", "數據"]

STATS_SLOTS = 10
COMMON_TERM_WEIGHT = 1.0
RARE_TERM_WEIGHT = 2.0

_PUNCTUATION = re.compile(r"[.,:;!?]")


def build_vocabulary() -> Dict[str, int]:
    """
    Map each term to its slot.

    Terms listed twice keep the slot of their last occurrence.
    """
    vocabulary = {}
    for i, term in enumerate(DATABASE_TERMS + MARKETING_TERMS):
        vocabulary[term] = i
    return vocabulary


def term_weight(term: str) -> float:
    if "customer" in term or "product" in term:
        return COMMON_TERM_WEIGHT
    return RARE_TERM_WEIGHT


class LexicalEmbedder(Embedder):
    """Deterministic, offline embedder tuned to schema and marketing text."""

    name = "lexical"

    def __init__(self, dimension: int):
        super().__init__(dimension)
        self.vocabulary = build_vocabulary()
        self.weights = {term: term_weight(term) for term in self.vocabulary}

    def embed(self, text: str) -> List[float]:
        text = _PUNCTUATION.sub(" ", (text or "").lower())
        words = text.split()

        vector = [0.0] * self.dimension

        counts: Dict[str, int] = {}
        hits = 0
        for word in words:
            if word in self.vocabulary:
                counts[word] = counts.get(word, 0) + 1
                hits += 1

        for word, count in counts.items():
            slot = self.vocabulary[word]
            if slot < self.dimension:
                vector[slot] = (count / hits) * self.weights[word]

        n_words = len(words)
        for i in range(min(n_words, self.dimension)):
            vector[i] += 0.1 * i / n_words

        if self.dimension >= STATS_SLOTS:
            self._add_text_features(vector, text, words)

        return l2_normalize(vector)

    def _add_text_features(self, vector: List[float], text: str, words: List[str]) -> None:
        base = self.dimension - STATS_SLOTS
        n_words = len(words)

        vector[base] = len(text) / 1000.0
        vector[base + 1] = n_words / 100.0
        vector[base + 2] = len(text) / (n_words + 1)
        vector[base + 3] = len(set(words)) / (n_words + 1)

        for offset, keyword in enumerate(DOMAIN_KEYWORDS, start=4):
            vector[base + offset] = text.count(keyword) / 10.0
