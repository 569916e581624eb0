"""
Vector and hashing helpers shared by embedders, the store and the indexer.
"""

import hashlib
import math
from typing import List, Sequence


def l2_normalize(vector: List[float]) -> List[float]:
    """
    Scale ``vector`` to unit length in place and return it.

    A zero vector is returned unchanged.
    """
    norm = math.sqrt(sum(v * v for v in vector))
    if norm > 0:
        vector[:] = [v / norm for v in vector]
    return vector


def cosine_similarity(vec_a: Sequence[float], vec_b: Sequence[float]) -> float:
    """
    Cosine of the angle between two vectors, in [-1, 1].

    Returns 0.0 for empty or zero-norm vectors and for vectors of different
    lengths, so one malformed row scores low instead of breaking a scan.
    """
    if not vec_a or len(vec_a) != len(vec_b):
        return 0.0

    norm_a = math.sqrt(sum(a * a for a in vec_a))
    norm_b = math.sqrt(sum(b * b for b in vec_b))
    if norm_a == 0 or norm_b == 0:
        return 0.0

    return sum(a * b for a, b in zip(vec_a, vec_b)) / (norm_a * norm_b)


def compute_content_hash(content: str) -> str:
    """Hex SHA-256 of the UTF-8 encoded text (used for artifact fingerprints)."""
    return hashlib.sha256(content.encode("utf-8")).hexdigest()
