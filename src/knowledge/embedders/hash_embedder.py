"""
Hash embedder - deterministic vectors from a SHA-256 digest.

Carries no semantic signal; used for offline runs and tests.
"""

import hashlib
from typing import List

from ..core.utils import l2_normalize
from .base import Embedder

HEX_GROUP = 8
GROUP_SCALE = float(2 ** 32)


class HashEmbedder(Embedder):
    """
    Expands the hex digest of the text into ``dimension`` floats.

    Each 8-hex-character group becomes one value in [0, 1). A 256-bit digest
    yields 8 groups; larger dimensions extend the digest with
    sha256(previous_digest || counter) until every slot is filled.
    """

    name = "hash"

    def embed(self, text: str) -> List[float]:
        hex_digest = self._expand_digest((text or "").encode("utf-8"))

        vector = [0.0] * self.dimension
        for i in range(self.dimension):
            group = hex_digest[i * HEX_GROUP:(i + 1) * HEX_GROUP]
            vector[i] = int(group, 16) / GROUP_SCALE

        return l2_normalize(vector)

    def _expand_digest(self, data: bytes) -> str:
        needed = self.dimension * HEX_GROUP
        digest = hashlib.sha256(data).digest()
        parts = [digest.hex()]
        length = len(parts[0])

        counter = 0
        while length < needed:
            counter += 1
            digest = hashlib.sha256(digest + counter.to_bytes(4, "big")).digest()
            parts.append(digest.hex())
            length += len(parts[-1])

        return "".join(parts)
