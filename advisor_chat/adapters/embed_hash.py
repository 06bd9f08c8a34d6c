from __future__ import annotations

import hashlib
import math
import re
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Iterator, List

from advisor_chat.ports.embeddings import Embedder

_WORD_RE = re.compile(r"\w+", re.UNICODE)


def _l2_normalize(vec: List[float]) -> List[float]:
    norm = math.sqrt(sum(v * v for v in vec))
    if norm <= 0.0:
        return vec
    return [v / norm for v in vec]


def _features(text: str) -> Iterator[str]:
    words = _WORD_RE.findall((text or "").lower())
    yield from words
    for a, b in zip(words, words[1:]):
        yield f"{a} {b}"


@dataclass
class HashingEmbedder(Embedder):
    """Офлайн-эмбеддер: слова и биграммы хэшируются в вектор со знаком. Без сети и моделей."""

    dimensions: int = 256

    @property
    def dim(self) -> int:
        return self.dimensions

    def _vector(self, text: str) -> List[float]:
        vec = [0.0] * self.dimensions
        for feat in _features(text):
            h = hashlib.md5(feat.encode("utf-8")).digest()
            idx = int.from_bytes(h[:4], "little") % self.dimensions
            vec[idx] += 1.0 if (h[4] & 1) == 1 else -1.0
        return _l2_normalize(vec)

    def embed(self, texts: Sequence[str]) -> List[List[float]]:
        return [self._vector(t) for t in texts]
