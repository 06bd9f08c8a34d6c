from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol, runtime_checkable


@runtime_checkable
class Embedder(Protocol):
    """
    Тексты -> векторы фиксированной размерности dim.
    Векторы L2-нормированы, так что скалярное произведение даёт косинус.
    """

    @property
    def dim(self) -> int:
        ...

    def embed(self, texts: Sequence[str]) -> list[list[float]]:
        ...

    def embed_query(self, text: str) -> list[float]:
        return self.embed([text])[0]
