from __future__ import annotations

from collections.abc import Sequence
from typing import Optional, Protocol, runtime_checkable

from advisor_chat.domain.rag_models import Document, SearchOptions


@runtime_checkable
class VectorStore(Protocol):
    """Хранилище документов с поиском по смыслу. Результат упорядочен по релевантности."""

    def add(self, documents: Sequence[Document]) -> None:
        ...

    def delete(self, ids: Sequence[str]) -> int:
        ...

    def search(self, query: str, options: Optional[SearchOptions] = None) -> list[Document]:
        ...
