from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol, runtime_checkable

from advisor_chat.domain.rag_models import Document, LoadedPage


@runtime_checkable
class DocumentLoader(Protocol):
    """Файл -> страницы. У txt одна страница без номера, у pdf номера с 1."""

    def load(self, path: str) -> Sequence[LoadedPage]:
        ...


@runtime_checkable
class TextSplitter(Protocol):
    """Страницы -> документы для хранилища; source и номер страницы уходят в metadata."""

    def split(self, pages: Sequence[LoadedPage]) -> list[Document]:
        ...
