from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List

from advisor_chat.domain.rag_models import Document
from advisor_chat.ports.ingest import DocumentLoader, TextSplitter
from advisor_chat.ports.vector_store import VectorStore

log = logging.getLogger(__name__)


@dataclass
class DocumentIndexer:
    loaders: Dict[str, DocumentLoader]  # расширение без точки -> загрузчик
    splitter: TextSplitter
    store: VectorStore

    def ingest_paths(self, paths: Sequence[str]) -> int:
        docs: List[Document] = []

        for p in paths:
            path = str(p)
            ext = Path(path).suffix.lower().lstrip(".")
            loader = self.loaders.get(ext)
            if loader is None:
                raise ValueError(f"No loader for extension .{ext} (path={path})")

            pages = loader.load(path)
            chunks = self.splitter.split(pages)
            log.info("ingest %s: %d pages -> %d chunks", path, len(pages), len(chunks))
            docs.extend(chunks)

        if not docs:
            return 0

        self.store.add(docs)
        return len(docs)
