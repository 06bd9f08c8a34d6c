from __future__ import annotations

import json
import logging
from collections.abc import Sequence
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from advisor_chat.domain.rag_models import Document, SearchOptions
from advisor_chat.ports.embeddings import Embedder
from advisor_chat.ports.vector_store import VectorStore

log = logging.getLogger(__name__)


def _dot(a: List[float], b: List[float]) -> float:
    n = min(len(a), len(b))
    return sum(a[i] * b[i] for i in range(n))


def _atomic_write(path: Path, text: str) -> None:
    tmp = path.with_suffix(path.suffix + ".tmp")
    tmp.write_text(text, encoding="utf-8")
    tmp.replace(path)


class JsonVectorStore(VectorStore):
    """
    файл JSON: { "items": [ {"id": "...", "content": "...", "metadata": {...}, "vector": [...]}, ... ] }
    векторы L2-нормированы, поэтому скалярное произведение = косинус.
    add делаем по id (чтобы не раздувать файл бесконечно)
    """

    def __init__(self, path: str, embedder: Embedder):
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.embedder = embedder
        self._items: List[Dict[str, Any]] = []
        self._load()

    def _load(self) -> None:
        if not self.path.exists():
            self._items = []
            return
        try:
            raw = self.path.read_text(encoding="utf-8")
            data = json.loads(raw) if raw.strip() else {}
            items = data.get("items", [])
            self._items = items if isinstance(items, list) else []
        except (OSError, ValueError) as e:
            log.warning("vector store %s is unreadable, starting empty: %s", self.path, e)
            self._items = []

    def _save(self) -> None:
        _atomic_write(self.path, json.dumps({"items": self._items}, ensure_ascii=False, indent=2))

    def count(self) -> int:
        return len(self._items)

    def add(self, documents: Sequence[Document]) -> None:
        if not documents:
            return

        vectors = self.embedder.embed([d.content for d in documents])
        if len(vectors) != len(documents):
            raise RuntimeError(f"Embedder returned {len(vectors)} vectors for {len(documents)} documents")

        idx: Dict[str, int] = {str(it.get("id", "")): i for i, it in enumerate(self._items)}
        for doc, v in zip(documents, vectors):
            item = {
                "id": doc.id,
                "content": doc.content,
                "metadata": dict(doc.metadata),
                "vector": list(v),
            }
            if doc.id in idx:
                self._items[idx[doc.id]] = item
            else:
                idx[doc.id] = len(self._items)
                self._items.append(item)

        self._save()

    def delete(self, ids: Sequence[str]) -> int:
        drop = set(ids)
        before = len(self._items)
        self._items = [it for it in self._items if it.get("id") not in drop]
        removed = before - len(self._items)
        if removed:
            self._save()
        return removed

    def delete_by_source(self, source: str) -> int:
        s = (source or "").lower()
        ids = [
            str(it.get("id"))
            for it in self._items
            if (str((it.get("metadata") or {}).get("source", "")) or "").lower() == s
        ]
        return self.delete(ids)

    def search(self, query: str, options: Optional[SearchOptions] = None) -> List[Document]:
        opts = options or SearchOptions()
        k = max(0, int(opts.top_k))
        if k == 0 or not self._items:
            return []

        qv = self.embedder.embed_query(query)

        scored: List[Tuple[float, Dict[str, Any]]] = []
        for it in self._items:
            v = it.get("vector", [])
            meta = it.get("metadata") if isinstance(it.get("metadata"), dict) else {}
            if not isinstance(v, list) or not v or not opts.matches(meta):
                continue
            score = _dot(qv, v)
            if score >= opts.similarity_threshold:
                scored.append((score, it))

        # sort стабильный: при равном score сохраняется порядок добавления
        scored.sort(key=lambda x: x[0], reverse=True)

        return [
            Document(
                id=str(it.get("id", "")),
                content=str(it.get("content", "")),
                metadata=dict(it.get("metadata") or {}),
                score=score,
            )
            for score, it in scored[:k]
        ]
