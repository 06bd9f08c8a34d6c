from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any, List

from advisor_chat.ports.embeddings import Embedder


@dataclass
class SentenceTransformerEmbedder(Embedder):
    """Модель загружается при первом вызове embed или dim."""

    model_name: str = "sentence-transformers/all-MiniLM-L6-v2"
    batch_size: int = 32
    _model: Any = field(default=None, init=False, repr=False)

    def _get_model(self) -> Any:
        if self._model is None:
            try:
                from sentence_transformers import SentenceTransformer
            except ImportError as e:
                raise RuntimeError(
                    "sbert embeddings require sentence-transformers: pip install 'advisor-chat[sbert]'"
                ) from e
            self._model = SentenceTransformer(self.model_name)
        return self._model

    @property
    def dim(self) -> int:
        return int(self._get_model().get_sentence_embedding_dimension() or 0)

    def embed(self, texts: Sequence[str]) -> List[List[float]]:
        if not texts:
            return []
        vecs = self._get_model().encode(list(texts), batch_size=self.batch_size, normalize_embeddings=True)
        return [v.tolist() for v in vecs]
