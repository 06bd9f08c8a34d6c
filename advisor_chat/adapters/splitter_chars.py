from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any, Dict, List

from advisor_chat.domain.rag_models import Document, LoadedPage
from advisor_chat.ports.ingest import TextSplitter


@dataclass
class CharTextSplitter(TextSplitter):
    """
    Окна по chunk_chars символов с перекрытием overlap_chars.
    Граница по возможности сдвигается к ближайшему пробелу слева.
    """

    chunk_chars: int = 2000
    overlap_chars: int = 300
    min_cut_chars: int = 50

    def split(self, pages: Sequence[LoadedPage]) -> List[Document]:
        max_chars = max(200, self.chunk_chars)
        overlap = max(0, min(self.overlap_chars, max_chars - 1))
        out: List[Document] = []

        for pg in pages:
            text = (pg.text or "").strip()
            if not text:
                continue

            pos, n, part = 0, len(text), 0
            while pos < n:
                end = min(n, pos + max_chars)
                if end < n:
                    cut = text.rfind(" ", pos, end)
                    if cut != -1 and cut > pos + self.min_cut_chars:
                        end = cut

                piece = text[pos:end].strip()
                if piece:
                    meta: Dict[str, Any] = {"source": pg.source, "part": part}
                    if pg.page is not None:
                        meta["page"] = pg.page
                    out.append(Document(content=piece, metadata=meta))
                    part += 1

                if end >= n:
                    break
                pos = max(pos + 1, end - overlap)

        return out
