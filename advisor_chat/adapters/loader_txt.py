from __future__ import annotations

from pathlib import Path
from typing import List

from advisor_chat.domain.rag_models import LoadedPage
from advisor_chat.ports.ingest import DocumentLoader


class TxtLoader(DocumentLoader):
    def __init__(self, encoding: str = "utf-8"):
        self.encoding = encoding

    def load(self, path: str) -> List[LoadedPage]:
        p = Path(path)
        text = p.read_text(encoding=self.encoding, errors="ignore")
        return [LoadedPage(source=str(p), text=text, page=None)]
