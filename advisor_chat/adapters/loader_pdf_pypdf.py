from __future__ import annotations

from pathlib import Path
from typing import List

from advisor_chat.domain.rag_models import LoadedPage
from advisor_chat.ports.ingest import DocumentLoader


class PdfLoaderPyPDF(DocumentLoader):
    def load(self, path: str) -> List[LoadedPage]:
        try:
            from pypdf import PdfReader
        except ImportError as e:
            raise RuntimeError("PDF loading requires pypdf: pip install 'advisor-chat[pdf]'") from e

        p = Path(path)
        reader = PdfReader(str(p))
        return [
            LoadedPage(source=str(p), text=page.extract_text() or "", page=i)
            for i, page in enumerate(reader.pages, start=1)
        ]
