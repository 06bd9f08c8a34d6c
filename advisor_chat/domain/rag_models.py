from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional

from advisor_chat.domain.models import new_id


@dataclass(frozen=True)
class LoadedPage:
    source: str
    text: str
    page: Optional[int] = None


@dataclass(frozen=True)
class Document:
    content: str
    metadata: Dict[str, Any] = field(default_factory=dict)
    id: str = field(default_factory=new_id)
    score: Optional[float] = None


@dataclass(frozen=True)
class SearchOptions:
    top_k: int = 4
    similarity_threshold: float = 0.0
    filter: Optional[Mapping[str, Any]] = None

    def matches(self, metadata: Mapping[str, Any]) -> bool:
        if not self.filter:
            return True
        return all(metadata.get(k) == v for k, v in self.filter.items())
