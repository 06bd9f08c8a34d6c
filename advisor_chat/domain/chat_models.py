from __future__ import annotations

from dataclasses import dataclass, field, fields, replace
from typing import Any, Dict, List, Optional, Tuple, TypedDict

from advisor_chat.domain.models import Message


class ChatUsage(TypedDict, total=False):
    input_tokens: int
    output_tokens: int


@dataclass(frozen=True)
class ChatOptions:
    model: Optional[str] = None
    temperature: Optional[float] = None
    max_tokens: Optional[int] = None

    def merged(self, override: Optional["ChatOptions"]) -> "ChatOptions":
        """Поля override, отличные от None, перекрывают текущие."""
        if override is None:
            return self
        changes = {
            f.name: getattr(override, f.name)
            for f in fields(override)
            if getattr(override, f.name) is not None
        }
        return replace(self, **changes)


@dataclass(frozen=True)
class Prompt:
    messages: Tuple[Message, ...]
    options: ChatOptions = field(default_factory=ChatOptions)


@dataclass(frozen=True)
class Generation:
    text: str
    meta: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ChatResponse:
    generations: List[Generation] = field(default_factory=list)
    metadata: Dict[str, Any] = field(default_factory=dict)
    usage: ChatUsage = field(default_factory=dict)

    @property
    def result(self) -> Optional[Generation]:
        return self.generations[0] if self.generations else None

    @property
    def content(self) -> str:
        res = self.result
        return res.text if res is not None else ""


def text_response(text: str, **metadata: Any) -> ChatResponse:
    return ChatResponse(generations=[Generation(text=text)], metadata=dict(metadata))
