from __future__ import annotations

from collections.abc import Sequence
from typing import Optional, Protocol, runtime_checkable

from advisor_chat.domain.models import Message


@runtime_checkable
class ChatMemory(Protocol):
    """
    История диалогов: только дописывание, порядок чтения = порядку записи.
    Неизвестный conversation_id -> пустой список.
    """

    def get(self, conversation_id: str, last_n: Optional[int] = None) -> list[Message]:
        ...

    def add(self, conversation_id: str, messages: Sequence[Message]) -> None:
        ...

    def clear(self, conversation_id: str) -> None:
        ...
