from __future__ import annotations

from collections.abc import Sequence
from threading import Lock
from typing import Dict, List, Optional

from advisor_chat.domain.models import Message
from advisor_chat.ports.chat_memory import ChatMemory


class InMemoryChatMemory(ChatMemory):
    def __init__(self) -> None:
        self._lock = Lock()
        self._store: Dict[str, List[Message]] = {}

    def get(self, conversation_id: str, last_n: Optional[int] = None) -> List[Message]:
        with self._lock:
            msgs = list(self._store.get(conversation_id, []))
        if last_n is None:
            return msgs
        if last_n <= 0:
            return []
        return msgs[-last_n:]

    def add(self, conversation_id: str, messages: Sequence[Message]) -> None:
        with self._lock:
            self._store.setdefault(conversation_id, []).extend(messages)

    def clear(self, conversation_id: str) -> None:
        with self._lock:
            self._store.pop(conversation_id, None)

    def conversation_ids(self) -> List[str]:
        with self._lock:
            return list(self._store)
