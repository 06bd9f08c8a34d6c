from __future__ import annotations

from typing import Iterator, Protocol, runtime_checkable

from advisor_chat.domain.chat_models import ChatResponse, Prompt
from advisor_chat.domain.models import user_message


@runtime_checkable
class ChatModel(Protocol):
    """Общий интерфейс к чат-модели (реальной/мок): целиком или потоком."""

    def call(self, prompt: Prompt) -> ChatResponse:
        ...

    def stream(self, prompt: Prompt) -> Iterator[ChatResponse]:
        ...

    def call_text(self, text: str) -> str:
        # text-in/text-out для вспомогательных вызовов (например, переписать запрос)
        return self.call(Prompt(messages=(user_message(text),))).content
