from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Dict, Iterator, List, Optional

from advisor_chat.domain.chat_models import ChatResponse, Generation, Prompt
from advisor_chat.domain.models import Message
from advisor_chat.ports.chat_model import ChatModel

_CHUNK_RE = re.compile(r"\s*\S+\s*")


def _last_user(prompt: Prompt) -> Optional[Message]:
    return next((m for m in reversed(prompt.messages) if m.role == "user"), None)


def split_chunks(text: str) -> List[str]:
    """Режет текст по словам так, что склейка кусков даёт исходный текст."""
    return _CHUNK_RE.findall(text) or [text]


def _stream_text(text: str) -> Iterator[ChatResponse]:
    for piece in split_chunks(text):
        yield ChatResponse(generations=[Generation(text=piece)])


class EchoMockChatModel(ChatModel):
    def _reply(self, prompt: Prompt) -> str:
        last_user = _last_user(prompt)
        return f"[mock] Ответ на: {last_user.content if last_user else ''}"

    def call(self, prompt: Prompt) -> ChatResponse:
        return ChatResponse(
            generations=[Generation(text=self._reply(prompt))],
            usage={"input_tokens": 0, "output_tokens": 0},
        )

    def stream(self, prompt: Prompt) -> Iterator[ChatResponse]:
        return _stream_text(self._reply(prompt))


@dataclass
class ScriptedMockChatModel(ChatModel):
    rules: Dict[str, str]
    fallback: str = "[mock] Не знаю что сказать."

    def _reply(self, prompt: Prompt) -> str:
        last_user = _last_user(prompt)
        text = (last_user.content if last_user else "").lower()

        for k, v in self.rules.items():
            if k.lower() in text:
                return v
        return self.fallback

    def call(self, prompt: Prompt) -> ChatResponse:
        return ChatResponse(
            generations=[Generation(text=self._reply(prompt))],
            usage={"input_tokens": 0, "output_tokens": 0},
        )

    def stream(self, prompt: Prompt) -> Iterator[ChatResponse]:
        return _stream_text(self._reply(prompt))
