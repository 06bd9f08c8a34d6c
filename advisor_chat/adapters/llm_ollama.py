from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, Optional

import requests

from advisor_chat.domain.chat_models import ChatResponse, ChatUsage, Generation, Prompt
from advisor_chat.ports.chat_model import ChatModel


def _strip_trailing_slash(url: str) -> str:
    return url[:-1] if url.endswith("/") else url


def _text_of(data: Dict[str, Any]) -> str:
    msg = data.get("message")
    if isinstance(msg, dict):
        return msg.get("content") or ""
    return data.get("response") or data.get("content") or ""


def _usage_of(data: Dict[str, Any]) -> ChatUsage:
    return {
        "input_tokens": int(data.get("prompt_eval_count") or 0),
        "output_tokens": int(data.get("eval_count") or 0),
    }


@dataclass
class OllamaChatModel(ChatModel):
    base_url: str = "http://127.0.0.1:11434"
    model: str = "llama3.1:8b"
    temperature: float = 0.2
    max_tokens: int = 512
    timeout_s: int = 120

    session: Optional[requests.Session] = field(default=None, repr=False)

    def __post_init__(self) -> None:
        self.base_url = _strip_trailing_slash(self.base_url)
        if self.session is None:
            self.session = requests.Session()

    def _payload(self, prompt: Prompt, *, stream: bool) -> Dict[str, Any]:
        opts = prompt.options
        temperature = opts.temperature if opts.temperature is not None else self.temperature
        max_tokens = opts.max_tokens if opts.max_tokens is not None else self.max_tokens
        return {
            "model": opts.model or self.model,
            "messages": [{"role": m.role, "content": (m.content or "")} for m in prompt.messages],
            "stream": stream,
            "options": {
                "temperature": float(temperature),
                "num_predict": int(max_tokens),
            },
        }

    def call(self, prompt: Prompt) -> ChatResponse:
        assert self.session is not None

        r = self.session.post(
            f"{self.base_url}/api/chat",
            json=self._payload(prompt, stream=False),
            timeout=self.timeout_s,
        )
        r.raise_for_status()
        data = r.json() if r.content else {}

        return ChatResponse(
            generations=[Generation(text=_text_of(data).strip())],
            metadata={"model": data.get("model")},
            usage=_usage_of(data),
        )

    def stream(self, prompt: Prompt) -> Iterator[ChatResponse]:
        assert self.session is not None

        # ответ приходит NDJSON-строками; последняя с done=true несёт счётчики
        with self.session.post(
            f"{self.base_url}/api/chat",
            json=self._payload(prompt, stream=True),
            timeout=self.timeout_s,
            stream=True,
        ) as r:
            r.raise_for_status()
            for line in r.iter_lines():
                if not line:
                    continue
                data = json.loads(line)
                done = bool(data.get("done"))
                yield ChatResponse(
                    generations=[Generation(text=_text_of(data))],
                    metadata={"model": data.get("model")},
                    usage=_usage_of(data) if done else {},
                )
                if done:
                    break
