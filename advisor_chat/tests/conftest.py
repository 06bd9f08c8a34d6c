from __future__ import annotations

from typing import Iterator, List, Optional

import pytest

from advisor_chat.adapters.llm_mock import split_chunks
from advisor_chat.domain.chat_models import ChatResponse, Generation, Prompt, text_response
from advisor_chat.domain.models import Message
from advisor_chat.domain.rag_models import Document, SearchOptions
from advisor_chat.ports.chat_memory import ChatMemory
from advisor_chat.ports.chat_model import ChatModel
from advisor_chat.ports.vector_store import VectorStore


class RecordingChatModel(ChatModel):
    """Отдаёт ответы по очереди (последний повторяется) и запоминает, что ему прислали."""

    def __init__(self, *replies: str, text_replies: Optional[List[str]] = None):
        self.replies = list(replies) or ["ok"]
        self.text_replies = list(text_replies or [])
        self.prompts: List[Prompt] = []
        self.text_inputs: List[str] = []

    def _next(self) -> str:
        return self.replies.pop(0) if len(self.replies) > 1 else self.replies[0]

    @property
    def last_prompt(self) -> Prompt:
        return self.prompts[-1]

    def call(self, prompt: Prompt) -> ChatResponse:
        self.prompts.append(prompt)
        return text_response(self._next())

    def stream(self, prompt: Prompt) -> Iterator[ChatResponse]:
        self.prompts.append(prompt)
        for piece in split_chunks(self._next()):
            yield ChatResponse(generations=[Generation(text=piece)])

    def call_text(self, text: str) -> str:
        self.text_inputs.append(text)
        return self.text_replies.pop(0) if self.text_replies else ""


class FakeVectorStore(VectorStore):
    def __init__(self, *contents: str, fail: bool = False):
        self.documents = [Document(content=c) for c in contents]
        self.fail = fail
        self.queries: List[str] = []
        self.options: List[Optional[SearchOptions]] = []

    def add(self, documents):
        self.documents.extend(documents)

    def delete(self, ids):
        return 0

    def search(self, query: str, options: Optional[SearchOptions] = None) -> List[Document]:
        self.queries.append(query)
        self.options.append(options)
        if self.fail:
            raise ConnectionError("vector store is down")
        return list(self.documents)


class BrokenChatMemory(ChatMemory):
    def __init__(self, fail_get: bool = False, fail_add: bool = False):
        self.fail_get = fail_get
        self.fail_add = fail_add
        self.added: List[Message] = []

    def get(self, conversation_id, last_n=None):
        if self.fail_get:
            raise OSError("memory read failed")
        return []

    def add(self, conversation_id, messages):
        if self.fail_add:
            raise OSError("memory write failed")
        self.added.extend(messages)

    def clear(self, conversation_id):
        pass


@pytest.fixture
def model_factory():
    return RecordingChatModel


@pytest.fixture
def store_factory():
    return FakeVectorStore


@pytest.fixture
def broken_memory_factory():
    return BrokenChatMemory
