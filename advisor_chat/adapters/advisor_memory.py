from __future__ import annotations

import logging
import warnings
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Iterator, List

from advisor_chat.domain.advised import CONVERSATION_ID_KEY, AdvisedRequest
from advisor_chat.domain.chat_models import ChatResponse
from advisor_chat.domain.errors import ChatMemoryWarning, ConfigurationError
from advisor_chat.domain.models import Message, assistant_message, user_message
from advisor_chat.ports.advisor import Advisor, AdvisorContext
from advisor_chat.ports.chat_memory import ChatMemory
from advisor_chat.use_cases.advisor_chain import aggregate

log = logging.getLogger(__name__)

RETRIEVE_SIZE_KEY = "chat_memory_response_size"
DEFAULT_CONVERSATION_ID = "default"
DEFAULT_RETRIEVE_SIZE = 100

# внутренние ключи контекста: в advisor_params запроса не попадают
_TURN_CID_KEY = "chat_memory_turn_conversation_id"
_TURN_USER_KEY = "chat_memory_turn_user_text"

DEFAULT_MEMORY_ADVISE = (
    "Use the conversation memory from the MEMORY section to provide accurate answers.\n"
    "\n"
    "---------------------\n"
    "MEMORY:\n"
    "{memory}"
    "---------------------\n"
)


def render_memory(messages: Sequence[Message]) -> str:
    return "\n".join(f"{m.role.upper()}:{m.content}" for m in messages)


def join_system_text(system_text: str, advise: str) -> str:
    return f"{system_text}\n\n{advise}" if system_text else advise


def check_template(template: str, name: str, *placeholders: str) -> str:
    """Шаблон должен содержать все плейсхолдеры и форматироваться без других полей."""
    missing = [p for p in placeholders if "{" + p + "}" not in template]
    if missing:
        raise ConfigurationError(f"{name} must contain " + ", ".join("{" + p + "}" for p in missing))
    try:
        template.format(**{p: "" for p in placeholders})
    except (KeyError, IndexError, ValueError) as e:
        raise ConfigurationError(f"{name} is not a valid template (escape literal braces as {{{{ and }}}}): {e!r}") from e
    return template


@dataclass
class ChatMemoryAdvisorBase(Advisor):
    """
    Общий жизненный цикл памяти: на запросе читаем историю,
    после ответа (для потока - после последнего чанка) дописываем ход.
    """

    chat_memory: ChatMemory
    default_conversation_id: str = DEFAULT_CONVERSATION_ID
    default_retrieve_size: int = DEFAULT_RETRIEVE_SIZE

    def conversation_id(self, request: AdvisedRequest, context: AdvisorContext) -> str:
        cid = context.get(CONVERSATION_ID_KEY) or request.conversation_id or self.default_conversation_id
        return str(cid)

    def retrieve_size(self, context: AdvisorContext) -> int:
        raw = context.get(RETRIEVE_SIZE_KEY, self.default_retrieve_size)
        try:
            return max(0, int(raw))
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"{RETRIEVE_SIZE_KEY} must be an integer, got {raw!r}") from e

    def read_history(self, request: AdvisedRequest, context: AdvisorContext) -> List[Message]:
        cid = self.conversation_id(request, context)
        size = self.retrieve_size(context)

        context[_TURN_CID_KEY] = cid
        context[_TURN_USER_KEY] = request.user_text

        try:
            return list(self.chat_memory.get(cid, size))
        except Exception as e:
            log.warning("chat memory read failed (conversation=%s), continuing without history: %s", cid, e)
            return []

    def write_turn(self, context: AdvisorContext, assistant_text: str) -> None:
        cid = context.get(_TURN_CID_KEY)
        if cid is None:
            return

        # ход пишется парой user, assistant даже при пустом тексте пользователя
        turn: List[Message] = [
            user_message(context.get(_TURN_USER_KEY) or ""),
            assistant_message(assistant_text),
        ]

        try:
            self.chat_memory.add(cid, turn)
        except Exception as e:
            log.warning("chat memory write failed (conversation=%s): %s", cid, e)
            warnings.warn(
                f"Response was produced but conversation {cid!r} was not saved: {e}",
                ChatMemoryWarning,
                stacklevel=2,
            )

    def advise_response(self, response: ChatResponse, context: AdvisorContext) -> ChatResponse:
        self.write_turn(context, response.content)
        return response

    def advise_stream(
        self, stream: Iterator[ChatResponse], context: AdvisorContext
    ) -> Iterator[ChatResponse]:
        return aggregate(stream, lambda full: self.write_turn(context, full.content))


@dataclass
class PromptChatMemoryAdvisor(ChatMemoryAdvisorBase):
    """История диалога вклеивается в системный текст секцией MEMORY."""

    system_text_advise: str = DEFAULT_MEMORY_ADVISE

    def __post_init__(self) -> None:
        check_template(self.system_text_advise, "system_text_advise", "memory")

    def advise_request(self, request: AdvisedRequest, context: AdvisorContext) -> AdvisedRequest:
        history = self.read_history(request, context)
        block = render_memory(history)
        advise = self.system_text_advise.format(memory=f"{block}\n" if block else "")
        return request.with_system_text(join_system_text(request.system_text, advise))


@dataclass
class MessageChatMemoryAdvisor(ChatMemoryAdvisorBase):
    """История диалога добавляется перед сообщениями запроса как есть, по ролям."""

    def advise_request(self, request: AdvisedRequest, context: AdvisorContext) -> AdvisedRequest:
        history = self.read_history(request, context)
        if not history:
            return request
        return request.with_messages(history + list(request.messages))
