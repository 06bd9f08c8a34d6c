from __future__ import annotations

from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import Any, List, Mapping, Optional, Sequence, Tuple

from advisor_chat.domain.chat_models import ChatOptions, Prompt
from advisor_chat.domain.models import Message, system_message, user_message

CONVERSATION_ID_KEY = "chat_memory_conversation_id"


@dataclass(frozen=True)
class AdvisedRequest:
    """
    Снимок запроса, который видят и возвращают советники.
    advisor_params - read-only копия параметров вызова; то, что советники
    пишут в контекст, сюда не попадает.
    """

    user_text: str = ""
    system_text: str = ""
    messages: Tuple[Message, ...] = ()
    conversation_id: Optional[str] = None
    advisor_params: Mapping[str, Any] = field(default_factory=dict)
    options: ChatOptions = field(default_factory=ChatOptions)

    def __post_init__(self) -> None:
        object.__setattr__(self, "messages", tuple(self.messages))
        object.__setattr__(self, "advisor_params", MappingProxyType(dict(self.advisor_params)))

    def with_system_text(self, text: str) -> "AdvisedRequest":
        return replace(self, system_text=text)

    def with_user_text(self, text: str) -> "AdvisedRequest":
        return replace(self, user_text=text)

    def with_messages(self, messages: Sequence[Message]) -> "AdvisedRequest":
        return replace(self, messages=tuple(messages))

    def to_prompt(self) -> Prompt:
        out: List[Message] = []
        if self.system_text:
            out.append(system_message(self.system_text))
        out.extend(self.messages)
        if self.user_text:
            out.append(user_message(self.user_text))
        return Prompt(messages=tuple(out), options=self.options)
