from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterator, List, Mapping, Optional, Tuple, Union

from advisor_chat.domain.advised import CONVERSATION_ID_KEY, AdvisedRequest
from advisor_chat.domain.chat_models import ChatOptions, ChatResponse, Prompt
from advisor_chat.domain.models import Message
from advisor_chat.ports.advisor import Advisor, AdvisorContext
from advisor_chat.ports.chat_model import ChatModel
from advisor_chat.use_cases.advisor_chain import (
    is_advisor,
    run_request_chain,
    run_response_chain,
    run_stream_chain,
)

log = logging.getLogger(__name__)

AdvisorArg = Union[Advisor, Callable[["AdvisorSpec"], Any]]


class AdvisorSpec:
    """Собирает советников и параметры вызова. Повторный ключ: побеждает последняя запись."""

    def __init__(self) -> None:
        self.advisor_list: List[Advisor] = []
        self.param_map: Dict[str, Any] = {}

    def param(self, key: str, value: Any) -> "AdvisorSpec":
        self.param_map[key] = value
        return self

    def params(self, params: Mapping[str, Any]) -> "AdvisorSpec":
        self.param_map.update(params)
        return self

    def advisors(self, *advisors: Advisor) -> "AdvisorSpec":
        self.advisor_list.extend(advisors)
        return self

    def apply(self, *args: AdvisorArg) -> "AdvisorSpec":
        for arg in args:
            if is_advisor(arg):
                self.advisor_list.append(arg)
            elif callable(arg):
                arg(self)
            else:
                raise TypeError(f"Expected an Advisor or a configurator callable, got {type(arg).__name__}")
        return self

    def copy(self) -> "AdvisorSpec":
        out = AdvisorSpec()
        out.advisor_list = list(self.advisor_list)
        out.param_map = dict(self.param_map)
        return out


@dataclass(frozen=True)
class CallResponse:
    response: ChatResponse
    request: AdvisedRequest
    context: AdvisorContext

    def content(self) -> str:
        return self.response.content

    def chat_response(self) -> ChatResponse:
        return self.response


class StreamResponse:
    """
    Ленивый однократный поток. Модель вызывается при первом чтении,
    поэтому прочитать поток можно только один раз.
    """

    def __init__(self, stream: Iterator[ChatResponse], request: AdvisedRequest, context: AdvisorContext):
        self._stream = stream
        self.request = request
        self.context = context

    def chat_responses(self) -> Iterator[ChatResponse]:
        return self._stream

    def content(self) -> Iterator[str]:
        return (chunk.content for chunk in self._stream)

    def __iter__(self) -> Iterator[ChatResponse]:
        return self._stream


def _deferred_stream(chat_model: ChatModel, prompt: Prompt) -> Iterator[ChatResponse]:
    yield from chat_model.stream(prompt)


class ChatClientRequest:
    def __init__(self, client: "ChatClient"):
        self._client = client
        self._system_text = client.default_system_text
        self._user_text = client.default_user_text
        self._messages: List[Message] = []
        self._options: Optional[ChatOptions] = None
        self._spec = AdvisorSpec()

    def system(self, text: str) -> "ChatClientRequest":
        self._system_text = text
        return self

    def user(self, text: str) -> "ChatClientRequest":
        self._user_text = text
        return self

    def messages(self, *messages: Message) -> "ChatClientRequest":
        self._messages.extend(messages)
        return self

    def options(self, options: ChatOptions) -> "ChatClientRequest":
        self._options = options
        return self

    def advisors(self, *args: AdvisorArg) -> "ChatClientRequest":
        self._spec.apply(*args)
        return self

    def _advise(self) -> Tuple[AdvisedRequest, AdvisorContext, List[Advisor]]:
        params: Dict[str, Any] = dict(self._client.default_params)
        params.update(self._spec.param_map)

        # свежий контекст на каждый вызов, засеянный параметрами до цепочки
        context: AdvisorContext = dict(params)
        advisors = list(self._client.default_advisors) + self._spec.advisor_list

        cid = params.get(CONVERSATION_ID_KEY)
        request = AdvisedRequest(
            user_text=self._user_text,
            system_text=self._system_text,
            messages=tuple(self._messages),
            conversation_id=str(cid) if cid is not None else None,
            advisor_params=params,
            options=self._client.default_options.merged(self._options),
        )
        request = run_request_chain(request, advisors, context)
        return request, context, advisors

    def call(self) -> CallResponse:
        request, context, advisors = self._advise()
        prompt = request.to_prompt()
        log.debug("call: %d messages, %d advisors", len(prompt.messages), len(advisors))

        response = self._client.chat_model.call(prompt)
        response = run_response_chain(response, advisors, context)
        return CallResponse(response=response, request=request, context=context)

    def stream(self) -> StreamResponse:
        request, context, advisors = self._advise()
        prompt = request.to_prompt()
        log.debug("stream: %d messages, %d advisors", len(prompt.messages), len(advisors))

        upstream = _deferred_stream(self._client.chat_model, prompt)
        return StreamResponse(run_stream_chain(upstream, advisors, context), request, context)


@dataclass(frozen=True)
class ChatClient:
    chat_model: ChatModel
    default_system_text: str = ""
    default_user_text: str = ""
    default_options: ChatOptions = field(default_factory=ChatOptions)
    default_advisors: Tuple[Advisor, ...] = ()
    default_params: Mapping[str, Any] = field(default_factory=dict)

    @staticmethod
    def builder(chat_model: ChatModel) -> "ChatClientBuilder":
        return ChatClientBuilder(chat_model)

    def prompt(self, text: Optional[str] = None) -> ChatClientRequest:
        req = ChatClientRequest(self)
        if text is not None:
            req.user(text)
        return req

    def mutate(self) -> "ChatClientBuilder":
        b = ChatClientBuilder(self.chat_model)
        b.default_system(self.default_system_text).default_user(self.default_user_text)
        b.default_options(self.default_options)
        b.default_advisors(*self.default_advisors)
        b.spec.params(self.default_params)
        return b


class ChatClientBuilder:
    def __init__(self, chat_model: ChatModel):
        self.chat_model = chat_model
        self.system_text = ""
        self.user_text = ""
        self.options = ChatOptions()
        self.spec = AdvisorSpec()

    def default_system(self, text: str) -> "ChatClientBuilder":
        self.system_text = text
        return self

    def default_user(self, text: str) -> "ChatClientBuilder":
        self.user_text = text
        return self

    def default_options(self, options: ChatOptions) -> "ChatClientBuilder":
        self.options = options
        return self

    def default_advisors(self, *args: AdvisorArg) -> "ChatClientBuilder":
        self.spec.apply(*args)
        return self

    def build(self) -> ChatClient:
        spec = self.spec.copy()
        return ChatClient(
            chat_model=self.chat_model,
            default_system_text=self.system_text,
            default_user_text=self.user_text,
            default_options=self.options,
            default_advisors=tuple(spec.advisor_list),
            default_params=dict(spec.param_map),
        )
