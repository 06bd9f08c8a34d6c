from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any, Callable, Dict, Iterator, List, Optional

from advisor_chat.domain.advised import AdvisedRequest
from advisor_chat.domain.chat_models import ChatResponse, ChatUsage, Generation
from advisor_chat.ports.advisor import ADVISOR_LEGS, Advisor, AdvisorContext

log = logging.getLogger(__name__)


def _name(advisor: Advisor) -> str:
    return type(advisor).__name__


def is_advisor(obj: Any) -> bool:
    """Советником считается любой объект хотя бы с одной из ног advise_*."""
    return any(callable(getattr(obj, leg, None)) for leg in ADVISOR_LEGS)


def _leg(advisor: Advisor, name: str) -> Optional[Callable[..., Any]]:
    fn = getattr(advisor, name, None)
    return fn if callable(fn) else None


def run_request_chain(
    request: AdvisedRequest,
    advisors: Sequence[Advisor],
    context: AdvisorContext,
) -> AdvisedRequest:
    """Левая свёртка: выход советника i - вход советника i+1. Нет ноги - вход идёт дальше как есть."""
    for adv in advisors:
        fn = _leg(adv, "advise_request")
        if fn is None:
            continue
        log.debug("advise_request: %s", _name(adv))
        request = fn(request, context)
    return request


def run_response_chain(
    response: ChatResponse,
    advisors: Sequence[Advisor],
    context: AdvisorContext,
) -> ChatResponse:
    for adv in advisors:
        fn = _leg(adv, "advise_response")
        if fn is None:
            continue
        log.debug("advise_response: %s", _name(adv))
        response = fn(response, context)
    return response


def run_stream_chain(
    stream: Iterator[ChatResponse],
    advisors: Sequence[Advisor],
    context: AdvisorContext,
) -> Iterator[ChatResponse]:
    """
    Оборачивает поток советниками в порядке регистрации.
    Ни один элемент здесь не вычитывается: советник получает итератор
    и возвращает итератор, который будет прочитан потребителем.
    """
    for adv in advisors:
        fn = _leg(adv, "advise_stream")
        if fn is None:
            continue
        log.debug("advise_stream: %s", _name(adv))
        stream = fn(stream, context)
    return stream


def on_complete(stream: Iterator[ChatResponse], callback: Callable[[], None]) -> Iterator[ChatResponse]:
    """
    Пропускает элементы без изменений; callback вызывается один раз,
    когда источник исчерпан. Если потребитель бросил чтение или
    источник упал, callback не вызывается.
    """
    for chunk in stream:
        yield chunk
    callback()


def aggregate(
    stream: Iterator[ChatResponse],
    callback: Callable[[ChatResponse], None],
) -> Iterator[ChatResponse]:
    """Как on_complete, но отдаёт в callback склеенный ответ (текст чанков по порядку)."""
    parts: List[str] = []
    metadata: Dict[str, Any] = {}
    usage: List[ChatUsage] = [{}]

    def collect() -> Iterator[ChatResponse]:
        for chunk in stream:
            parts.append(chunk.content)
            metadata.update(chunk.metadata)
            if chunk.usage:
                usage[0] = chunk.usage
            yield chunk

    def done() -> None:
        callback(ChatResponse(generations=[Generation(text="".join(parts))], metadata=metadata, usage=usage[0]))

    return on_complete(collect(), done)


def map_chunks(
    stream: Iterator[ChatResponse],
    fn: Callable[[ChatResponse], ChatResponse],
) -> Iterator[ChatResponse]:
    for chunk in stream:
        yield fn(chunk)
