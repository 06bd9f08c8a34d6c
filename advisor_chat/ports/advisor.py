from __future__ import annotations

from typing import Any, Dict, Iterator, Protocol, runtime_checkable

from advisor_chat.domain.advised import AdvisedRequest
from advisor_chat.domain.chat_models import ChatResponse

# Общий на один вызов мешок ключ/значение. Ключи не разнесены по советникам:
# кто пишет позже, тот и перезаписывает, поэтому ключи нужны с префиксом.
AdvisorContext = Dict[str, Any]

ADVISOR_LEGS = ("advise_request", "advise_response", "advise_stream")


@runtime_checkable
class Advisor(Protocol):
    """
    Перехватчик вокруг вызова модели. Каждая из трёх ног необязательна:
    по умолчанию она возвращает вход как есть, так что советник
    переопределяет только то, что ему нужно. Наследовать Advisor не обязательно:
    цепочка принимает любой объект хотя бы с одной ногой, отсутствующие пропускает.
    """

    def advise_request(self, request: AdvisedRequest, context: AdvisorContext) -> AdvisedRequest:
        return request

    def advise_response(self, response: ChatResponse, context: AdvisorContext) -> ChatResponse:
        return response

    def advise_stream(
        self, stream: Iterator[ChatResponse], context: AdvisorContext
    ) -> Iterator[ChatResponse]:
        # должен оборачивать поток лениво, не вычитывая элементы заранее
        return stream
