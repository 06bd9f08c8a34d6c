from __future__ import annotations

import logging
from typing import Iterator

from advisor_chat.domain.advised import AdvisedRequest
from advisor_chat.domain.chat_models import ChatResponse
from advisor_chat.ports.advisor import Advisor, AdvisorContext
from advisor_chat.use_cases.advisor_chain import aggregate

log = logging.getLogger(__name__)


class SimpleLoggerAdvisor(Advisor):
    """Пишет запрос и ответ в лог. Поток логируется один раз, целиком, после последнего чанка."""

    def __init__(self, level: int = logging.DEBUG, logger: logging.Logger = log):
        self.level = level
        self.logger = logger

    def advise_request(self, request: AdvisedRequest, context: AdvisorContext) -> AdvisedRequest:
        self.logger.log(
            self.level,
            "request: system=%r user=%r messages=%d params=%s",
            request.system_text,
            request.user_text,
            len(request.messages),
            dict(request.advisor_params),
        )
        return request

    def advise_response(self, response: ChatResponse, context: AdvisorContext) -> ChatResponse:
        self.logger.log(self.level, "response: %r usage=%s", response.content, dict(response.usage))
        return response

    def advise_stream(
        self, stream: Iterator[ChatResponse], context: AdvisorContext
    ) -> Iterator[ChatResponse]:
        return aggregate(stream, lambda full: self.advise_response(full, context))
