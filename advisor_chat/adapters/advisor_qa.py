from __future__ import annotations

import logging
from dataclasses import replace
from typing import Iterator, List, Mapping, Optional

from advisor_chat.adapters.advisor_memory import check_template, join_system_text
from advisor_chat.domain.advised import AdvisedRequest
from advisor_chat.domain.chat_models import ChatResponse
from advisor_chat.domain.errors import ConfigurationError, RetrievalError
from advisor_chat.domain.rag_models import Document, SearchOptions
from advisor_chat.ports.advisor import Advisor, AdvisorContext
from advisor_chat.ports.chat_model import ChatModel
from advisor_chat.ports.vector_store import VectorStore
from advisor_chat.use_cases.advisor_chain import map_chunks

log = logging.getLogger(__name__)

RETRIEVED_DOCUMENTS_KEY = "qa_retrieved_documents"
TRANSFORMED_QUERY_KEY = "qa_transformed_query"
FILTER_KEY = "qa_filter"
QUERY_REQUIREMENT_KEY = "query_requirement"

DEFAULT_QUERY_REQUIREMENT = "no transformation needed"

DEFAULT_CONTEXT_ADVISE = (
    "Answer the user question using only the information from the CONTEXT section.\n"
    "If the answer is not in the context, tell the user that you can't answer the question.\n"
    "\n"
    "---------------------\n"
    "CONTEXT:\n"
    "{context}"
    "---------------------\n"
)

DEFAULT_QUERY_TRANSFORM = (
    "Rewrite the user query below so that it meets this requirement: {requirement}\n"
    "Reply with the rewritten query only, without explanations.\n"
    "\n"
    "QUERY:\n"
    "{query}\n"
)


def render_documents(documents: List[Document]) -> str:
    return "\n".join((d.content or "").strip() for d in documents)


class QuestionAnswerAdvisor(Advisor):
    """
    Ищет документы по тексту пользователя и вклеивает их в системный текст.
    Сбой поиска поднимается как RetrievalError, модель при этом не вызывается.
    """

    def __init__(
        self,
        vector_store: VectorStore,
        *,
        search_options: Optional[SearchOptions] = None,
        system_text_advise: str = DEFAULT_CONTEXT_ADVISE,
    ):
        check_template(system_text_advise, "system_text_advise", "context")
        self.vector_store = vector_store
        self.search_options = search_options or SearchOptions()
        self.system_text_advise = system_text_advise

    def retrieval_query(self, request: AdvisedRequest, context: AdvisorContext) -> str:
        return request.user_text

    def search_options_for(self, context: AdvisorContext) -> SearchOptions:
        flt = context.get(FILTER_KEY)
        if flt is None:
            return self.search_options
        if not isinstance(flt, Mapping):
            raise ConfigurationError(f"{FILTER_KEY} must be a mapping, got {type(flt).__name__}")
        return replace(self.search_options, filter=dict(flt))

    def advise_request(self, request: AdvisedRequest, context: AdvisorContext) -> AdvisedRequest:
        query = self.retrieval_query(request, context)
        options = self.search_options_for(context)

        try:
            documents = list(self.vector_store.search(query, options))
        except Exception as e:
            raise RetrievalError(f"Document search failed for query {query!r}: {e}") from e

        log.debug("retrieved %d documents for %r", len(documents), query)
        context[RETRIEVED_DOCUMENTS_KEY] = documents

        block = render_documents(documents)
        advise = self.system_text_advise.format(context=f"{block}\n" if block else "")
        # текст пользователя не трогаем, даже если искали по переписанному запросу
        return request.with_system_text(join_system_text(request.system_text, advise))

    def _annotate(self, response: ChatResponse, context: AdvisorContext) -> ChatResponse:
        documents = context.get(RETRIEVED_DOCUMENTS_KEY)
        if documents is None:
            return response
        return replace(response, metadata={**response.metadata, RETRIEVED_DOCUMENTS_KEY: documents})

    def advise_response(self, response: ChatResponse, context: AdvisorContext) -> ChatResponse:
        return self._annotate(response, context)

    def advise_stream(
        self, stream: Iterator[ChatResponse], context: AdvisorContext
    ) -> Iterator[ChatResponse]:
        return map_chunks(stream, lambda chunk: self._annotate(chunk, context))


class QueryTransformerQuestionAnswerAdvisor(QuestionAnswerAdvisor):
    """
    Перед поиском переписывает запрос отдельным вызовом модели
    (требование берётся из параметра query_requirement или из конструктора).
    Этот вызов не проходит через цепочку советников и не видит её контекст.
    """

    def __init__(
        self,
        vector_store: VectorStore,
        chat_model: ChatModel,
        query_requirement: Optional[str] = DEFAULT_QUERY_REQUIREMENT,
        *,
        search_options: Optional[SearchOptions] = None,
        system_text_advise: str = DEFAULT_CONTEXT_ADVISE,
        transform_template: str = DEFAULT_QUERY_TRANSFORM,
    ):
        super().__init__(vector_store, search_options=search_options, system_text_advise=system_text_advise)
        self.chat_model = chat_model
        self.query_requirement = query_requirement
        self.transform_template = check_template(transform_template, "transform_template", "requirement", "query")

    def requirement(self, context: AdvisorContext) -> str:
        value = context.get(QUERY_REQUIREMENT_KEY, self.query_requirement)
        if not isinstance(value, str) or not value.strip():
            raise ConfigurationError(f"{QUERY_REQUIREMENT_KEY} must be a non-empty string, got {value!r}")
        return value.strip()

    def retrieval_query(self, request: AdvisedRequest, context: AdvisorContext) -> str:
        requirement = self.requirement(context)
        original = request.user_text

        text = self.transform_template.format(requirement=requirement, query=original)
        transformed = (self.chat_model.call_text(text) or "").strip()
        if not transformed:
            log.info("query transform returned nothing, searching with the original query")
            transformed = original

        context[TRANSFORMED_QUERY_KEY] = transformed
        return transformed
