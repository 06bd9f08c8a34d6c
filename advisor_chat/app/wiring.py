from __future__ import annotations

from dataclasses import dataclass
from threading import Lock
from typing import Any, Dict, List

from advisor_chat.app.settings import AppSettings

from advisor_chat.domain.advised import AdvisedRequest
from advisor_chat.domain.chat_models import ChatOptions
from advisor_chat.domain.rag_models import SearchOptions
from advisor_chat.ports.advisor import Advisor, AdvisorContext
from advisor_chat.ports.chat_model import ChatModel
from advisor_chat.ports.embeddings import Embedder

from advisor_chat.adapters.advisor_logger import SimpleLoggerAdvisor
from advisor_chat.adapters.advisor_memory import MessageChatMemoryAdvisor, PromptChatMemoryAdvisor
from advisor_chat.adapters.advisor_qa import (
    RETRIEVED_DOCUMENTS_KEY,
    TRANSFORMED_QUERY_KEY,
    QueryTransformerQuestionAnswerAdvisor,
    QuestionAnswerAdvisor,
)
from advisor_chat.adapters.loader_pdf_pypdf import PdfLoaderPyPDF
from advisor_chat.adapters.loader_txt import TxtLoader
from advisor_chat.adapters.memory_inmemory import InMemoryChatMemory
from advisor_chat.adapters.splitter_chars import CharTextSplitter
from advisor_chat.adapters.vector_store_json import JsonVectorStore

from advisor_chat.use_cases.chat_client import ChatClient
from advisor_chat.use_cases.document_indexer import DocumentIndexer


@dataclass(frozen=True)
class ClientBundle:
    client: ChatClient
    chat_model: ChatModel
    chat_memory: InMemoryChatMemory
    rag_store: JsonVectorStore
    indexer: DocumentIndexer


# -----------------------
# Internal shared cache
# -----------------------
_cache_lock = Lock()
_shared: Dict[AppSettings, Dict[str, Any]] = {}


def _build_shared(settings: AppSettings) -> Dict[str, Any]:
    cs = settings.client

    if cs.llm_backend == "ollama":
        from advisor_chat.adapters.llm_ollama import OllamaChatModel
        chat_model: ChatModel = OllamaChatModel(
            base_url=cs.ollama_url,
            model=cs.ollama_model,
            temperature=cs.temperature,
            max_tokens=cs.max_tokens,
            timeout_s=cs.timeout_s,
        )
    else:
        from advisor_chat.adapters.llm_mock import EchoMockChatModel
        chat_model = EchoMockChatModel()

    if cs.embedder_backend == "sbert":
        from advisor_chat.adapters.embed_sbert import SentenceTransformerEmbedder
        embedder: Embedder = SentenceTransformerEmbedder(model_name=settings.rag.sbert_model)
    else:
        from advisor_chat.adapters.embed_hash import HashingEmbedder
        embedder = HashingEmbedder()

    rag_store = JsonVectorStore(settings.rag.rag_store_path, embedder)
    splitter = CharTextSplitter(
        chunk_chars=settings.rag.chunk_chars,
        overlap_chars=settings.rag.overlap_chars,
    )
    loaders = {
        "txt": TxtLoader(),
        "md": TxtLoader(),
        "pdf": PdfLoaderPyPDF(),
    }

    return {
        "chat_model": chat_model,
        "chat_memory": InMemoryChatMemory(),
        "rag_store": rag_store,
        "indexer": DocumentIndexer(loaders=loaders, splitter=splitter, store=rag_store),
    }


def _build_advisors(settings: AppSettings, shared: Dict[str, Any]) -> List[Advisor]:
    advisors: List[Advisor] = []
    mem = settings.memory
    rag = settings.rag

    if mem.enable_memory:
        cls = MessageChatMemoryAdvisor if mem.memory_mode == "messages" else PromptChatMemoryAdvisor
        advisors.append(cls(chat_memory=shared["chat_memory"], default_retrieve_size=mem.retrieve_size))

    rag_store: JsonVectorStore = shared["rag_store"]
    if rag.enable_rag and rag_store.count() > 0:
        options = SearchOptions(top_k=rag.rag_top_k, similarity_threshold=rag.similarity_threshold)
        if rag.query_requirement.strip():
            advisors.append(
                QueryTransformerQuestionAnswerAdvisor(
                    rag_store,
                    shared["chat_model"],
                    rag.query_requirement,
                    search_options=options,
                )
            )
        else:
            advisors.append(QuestionAnswerAdvisor(rag_store, search_options=options))

    if settings.client.log_advisor:
        advisors.append(SimpleLoggerAdvisor())

    return advisors


def build_bundle(settings: AppSettings) -> ClientBundle:
    with _cache_lock:
        shared = _shared.get(settings)
        if shared is None:
            shared = _build_shared(settings)
            _shared[settings] = shared

    cs = settings.client
    client = (
        ChatClient.builder(shared["chat_model"])
        .default_system(cs.system_prompt)
        .default_options(ChatOptions(temperature=cs.temperature, max_tokens=cs.max_tokens))
        .default_advisors(*_build_advisors(settings, shared))
        .build()
    )

    return ClientBundle(
        client=client,
        chat_model=shared["chat_model"],
        chat_memory=shared["chat_memory"],
        rag_store=shared["rag_store"],
        indexer=shared["indexer"],
    )


def debug_meta(request: AdvisedRequest, context: AdvisorContext) -> Dict[str, Any]:
    docs = context.get(RETRIEVED_DOCUMENTS_KEY) or []
    return {
        "conversation_id": request.conversation_id,
        "system_text": request.system_text,
        "history_messages": len(request.messages),
        "transformed_query": context.get(TRANSFORMED_QUERY_KEY),
        "retrieved": [{"id": d.id, "score": d.score, "source": d.metadata.get("source")} for d in docs],
    }
