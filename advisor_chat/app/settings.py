from __future__ import annotations

import os
from dataclasses import dataclass, field


def _env_int(name: str, default: int) -> int:
    v = os.getenv(name)
    if v is None or v.strip() == "":
        return default
    try:
        return int(v)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    v = os.getenv(name)
    if v is None or v.strip() == "":
        return default
    try:
        return float(v)
    except ValueError:
        return default


def _env_str(name: str, default: str) -> str:
    v = os.getenv(name)
    return default if v is None or v.strip() == "" else v


def _env_bool(name: str, default: bool) -> bool:
    v = os.getenv(name)
    if v is None or v.strip() == "":
        return default
    return v.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_choice(name: str, default: str, allowed: set[str]) -> str:
    v = os.getenv(name)
    if v is None or v.strip() == "":
        return default
    val = v.strip().lower()
    return val if val in allowed else default


@dataclass(frozen=True)
class ClientSettings:
    system_prompt: str = "You are a helpful assistant."

    llm_backend: str = "mock"        # mock | ollama
    embedder_backend: str = "hash"   # hash | sbert

    ollama_url: str = "http://127.0.0.1:11434"
    ollama_model: str = "llama3.1:8b"
    temperature: float = 0.2
    max_tokens: int = 512
    timeout_s: int = 120

    log_advisor: bool = False


@dataclass(frozen=True)
class MemorySettings:
    enable_memory: bool = True
    memory_mode: str = "prompt"      # prompt | messages
    retrieve_size: int = 100


@dataclass(frozen=True)
class RagSettings:
    enable_rag: bool = True
    rag_store_path: str = "./rag_store.json"
    rag_top_k: int = 4
    similarity_threshold: float = 0.0

    # пусто = без переписывания запроса
    query_requirement: str = ""

    chunk_chars: int = 2000
    overlap_chars: int = 300

    sbert_model: str = "sentence-transformers/all-MiniLM-L6-v2"


@dataclass(frozen=True)
class AppSettings:
    client: ClientSettings = field(default_factory=ClientSettings)
    memory: MemorySettings = field(default_factory=MemorySettings)
    rag: RagSettings = field(default_factory=RagSettings)

    @staticmethod
    def from_env() -> "AppSettings":
        client = ClientSettings(
            system_prompt=_env_str("CA_SYSTEM_PROMPT", ClientSettings.system_prompt),
            llm_backend=_env_choice("CA_LLM", ClientSettings.llm_backend, {"mock", "ollama"}),
            embedder_backend=_env_choice("CA_EMBEDDER", ClientSettings.embedder_backend, {"hash", "sbert"}),
            ollama_url=_env_str("CA_OLLAMA_URL", ClientSettings.ollama_url),
            ollama_model=_env_str("CA_OLLAMA_MODEL", ClientSettings.ollama_model),
            temperature=_env_float("CA_TEMPERATURE", ClientSettings.temperature),
            max_tokens=_env_int("CA_MAX_TOKENS", ClientSettings.max_tokens),
            timeout_s=_env_int("CA_TIMEOUT", ClientSettings.timeout_s),
            log_advisor=_env_bool("CA_LOG_ADVISOR", ClientSettings.log_advisor),
        )

        memory = MemorySettings(
            enable_memory=_env_bool("CA_ENABLE_MEMORY", MemorySettings.enable_memory),
            memory_mode=_env_choice("CA_MEMORY_MODE", MemorySettings.memory_mode, {"prompt", "messages"}),
            retrieve_size=_env_int("CA_MEMORY_SIZE", MemorySettings.retrieve_size),
        )

        rag = RagSettings(
            enable_rag=_env_bool("CA_ENABLE_RAG", RagSettings.enable_rag),
            rag_store_path=_env_str("CA_RAG_STORE", RagSettings.rag_store_path),
            rag_top_k=_env_int("CA_RAG_TOPK", RagSettings.rag_top_k),
            similarity_threshold=_env_float("CA_RAG_THRESHOLD", RagSettings.similarity_threshold),
            query_requirement=_env_str("CA_QUERY_REQUIREMENT", RagSettings.query_requirement),
            chunk_chars=_env_int("CA_CHUNK_CHARS", RagSettings.chunk_chars),
            overlap_chars=_env_int("CA_OVERLAP_CHARS", RagSettings.overlap_chars),
            sbert_model=_env_str("CA_SBERT_MODEL", RagSettings.sbert_model),
        )

        return AppSettings(client=client, memory=memory, rag=rag)
