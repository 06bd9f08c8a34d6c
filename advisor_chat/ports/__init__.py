from .advisor import Advisor, AdvisorContext
from .chat_memory import ChatMemory
from .chat_model import ChatModel
from .embeddings import Embedder
from .ingest import DocumentLoader, TextSplitter
from .vector_store import VectorStore

__all__ = [
    "Advisor",
    "AdvisorContext",
    "ChatMemory",
    "ChatModel",
    "Embedder",
    "DocumentLoader",
    "TextSplitter",
    "VectorStore",
]
