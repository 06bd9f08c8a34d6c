from .advisor_logger import SimpleLoggerAdvisor
from .advisor_memory import MessageChatMemoryAdvisor, PromptChatMemoryAdvisor
from .advisor_qa import QueryTransformerQuestionAnswerAdvisor, QuestionAnswerAdvisor
from .llm_mock import EchoMockChatModel, ScriptedMockChatModel
from .memory_inmemory import InMemoryChatMemory

__all__ = [
    "SimpleLoggerAdvisor",
    "MessageChatMemoryAdvisor", "PromptChatMemoryAdvisor",
    "QueryTransformerQuestionAnswerAdvisor", "QuestionAnswerAdvisor",
    "EchoMockChatModel", "ScriptedMockChatModel",
    "InMemoryChatMemory",
]
