from __future__ import annotations


class AdvisorError(Exception):
    pass


class ConfigurationError(AdvisorError):
    """Не задан (или задан неверно) обязательный параметр советника."""


class CollaboratorError(AdvisorError):
    """Сбой внешнего сервиса: модели, памяти или хранилища документов."""


class RetrievalError(CollaboratorError):
    pass


class ChatMemoryWarning(UserWarning):
    """Ответ уже получен, но записать ход в память не удалось."""
