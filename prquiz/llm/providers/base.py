from typing import Any, Protocol

from prquiz.models.schemas import Question, QuizGenerationContext


class ProviderError(Exception):
    """Terminal failure of one generation attempt against an LLM backend."""

    def __init__(self, message: str, provider_name: str, details: Any = None):
        super().__init__(message)
        self.message = message
        self.provider_name = provider_name
        self.details = details


class ResponseParseError(ProviderError):
    """The model answered, but not with a usable question set."""

    def __init__(self, message: str, provider_name: str, raw_text: str, details: Any = None):
        super().__init__(message, provider_name, details)
        self.raw_text = raw_text


class LocalModelNotFoundError(ProviderError):
    def __init__(self, model: str, installed: list[str], provider_name: str = "local"):
        available = ", ".join(installed) if installed else "none"
        super().__init__(
            f"Model '{model}' is not installed on the local LLM endpoint. "
            f"Installed models: {available}",
            provider_name,
            {"model": model, "installed": installed},
        )
        self.model = model
        self.installed = installed


class QuizProvider(Protocol):
    def name(self) -> str: ...

    async def generate_questions(self, context: QuizGenerationContext) -> list[Question]: ...

    async def validate_connection(self) -> bool: ...
