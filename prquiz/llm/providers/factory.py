from prquiz.config import QuizConfig
from prquiz.llm.providers.base import ProviderError, QuizProvider
from prquiz.llm.providers.google_provider import GoogleAIProvider
from prquiz.llm.providers.local_provider import LocalLLMProvider
from prquiz.llm.providers.openai_provider import OpenAIProvider


def ensure_provider_configured(config: QuizConfig) -> None:
    if not config.has_any_provider():
        raise ProviderError(
            "An AI provider API key or a local LLM endpoint must be configured",
            config.ai_provider,
        )


def create_provider(config: QuizConfig) -> QuizProvider:
    """Build the provider named by ``config.ai_provider``.

    There is no fallback: a provider without credentials is an error even
    when another one is configured.
    """
    if config.ai_provider == "openai":
        if not config.api_keys.openai:
            raise ProviderError("OpenAI API key is required", "openai")
        return OpenAIProvider(
            api_key=config.api_keys.openai,
            model=config.openai_model,
            base_url=config.openai_api_url,
            timeout=config.hosted_timeout_seconds,
        )

    if config.ai_provider == "google":
        if not config.api_keys.google:
            raise ProviderError("Google API key is required", "google")
        return GoogleAIProvider(
            api_key=config.api_keys.google,
            model=config.google_model,
            base_url=config.google_api_url,
            timeout=config.hosted_timeout_seconds,
        )

    if config.ai_provider == "local":
        if not config.local_llm:
            raise ProviderError("Local LLM configuration is required", "local")
        return LocalLLMProvider(config.local_llm, timeout=config.local_timeout_seconds)

    raise ProviderError(f"Unsupported AI provider: {config.ai_provider}", "unknown")
