import json
import logging
from functools import lru_cache
from typing import Any, Protocol

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings

from prquiz.models.schemas import AIProvider, Difficulty, FocusArea

logger = logging.getLogger(__name__)

DEFAULT_LOCAL_ENDPOINT = "http://localhost:11434"


class Settings(BaseSettings):
    github_token: str | None = None
    github_api_url: str = "https://api.github.com"
    github_timeout_seconds: float = 30.0

    openai_api_key: str | None = None
    openai_api_url: str = "https://api.openai.com/v1"
    openai_model: str = "gpt-4-turbo-preview"

    google_api_key: str | None = None
    google_api_url: str = "https://generativelanguage.googleapis.com/v1beta"
    google_model: str = "gemini-2.0-flash"

    # Local runtime is only considered configured when an endpoint is set.
    local_llm_endpoint: str | None = None
    local_llm_model: str = "llama2"
    local_llm_api_key: str | None = None

    default_ai_provider: AIProvider = "openai"
    default_question_count: int = Field(default=10, gt=0)
    default_difficulty: Difficulty = "mixed"

    hosted_timeout_seconds: float = 60.0
    local_timeout_seconds: float = 120.0  # on-device inference is slow

    cache_enabled: bool = False
    cache_ttl_seconds: int = 3600
    cache_max_size: int = 100

    generate_rate_limit: int = 10  # quiz generations per client per minute
    log_level: str = "INFO"

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


@lru_cache
def get_settings() -> Settings:
    return Settings()


# ---------------------------------------------------------------------------
# Runtime quiz configuration
# ---------------------------------------------------------------------------

class APIKeys(BaseModel):
    openai: str | None = None
    google: str | None = None


class LocalLLMConfig(BaseModel):
    endpoint: str = DEFAULT_LOCAL_ENDPOINT
    model: str = "llama2"
    api_key: str | None = None


class CacheConfig(BaseModel):
    enabled: bool = False
    ttl_seconds: int = 3600
    max_size: int = 100


class QuizConfig(BaseModel):
    """User-chosen configuration, read-only for the duration of one generation."""

    ai_provider: AIProvider = "openai"
    api_keys: APIKeys = Field(default_factory=APIKeys)
    local_llm: LocalLLMConfig | None = None
    question_count: int = Field(default=10, gt=0)
    difficulty: Difficulty = "mixed"
    focus_areas: list[FocusArea] | None = None
    cache: CacheConfig = Field(default_factory=CacheConfig)

    openai_api_url: str = "https://api.openai.com/v1"
    openai_model: str = "gpt-4-turbo-preview"
    google_api_url: str = "https://generativelanguage.googleapis.com/v1beta"
    google_model: str = "gemini-2.0-flash"
    hosted_timeout_seconds: float = 60.0
    local_timeout_seconds: float = 120.0

    def has_any_provider(self) -> bool:
        return bool(self.api_keys.openai or self.api_keys.google or self.local_llm)


class SettingsStore(Protocol):
    """Key-value store for user settings that survive a restart."""

    def get(self, key: str) -> Any: ...

    def set(self, key: str, value: Any) -> None: ...


class InMemorySettingsStore:
    def __init__(self, initial: dict[str, Any] | None = None):
        self._values: dict[str, Any] = dict(initial or {})

    def get(self, key: str) -> Any:
        return self._values.get(key)

    def set(self, key: str, value: Any) -> None:
        self._values[key] = value


QUIZ_CONFIG_KEY = "quiz-config"


def config_from_settings(settings: Settings) -> QuizConfig:
    local_llm = None
    if settings.local_llm_endpoint:
        local_llm = LocalLLMConfig(
            endpoint=settings.local_llm_endpoint,
            model=settings.local_llm_model,
            api_key=settings.local_llm_api_key,
        )
    return QuizConfig(
        ai_provider=settings.default_ai_provider,
        api_keys=APIKeys(openai=settings.openai_api_key, google=settings.google_api_key),
        local_llm=local_llm,
        question_count=settings.default_question_count,
        difficulty=settings.default_difficulty,
        cache=CacheConfig(
            enabled=settings.cache_enabled,
            ttl_seconds=settings.cache_ttl_seconds,
            max_size=settings.cache_max_size,
        ),
        openai_api_url=settings.openai_api_url,
        openai_model=settings.openai_model,
        google_api_url=settings.google_api_url,
        google_model=settings.google_model,
        hosted_timeout_seconds=settings.hosted_timeout_seconds,
        local_timeout_seconds=settings.local_timeout_seconds,
    )


def load_quiz_config(settings: Settings, store: SettingsStore | None = None) -> QuizConfig:
    """Build the runtime config from settings, overlaid with stored user choices.

    The store holds a JSON object under ``quiz-config``. Fields missing from
    it keep the values derived from the environment.
    """
    config = config_from_settings(settings)
    if store is None:
        return config

    raw = store.get(QUIZ_CONFIG_KEY)
    if not raw:
        return config

    try:
        stored = json.loads(raw) if isinstance(raw, str) else dict(raw)
        merged = {**config.model_dump(), **stored}
        return QuizConfig.model_validate(merged)
    except (ValueError, TypeError) as exc:
        logger.warning("Ignoring invalid stored quiz config: %s", exc)
        return config


def save_quiz_config(config: QuizConfig, store: SettingsStore) -> None:
    store.set(QUIZ_CONFIG_KEY, config.model_dump_json())
