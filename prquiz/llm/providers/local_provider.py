import logging

import httpx

from prquiz.config import LocalLLMConfig
from prquiz.llm.prompt_builder import build_prompt
from prquiz.llm.prompts import SYSTEM_PROMPT
from prquiz.llm.providers.base import LocalModelNotFoundError, ProviderError
from prquiz.llm.response_parser import parse_questions
from prquiz.models.schemas import Question, QuizGenerationContext

logger = logging.getLogger(__name__)

PROVIDER = "local"


class LocalLLMProvider:
    """Ollama-compatible runtime: non-streaming ``/api/generate`` in JSON format."""

    def __init__(
        self,
        config: LocalLLMConfig,
        timeout: float = 120.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.config = config
        self.timeout = timeout
        self.transport = transport

    def name(self) -> str:
        return f"Local LLM ({self.config.model})"

    def _client(self) -> httpx.AsyncClient:
        headers = {"Content-Type": "application/json"}
        if self.config.api_key:
            headers["Authorization"] = f"Bearer {self.config.api_key}"
        return httpx.AsyncClient(
            base_url=self.config.endpoint.rstrip("/"),
            headers=headers,
            timeout=self.timeout,
            transport=self.transport,
        )

    async def installed_models(self) -> list[str]:
        async with self._client() as client:
            resp = await client.get("/api/tags")
            resp.raise_for_status()
        data = resp.json()
        models = data.get("models") if isinstance(data, dict) else None
        if not isinstance(models, list):
            raise ProviderError("Local LLM error: unexpected /api/tags response", PROVIDER, data)
        return [m["name"] for m in models if isinstance(m, dict) and isinstance(m.get("name"), str)]

    async def validate_connection(self) -> bool:
        """True when the endpoint answers and serves the configured model.

        Raises ``LocalModelNotFoundError`` when the endpoint is up but the
        model is missing, so the caller can show the alternatives.
        """
        try:
            installed = await self.installed_models()
        except (httpx.HTTPError, ValueError, ProviderError) as exc:
            logger.debug("Local LLM connection check failed: %s", exc)
            return False

        if not _model_installed(self.config.model, installed):
            raise LocalModelNotFoundError(self.config.model, installed, PROVIDER)
        return True

    async def generate_questions(self, context: QuizGenerationContext) -> list[Question]:
        payload = {
            "model": self.config.model,
            "system": SYSTEM_PROMPT,
            "prompt": build_prompt(context),
            "format": "json",
            "stream": False,
            "options": {"temperature": 0.7, "top_p": 0.9},
        }

        try:
            async with self._client() as client:
                resp = await client.post("/api/generate", json=payload)
        except httpx.TimeoutException as exc:
            raise ProviderError("Local LLM error: request timeout", PROVIDER) from exc
        except httpx.RequestError as exc:
            raise ProviderError(f"Local LLM error: network connection failed ({exc})", PROVIDER) from exc

        try:
            data = resp.json()
        except ValueError:
            data = resp.text

        if not resp.is_success:
            message = data.get("error") if isinstance(data, dict) else data
            raise ProviderError(
                f"Local LLM error ({resp.status_code}): {message or resp.reason_phrase}",
                PROVIDER,
                data,
            )
        if not isinstance(data, dict):
            raise ProviderError("Local LLM error: response is not a JSON object", PROVIDER, data)

        content = data.get("response")
        if content is not None and not isinstance(content, str):
            raise ProviderError("Local LLM error: response field is not text", PROVIDER, data)
        logger.info("Local LLM raw response: %s", content[:500] if content else "(empty)")
        return parse_questions(content, context.question_count, PROVIDER)


def _model_installed(model: str, installed: list[str]) -> bool:
    # "llama2" is served as "llama2:latest"
    if model in installed:
        return True
    if ":" not in model:
        return f"{model}:latest" in installed
    return False
