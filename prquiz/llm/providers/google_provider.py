import logging

import httpx

from prquiz.llm.prompt_builder import build_prompt
from prquiz.llm.prompts import SYSTEM_PROMPT
from prquiz.llm.providers.base import ProviderError
from prquiz.llm.response_parser import parse_questions
from prquiz.models.schemas import Question, QuizGenerationContext

logger = logging.getLogger(__name__)

PROVIDER = "google"

SAFETY_SETTINGS = [
    {"category": category, "threshold": "BLOCK_ONLY_HIGH"}
    for category in (
        "HARM_CATEGORY_HARASSMENT",
        "HARM_CATEGORY_HATE_SPEECH",
        "HARM_CATEGORY_SEXUALLY_EXPLICIT",
        "HARM_CATEGORY_DANGEROUS_CONTENT",
    )
]


class GoogleAIProvider:
    """Gemini ``generateContent``; replies usually arrive in a ```json fence."""

    def __init__(
        self,
        api_key: str,
        model: str = "gemini-2.0-flash",
        base_url: str = "https://generativelanguage.googleapis.com/v1beta",
        timeout: float = 60.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.api_key = api_key
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.transport = transport

    def name(self) -> str:
        return "Google AI"

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url,
            params={"key": self.api_key},
            timeout=self.timeout,
            transport=self.transport,
        )

    async def validate_connection(self) -> bool:
        try:
            async with self._client() as client:
                resp = await client.get("/models")
            return resp.is_success
        except httpx.HTTPError as exc:
            logger.debug("Google AI connection check failed: %s", exc)
            return False

    async def generate_questions(self, context: QuizGenerationContext) -> list[Question]:
        payload = {
            "contents": [{"role": "user", "parts": [{"text": build_prompt(context)}]}],
            "systemInstruction": {"parts": [{"text": SYSTEM_PROMPT}]},
            "generationConfig": {"temperature": 0.7, "maxOutputTokens": 4000},
            "safetySettings": SAFETY_SETTINGS,
        }

        try:
            async with self._client() as client:
                resp = await client.post(f"/models/{self.model}:generateContent", json=payload)
        except httpx.TimeoutException as exc:
            raise ProviderError("Google AI API error: request timeout", PROVIDER) from exc
        except httpx.RequestError as exc:
            raise ProviderError(f"Google AI API error: network connection failed ({exc})", PROVIDER) from exc

        if not resp.is_success:
            body = _json_or_text(resp)
            error = body.get("error") if isinstance(body, dict) else body
            message = error.get("message") if isinstance(error, dict) else error
            raise ProviderError(
                f"Google AI API error ({resp.status_code}): {message or resp.reason_phrase}",
                PROVIDER,
                body,
            )

        data = _json_or_text(resp)
        text = _candidate_text(data)
        if text is None:
            raise ProviderError("Google AI API error: response has no candidates with text", PROVIDER, data)
        logger.info("Google AI raw response: %s", text[:500] if text else "(empty)")
        return parse_questions(text, context.question_count, PROVIDER)


def _json_or_text(resp: httpx.Response):
    try:
        return resp.json()
    except ValueError:
        return resp.text


def _candidate_text(data) -> str | None:
    if not isinstance(data, dict):
        return None
    candidates = data.get("candidates")
    if not isinstance(candidates, list) or not candidates or not isinstance(candidates[0], dict):
        return None
    content = candidates[0].get("content")
    parts = content.get("parts") if isinstance(content, dict) else None
    if not isinstance(parts, list):
        return None
    return "".join(
        part["text"] for part in parts if isinstance(part, dict) and isinstance(part.get("text"), str)
    )
