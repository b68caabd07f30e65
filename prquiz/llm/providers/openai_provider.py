import logging

import openai
from openai import AsyncOpenAI

from prquiz.llm.prompt_builder import build_prompt
from prquiz.llm.prompts import SYSTEM_PROMPT
from prquiz.llm.providers.base import ProviderError
from prquiz.llm.response_parser import parse_questions
from prquiz.models.schemas import Question, QuizGenerationContext

logger = logging.getLogger(__name__)

PROVIDER = "openai"


class OpenAIProvider:
    """Chat completions in JSON mode."""

    def __init__(
        self,
        api_key: str,
        model: str = "gpt-4-turbo-preview",
        base_url: str = "https://api.openai.com/v1",
        timeout: float = 60.0,
        client: AsyncOpenAI | None = None,
    ):
        self.model = model
        # A failed call is reported, never retried.
        self.client = client or AsyncOpenAI(
            api_key=api_key,
            base_url=base_url,
            timeout=timeout,
            max_retries=0,
        )

    def name(self) -> str:
        return "OpenAI"

    async def validate_connection(self) -> bool:
        try:
            await self.client.models.list()
            return True
        except openai.OpenAIError as exc:
            logger.debug("OpenAI connection check failed: %s", exc)
            return False

    async def generate_questions(self, context: QuizGenerationContext) -> list[Question]:
        prompt = build_prompt(context)

        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": prompt},
                ],
                response_format={"type": "json_object"},
                temperature=0.7,
                max_tokens=4000,
            )
        except openai.APITimeoutError as exc:
            raise ProviderError("OpenAI API error: request timeout", PROVIDER) from exc
        except openai.APIConnectionError as exc:
            raise ProviderError(f"OpenAI API error: network connection failed ({exc})", PROVIDER) from exc
        except openai.APIStatusError as exc:
            body = exc.body
            message = body.get("message") if isinstance(body, dict) else None
            raise ProviderError(
                f"OpenAI API error ({exc.status_code}): {message or exc.message}",
                PROVIDER,
                body,
            ) from exc
        except openai.OpenAIError as exc:
            raise ProviderError(f"OpenAI API error: {exc}", PROVIDER) from exc

        if not response.choices:
            raise ProviderError("OpenAI API error: response has no choices", PROVIDER)
        content = response.choices[0].message.content
        logger.info("OpenAI raw response: %s", content[:500] if content else "(empty)")
        return parse_questions(content, context.question_count, PROVIDER)
