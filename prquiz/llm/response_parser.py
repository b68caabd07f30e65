import json
import logging
import re
import string
from typing import Any

from pydantic import ValidationError

from prquiz.llm.providers.base import ResponseParseError
from prquiz.models.schemas import Question

logger = logging.getLogger(__name__)

JSON_FENCE = re.compile(r"```json\s*\n(.*?)\n?```", re.DOTALL | re.IGNORECASE)
ANY_FENCE = re.compile(r"```[\w-]*\s*\n(.*?)\n?```", re.DOTALL)

QUESTION_TYPES = {"multiple-choice", "true-false", "code-review", "explanation"}
DIFFICULTIES = {"easy", "medium", "hard"}


def extract_json(raw: str) -> Any:
    """Locate and decode the JSON payload in a model response.

    Tries a fenced ```json block, then any fenced block, then the whole
    text, then the outermost ``{...}`` slice. Raises ``ValueError`` when
    nothing decodes.
    """
    candidates = []
    for pattern in (JSON_FENCE, ANY_FENCE):
        match = pattern.search(raw)
        if match:
            candidates.append(match.group(1))
    candidates.append(raw)
    first, last = raw.find("{"), raw.rfind("}")
    if first != -1 and last > first:
        candidates.append(raw[first:last + 1])

    for candidate in candidates:
        try:
            return json.loads(candidate.strip())
        except json.JSONDecodeError:
            continue
    raise ValueError("no JSON object found in model response")


def parse_questions(raw: str | None, question_count: int, provider_name: str) -> list[Question]:
    """Turn raw model output into at most ``question_count`` questions."""
    if not raw or not raw.strip():
        raise ResponseParseError("Empty response from model", provider_name, raw or "")

    try:
        payload = extract_json(raw)
    except ValueError as exc:
        logger.error("Unparseable %s response: %s", provider_name, raw[:500])
        raise ResponseParseError(
            f"Failed to parse {provider_name} response as JSON", provider_name, raw, str(exc)
        ) from exc

    if isinstance(payload, dict):
        items = payload.get("questions")
    elif isinstance(payload, list):
        items = payload
    else:
        items = None
    if not isinstance(items, list):
        raise ResponseParseError(
            f"{provider_name} response has no 'questions' array", provider_name, raw
        )

    questions = []
    for index, item in enumerate(items[:question_count]):
        if not isinstance(item, dict):
            raise ResponseParseError(
                f"Question {index + 1} is not an object", provider_name, raw
            )
        try:
            questions.append(coerce_question(item, index))
        except ValidationError as exc:
            raise ResponseParseError(
                f"Question {index + 1} does not match the quiz schema",
                provider_name,
                raw,
                exc.errors(include_url=False),
            ) from exc

    if len(questions) < question_count:
        logger.info("%s returned %d of %d requested questions", provider_name, len(questions), question_count)
    return questions


def coerce_question(item: dict, index: int) -> Question:
    options = _coerce_options(item.get("options"))
    correct_answer = item.get("correctAnswer", item.get("correct_answer"))
    if correct_answer is None and options:
        correct_answer = _answer_from_flags(options)
    correct_answer = _coerce_answer(correct_answer)
    if options:
        correct_answer = _match_option_ids(correct_answer, options)

    q_type = item.get("type")
    difficulty = item.get("difficulty")
    tags = item.get("tags")

    return Question.model_validate({
        "id": str(item.get("id") or f"question-{index + 1}"),
        "type": q_type if q_type in QUESTION_TYPES else "multiple-choice",
        "content": item.get("content") or item.get("question") or "",
        "code": _coerce_code(item.get("code")),
        "options": options,
        "correctAnswer": correct_answer,
        "explanation": item.get("explanation") or "",
        "difficulty": difficulty if difficulty in DIFFICULTIES else "medium",
        "tags": [str(tag) for tag in tags] if isinstance(tags, list) else [],
    })


def _coerce_options(raw_options: Any) -> list[dict] | None:
    if not isinstance(raw_options, list) or not raw_options:
        return None
    options = []
    for position, option in enumerate(raw_options):
        default_id = string.ascii_lowercase[position] if position < 26 else str(position)
        if isinstance(option, str):
            options.append({"id": default_id, "text": option, "isCorrect": False})
        elif isinstance(option, dict):
            options.append({
                "id": str(option.get("id") or default_id),
                "text": str(option.get("text", "")),
                "isCorrect": bool(option.get("isCorrect", option.get("is_correct", False))),
            })
    return options or None


def _answer_from_flags(options: list[dict]) -> str | list[str] | None:
    correct = [option["id"] for option in options if option["isCorrect"]]
    if not correct:
        return None
    return correct[0] if len(correct) == 1 else correct


def _coerce_answer(answer: Any) -> str | list[str]:
    if isinstance(answer, bool):
        return "true" if answer else "false"
    if isinstance(answer, list):
        return [_coerce_answer(a) for a in answer]
    if answer is None:
        return ""
    return str(answer)


def _match_option_ids(answer: str | list[str], options: list[dict]) -> str | list[str]:
    """Map answers given as option text (or a differently-cased id) onto option ids.

    Answers that match nothing are returned unchanged and fail validation.
    """
    if isinstance(answer, list):
        return [_match_option_id(a, options) for a in answer]
    return _match_option_id(answer, options)


def _match_option_id(answer: str, options: list[dict]) -> str:
    ids = [option["id"] for option in options]
    if answer in ids:
        return answer
    wanted = answer.strip().casefold()
    for option in options:
        if wanted and wanted in (option["id"].casefold(), option["text"].strip().casefold()):
            return option["id"]
    return answer


def _coerce_code(code: Any) -> dict | None:
    if isinstance(code, str):
        return {"content": code} if code.strip() else None
    if isinstance(code, dict) and isinstance(code.get("content"), str):
        return code
    return None
