import json
from types import SimpleNamespace

import httpx
import openai
import pytest
from openai import AsyncOpenAI

from prquiz.config import APIKeys, LocalLLMConfig, QuizConfig
from prquiz.llm.providers.base import LocalModelNotFoundError, ProviderError, ResponseParseError
from prquiz.llm.providers.factory import create_provider, ensure_provider_configured
from prquiz.llm.providers.google_provider import GoogleAIProvider
from prquiz.llm.providers.local_provider import LocalLLMProvider
from prquiz.llm.providers.openai_provider import OpenAIProvider
from prquiz.llm.question_generator import build_context
from prquiz.models.schemas import GenerateOptions
from prquiz.utils.errors import ErrorCategory, classify_error

GEMINI_PATH = "/v1beta/models/gemini-2.0-flash:generateContent"


@pytest.fixture
def context(scenario_pr):
    return build_context(scenario_pr, GenerateOptions(question_count=2))


def _completion(content):
    return {
        "id": "chatcmpl-1",
        "object": "chat.completion",
        "created": 1700000000,
        "model": "gpt-4-turbo-preview",
        "choices": [
            {"index": 0, "message": {"role": "assistant", "content": content}, "finish_reason": "stop"}
        ],
    }


def _openai(transport):
    client = AsyncOpenAI(
        api_key="sk-test",
        base_url="https://openai.test/v1",
        http_client=httpx.AsyncClient(transport=transport),
        max_retries=0,
    )
    return OpenAIProvider(api_key="sk-test", client=client)


async def test_openai_generates_questions(mock_transport, questions_json, context):
    transport = mock_transport({
        ("POST", "/v1/chat/completions"): httpx.Response(200, json=_completion(questions_json(3))),
    })
    questions = await _openai(transport).generate_questions(context)

    assert len(questions) == 2
    body = json.loads(transport.requests[0].content)
    assert body["response_format"] == {"type": "json_object"}
    assert [m["role"] for m in body["messages"]] == ["system", "user"]
    assert "- Number of questions: 2" in body["messages"][1]["content"]


async def test_openai_status_error_is_a_provider_error(mock_transport, context):
    transport = mock_transport({
        ("POST", "/v1/chat/completions"): httpx.Response(
            401, json={"error": {"message": "Incorrect API key provided", "type": "invalid_request_error"}}
        ),
    })
    with pytest.raises(ProviderError) as exc_info:
        await _openai(transport).generate_questions(context)

    error = exc_info.value
    assert error.provider_name == "openai"
    assert "401" in error.message
    assert "Incorrect API key provided" in error.message
    assert len(transport.requests) == 1


async def test_openai_unparseable_content(mock_transport, context):
    transport = mock_transport({
        ("POST", "/v1/chat/completions"): httpx.Response(200, json=_completion("no quiz today")),
    })
    with pytest.raises(ResponseParseError) as exc_info:
        await _openai(transport).generate_questions(context)
    assert exc_info.value.raw_text == "no quiz today"


async def test_openai_validate_connection(mock_transport):
    ok = mock_transport({("GET", "/v1/models"): httpx.Response(200, json={"object": "list", "data": []})})
    assert await _openai(ok).validate_connection() is True
    denied = mock_transport({("GET", "/v1/models"): httpx.Response(401, json={"error": {"message": "bad key"}})})
    assert await _openai(denied).validate_connection() is False


async def test_google_reads_fenced_candidate(mock_transport, questions_json, context):
    text = f"```json\n{questions_json(2)}\n```"
    transport = mock_transport({
        ("POST", GEMINI_PATH): httpx.Response(
            200, json={"candidates": [{"content": {"parts": [{"text": text}]}}]}
        ),
    })
    provider = GoogleAIProvider("g-key", base_url="https://gemini.test/v1beta", transport=transport)

    questions = await provider.generate_questions(context)

    assert [q.correct_answer for q in questions] == ["a", "a"]
    request = transport.requests[0]
    assert request.url.params["key"] == "g-key"
    body = json.loads(request.content)
    assert body["safetySettings"]
    assert body["systemInstruction"]["parts"][0]["text"]


async def test_google_error_response(mock_transport, context):
    transport = mock_transport({
        ("POST", GEMINI_PATH): httpx.Response(
            429, json={"error": {"code": 429, "message": "Resource has been exhausted (e.g. check quota)."}}
        ),
    })
    provider = GoogleAIProvider("g-key", base_url="https://gemini.test/v1beta", transport=transport)

    with pytest.raises(ProviderError, match="quota") as exc_info:
        await provider.generate_questions(context)
    assert exc_info.value.provider_name == "google"


async def test_google_without_candidates(mock_transport, context):
    transport = mock_transport({("POST", GEMINI_PATH): httpx.Response(200, json={"candidates": []})})
    provider = GoogleAIProvider("g-key", base_url="https://gemini.test/v1beta", transport=transport)
    with pytest.raises(ProviderError, match="no candidates"):
        await provider.generate_questions(context)


def _local(transport, model="llama2", api_key=None):
    return LocalLLMProvider(
        LocalLLMConfig(endpoint="http://ollama.test/", model=model, api_key=api_key),
        transport=transport,
    )


async def test_local_generate_uses_json_format(mock_transport, questions_json, context):
    transport = mock_transport({
        ("POST", "/api/generate"): httpx.Response(200, json={"model": "llama2", "response": questions_json(2), "done": True}),
    })
    questions = await _local(transport, api_key="secret").generate_questions(context)

    assert len(questions) == 2
    request = transport.requests[0]
    body = json.loads(request.content)
    assert body["format"] == "json"
    assert body["stream"] is False
    assert body["model"] == "llama2"
    assert request.headers["Authorization"] == "Bearer secret"


async def test_local_error_status(mock_transport, context):
    transport = mock_transport({
        ("POST", "/api/generate"): httpx.Response(500, json={"error": "model crashed"}),
    })
    with pytest.raises(ProviderError, match="model crashed"):
        await _local(transport).generate_questions(context)


async def test_local_validate_connection_finds_latest_tag(mock_transport):
    transport = mock_transport({
        ("GET", "/api/tags"): httpx.Response(200, json={"models": [{"name": "llama2:latest"}]}),
    })
    assert await _local(transport).validate_connection() is True


async def test_local_missing_model_lists_installed(mock_transport):
    transport = mock_transport({
        ("GET", "/api/tags"): httpx.Response(
            200, json={"models": [{"name": "mistral:7b"}, {"name": "codellama:latest"}]}
        ),
    })
    with pytest.raises(LocalModelNotFoundError) as exc_info:
        await _local(transport, model="llama3").validate_connection()

    error = exc_info.value
    assert error.installed == ["mistral:7b", "codellama:latest"]
    assert "mistral:7b, codellama:latest" in error.message


async def test_local_unreachable_endpoint():
    def refuse(request):
        raise httpx.ConnectError("connection refused", request=request)

    assert await _local(httpx.MockTransport(refuse)).validate_connection() is False


def test_factory_builds_requested_provider():
    config = QuizConfig(ai_provider="google", api_keys=APIKeys(google="g-key"))
    assert isinstance(create_provider(config), GoogleAIProvider)

    config = QuizConfig(ai_provider="local", local_llm=LocalLLMConfig(model="mistral"))
    provider = create_provider(config)
    assert isinstance(provider, LocalLLMProvider)
    assert provider.name() == "Local LLM (mistral)"
    assert provider.timeout == 120.0

    assert isinstance(create_provider(QuizConfig(api_keys=APIKeys(openai="sk-x"))), OpenAIProvider)


@pytest.mark.parametrize("config,message", [
    (QuizConfig(ai_provider="openai", api_keys=APIKeys(google="g-key")), "OpenAI API key is required"),
    (QuizConfig(ai_provider="google", api_keys=APIKeys(openai="sk-x")), "Google API key is required"),
    (QuizConfig(ai_provider="local", api_keys=APIKeys(openai="sk-x")), "Local LLM configuration is required"),
])
def test_factory_never_falls_back(config, message):
    with pytest.raises(ProviderError, match=message):
        create_provider(config)


def test_ensure_provider_configured():
    with pytest.raises(ProviderError, match="must be configured"):
        ensure_provider_configured(QuizConfig())
    ensure_provider_configured(QuizConfig(local_llm=LocalLLMConfig()))


def _time_out(request):
    raise httpx.ReadTimeout("timed out", request=request)


def _refuse(request):
    raise httpx.ConnectError("connection refused", request=request)


@pytest.mark.parametrize("build,provider_name", [
    (lambda transport: _openai(transport), "openai"),
    (lambda transport: GoogleAIProvider("g-key", base_url="https://gemini.test/v1beta", transport=transport), "google"),
    (lambda transport: _local(transport), "local"),
])
@pytest.mark.parametrize("handler", [_time_out, _refuse], ids=["timeout", "network"])
async def test_timeouts_and_network_failures_are_provider_errors(build, provider_name, handler, context):
    provider = build(httpx.MockTransport(handler))

    with pytest.raises(ProviderError) as exc_info:
        await provider.generate_questions(context)

    error = exc_info.value
    assert error.provider_name == provider_name
    assert classify_error(error) is ErrorCategory.NETWORK


async def test_openai_unexpected_client_error_is_wrapped(context):
    async def create(**kwargs):
        raise openai.OpenAIError("client misconfigured")

    client = SimpleNamespace(chat=SimpleNamespace(completions=SimpleNamespace(create=create)))
    provider = OpenAIProvider(api_key="sk-test", client=client)

    with pytest.raises(ProviderError, match="client misconfigured") as exc_info:
        await provider.generate_questions(context)
    assert exc_info.value.provider_name == "openai"


@pytest.mark.parametrize("body", [
    {"candidates": ["not an object"]},
    {"candidates": [{"content": "plain"}]},
    {"candidates": [{"finishReason": "SAFETY"}]},
    {"candidates": "none"},
])
async def test_google_malformed_candidates(mock_transport, context, body):
    transport = mock_transport({("POST", GEMINI_PATH): httpx.Response(200, json=body)})
    provider = GoogleAIProvider("g-key", base_url="https://gemini.test/v1beta", transport=transport)
    with pytest.raises(ProviderError, match="no candidates"):
        await provider.generate_questions(context)


async def test_local_malformed_model_list(mock_transport):
    transport = mock_transport({("GET", "/api/tags"): httpx.Response(200, json=[{"name": "llama2"}])})
    provider = _local(transport)

    with pytest.raises(ProviderError, match="/api/tags"):
        await provider.installed_models()
    assert await provider.validate_connection() is False


async def test_local_response_that_is_not_text(mock_transport, context):
    transport = mock_transport({
        ("POST", "/api/generate"): httpx.Response(200, json={"response": {"questions": []}}),
    })
    with pytest.raises(ProviderError, match="not text"):
        await _local(transport).generate_questions(context)
