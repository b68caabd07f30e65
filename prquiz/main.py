import logging
from contextlib import asynccontextmanager
from typing import Any

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from prquiz.config import (
    InMemorySettingsStore,
    QuizConfig,
    Settings,
    SettingsStore,
    get_settings,
    load_quiz_config,
    save_quiz_config,
)
from prquiz.github.api_client import GitHubClient, InvalidPRReferenceError, SourceAPIError
from prquiz.llm.providers.base import ProviderError
from prquiz.models.schemas import GenerateOptions, Quiz, Schema, ScoreResult
from prquiz.quiz.session import (
    GenerationInProgressError,
    NoActiveQuizError,
    QuizSession,
    UnknownQuestionError,
)
from prquiz.utils.errors import ErrorCategory, classify_error, guidance_for
from prquiz.utils.rate_limiter import SlidingWindowLimiter, limit_quiz_generation

logger = logging.getLogger(__name__)

STATUS_BY_CATEGORY = {
    ErrorCategory.NETWORK: 502,
    ErrorCategory.CREDENTIALS: 401,
    ErrorCategory.RATE_LIMIT: 429,
    ErrorCategory.NOT_FOUND: 404,
    ErrorCategory.GENERIC: 500,
}


class GenerateQuizRequest(GenerateOptions):
    pr_url: str


class SelectionRequest(Schema):
    question_id: str
    option_id: str


def create_app(
    settings: Settings | None = None,
    session: QuizSession | None = None,
    store: SettingsStore | None = None,
) -> FastAPI:
    """Build the API around an explicitly constructed session.

    Tests pass their own ``session``; otherwise one is wired from
    ``settings`` with a real GitHub client.
    """
    settings = settings or get_settings()
    store = store or InMemorySettingsStore()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logging.basicConfig(level=settings.log_level.upper())
        if session is None:
            config = load_quiz_config(settings, store)
            github = GitHubClient(
                token=settings.github_token,
                api_base=settings.github_api_url,
                timeout=settings.github_timeout_seconds,
            )
            app.state.session = QuizSession(github, config)
        else:
            app.state.session = session
        logger.info("Quiz session ready (provider: %s)", app.state.session.config.ai_provider)
        yield

    app = FastAPI(title="PR Quiz Generator", lifespan=lifespan)
    app.state.store = store
    app.state.generate_limiter = SlidingWindowLimiter(max_requests=settings.generate_rate_limit)

    _register_error_handlers(app)

    def get_session(request: Request) -> QuizSession:
        return request.app.state.session

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    @app.get("/metrics")
    async def metrics(s: QuizSession = Depends(get_session)):
        return s.metrics.to_dict()

    @app.get("/config")
    async def read_config(s: QuizSession = Depends(get_session)):
        return _public_config(s.config)

    @app.patch("/config")
    async def update_config(changes: dict[str, Any], s: QuizSession = Depends(get_session)):
        try:
            config = QuizConfig.model_validate({**s.config.model_dump(), **changes})
        except ValidationError as exc:
            raise HTTPException(status_code=422, detail=exc.errors(include_url=False)) from exc
        s.update_config(config)
        save_quiz_config(config, app.state.store)
        return _public_config(config)

    @app.post("/providers/validate")
    async def validate_provider(s: QuizSession = Depends(get_session)):
        provider = s.provider_factory(s.config)
        return {"provider": provider.name(), "connected": await provider.validate_connection()}

    @app.post("/quiz", response_model=Quiz, dependencies=[Depends(limit_quiz_generation)])
    async def generate_quiz(body: GenerateQuizRequest, s: QuizSession = Depends(get_session)):
        options = GenerateOptions.model_validate(body.model_dump(exclude={"pr_url"}))
        return await s.generate(body.pr_url, options)

    @app.get("/quiz", response_model=Quiz)
    async def current_quiz(s: QuizSession = Depends(get_session)):
        return s.current_quiz()

    @app.post("/quiz/selections")
    async def select_option(body: SelectionRequest, s: QuizSession = Depends(get_session)):
        selected = s.select(body.question_id, body.option_id)
        return {"questionId": body.question_id, "selected": sorted(selected)}

    @app.delete("/quiz/selections", status_code=204)
    async def restart_quiz(s: QuizSession = Depends(get_session)):
        s.restart()

    @app.post("/quiz/results", response_model=ScoreResult)
    async def show_results(s: QuizSession = Depends(get_session)):
        return s.results()

    return app


def _public_config(config: QuizConfig) -> dict:
    data = config.model_dump()
    data["api_keys"] = {name: bool(value) for name, value in data["api_keys"].items()}
    if data.get("local_llm"):
        data["local_llm"]["api_key"] = bool(data["local_llm"]["api_key"])
    return data


def _error_response(exc: Exception, status_code: int | None = None) -> JSONResponse:
    category = classify_error(exc)
    return JSONResponse(
        status_code=status_code or STATUS_BY_CATEGORY[category],
        content={
            "detail": str(exc),
            "category": category.value,
            "guidance": guidance_for(category),
        },
    )


def _register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(InvalidPRReferenceError)
    async def invalid_reference(request: Request, exc: InvalidPRReferenceError):
        return _error_response(exc, 400)

    @app.exception_handler(SourceAPIError)
    async def source_error(request: Request, exc: SourceAPIError):
        return _error_response(exc)

    @app.exception_handler(ProviderError)
    async def provider_error(request: Request, exc: ProviderError):
        return _error_response(exc)

    @app.exception_handler(GenerationInProgressError)
    async def in_progress(request: Request, exc: GenerationInProgressError):
        return JSONResponse(status_code=409, content={"detail": str(exc), "category": "generic"})

    @app.exception_handler(NoActiveQuizError)
    @app.exception_handler(UnknownQuestionError)
    async def not_found(request: Request, exc: LookupError):
        return JSONResponse(status_code=404, content={"detail": str(exc), "category": "not_found"})


app = create_app()
