import asyncio
import logging
from collections.abc import Callable

from prquiz.config import QuizConfig
from prquiz.github.api_client import PullRequestSource
from prquiz.github.cache import CachingPullRequestSource
from prquiz.llm.providers.base import QuizProvider
from prquiz.llm.providers.factory import create_provider, ensure_provider_configured
from prquiz.llm.question_generator import QuizGenerator
from prquiz.metrics import QuizMetrics
from prquiz.models.schemas import GenerateOptions, Quiz, ScoreResult
from prquiz.quiz.grader import GradingState, score_quiz
from prquiz.utils.errors import classify_error

logger = logging.getLogger(__name__)


class GenerationInProgressError(RuntimeError):
    pass


class NoActiveQuizError(LookupError):
    pass


class UnknownQuestionError(LookupError):
    pass


class QuizSession:
    """The single user session: configuration, current quiz and selections.

    At most one generation runs at a time; a second request while one is
    in flight is rejected rather than queued. A failed or cancelled
    generation leaves the previous quiz in place.
    """

    def __init__(
        self,
        source: PullRequestSource,
        config: QuizConfig,
        provider_factory: Callable[[QuizConfig], QuizProvider] = create_provider,
        metrics: QuizMetrics | None = None,
    ):
        self.config = config
        self.provider_factory = provider_factory
        self.metrics = metrics or QuizMetrics()
        self.quiz: Quiz | None = None
        self.grading = GradingState()
        self._raw_source = source
        self.source = self._wrap_source(source, config)
        self._lock = asyncio.Lock()

    @staticmethod
    def _wrap_source(source: PullRequestSource, config: QuizConfig) -> PullRequestSource:
        if config.cache.enabled:
            return CachingPullRequestSource(source, config.cache.ttl_seconds, config.cache.max_size)
        return source

    @property
    def is_generating(self) -> bool:
        return self._lock.locked()

    def update_config(self, config: QuizConfig) -> None:
        if self.is_generating:
            raise GenerationInProgressError("Cannot change settings while a quiz is being generated")
        if config.cache != self.config.cache:
            self.source = self._wrap_source(self._raw_source, config)
        self.config = config

    async def generate(self, pr_url: str, options: GenerateOptions | None = None) -> Quiz:
        if self._lock.locked():
            raise GenerationInProgressError("A quiz is already being generated")

        async with self._lock:
            config = self.config.model_copy(deep=True)
            try:
                ensure_provider_configured(config)
                provider = self.provider_factory(config)
                quiz = await QuizGenerator(self.source, provider, config).generate_quiz(pr_url, options)
            except Exception as exc:
                category = classify_error(exc)
                self.metrics.record_generation_failure(category.value)
                logger.error("Quiz generation for %s failed (%s): %s", pr_url, category.value, exc)
                raise

            self.quiz = quiz
            self.grading = GradingState()
            self.metrics.record_quiz_generated(len(quiz.questions), quiz.metadata.processing_time_ms)
            return quiz

    def current_quiz(self) -> Quiz:
        if self.quiz is None:
            raise NoActiveQuizError("No quiz has been generated yet")
        return self.quiz

    def select(self, question_id: str, option_id: str) -> set[str]:
        quiz = self.current_quiz()
        question = next((q for q in quiz.questions if q.id == question_id), None)
        if question is None:
            raise UnknownQuestionError(f"Question {question_id!r} is not part of quiz {quiz.id}")
        return self.grading.select(question, option_id)

    def results(self) -> ScoreResult:
        result = score_quiz(self.current_quiz(), self.grading.answers())
        self.metrics.record_score(result.percentage)
        return result

    def restart(self) -> None:
        self.grading = GradingState()
