import logging
import uuid
from fnmatch import fnmatch
from time import perf_counter

from prquiz.analysis.change_analyzer import analyze
from prquiz.config import QuizConfig
from prquiz.github.api_client import PullRequestSource
from prquiz.llm.providers.base import QuizProvider
from prquiz.models.schemas import (
    GenerateOptions,
    PullRequestRecord,
    Quiz,
    QuizGenerationContext,
    QuizMetadata,
)

logger = logging.getLogger(__name__)


def filter_files(pr: PullRequestRecord, options: GenerateOptions) -> PullRequestRecord:
    """Apply the include/exclude glob filters, returning a new record."""
    files = pr.files
    if options.include_only_files:
        files = tuple(f for f in files if any(fnmatch(f.filename, p) for p in options.include_only_files))
    if options.exclude_files:
        files = tuple(f for f in files if not any(fnmatch(f.filename, p) for p in options.exclude_files))
    if files == pr.files:
        return pr
    return pr.model_copy(update={"files": files})


def build_context(
    pr: PullRequestRecord,
    options: GenerateOptions | None = None,
    config: QuizConfig | None = None,
) -> QuizGenerationContext:
    """Analyse ``pr`` and combine it with the user's generation options.

    Explicit options win over the configured defaults; focus areas fall
    back to the ones suggested by the analysis.
    """
    options = options or GenerateOptions()
    config = config or QuizConfig()
    pr = filter_files(pr, options)
    analysis = analyze(pr)

    return QuizGenerationContext(
        pull_request=pr,
        changes=analysis.changes,
        complexity=analysis.complexity,
        languages=analysis.languages,
        patterns=analysis.patterns,
        focus_areas=options.focus_areas or config.focus_areas or analysis.focus_areas,
        question_count=options.question_count or config.question_count,
        difficulty=options.difficulty or config.difficulty,
    )


class QuizGenerator:
    """Runs one generation: fetch, analyse, prompt, parse, assemble."""

    def __init__(self, source: PullRequestSource, provider: QuizProvider, config: QuizConfig):
        self.source = source
        self.provider = provider
        self.config = config

    async def generate_quiz(self, pr_url: str, options: GenerateOptions | None = None) -> Quiz:
        start = perf_counter()

        pr = await self.source.fetch(pr_url)
        context = build_context(pr, options, self.config)
        logger.info(
            "Generating %d %s questions for %s with %s (complexity %.1f)",
            context.question_count, context.difficulty, pr.id,
            self.provider.name(), context.complexity,
        )
        questions = await self.provider.generate_questions(context)

        processing_ms = int((perf_counter() - start) * 1000)
        logger.info("Generated %d questions for %s in %dms", len(questions), pr.id, processing_ms)

        return Quiz(
            id=f"quiz-{uuid.uuid4().hex[:12]}",
            pull_request_url=pr_url,
            questions=questions,
            metadata=QuizMetadata(
                ai_provider=self.config.ai_provider,
                processing_time_ms=processing_ms,
                complexity=context.complexity,
                focus_areas=context.focus_areas,
            ),
        )
