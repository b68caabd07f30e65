from dataclasses import dataclass, field
from datetime import datetime, timezone


@dataclass
class QuizMetrics:
    """Aggregate counters for quiz generation and grading (in-memory only)."""

    quizzes_generated: int = 0
    generation_failures: int = 0
    total_questions_generated: int = 0
    quizzes_scored: int = 0
    _processing_times_ms: list[int] = field(default_factory=list, repr=False)
    _score_percentages: list[int] = field(default_factory=list, repr=False)
    failures_by_category: dict[str, int] = field(default_factory=dict)
    last_generated_at: datetime | None = None

    def record_quiz_generated(self, question_count: int, processing_time_ms: int) -> None:
        self.quizzes_generated += 1
        self.total_questions_generated += question_count
        self._processing_times_ms.append(processing_time_ms)
        self.last_generated_at = datetime.now(timezone.utc)

    def record_generation_failure(self, category: str) -> None:
        self.generation_failures += 1
        self.failures_by_category[category] = self.failures_by_category.get(category, 0) + 1

    def record_score(self, percentage: int) -> None:
        self.quizzes_scored += 1
        self._score_percentages.append(percentage)

    @property
    def avg_processing_time_ms(self) -> float:
        if not self._processing_times_ms:
            return 0.0
        return sum(self._processing_times_ms) / len(self._processing_times_ms)

    @property
    def avg_score_pct(self) -> float:
        if not self._score_percentages:
            return 0.0
        return sum(self._score_percentages) / len(self._score_percentages)

    def to_dict(self) -> dict:
        return {
            "quizzes_generated": self.quizzes_generated,
            "generation_failures": self.generation_failures,
            "failures_by_category": dict(self.failures_by_category),
            "total_questions_generated": self.total_questions_generated,
            "avg_processing_time_ms": round(self.avg_processing_time_ms, 1),
            "quizzes_scored": self.quizzes_scored,
            "avg_score_pct": round(self.avg_score_pct, 1),
            "last_generated_at": (
                self.last_generated_at.isoformat() if self.last_generated_at else None
            ),
        }
