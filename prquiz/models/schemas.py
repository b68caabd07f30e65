from datetime import datetime, timezone
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

FileStatus = Literal["added", "modified", "deleted", "renamed"]
QuestionType = Literal["multiple-choice", "true-false", "code-review", "explanation"]
QuestionDifficulty = Literal["easy", "medium", "hard"]
Difficulty = Literal["easy", "medium", "hard", "mixed"]
FocusAreaType = Literal["logic", "syntax", "best-practices", "security", "performance"]
AIProvider = Literal["openai", "google", "local"]

# Question types answered by picking options
CHOICE_TYPES = ("multiple-choice", "code-review")


class Schema(BaseModel):
    """Immutable record, camelCase on the wire, snake_case in Python."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


# ---------------------------------------------------------------------------
# Pull request records
# ---------------------------------------------------------------------------

class Repository(Schema):
    owner: str
    name: str


class FileChange(Schema):
    filename: str
    status: FileStatus
    additions: int = Field(default=0, ge=0)
    deletions: int = Field(default=0, ge=0)
    patch: str | None = None
    language: str | None = None

    @property
    def lines_changed(self) -> int:
        return self.additions + self.deletions


class CommitAuthor(Schema):
    name: str = ""
    email: str = ""
    date: datetime | None = None


class CommitInfo(Schema):
    sha: str
    message: str = ""
    author: CommitAuthor = Field(default_factory=CommitAuthor)


class ReviewInfo(Schema):
    id: str
    user: str
    state: str
    body: str = ""
    submitted_at: datetime | None = None


class PullRequestRecord(Schema):
    id: str  # "owner/repo#number"
    number: int
    title: str
    description: str = ""
    author: str
    repository: Repository
    files: tuple[FileChange, ...] = ()
    commits: tuple[CommitInfo, ...] = ()
    reviews: tuple[ReviewInfo, ...] = ()
    created_at: datetime
    updated_at: datetime


# ---------------------------------------------------------------------------
# Analysis and generation context
# ---------------------------------------------------------------------------

class CodeChange(Schema):
    type: FileStatus
    filename: str
    language: str
    lines_changed: int
    complexity: int
    summary: str


class FocusArea(Schema):
    type: FocusAreaType
    weight: float


class ChangeAnalysis(Schema):
    changes: list[CodeChange]
    complexity: float
    languages: list[str]
    patterns: list[str]
    focus_areas: list[FocusArea]


class GenerateOptions(Schema):
    question_count: int | None = Field(default=None, gt=0)
    difficulty: Difficulty | None = None
    focus_areas: list[FocusArea] | None = None
    exclude_files: list[str] | None = None
    include_only_files: list[str] | None = None


class QuizGenerationContext(Schema):
    pull_request: PullRequestRecord
    changes: list[CodeChange]
    complexity: float = Field(ge=0, le=100)
    languages: list[str]
    patterns: list[str]
    focus_areas: list[FocusArea]
    question_count: int = Field(gt=0)
    difficulty: Difficulty


# ---------------------------------------------------------------------------
# Quiz
# ---------------------------------------------------------------------------

class CodeSnippet(Schema):
    language: str = "text"
    content: str
    filename: str | None = None
    start_line: int | None = None
    end_line: int | None = None


class QuestionOption(Schema):
    id: str
    text: str
    is_correct: bool = False


class Question(Schema):
    id: str
    type: QuestionType = "multiple-choice"
    content: str
    code: CodeSnippet | None = None
    options: list[QuestionOption] | None = None
    correct_answer: str | list[str]
    explanation: str = ""
    difficulty: QuestionDifficulty = "medium"
    tags: list[str] = Field(default_factory=list)

    @property
    def is_multi_answer(self) -> bool:
        return isinstance(self.correct_answer, list)

    @model_validator(mode="after")
    def check_correct_answer(self) -> "Question":
        option_ids = {option.id for option in self.options or []}
        if isinstance(self.correct_answer, list):
            if not self.correct_answer:
                raise ValueError("multi-answer question needs at least one correct option")
            unknown = [answer for answer in self.correct_answer if answer not in option_ids]
            if unknown:
                raise ValueError(f"correct answers {unknown} do not match any option id")
        elif self.options and self.type in CHOICE_TYPES and self.correct_answer not in option_ids:
            raise ValueError(f"correct answer {self.correct_answer!r} does not match any option id")
        return self


class QuizMetadata(Schema):
    generated_by: str = "PR Quiz Generator"
    ai_provider: AIProvider
    processing_time_ms: int
    complexity: float
    focus_areas: list[FocusArea]


class Quiz(Schema):
    id: str
    pull_request_url: str
    questions: list[Question]
    metadata: QuizMetadata
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


# ---------------------------------------------------------------------------
# Grading results
# ---------------------------------------------------------------------------

class QuestionResult(Schema):
    question_id: str
    score: int
    max_score: int
    correct: bool


class ScoreResult(Schema):
    score: int
    max_score: int
    percentage: int
    results: list[QuestionResult] = Field(default_factory=list)
