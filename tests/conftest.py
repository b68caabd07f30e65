import json

import httpx
import pytest

from prquiz.github.diff_parser import detect_language
from prquiz.models.schemas import (
    CommitInfo,
    FileChange,
    PullRequestRecord,
    Question,
    QuestionOption,
    Quiz,
    QuizMetadata,
    Repository,
)


def _file(filename, status="modified", additions=0, deletions=0, patch=None):
    return FileChange(
        filename=filename,
        status=status,
        additions=additions,
        deletions=deletions,
        patch=patch,
        language=detect_language(filename),
    )


def _pr(files=(), commit_count=0, description=""):
    return PullRequestRecord(
        id="octo/widgets#7",
        number=7,
        title="Add widget caching",
        description=description,
        author="octocat",
        repository=Repository(owner="octo", name="widgets"),
        files=tuple(files),
        commits=tuple(CommitInfo(sha=f"sha{i}", message=f"commit {i}") for i in range(commit_count)),
        created_at="2024-01-02T03:04:05Z",
        updated_at="2024-01-03T03:04:05Z",
    )


@pytest.fixture
def make_file():
    return _file


@pytest.fixture
def make_pr():
    return _pr


@pytest.fixture
def scenario_pr():
    """3 files (2 modified, 120 lines; 1 added, 10 lines), 4 commits, no hot keywords."""
    return _pr(
        files=[
            _file("src/widgets.py", additions=50, deletions=30, patch="@@ -1 +1 @@\n-x = 1\n+x = 2"),
            _file("src/render.py", additions=25, deletions=15, patch="@@ -3 +3 @@\n-draw()\n+draw(fast=True)"),
            _file("README.md", status="added", additions=10, patch="@@ -0,0 +1 @@\n+# Widgets"),
        ],
        commit_count=4,
    )


def _question(qid, correct, options=("a", "b", "c", "d")):
    return Question(
        id=qid,
        content=f"Question {qid}",
        options=[QuestionOption(id=o, text=f"Option {o}", is_correct=o in correct) for o in options],
        correct_answer=correct,
        explanation="Because.",
    )


def _quiz(questions):
    return Quiz(
        id="quiz-test",
        pull_request_url="https://github.com/octo/widgets/pull/7",
        questions=list(questions),
        metadata=QuizMetadata(
            ai_provider="openai", processing_time_ms=12, complexity=42.0, focus_areas=[]
        ),
    )


@pytest.fixture
def make_question():
    return _question


@pytest.fixture
def make_quiz():
    return _quiz


def questions_payload(count=3):
    return {
        "questions": [
            {
                "type": "multiple-choice",
                "content": f"What does change {n} do?",
                "options": [
                    {"id": "a", "text": "It caches widgets", "isCorrect": True},
                    {"id": "b", "text": "It deletes widgets", "isCorrect": False},
                ],
                "correctAnswer": "a",
                "explanation": "The patch adds a cache.",
            }
            for n in range(1, count + 1)
        ]
    }


@pytest.fixture
def questions_json():
    return lambda count=3: json.dumps(questions_payload(count))


@pytest.fixture
def mock_transport():
    """Build an httpx.MockTransport from a {(method, path): response} table.

    Every request is recorded on ``transport.requests``.
    """

    def build(routes):
        requests = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            key = (request.method, request.url.path)
            if key not in routes:
                return httpx.Response(404, json={"message": "Not Found"})
            route = routes[key]
            if callable(route):
                return route(request)
            # Fresh copy so a route can answer more than once
            return httpx.Response(route.status_code, headers=route.headers, content=route.content)

        transport = httpx.MockTransport(handler)
        transport.requests = requests
        return transport

    return build
