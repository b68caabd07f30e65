"""Scoring of user answers.

Single-answer questions are all-or-nothing. Multi-answer questions give
one point per correct pick and take one away per wrong pick, never going
below zero for the question. The penalty is not scaled by how many
distractors exist.
"""
import math
from collections.abc import Collection, Mapping

from prquiz.models.schemas import Question, QuestionResult, Quiz, ScoreResult


class GradingState:
    """Which options the user has selected, per question id."""

    def __init__(self):
        self._selected: dict[str, set[str]] = {}

    def select(self, question: Question, option_id: str) -> set[str]:
        """Toggle an option for multi-answer questions, replace it otherwise."""
        current = self._selected.setdefault(question.id, set())
        if question.is_multi_answer:
            if option_id in current:
                current.discard(option_id)
            else:
                current.add(option_id)
        else:
            current.clear()
            current.add(option_id)
        return set(current)

    def selections_for(self, question_id: str) -> set[str]:
        return set(self._selected.get(question_id, ()))

    def answers(self) -> dict[str, set[str]]:
        return {qid: set(selected) for qid, selected in self._selected.items()}

    def clear(self) -> None:
        self._selected.clear()


def grade_question(question: Question, selected: Collection[str]) -> QuestionResult:
    selected = set(selected)
    if isinstance(question.correct_answer, list):
        correct = set(question.correct_answer)
        score = max(0, len(selected & correct) - len(selected - correct))
        return QuestionResult(
            question_id=question.id,
            score=score,
            max_score=len(correct),
            correct=selected == correct,
        )

    hit = len(selected) == 1 and question.correct_answer in selected
    return QuestionResult(question_id=question.id, score=int(hit), max_score=1, correct=hit)


def score_quiz(quiz: Quiz, answers: Mapping[str, Collection[str]]) -> ScoreResult:
    results = [grade_question(q, answers.get(q.id, ())) for q in quiz.questions]
    score = sum(r.score for r in results)
    max_score = sum(r.max_score for r in results)
    return ScoreResult(
        score=score,
        max_score=max_score,
        percentage=percentage(score, max_score),
        results=results,
    )


def percentage(score: int, max_score: int) -> int:
    if max_score == 0:
        return 0
    # Half-up rounding
    return math.floor(100 * score / max_score + 0.5)
