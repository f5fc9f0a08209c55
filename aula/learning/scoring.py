"""
Quiz scoring and percentage rounding.

Rounding:
    Percentages round half-up (1/8 → 13, 2/4 → 50). Python's ``round`` rounds
    half to even (``round(12.5) == 12``), so the helpers stay in integer
    arithmetic: ``(200 * part + total) // (2 * total)`` is ``floor(100 * part /
    total + 0.5)`` without float error.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping, Sequence


def percentage(part: int, total: int) -> int:
    """Return ``100 * part / total`` rounded half-up; 0 when ``total`` is 0."""
    if total <= 0:
        return 0
    return (200 * part + total) // (2 * total)


@dataclass(frozen=True)
class QuizQuestion:
    id: str
    question: str
    options: tuple[str, ...]
    correct_option: int
    order_index: int = 0


@dataclass(frozen=True)
class ScoreResult:
    score: int
    passed: bool
    correct_count: int
    total: int


def score_answers(
    questions: Sequence[QuizQuestion], answers: Mapping[str, int], passing_score: float
) -> ScoreResult:
    """Score ``answers`` (question id → option index) against the answer key.

    Pure and deterministic: scoring the same answers twice gives the same result.
    Missing answers count as wrong; the runner rejects them before scoring.
    """
    correct = sum(1 for q in questions if answers.get(q.id) == q.correct_option)
    score = percentage(correct, len(questions))
    return ScoreResult(score=score, passed=score >= passing_score, correct_count=correct, total=len(questions))


__all__ = ["percentage", "QuizQuestion", "ScoreResult", "score_answers"]
