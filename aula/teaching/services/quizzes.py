"""Quiz builder operations for one module's quiz.

Same discipline as the module list: each call returns a new ``QuizDraft`` with
question ``order_index`` renumbered, and bad positions raise ``IndexOutOfRange``.
"""

from __future__ import annotations

from dataclasses import replace
import math
from typing import Any, List, Sequence

from aula.errors import IndexOutOfRange, ValidationError
from aula.teaching.models import (
    MIN_OPTION_COUNT,
    QuestionPatch,
    QuizDraft,
    QuizQuestionDraft,
    _UNSET,
    apply_patch,
)


def _check_index(items: Sequence[object], index: int) -> None:
    if isinstance(index, bool) or not isinstance(index, int) or index < 0 or index >= len(items):
        raise IndexOutOfRange(index, len(items))


def _renumber(questions: Sequence[QuizQuestionDraft]) -> List[QuizQuestionDraft]:
    return [q if q.order_index == i else replace(q, order_index=i) for i, q in enumerate(questions)]


def _normalize_options(value: object) -> List[str]:
    if isinstance(value, str) or not isinstance(value, Sequence):
        raise ValidationError("invalid_options")
    options: List[str] = []
    for item in value:
        if not isinstance(item, str):
            raise ValidationError("invalid_options")
        options.append(item)
    if len(options) < MIN_OPTION_COUNT:
        raise ValidationError("invalid_options", detail={"min": MIN_OPTION_COUNT})
    return options


def _normalize_correct_option(value: object, option_count: int) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError("invalid_correct_option")
    if value < 0 or value >= option_count:
        raise ValidationError("invalid_correct_option")
    return value


def add_question(quiz: QuizDraft) -> QuizDraft:
    questions = [*quiz.questions, QuizQuestionDraft(order_index=len(quiz.questions))]
    return replace(quiz, questions=_renumber(questions))


def update_question(quiz: QuizDraft, index: int, patch: QuestionPatch) -> QuizDraft:
    _check_index(quiz.questions, index)
    current = quiz.questions[index]
    options = current.options
    if patch.options is not _UNSET:
        options = _normalize_options(patch.options)
    if patch.correct_option is not _UNSET:
        _normalize_correct_option(patch.correct_option, len(options))
    elif current.correct_option >= len(options):
        # Shrinking the option list must not leave the answer key dangling.
        raise ValidationError("invalid_correct_option")
    if patch.question is not _UNSET and not isinstance(patch.question, str):
        raise ValidationError("invalid_question")
    updated = apply_patch(current, patch)
    if patch.options is not _UNSET:
        updated = replace(updated, options=options)
    questions = list(quiz.questions)
    questions[index] = updated
    return replace(quiz, questions=_renumber(questions))


def update_option(quiz: QuizDraft, question_index: int, option_index: int, value: str) -> QuizDraft:
    """Replace one option text; ``correct_option`` is left as the author set it."""
    _check_index(quiz.questions, question_index)
    question = quiz.questions[question_index]
    _check_index(question.options, option_index)
    if not isinstance(value, str):
        raise ValidationError("invalid_option")
    options = list(question.options)
    options[option_index] = value
    questions = list(quiz.questions)
    questions[question_index] = replace(question, options=options)
    return replace(quiz, questions=questions)


def remove_question(quiz: QuizDraft, index: int) -> QuizDraft:
    _check_index(quiz.questions, index)
    return replace(quiz, questions=_renumber([q for i, q in enumerate(quiz.questions) if i != index]))


def set_passing_score(quiz: QuizDraft, value: Any) -> QuizDraft:
    """Store the score as entered; clamping to [0, 100] happens on persistence."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValidationError("invalid_passing_score")
    if not math.isfinite(value):
        raise ValidationError("invalid_passing_score")
    return replace(quiz, passing_score=value)


def update_details(quiz: QuizDraft, *, title: Any = _UNSET, description: Any = _UNSET) -> QuizDraft:
    changes = {}
    if title is not _UNSET:
        if not isinstance(title, str):
            raise ValidationError("invalid_quiz_title")
        changes["title"] = title
    if description is not _UNSET:
        if description is not None and not isinstance(description, str):
            raise ValidationError("invalid_quiz_description")
        changes["description"] = description
    return replace(quiz, **changes) if changes else quiz


__all__ = [
    "update_details",
    "add_question",
    "update_question",
    "update_option",
    "remove_question",
    "set_passing_score",
]
