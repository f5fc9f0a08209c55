"""Course submission workflow (Clean Architecture boundary).

Why:
    A Course Draft lives in memory until the author saves it as a draft or
    publishes it. Persisting it is a cascading insert where every child row
    needs its parent's server-assigned id: course → modules → quiz → questions.

Atomicity:
    - Gateways exposing ``transaction()`` (Postgres) run the whole cascade in
      one database transaction.
    - Otherwise the workflow keeps a ledger of created rows and deletes them in
      reverse order when a later step fails, then re-raises the original
      error. A failed compensation is logged with the ids left
      behind; it never masks the original error.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
import logging
from typing import Any, Dict, List, Sequence, Tuple

from aula.errors import GatewayError, ValidationError
from aula.gateway.ports import GatewayProtocol
from aula.teaching.models import (
    MIN_OPTION_COUNT,
    CourseDraft,
    CourseStatus,
    ModuleDraft,
    QuizDraft,
    clamp_passing_score,
    parse_status,
)

logger = logging.getLogger("aula.teaching")

MAX_TITLE_LENGTH = 200


@dataclass
class SubmissionResult:
    course_id: str
    status: CourseStatus
    module_ids: List[str] = field(default_factory=list)
    quiz_ids: List[str] = field(default_factory=list)
    question_count: int = 0


def _normalize_title(value: object) -> str:
    if value is None or not isinstance(value, str):
        raise ValidationError("invalid_title")
    trimmed = value.strip()
    if not trimmed or len(trimmed) > MAX_TITLE_LENGTH:
        raise ValidationError("invalid_title")
    return trimmed


def _validate_quiz(quiz: QuizDraft, module_position: int) -> None:
    try:
        clamp_passing_score(quiz.passing_score)
    except ValidationError as exc:
        raise ValidationError("invalid_passing_score", detail={"module": module_position}) from exc
    for q_pos, question in enumerate(quiz.questions):
        where = {"module": module_position, "question": q_pos}
        if len(question.options) < MIN_OPTION_COUNT:
            raise ValidationError("invalid_options", detail=where)
        if not (0 <= question.correct_option < len(question.options)):
            raise ValidationError("invalid_correct_option", detail=where)


def _ordered(modules: Sequence[ModuleDraft]) -> List[ModuleDraft]:
    return sorted(modules, key=lambda m: m.order_index)


def _module_row(course_id: str, module: ModuleDraft, position: int) -> Dict[str, Any]:
    return {
        "course_id": course_id,
        "title": module.title,
        "description": module.description,
        "content": module.content,
        "order_index": position,
        "module_code": module.module_code,
        "estimated_duration": module.estimated_duration,
        "abstract": module.abstract,
        "teaser_video_url": module.teaser_video_url,
        "target_group": module.target_group,
        "learning_outcomes": list(module.learning_outcomes),
        "reflection_prompt": module.reflection_prompt,
        "resources": [asdict(r) for r in module.resources],
    }


@dataclass
class CourseSubmissionService:
    """Persist a Course Draft through the gateway in dependency order."""

    gateway: GatewayProtocol
    compensate: bool = True

    def submit(self, draft: CourseDraft, *, teacher_id: str, status: object) -> SubmissionResult:
        """Validate and persist ``draft`` owned by ``teacher_id`` with ``status``.

        Behavior:
            - Raises ValidationError before any gateway call when the title is
              empty, the status is not draft/published or a quiz question is
              malformed.
            - Modules are inserted in ``order_index`` order and stored with a
              dense position; quizzes without questions are not persisted.
            - Returns the new course id and the applied status.

        Permissions:
            Caller must be an authenticated teacher; ``teacher_id`` becomes the owner.
        """
        title = _normalize_title(draft.title)
        applied = parse_status(status)
        if not teacher_id:
            raise ValidationError("missing_owner")
        modules = _ordered(draft.modules)
        for position, module in enumerate(modules):
            if module.quiz is not None:
                _validate_quiz(module.quiz, position)

        transaction = getattr(self.gateway, "transaction", None)
        if callable(transaction):
            with transaction() as gateway:
                result = self._insert_all(gateway, title, draft.description, teacher_id, applied, modules, [])
        else:
            ledger: List[Tuple[str, str]] = []
            try:
                result = self._insert_all(self.gateway, title, draft.description, teacher_id, applied, modules, ledger)
            except Exception as exc:
                # Any failure mid-cascade leaves a prefix behind, not only backend errors.
                logger.warning(
                    "Course submission failed after %d row(s) on %s: %s",
                    len(ledger),
                    getattr(exc, "table", None),
                    exc.__class__.__name__,
                )
                if self.compensate:
                    self._compensate(ledger)
                raise
        logger.info(
            "Course %s submitted as %s (%d modules, %d quizzes, %d questions)",
            result.course_id,
            result.status.value,
            len(result.module_ids),
            len(result.quiz_ids),
            result.question_count,
        )
        return result

    def _insert_all(
        self,
        gateway: GatewayProtocol,
        title: str,
        description: str,
        teacher_id: str,
        status: CourseStatus,
        modules: Sequence[ModuleDraft],
        ledger: List[Tuple[str, str]],
    ) -> SubmissionResult:
        course = gateway.insert(
            "courses",
            {
                "title": title,
                "description": description or None,
                "teacher_id": teacher_id,
                "status": status.value,
            },
        )
        ledger.append(("courses", course["id"]))
        result = SubmissionResult(course_id=course["id"], status=status)

        for position, module in enumerate(modules):
            module_row = gateway.insert("modules", _module_row(course["id"], module, position))
            ledger.append(("modules", module_row["id"]))
            result.module_ids.append(module_row["id"])

            quiz = module.quiz
            if quiz is None or not quiz.questions:
                continue
            quiz_row = gateway.insert(
                "quizzes",
                {
                    "module_id": module_row["id"],
                    "title": quiz.title or f"Quiz - {module.title}",
                    "description": quiz.description,
                    "passing_score": clamp_passing_score(quiz.passing_score),
                },
            )
            ledger.append(("quizzes", quiz_row["id"]))
            result.quiz_ids.append(quiz_row["id"])

            questions = sorted(quiz.questions, key=lambda q: q.order_index)
            rows = gateway.insert_many(
                "quiz_questions",
                [
                    {
                        "quiz_id": quiz_row["id"],
                        "question": q.question,
                        "options": list(q.options),
                        "correct_option": q.correct_option,
                        "order_index": q_pos,
                    }
                    for q_pos, q in enumerate(questions)
                ],
            )
            ledger.extend(("quiz_questions", r["id"]) for r in rows)
            result.question_count += len(rows)
        return result

    def _compensate(self, ledger: List[Tuple[str, str]]) -> None:
        leftovers: List[Tuple[str, str]] = []
        for table, row_id in reversed(ledger):
            try:
                self.gateway.delete(table, eq={"id": row_id})
            except GatewayError as exc:
                leftovers.append((table, row_id))
                logger.error("Compensation delete on %s failed: %s", table, exc)
        if leftovers:
            logger.error("Partial course left behind: %s", ", ".join(f"{t}:{i}" for t, i in leftovers))
        else:
            logger.info("Compensated %d row(s) after failed submission", len(ledger))


__all__ = ["CourseSubmissionService", "SubmissionResult"]
