"""
Quiz Runner: the scoring state machine behind the quiz page.

States:
    ``loading → answering → submitting → results``. Navigating between
    questions keeps the runner in ``answering``. ``submit`` is rejected while
    any question is unanswered and the runner stays in ``answering``.

Results:
    Each submission appends one immutable ``quiz_attempts`` row. A passing
    attempt also marks the quiz's module as completed for the learner.
    ``retry`` clears the answers and returns to the first question; earlier
    attempts are kept.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
import logging
from typing import Any, Dict, List, Optional

from aula.errors import GatewayError, NotFoundError, ValidationError
from aula.gateway.ports import GatewayProtocol, decode_options, select_one
from aula.learning.scoring import QuizQuestion, ScoreResult, score_answers
from aula.learning.usecases.progress import MarkModuleCompleteInput, MarkModuleCompleteUseCase
from aula.learning.visibility import require_visible_module

logger = logging.getLogger("aula.learning")


class RunnerState(str, Enum):
    LOADING = "loading"
    ANSWERING = "answering"
    SUBMITTING = "submitting"
    RESULTS = "results"


@dataclass
class LoadedQuiz:
    id: str
    title: str
    description: Optional[str]
    passing_score: float
    module_id: str
    course_id: str
    questions: List[QuizQuestion]
    previous_attempts: List[Dict[str, Any]] = field(default_factory=list)

    def to_public_dict(self) -> Dict[str, Any]:
        """Quiz payload for learners: the answer key is never included."""
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "passing_score": self.passing_score,
            "module_id": self.module_id,
            "course_id": self.course_id,
            "questions": [
                {"id": q.id, "question": q.question, "options": list(q.options), "order_index": q.order_index}
                for q in self.questions
            ],
            "previous_attempts": self.previous_attempts,
        }


@dataclass
class AttemptResult:
    attempt: Dict[str, Any]
    score: ScoreResult


class QuizRunner:
    def __init__(self, gateway: GatewayProtocol, *, student_sub: str) -> None:
        self._gateway = gateway
        self._student_sub = student_sub
        self.state = RunnerState.LOADING
        self.quiz: Optional[LoadedQuiz] = None
        self.answers: Dict[str, int] = {}
        self.current_index = 0
        self.result: Optional[AttemptResult] = None

    # --- Loading -------------------------------------------------------------

    def load(self, quiz_id: str) -> LoadedQuiz:
        """Fetch quiz, questions, owning course id and the learner's previous attempts.

        Quizzes of a course the learner cannot see answer like unknown ones.
        """
        quiz = select_one(self._gateway, "quizzes", id=quiz_id)
        if quiz is None:
            raise NotFoundError("quiz_not_found")
        try:
            module, _ = require_visible_module(self._gateway, quiz["module_id"], self._student_sub)
        except NotFoundError:
            raise NotFoundError("quiz_not_found") from None
        rows = self._gateway.select("quiz_questions", eq={"quiz_id": quiz_id}, order_by="order_index")
        attempts = self._gateway.select(
            "quiz_attempts",
            eq={"quiz_id": quiz_id, "student_id": self._student_sub},
            order_by="completed_at",
            ascending=False,
        )
        self.quiz = LoadedQuiz(
            id=quiz["id"],
            title=quiz.get("title") or "",
            description=quiz.get("description"),
            passing_score=quiz.get("passing_score", 0),
            module_id=quiz["module_id"],
            course_id=module["course_id"],
            questions=[
                QuizQuestion(
                    id=r["id"],
                    question=r.get("question") or "",
                    options=tuple(decode_options(r.get("options"))),
                    correct_option=int(r.get("correct_option", 0)),
                    order_index=int(r.get("order_index", 0)),
                )
                for r in rows
            ],
            previous_attempts=attempts,
        )
        self.answers = {}
        self.current_index = 0
        self.result = None
        self.state = RunnerState.ANSWERING
        return self.quiz

    # --- Answering -----------------------------------------------------------

    def _require(self, *states: RunnerState) -> LoadedQuiz:
        if self.state not in states or self.quiz is None:
            raise ValidationError("invalid_state", detail=self.state.value)
        return self.quiz

    @property
    def current_question(self) -> Optional[QuizQuestion]:
        if self.quiz is None or not self.quiz.questions:
            return None
        return self.quiz.questions[self.current_index]

    def go_to(self, index: int) -> None:
        quiz = self._require(RunnerState.ANSWERING)
        if 0 <= index < len(quiz.questions):
            self.current_index = index

    def next(self) -> None:
        self.go_to(self.current_index + 1)

    def previous(self) -> None:
        self.go_to(self.current_index - 1)

    def answer(self, question_id: str, option_index: int) -> None:
        quiz = self._require(RunnerState.ANSWERING)
        question = next((q for q in quiz.questions if q.id == question_id), None)
        if question is None:
            raise ValidationError("unknown_question", detail=question_id)
        if isinstance(option_index, bool) or not isinstance(option_index, int):
            raise ValidationError("invalid_answer", detail=question_id)
        if not (0 <= option_index < len(question.options)):
            raise ValidationError("invalid_answer", detail=question_id)
        self.answers[question_id] = option_index

    def unanswered_count(self) -> int:
        if self.quiz is None:
            return 0
        return sum(1 for q in self.quiz.questions if q.id not in self.answers)

    # --- Submitting ----------------------------------------------------------

    def submit(self) -> AttemptResult:
        """Score the answers, persist the attempt and mark the module on a pass.

        Raises:
            ValidationError("unanswered_questions", detail=<count>) while any
            question is unanswered; the state stays ``answering``.
            Any error while storing the attempt returns the state to
            ``answering`` so the learner can submit again.
        """
        quiz = self._require(RunnerState.ANSWERING)
        if not quiz.questions:
            raise ValidationError("quiz_has_no_questions")
        missing = self.unanswered_count()
        if missing:
            raise ValidationError("unanswered_questions", detail=missing)

        self.state = RunnerState.SUBMITTING
        try:
            outcome = score_answers(quiz.questions, self.answers, quiz.passing_score)
            attempt = self._gateway.insert(
                "quiz_attempts",
                {
                    "quiz_id": quiz.id,
                    "student_id": self._student_sub,
                    "answers": dict(self.answers),
                    "score": outcome.score,
                    "passed": outcome.passed,
                },
            )
        except Exception:
            self.state = RunnerState.ANSWERING
            raise
        if outcome.passed:
            try:
                MarkModuleCompleteUseCase(self._gateway).execute(
                    MarkModuleCompleteInput(module_id=quiz.module_id, student_sub=self._student_sub)
                )
            except (GatewayError, NotFoundError) as exc:
                # The attempt is stored; the learner can still mark the module by hand.
                logger.warning("Progress update after passed quiz %s failed: %s", quiz.id, exc.__class__.__name__)
        logger.info("Quiz %s attempt stored (score=%d passed=%s)", quiz.id, outcome.score, outcome.passed)
        quiz.previous_attempts.insert(0, attempt)
        self.result = AttemptResult(attempt=attempt, score=outcome)
        self.state = RunnerState.RESULTS
        return self.result

    def retry(self) -> None:
        self._require(RunnerState.RESULTS)
        self.answers = {}
        self.current_index = 0
        self.result = None
        self.state = RunnerState.ANSWERING


@dataclass
class SubmitAttemptInput:
    quiz_id: str
    student_sub: str
    answers: Dict[str, int]


class SubmitQuizAttemptUseCase:
    def __init__(self, gateway: GatewayProtocol) -> None:
        self._gateway = gateway

    def execute(self, req: SubmitAttemptInput) -> AttemptResult:
        """Run a whole quiz in one request: load, record every answer, submit."""
        runner = QuizRunner(self._gateway, student_sub=req.student_sub)
        runner.load(req.quiz_id)
        for question_id, option_index in (req.answers or {}).items():
            runner.answer(question_id, option_index)
        return runner.submit()


__all__ = [
    "RunnerState",
    "LoadedQuiz",
    "AttemptResult",
    "QuizRunner",
    "SubmitAttemptInput",
    "SubmitQuizAttemptUseCase",
]
