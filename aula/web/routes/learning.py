"""
Learning API routes: catalog, enrollment, course view, progress, comments and quizzes.

Why:
    Keep the adapter thin: validate input shapes, resolve the caller from
    ``request.state.user`` and delegate to the learning use cases, which talk
    to the shared Persistence Gateway.

Notes:
    - Any authenticated role may consume published courses; owners also see
      their own drafts.
    - Quiz payloads for learners never include ``correct_option``.
    - Unknown course/quiz ids answer 404 with ``redirect: /explore``.
"""
from __future__ import annotations

import logging
from typing import Dict

from fastapi import APIRouter, Request
from pydantic import BaseModel, Field

from aula.gateway.wiring import gateway_for
from aula.learning.usecases.catalog import EnrollInput, EnrollUseCase, ListCatalogInput, ListCatalogUseCase
from aula.learning.usecases.comments import (
    AddCommentInput,
    AddCommentUseCase,
    DeleteCommentInput,
    DeleteCommentUseCase,
    ListCommentsUseCase,
)
from aula.learning.usecases.course_view import CourseViewInput, GetCourseViewUseCase
from aula.learning.usecases.progress import MarkModuleCompleteInput, MarkModuleCompleteUseCase
from aula.learning.usecases.quiz_runner import QuizRunner, SubmitAttemptInput, SubmitQuizAttemptUseCase

from .common import DOMAIN_ERRORS, _csrf_guard, _current_sub, _domain_error, _json_private, _no_content

learning_router = APIRouter(tags=["Learning"])
logger = logging.getLogger("aula.web.learning")


class CommentCreatePayload(BaseModel):
    content: str = Field(..., max_length=4000)


class AttemptPayload(BaseModel):
    answers: Dict[str, int] = Field(default_factory=dict)


def _caller(request: Request) -> str:
    return _current_sub(getattr(request.state, "user", None))


def _gateway(request: Request):
    return gateway_for(_caller(request))


# --- Catalog & enrollment ---------------------------------------------------------


@learning_router.get("/api/learning/catalog")
async def list_catalog(request: Request, limit: int = 50, offset: int = 0):
    """Published courses newest first with teacher names, counts and the caller's enrollment flag."""
    try:
        items = ListCatalogUseCase(_gateway(request)).execute(
            ListCatalogInput(viewer_sub=_caller(request), limit=limit, offset=offset)
        )
    except DOMAIN_ERRORS as exc:
        return _domain_error(exc)
    return _json_private(items)


@learning_router.post("/api/learning/courses/{course_id}/enroll")
async def enroll(request: Request, course_id: str):
    """Enroll the caller (201); a second enrollment answers 409 ``already_enrolled``."""
    csrf = _csrf_guard(request)
    if csrf:
        return csrf
    try:
        row = EnrollUseCase(_gateway(request)).execute(EnrollInput(course_id=course_id, student_sub=_caller(request)))
    except DOMAIN_ERRORS as exc:
        return _domain_error(exc)
    return _json_private(row, status_code=201)


# --- Course view & progress -------------------------------------------------------


@learning_router.get("/api/learning/courses/{course_id}")
async def get_course_view(request: Request, course_id: str):
    try:
        view = GetCourseViewUseCase(_gateway(request)).execute(
            CourseViewInput(course_id=course_id, viewer_sub=_caller(request))
        )
    except DOMAIN_ERRORS as exc:
        return _domain_error(exc)
    return _json_private(view.to_dict())


@learning_router.post("/api/learning/modules/{module_id}/complete")
async def mark_module_complete(request: Request, module_id: str):
    """Mark a module completed for the caller and return the refreshed course progress."""
    csrf = _csrf_guard(request)
    if csrf:
        return csrf
    try:
        result = MarkModuleCompleteUseCase(_gateway(request)).execute(
            MarkModuleCompleteInput(module_id=module_id, student_sub=_caller(request))
        )
    except DOMAIN_ERRORS as exc:
        return _domain_error(exc)
    return _json_private(
        {
            "module_id": result.module_id,
            "course_id": result.course_id,
            "completed_count": result.completed_count,
            "module_count": result.module_count,
            "progress": result.progress,
        }
    )


# --- Comments ---------------------------------------------------------------------


@learning_router.get("/api/learning/modules/{module_id}/comments")
async def list_comments(request: Request, module_id: str):
    try:
        items = ListCommentsUseCase(_gateway(request)).execute(module_id, viewer_sub=_caller(request))
    except DOMAIN_ERRORS as exc:
        return _domain_error(exc)
    return _json_private(items)


@learning_router.post("/api/learning/modules/{module_id}/comments")
async def add_comment(request: Request, module_id: str, payload: CommentCreatePayload):
    csrf = _csrf_guard(request)
    if csrf:
        return csrf
    try:
        row = AddCommentUseCase(_gateway(request)).execute(
            AddCommentInput(module_id=module_id, author_sub=_caller(request), content=payload.content)
        )
    except DOMAIN_ERRORS as exc:
        return _domain_error(exc)
    return _json_private(row, status_code=201)


@learning_router.delete("/api/learning/comments/{comment_id}")
async def delete_comment(request: Request, comment_id: str):
    """Delete a comment; only its author may (403 otherwise)."""
    csrf = _csrf_guard(request)
    if csrf:
        return csrf
    try:
        DeleteCommentUseCase(_gateway(request)).execute(
            DeleteCommentInput(comment_id=comment_id, caller_sub=_caller(request))
        )
    except DOMAIN_ERRORS as exc:
        return _domain_error(exc)
    return _no_content()


# --- Quizzes ----------------------------------------------------------------------


@learning_router.get("/api/learning/quizzes/{quiz_id}")
async def get_quiz(request: Request, quiz_id: str):
    """Load a quiz for answering: questions without the answer key, course id and previous attempts."""
    runner = QuizRunner(_gateway(request), student_sub=_caller(request))
    try:
        quiz = runner.load(quiz_id)
    except DOMAIN_ERRORS as exc:
        return _domain_error(exc)
    return _json_private(quiz.to_public_dict())


@learning_router.post("/api/learning/quizzes/{quiz_id}/attempts")
async def submit_attempt(request: Request, quiz_id: str, payload: AttemptPayload):
    """Score and store one attempt.

    Behavior:
        - 201 with the attempt, ``score``, ``passed`` and ``correct_count``
        - 400 ``unanswered_questions`` with ``context`` = number of missing answers
        - A passing attempt also marks the quiz's module as completed
    """
    csrf = _csrf_guard(request)
    if csrf:
        return csrf
    try:
        result = SubmitQuizAttemptUseCase(_gateway(request)).execute(
            SubmitAttemptInput(quiz_id=quiz_id, student_sub=_caller(request), answers=payload.answers)
        )
    except DOMAIN_ERRORS as exc:
        return _domain_error(exc)
    return _json_private(
        {
            "attempt": result.attempt,
            "score": result.score.score,
            "passed": result.score.passed,
            "correct_count": result.score.correct_count,
            "total": result.score.total,
        },
        status_code=201,
    )


@learning_router.get("/api/learning/quizzes/{quiz_id}/attempts")
async def list_attempts(request: Request, quiz_id: str):
    """The caller's attempts for a quiz, newest first."""
    runner = QuizRunner(_gateway(request), student_sub=_caller(request))
    try:
        quiz = runner.load(quiz_id)
    except DOMAIN_ERRORS as exc:
        return _domain_error(exc)
    return _json_private(quiz.previous_attempts)
