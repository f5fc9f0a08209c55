"""
Teaching API routes: course authoring drafts and owned courses.

Why:
    Authors build a Course Draft through many small edits before anything is
    persisted. Each edit endpoint applies one pure editor operation to the
    stored draft and returns the whole draft, so the client always renders the
    server's view of ``order_index``. Submitting flattens the draft into the
    cascading insert performed by ``CourseSubmissionService``.

Notes:
    - Security: only teachers reach these endpoints; drafts and courses are
      scoped to the caller's ``sub``. Writes pass the same-origin guard.
    - Persistence: drafts live in an in-process ``DraftStore``; courses go
      through the shared gateway. Tests call ``set_draft_store`` for isolation.
"""
from __future__ import annotations

from dataclasses import asdict, replace
import logging
from typing import Callable, List

from fastapi import APIRouter, Request
from pydantic import BaseModel, Field
from pydantic.functional_validators import field_validator

from aula.gateway.wiring import gateway_for
from aula.teaching.drafts import DraftRecord, DraftStore
from aula.teaching.models import (
    CourseDraft,
    ModulePatch,
    QuestionPatch,
    QuizDraft,
    ResourcePatch,
    patch_from_mapping,
)
from aula.teaching.services import modules as module_ops
from aula.teaching.services import quizzes as quiz_ops
from aula.teaching.services.courses import CoursesService
from aula.teaching.services.submission import CourseSubmissionService

from .common import (
    DOMAIN_ERRORS,
    _csrf_guard,
    _current_sub,
    _domain_error,
    _json_private,
    _no_content,
    _private_error,
    _role_in,
)

teaching_router = APIRouter(tags=["Teaching"])
logger = logging.getLogger("aula.web.teaching")

_DRAFTS: DraftStore | None = None


def _get_draft_store() -> DraftStore:
    global _DRAFTS
    if _DRAFTS is None:
        _DRAFTS = DraftStore()
    return _DRAFTS


def set_draft_store(store: DraftStore | None) -> None:
    global _DRAFTS
    _DRAFTS = store


def _require_teacher(request: Request):
    """Return (user, error_response) ensuring caller has teacher role."""
    user = getattr(request.state, "user", None)
    if not _role_in(user, "teacher"):
        return None, _private_error({"error": "forbidden"}, status_code=403)
    return user, None


def _serialize_draft(rec: DraftRecord) -> dict:
    return {"draft_id": rec.draft_id, "updated_at": rec.updated_at, "draft": asdict(rec.draft)}


def _edit(request: Request, draft_id: str, mutate: Callable[[CourseDraft], CourseDraft]):
    """Apply one editor operation to the caller's draft and return the new draft."""
    user, error = _require_teacher(request)
    if error:
        return error
    csrf = _csrf_guard(request)
    if csrf:
        return csrf
    sub = _current_sub(user)
    store = _get_draft_store()
    try:
        rec = store.get(draft_id, owner_sub=sub)
        rec = store.save(draft_id, owner_sub=sub, draft=mutate(rec.draft))
    except DOMAIN_ERRORS as exc:
        return _domain_error(exc)
    return _json_private(_serialize_draft(rec))


def _on_modules(fn: Callable[[List], List]) -> Callable[[CourseDraft], CourseDraft]:
    return lambda draft: replace(draft, modules=fn(draft.modules))


def _on_quiz(index: int, fn: Callable[[QuizDraft], QuizDraft]) -> Callable[[CourseDraft], CourseDraft]:
    def apply(draft: CourseDraft) -> CourseDraft:
        quiz = module_ops.require_quiz(draft.modules, index)
        return replace(draft, modules=module_ops.set_quiz(draft.modules, index, fn(quiz)))

    return apply


# --- Payloads ---------------------------------------------------------------------


class DraftUpdatePayload(BaseModel):
    title: str | None = Field(default=None, max_length=200)
    description: str | None = Field(default=None, max_length=5000)


class ModuleUpdatePayload(BaseModel):
    title: str | None = Field(default=None, max_length=200)
    description: str | None = None
    content: str | None = None
    module_code: str | None = Field(default=None, max_length=50)
    estimated_duration: str | None = Field(default=None, max_length=50)
    abstract: str | None = None
    teaser_video_url: str | None = Field(default=None, max_length=500)
    target_group: str | None = None
    reflection_prompt: str | None = None


class MovePayload(BaseModel):
    direction: str

    @field_validator("direction")
    @classmethod
    def _lower(cls, v: str) -> str:
        return v.strip().lower()


class TextValuePayload(BaseModel):
    value: str = Field(..., max_length=2000)


class ResourceUpdatePayload(BaseModel):
    name: str | None = Field(default=None, max_length=200)
    link: str | None = Field(default=None, max_length=1000)
    license: str | None = Field(default=None, max_length=100)


class QuizUpdatePayload(BaseModel):
    title: str | None = Field(default=None, max_length=200)
    description: str | None = None
    passing_score: int | float | None = None


class QuestionUpdatePayload(BaseModel):
    question: str | None = None
    options: List[str] | None = None
    correct_option: int | None = None


class SubmitPayload(BaseModel):
    status: str = "draft"


# --- Drafts -----------------------------------------------------------------------


@teaching_router.post("/api/teaching/drafts")
async def create_draft(request: Request):
    """Start an empty Course Draft owned by the caller (201)."""
    user, error = _require_teacher(request)
    if error:
        return error
    csrf = _csrf_guard(request)
    if csrf:
        return csrf
    rec = _get_draft_store().create(owner_sub=_current_sub(user))
    return _json_private(_serialize_draft(rec), status_code=201)


@teaching_router.get("/api/teaching/drafts")
async def list_drafts(request: Request):
    user, error = _require_teacher(request)
    if error:
        return error
    items = _get_draft_store().list_for(_current_sub(user))
    return _json_private([_serialize_draft(r) for r in items])


@teaching_router.get("/api/teaching/drafts/{draft_id}")
async def get_draft(request: Request, draft_id: str):
    user, error = _require_teacher(request)
    if error:
        return error
    try:
        rec = _get_draft_store().get(draft_id, owner_sub=_current_sub(user))
    except DOMAIN_ERRORS as exc:
        return _domain_error(exc)
    return _json_private(_serialize_draft(rec))


@teaching_router.delete("/api/teaching/drafts/{draft_id}")
async def delete_draft(request: Request, draft_id: str):
    user, error = _require_teacher(request)
    if error:
        return error
    csrf = _csrf_guard(request)
    if csrf:
        return csrf
    try:
        _get_draft_store().delete(draft_id, owner_sub=_current_sub(user))
    except DOMAIN_ERRORS as exc:
        return _domain_error(exc)
    return _no_content()


@teaching_router.patch("/api/teaching/drafts/{draft_id}")
async def update_draft(request: Request, draft_id: str, payload: DraftUpdatePayload):
    """Set title and/or description; emptiness is only checked at submit."""
    changes = {k: v if v is not None else "" for k, v in payload.model_dump(exclude_unset=True).items()}
    return _edit(request, draft_id, lambda draft: replace(draft, **changes))


# --- Modules ----------------------------------------------------------------------


@teaching_router.post("/api/teaching/drafts/{draft_id}/modules")
async def add_module(request: Request, draft_id: str):
    return _edit(request, draft_id, _on_modules(module_ops.add_module))


@teaching_router.patch("/api/teaching/drafts/{draft_id}/modules/{index}")
async def update_module(request: Request, draft_id: str, index: int, payload: ModuleUpdatePayload):
    data = payload.model_dump(exclude_unset=True)
    if "title" in data and data["title"] is None:
        data["title"] = ""
    patch = patch_from_mapping(ModulePatch, data)
    return _edit(request, draft_id, _on_modules(lambda ms: module_ops.update_module(ms, index, patch)))


@teaching_router.delete("/api/teaching/drafts/{draft_id}/modules/{index}")
async def remove_module(request: Request, draft_id: str, index: int):
    return _edit(request, draft_id, _on_modules(lambda ms: module_ops.remove_module(ms, index)))


@teaching_router.post("/api/teaching/drafts/{draft_id}/modules/{index}/move")
async def move_module(request: Request, draft_id: str, index: int, payload: MovePayload):
    """Swap with the neighbour; moving past either end leaves the draft unchanged."""
    return _edit(request, draft_id, _on_modules(lambda ms: module_ops.move_module(ms, index, payload.direction)))


@teaching_router.post("/api/teaching/drafts/{draft_id}/modules/{index}/quiz/toggle")
async def toggle_quiz(request: Request, draft_id: str, index: int):
    """Attach a default quiz, or discard the existing quiz and all its questions."""
    return _edit(request, draft_id, _on_modules(lambda ms: module_ops.toggle_quiz(ms, index)))


@teaching_router.post("/api/teaching/drafts/{draft_id}/modules/{index}/outcomes")
async def add_learning_outcome(request: Request, draft_id: str, index: int):
    return _edit(request, draft_id, _on_modules(lambda ms: module_ops.add_learning_outcome(ms, index)))


@teaching_router.patch("/api/teaching/drafts/{draft_id}/modules/{index}/outcomes/{outcome_index}")
async def update_learning_outcome(
    request: Request, draft_id: str, index: int, outcome_index: int, payload: TextValuePayload
):
    return _edit(
        request,
        draft_id,
        _on_modules(lambda ms: module_ops.update_learning_outcome(ms, index, outcome_index, payload.value)),
    )


@teaching_router.delete("/api/teaching/drafts/{draft_id}/modules/{index}/outcomes/{outcome_index}")
async def remove_learning_outcome(request: Request, draft_id: str, index: int, outcome_index: int):
    return _edit(
        request, draft_id, _on_modules(lambda ms: module_ops.remove_learning_outcome(ms, index, outcome_index))
    )


@teaching_router.post("/api/teaching/drafts/{draft_id}/modules/{index}/resources")
async def add_resource(request: Request, draft_id: str, index: int):
    return _edit(request, draft_id, _on_modules(lambda ms: module_ops.add_resource(ms, index)))


@teaching_router.patch("/api/teaching/drafts/{draft_id}/modules/{index}/resources/{resource_index}")
async def update_resource(
    request: Request, draft_id: str, index: int, resource_index: int, payload: ResourceUpdatePayload
):
    patch = patch_from_mapping(ResourcePatch, payload.model_dump(exclude_unset=True))
    return _edit(
        request, draft_id, _on_modules(lambda ms: module_ops.update_resource(ms, index, resource_index, patch))
    )


@teaching_router.delete("/api/teaching/drafts/{draft_id}/modules/{index}/resources/{resource_index}")
async def remove_resource(request: Request, draft_id: str, index: int, resource_index: int):
    return _edit(
        request, draft_id, _on_modules(lambda ms: module_ops.remove_resource(ms, index, resource_index))
    )


# --- Quiz builder -----------------------------------------------------------------


@teaching_router.patch("/api/teaching/drafts/{draft_id}/modules/{index}/quiz")
async def update_quiz(request: Request, draft_id: str, index: int, payload: QuizUpdatePayload):
    """Update title, description and passing score of the module's quiz.

    The passing score is stored as sent; it is clamped to 0..100 on submit.
    """
    data = payload.model_dump(exclude_unset=True)
    details = {}
    if "title" in data:
        details["title"] = data["title"] or ""
    if "description" in data:
        details["description"] = data["description"]

    def apply(quiz: QuizDraft) -> QuizDraft:
        quiz = quiz_ops.update_details(quiz, **details)
        if data.get("passing_score") is not None:
            quiz = quiz_ops.set_passing_score(quiz, data["passing_score"])
        return quiz

    return _edit(request, draft_id, _on_quiz(index, apply))


@teaching_router.post("/api/teaching/drafts/{draft_id}/modules/{index}/quiz/questions")
async def add_question(request: Request, draft_id: str, index: int):
    return _edit(request, draft_id, _on_quiz(index, quiz_ops.add_question))


@teaching_router.patch("/api/teaching/drafts/{draft_id}/modules/{index}/quiz/questions/{question_index}")
async def update_question(
    request: Request, draft_id: str, index: int, question_index: int, payload: QuestionUpdatePayload
):
    patch = patch_from_mapping(QuestionPatch, payload.model_dump(exclude_unset=True))
    return _edit(request, draft_id, _on_quiz(index, lambda q: quiz_ops.update_question(q, question_index, patch)))


@teaching_router.delete("/api/teaching/drafts/{draft_id}/modules/{index}/quiz/questions/{question_index}")
async def remove_question(request: Request, draft_id: str, index: int, question_index: int):
    return _edit(request, draft_id, _on_quiz(index, lambda q: quiz_ops.remove_question(q, question_index)))


@teaching_router.patch(
    "/api/teaching/drafts/{draft_id}/modules/{index}/quiz/questions/{question_index}/options/{option_index}"
)
async def update_option(
    request: Request, draft_id: str, index: int, question_index: int, option_index: int, payload: TextValuePayload
):
    return _edit(
        request,
        draft_id,
        _on_quiz(index, lambda q: quiz_ops.update_option(q, question_index, option_index, payload.value)),
    )


# --- Submission -------------------------------------------------------------------


@teaching_router.post("/api/teaching/drafts/{draft_id}/submit")
async def submit_draft(request: Request, draft_id: str, payload: SubmitPayload):
    """Persist the draft as a course with status ``draft`` or ``published``.

    Behavior:
        - 201 with ``course_id`` and the applied ``status``; the draft is discarded
        - 400 on empty title, unknown status or malformed quiz questions (nothing written)
        - 502 when the backend fails; already-created rows are removed again

    Permissions:
        Caller must be a teacher and the author of the draft; owner becomes ``teacher_id=sub``.
    """
    user, error = _require_teacher(request)
    if error:
        return error
    csrf = _csrf_guard(request)
    if csrf:
        return csrf
    sub = _current_sub(user)
    store = _get_draft_store()
    try:
        rec = store.get(draft_id, owner_sub=sub)
        result = CourseSubmissionService(gateway_for(sub)).submit(rec.draft, teacher_id=sub, status=payload.status)
    except DOMAIN_ERRORS as exc:
        return _domain_error(exc)
    store.delete(draft_id, owner_sub=sub)
    return _json_private(
        {
            "course_id": result.course_id,
            "status": result.status.value,
            "module_ids": result.module_ids,
            "quiz_ids": result.quiz_ids,
            "question_count": result.question_count,
        },
        status_code=201,
    )


# --- Owned courses ----------------------------------------------------------------


@teaching_router.get("/api/teaching/courses")
async def list_courses(request: Request):
    """List the caller's courses newest first with module and enrollment counts."""
    user, error = _require_teacher(request)
    if error:
        return error
    try:
        items = CoursesService(gateway_for(_current_sub(user))).list_for_teacher(_current_sub(user))
    except DOMAIN_ERRORS as exc:
        return _domain_error(exc)
    return _json_private([c.to_dict() for c in items])


@teaching_router.get("/api/teaching/courses/{course_id}")
async def get_course(request: Request, course_id: str):
    """Return the persisted course reassembled into the draft shape (owner only)."""
    user, error = _require_teacher(request)
    if error:
        return error
    try:
        record, draft = CoursesService(gateway_for(_current_sub(user))).assemble(course_id, teacher_id=_current_sub(user))
    except DOMAIN_ERRORS as exc:
        return _domain_error(exc)
    return _json_private({"course": record.to_dict(), "draft": asdict(draft)})


@teaching_router.delete("/api/teaching/courses/{course_id}")
async def delete_course(request: Request, course_id: str):
    """Delete an owned course; modules, quizzes, enrollments and progress cascade (204)."""
    user, error = _require_teacher(request)
    if error:
        return error
    csrf = _csrf_guard(request)
    if csrf:
        return csrf
    try:
        CoursesService(gateway_for(_current_sub(user))).delete(course_id, teacher_id=_current_sub(user))
    except DOMAIN_ERRORS as exc:
        return _domain_error(exc)
    logger.info("Course %s deleted by owner", course_id)
    return _no_content()
