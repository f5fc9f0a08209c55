"""
Owned-course queries for teachers.

Lists a teacher's persisted courses, deletes them (the backend cascades to
modules, quizzes, questions, enrollments and progress) and reassembles a
persisted course back into the draft shape so it can be inspected or edited.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from aula.errors import NotFoundError
from aula.gateway.ports import GatewayProtocol, decode_options, select_one
from aula.teaching.models import (
    CourseDraft,
    ModuleDraft,
    QuizDraft,
    QuizQuestionDraft,
    Resource,
)


@dataclass
class CourseRecord:
    id: str
    title: str
    description: Optional[str]
    teacher_id: str
    status: str
    created_at: Optional[str] = None
    module_count: int = 0
    enrollment_count: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "teacher_id": self.teacher_id,
            "status": self.status,
            "created_at": self.created_at,
            "module_count": self.module_count,
            "enrollment_count": self.enrollment_count,
        }


def _count_by(rows: List[Dict[str, Any]], key: str) -> Dict[str, int]:
    counts: Dict[str, int] = {}
    for row in rows:
        counts[row[key]] = counts.get(row[key], 0) + 1
    return counts


def _resources(value: Any) -> List[Resource]:
    items: List[Resource] = []
    for raw in value or []:
        if isinstance(raw, dict):
            items.append(Resource(**{k: raw[k] for k in ("name", "link", "license") if k in raw}))
    return items


def _module_from_row(row: Dict[str, Any], quiz: Optional[QuizDraft]) -> ModuleDraft:
    return ModuleDraft(
        id=row["id"],
        title=row.get("title") or "",
        description=row.get("description"),
        content=row.get("content"),
        order_index=int(row.get("order_index") or 0),
        quiz=quiz,
        module_code=row.get("module_code"),
        estimated_duration=row.get("estimated_duration"),
        abstract=row.get("abstract"),
        teaser_video_url=row.get("teaser_video_url"),
        target_group=row.get("target_group"),
        learning_outcomes=list(row.get("learning_outcomes") or []),
        reflection_prompt=row.get("reflection_prompt"),
        resources=_resources(row.get("resources")),
    )


@dataclass
class CoursesService:
    gateway: GatewayProtocol

    def list_for_teacher(self, teacher_id: str) -> List[CourseRecord]:
        """Return the teacher's courses newest first with module and enrollment counts."""
        courses = self.gateway.select(
            "courses", eq={"teacher_id": teacher_id}, order_by="created_at", ascending=False
        )
        if not courses:
            return []
        ids = [c["id"] for c in courses]
        modules = _count_by(self.gateway.select("modules", in_={"course_id": ids}), "course_id")
        enrollments = _count_by(self.gateway.select("course_enrollments", in_={"course_id": ids}), "course_id")
        return [
            CourseRecord(
                id=c["id"],
                title=c.get("title") or "",
                description=c.get("description"),
                teacher_id=c["teacher_id"],
                status=c.get("status") or "draft",
                created_at=c.get("created_at"),
                module_count=modules.get(c["id"], 0),
                enrollment_count=enrollments.get(c["id"], 0),
            )
            for c in courses
        ]

    def _owned(self, course_id: str, teacher_id: str) -> Dict[str, Any]:
        course = select_one(self.gateway, "courses", id=course_id)
        if course is None:
            raise NotFoundError("course_not_found")
        if course.get("teacher_id") != teacher_id:
            raise PermissionError("forbidden")
        return course

    def delete(self, course_id: str, *, teacher_id: str) -> None:
        self._owned(course_id, teacher_id)
        self.gateway.delete("courses", eq={"id": course_id})

    def assemble(self, course_id: str, *, teacher_id: str) -> tuple[CourseRecord, CourseDraft]:
        """Reload a persisted course and rebuild the in-memory draft shape.

        Behavior:
            - Modules and questions come back ordered by ``order_index``.
            - Raises NotFoundError for an unknown id and PermissionError when
              the caller does not own the course.
        """
        course = self._owned(course_id, teacher_id)
        module_rows = self.gateway.select("modules", eq={"course_id": course_id}, order_by="order_index")
        module_ids = [m["id"] for m in module_rows]
        quizzes: Dict[str, Dict[str, Any]] = {}
        questions: Dict[str, List[Dict[str, Any]]] = {}
        if module_ids:
            for quiz in self.gateway.select("quizzes", in_={"module_id": module_ids}):
                quizzes[quiz["module_id"]] = quiz
        if quizzes:
            quiz_ids = [q["id"] for q in quizzes.values()]
            for row in self.gateway.select("quiz_questions", in_={"quiz_id": quiz_ids}, order_by="order_index"):
                questions.setdefault(row["quiz_id"], []).append(row)

        modules: List[ModuleDraft] = []
        for row in module_rows:
            quiz_row = quizzes.get(row["id"])
            quiz = None
            if quiz_row is not None:
                quiz = QuizDraft(
                    id=quiz_row["id"],
                    title=quiz_row.get("title") or "",
                    description=quiz_row.get("description"),
                    passing_score=quiz_row.get("passing_score", 0),
                    questions=[
                        QuizQuestionDraft(
                            id=q["id"],
                            question=q.get("question") or "",
                            options=decode_options(q.get("options")),
                            correct_option=int(q.get("correct_option") or 0),
                            order_index=int(q.get("order_index") or 0),
                        )
                        for q in questions.get(quiz_row["id"], [])
                    ],
                )
            modules.append(_module_from_row(row, quiz))

        record = CourseRecord(
            id=course["id"],
            title=course.get("title") or "",
            description=course.get("description"),
            teacher_id=course["teacher_id"],
            status=course.get("status") or "draft",
            created_at=course.get("created_at"),
            module_count=len(modules),
        )
        draft = CourseDraft(
            id=course["id"],
            title=record.title,
            description=record.description or "",
            modules=modules,
        )
        return record, draft


__all__ = ["CourseRecord", "CoursesService"]
