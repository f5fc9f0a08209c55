from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from aula.errors import NotFoundError
from aula.gateway.ports import GatewayProtocol, select_one
from aula.identity_access.profiles import TEACHER_FALLBACK_NAME, get_profile
from aula.learning.scoring import percentage
from aula.learning.visibility import is_visible


@dataclass
class CourseViewInput:
    course_id: str
    viewer_sub: Optional[str]


@dataclass
class CourseView:
    course: Dict[str, Any]
    teacher_name: str
    modules: List[Dict[str, Any]]
    quizzes: Dict[str, Dict[str, Any]]
    is_enrolled: bool
    completed_module_ids: List[str] = field(default_factory=list)
    progress: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "course": self.course,
            "teacher_name": self.teacher_name,
            "modules": [{**m, "completed": m["id"] in self.completed_module_ids} for m in self.modules],
            "quizzes": self.quizzes,
            "is_enrolled": self.is_enrolled,
            "completed_module_ids": list(self.completed_module_ids),
            "progress": self.progress,
        }


class GetCourseViewUseCase:
    def __init__(self, gateway: GatewayProtocol) -> None:
        self._gateway = gateway

    def execute(self, req: CourseViewInput) -> CourseView:
        """Reassemble a course for the consumption page.

        Behavior:
            - Unknown id → NotFoundError (the web adapter adds the /explore redirect hint).
            - Draft courses are only visible to their owner.
            - Modules are ordered by ``order_index``; quizzes are keyed by module id.
            - ``is_enrolled`` is true for an enrolled viewer and for the owner.
        """
        course = select_one(self._gateway, "courses", id=req.course_id)
        if course is None:
            raise NotFoundError("course_not_found")
        is_owner = bool(req.viewer_sub) and course.get("teacher_id") == req.viewer_sub
        if not is_visible(course, req.viewer_sub):
            raise NotFoundError("course_not_found")

        profile = get_profile(self._gateway, course["teacher_id"])
        teacher_name = (profile or {}).get("full_name") or TEACHER_FALLBACK_NAME

        modules = self._gateway.select("modules", eq={"course_id": req.course_id}, order_by="order_index")
        module_ids = [m["id"] for m in modules]
        quizzes: Dict[str, Dict[str, Any]] = {}
        if module_ids:
            for quiz in self._gateway.select("quizzes", in_={"module_id": module_ids}):
                quizzes[quiz["module_id"]] = quiz

        is_enrolled = is_owner
        completed: List[str] = []
        if req.viewer_sub:
            enrollment = select_one(
                self._gateway, "course_enrollments", course_id=req.course_id, student_id=req.viewer_sub
            )
            is_enrolled = is_enrolled or enrollment is not None
            if module_ids:
                done = {
                    p["module_id"]
                    for p in self._gateway.select(
                        "module_progress",
                        eq={"student_id": req.viewer_sub, "completed": True},
                        in_={"module_id": module_ids},
                    )
                }
                completed = [mid for mid in module_ids if mid in done]

        return CourseView(
            course=course,
            teacher_name=teacher_name,
            modules=modules,
            quizzes=quizzes,
            is_enrolled=is_enrolled,
            completed_module_ids=completed,
            progress=percentage(len(completed), len(module_ids)),
        )


__all__ = ["CourseViewInput", "CourseView", "GetCourseViewUseCase"]
