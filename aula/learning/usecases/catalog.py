from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import Any, Dict, List, Optional

from aula.errors import GatewayError, NotFoundError, ValidationError
from aula.gateway.ports import GatewayProtocol, select_one
from aula.identity_access.profiles import TEACHER_FALLBACK_NAME, display_names

logger = logging.getLogger("aula.learning")


@dataclass
class ListCatalogInput:
    viewer_sub: Optional[str]
    limit: int = 50
    offset: int = 0


def _count_by(rows: List[Dict[str, Any]], key: str) -> Dict[str, int]:
    counts: Dict[str, int] = {}
    for row in rows:
        counts[row[key]] = counts.get(row[key], 0) + 1
    return counts


class ListCatalogUseCase:
    def __init__(self, gateway: GatewayProtocol) -> None:
        self._gateway = gateway

    def execute(self, req: ListCatalogInput) -> List[Dict[str, Any]]:
        """Return published courses newest first for the explore page.

        Behavior:
            - Each entry carries ``teacher_name`` (fallback "Professor"),
              ``module_count``, ``enrollment_count`` and ``is_enrolled`` for the viewer.
            - Clamp limit to 1..100 and offset to >= 0.
        """
        limit = max(1, min(100, int(req.limit)))
        offset = max(0, int(req.offset))
        courses = self._gateway.select(
            "courses", eq={"status": "published"}, order_by="created_at", ascending=False
        )[offset : offset + limit]
        if not courses:
            return []
        ids = [c["id"] for c in courses]
        names = display_names(self._gateway, (c["teacher_id"] for c in courses), fallback=TEACHER_FALLBACK_NAME)
        modules = _count_by(self._gateway.select("modules", in_={"course_id": ids}), "course_id")
        enrollments = self._gateway.select("course_enrollments", in_={"course_id": ids})
        counts = _count_by(enrollments, "course_id")
        mine = {e["course_id"] for e in enrollments if req.viewer_sub and e.get("student_id") == req.viewer_sub}
        return [
            {
                "id": c["id"],
                "title": c.get("title"),
                "description": c.get("description"),
                "teacher_id": c["teacher_id"],
                "teacher_name": names.get(c["teacher_id"], TEACHER_FALLBACK_NAME),
                "created_at": c.get("created_at"),
                "module_count": modules.get(c["id"], 0),
                "enrollment_count": counts.get(c["id"], 0),
                "is_enrolled": c["id"] in mine,
            }
            for c in courses
        ]


@dataclass
class EnrollInput:
    course_id: str
    student_sub: str


class EnrollUseCase:
    def __init__(self, gateway: GatewayProtocol) -> None:
        self._gateway = gateway

    def execute(self, req: EnrollInput) -> Dict[str, Any]:
        """Enroll the caller into a published course and return the enrollment row.

        Behavior:
            - Unknown or unpublished course → NotFoundError.
            - Existing enrollment → ValidationError("already_enrolled").
        """
        course = select_one(self._gateway, "courses", id=req.course_id)
        if course is None or course.get("status") != "published":
            raise NotFoundError("course_not_found")
        existing = select_one(self._gateway, "course_enrollments", course_id=req.course_id, student_id=req.student_sub)
        if existing is not None:
            raise ValidationError("already_enrolled")
        try:
            row = self._gateway.insert("course_enrollments", {"course_id": req.course_id, "student_id": req.student_sub})
        except GatewayError as exc:
            # A concurrent enroll lost the race on the unique key.
            if "duplicate key" in str(exc):
                raise ValidationError("already_enrolled") from exc
            raise
        logger.info("Enrollment created for course %s", req.course_id)
        return row


__all__ = ["ListCatalogInput", "ListCatalogUseCase", "EnrollInput", "EnrollUseCase"]
