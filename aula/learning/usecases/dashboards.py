from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List

from aula.gateway.ports import GatewayProtocol
from aula.identity_access.domain import ALLOWED_ROLES


def _status_counts(courses: List[Dict[str, Any]]) -> Dict[str, int]:
    counts = {"draft": 0, "published": 0, "archived": 0}
    for course in courses:
        status = course.get("status") or "draft"
        counts[status] = counts.get(status, 0) + 1
    return counts


@dataclass
class DashboardInput:
    sub: str
    role: str


class GetDashboardUseCase:
    def __init__(self, gateway: GatewayProtocol) -> None:
        self._gateway = gateway

    def execute(self, req: DashboardInput) -> Dict[str, Any]:
        """Return the role-specific summary shown after login.

        Behavior:
            - admin: course totals by status, enrollment total, profile totals by role.
            - teacher: own courses by status, total enrollments in own courses and
              the five newest own courses.
            - student: enrolled courses split into active (< 100%) and completed
              (= 100%); ``last_course`` is the most recently enrolled active one.
        """
        if req.role == "admin":
            return self._admin()
        if req.role == "teacher":
            return self._teacher(req.sub)
        return self._student(req.sub)

    def _admin(self) -> Dict[str, Any]:
        courses = self._gateway.select("courses")
        profiles = self._gateway.select("profiles")
        roles = {role: 0 for role in sorted(ALLOWED_ROLES)}
        for profile in profiles:
            role = profile.get("role")
            if role in roles:
                roles[role] += 1
        return {
            "role": "admin",
            "courses": {"total": len(courses), **_status_counts(courses)},
            "enrollments": len(self._gateway.select("course_enrollments")),
            "profiles": {"total": len(profiles), **roles},
        }

    def _teacher(self, sub: str) -> Dict[str, Any]:
        courses = self._gateway.select("courses", eq={"teacher_id": sub}, order_by="created_at", ascending=False)
        ids = [c["id"] for c in courses]
        enrollments = self._gateway.select("course_enrollments", in_={"course_id": ids}) if ids else []
        return {
            "role": "teacher",
            "courses": {"total": len(courses), **_status_counts(courses)},
            "enrollments": len(enrollments),
            "recent_courses": [
                {"id": c["id"], "title": c.get("title"), "status": c.get("status")} for c in courses[:5]
            ],
        }

    def _student(self, sub: str) -> Dict[str, Any]:
        enrollments = self._gateway.select(
            "course_enrollments", eq={"student_id": sub}, order_by="enrolled_at", ascending=False
        )
        ids = [e["course_id"] for e in enrollments]
        titles: Dict[str, Any] = {}
        if ids:
            titles = {c["id"]: c.get("title") for c in self._gateway.select("courses", in_={"id": ids})}
        entries = [
            {"course_id": e["course_id"], "title": titles.get(e["course_id"]), "progress": int(e.get("progress") or 0)}
            for e in enrollments
        ]
        active = [e for e in entries if e["progress"] < 100]
        completed = [e for e in entries if e["progress"] >= 100]
        return {
            "role": "student",
            "active": active,
            "completed": completed,
            "last_course": active[0] if active else None,
        }


__all__ = ["DashboardInput", "GetDashboardUseCase"]
