"""
Course visibility for learners.

A course is visible when it is published or the viewer owns it. Anything
reached through a module (quizzes, comments, progress) inherits the course's
visibility; hidden content answers like missing content.
"""
from __future__ import annotations

from typing import Any, Dict, Optional, Tuple

from aula.errors import NotFoundError
from aula.gateway.ports import GatewayProtocol, select_one


def is_visible(course: Dict[str, Any], viewer_sub: Optional[str]) -> bool:
    if course.get("status") == "published":
        return True
    return bool(viewer_sub) and course.get("teacher_id") == viewer_sub


def require_visible_course(gateway: GatewayProtocol, course_id: str, viewer_sub: Optional[str]) -> Dict[str, Any]:
    course = select_one(gateway, "courses", id=course_id)
    if course is None or not is_visible(course, viewer_sub):
        raise NotFoundError("course_not_found")
    return course


def require_visible_module(
    gateway: GatewayProtocol, module_id: str, viewer_sub: Optional[str]
) -> Tuple[Dict[str, Any], Dict[str, Any]]:
    """Return ``(module, course)`` or raise NotFoundError("module_not_found")."""
    module = select_one(gateway, "modules", id=module_id)
    if module is None:
        raise NotFoundError("module_not_found")
    course = select_one(gateway, "courses", id=module["course_id"])
    if course is None or not is_visible(course, viewer_sub):
        raise NotFoundError("module_not_found")
    return module, course


__all__ = ["is_visible", "require_visible_course", "require_visible_module"]
