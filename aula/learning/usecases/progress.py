from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
import logging

from aula.gateway.ports import GatewayProtocol
from aula.learning.scoring import percentage
from aula.learning.visibility import require_visible_module

logger = logging.getLogger("aula.learning")


@dataclass
class MarkModuleCompleteInput:
    module_id: str
    student_sub: str


@dataclass
class MarkModuleCompleteResult:
    module_id: str
    course_id: str
    completed_count: int
    module_count: int
    progress: int


class MarkModuleCompleteUseCase:
    def __init__(self, gateway: GatewayProtocol) -> None:
        self._gateway = gateway

    def execute(self, req: MarkModuleCompleteInput) -> MarkModuleCompleteResult:
        """Record a module as completed and refresh the course enrollment progress.

        Behavior:
            - Upserts ``module_progress`` on (module_id, student_id); repeating the
              call is idempotent apart from ``completed_at``.
            - Recomputes ``progress`` from the completed modules of the owning
              course (half-up percentage) and updates the caller's enrollment,
              if there is one.

        Permissions:
            Caller must be authenticated; writes only rows of ``student_sub``.
            Modules of a course the caller cannot see raise NotFoundError.
        """
        module, _ = require_visible_module(self._gateway, req.module_id, req.student_sub)
        self._gateway.upsert(
            "module_progress",
            {
                "module_id": req.module_id,
                "student_id": req.student_sub,
                "completed": True,
                "completed_at": datetime.now(timezone.utc).isoformat(),
            },
            on_conflict=("module_id", "student_id"),
        )
        course_id = module["course_id"]
        module_ids = [m["id"] for m in self._gateway.select("modules", eq={"course_id": course_id})]
        done = {
            p["module_id"]
            for p in self._gateway.select(
                "module_progress",
                eq={"student_id": req.student_sub, "completed": True},
                in_={"module_id": module_ids},
            )
        }
        progress = percentage(len(done), len(module_ids))
        updated = self._gateway.update(
            "course_enrollments",
            {"progress": progress},
            eq={"course_id": course_id, "student_id": req.student_sub},
        )
        if not updated:
            logger.debug("No enrollment to update for course %s", course_id)
        return MarkModuleCompleteResult(
            module_id=req.module_id,
            course_id=course_id,
            completed_count=len(done),
            module_count=len(module_ids),
            progress=progress,
        )


__all__ = ["MarkModuleCompleteInput", "MarkModuleCompleteResult", "MarkModuleCompleteUseCase"]
