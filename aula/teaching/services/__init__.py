"""Service layer for the Teaching context.

Re-export the submission workflow and the owned-course service for convenient
imports in the web adapter and tests.
"""

from .courses import CourseRecord, CoursesService
from .submission import CourseSubmissionService, SubmissionResult

__all__ = [
    "CourseRecord",
    "CoursesService",
    "CourseSubmissionService",
    "SubmissionResult",
]
