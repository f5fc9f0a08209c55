"""Use case layer for the Learning context.

Re-export common use cases for convenient imports in tests.
"""

from .catalog import EnrollInput, EnrollUseCase, ListCatalogInput, ListCatalogUseCase
from .comments import (
    AddCommentInput,
    AddCommentUseCase,
    DeleteCommentInput,
    DeleteCommentUseCase,
    ListCommentsUseCase,
)
from .course_view import CourseView, CourseViewInput, GetCourseViewUseCase
from .dashboards import DashboardInput, GetDashboardUseCase
from .progress import MarkModuleCompleteInput, MarkModuleCompleteUseCase
from .quiz_runner import QuizRunner, RunnerState, SubmitAttemptInput, SubmitQuizAttemptUseCase

__all__ = [
    "EnrollInput",
    "EnrollUseCase",
    "ListCatalogInput",
    "ListCatalogUseCase",
    "AddCommentInput",
    "AddCommentUseCase",
    "DeleteCommentInput",
    "DeleteCommentUseCase",
    "ListCommentsUseCase",
    "CourseView",
    "CourseViewInput",
    "GetCourseViewUseCase",
    "DashboardInput",
    "GetDashboardUseCase",
    "MarkModuleCompleteInput",
    "MarkModuleCompleteUseCase",
    "QuizRunner",
    "RunnerState",
    "SubmitAttemptInput",
    "SubmitQuizAttemptUseCase",
]
