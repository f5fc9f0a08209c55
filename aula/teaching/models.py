"""
Course authoring data model.

Why:
    A Course Draft is edited entirely in memory and only flattened into rows at
    submission time. Keeping the draft as plain dataclasses lets the editing
    operations stay pure (input list in, new list out) and testable without a
    backend.

Patches:
    ``ModulePatch`` and ``QuestionPatch`` carry only the fields a caller wants
    to change; everything else stays ``_UNSET`` and is left untouched by
    ``apply_patch``. ``order_index`` is not patchable: list position owns it.
"""
from __future__ import annotations

from dataclasses import dataclass, field, fields, replace
from enum import Enum
import math
from typing import Any, List, Optional, TypeVar

from aula.errors import ValidationError

_UNSET: Any = object()

DEFAULT_OPTION_COUNT = 4
MIN_OPTION_COUNT = 2
DEFAULT_PASSING_SCORE = 70
DEFAULT_RESOURCE_LICENSE = "CC BY"


class CourseStatus(str, Enum):
    DRAFT = "draft"
    PUBLISHED = "published"
    ARCHIVED = "archived"


# Archiving is an admin action; authors only choose between these two.
SUBMITTABLE_STATUSES = frozenset({CourseStatus.DRAFT, CourseStatus.PUBLISHED})


@dataclass
class Resource:
    name: str = ""
    link: str = ""
    license: str = DEFAULT_RESOURCE_LICENSE


@dataclass
class QuizQuestionDraft:
    question: str = ""
    options: List[str] = field(default_factory=lambda: [""] * DEFAULT_OPTION_COUNT)
    correct_option: int = 0
    order_index: int = 0
    id: Optional[str] = None


@dataclass
class QuizDraft:
    title: str = ""
    passing_score: int = DEFAULT_PASSING_SCORE
    description: Optional[str] = None
    questions: List[QuizQuestionDraft] = field(default_factory=list)
    id: Optional[str] = None


@dataclass
class ModuleDraft:
    title: str = ""
    description: Optional[str] = None
    content: Optional[str] = None
    order_index: int = 0
    quiz: Optional[QuizDraft] = None
    module_code: Optional[str] = None
    estimated_duration: Optional[str] = None
    abstract: Optional[str] = None
    teaser_video_url: Optional[str] = None
    target_group: Optional[str] = None
    learning_outcomes: List[str] = field(default_factory=list)
    reflection_prompt: Optional[str] = None
    resources: List[Resource] = field(default_factory=list)
    id: Optional[str] = None


@dataclass
class CourseDraft:
    title: str = ""
    description: str = ""
    modules: List[ModuleDraft] = field(default_factory=list)
    id: Optional[str] = None


@dataclass(frozen=True)
class ModulePatch:
    title: Any = _UNSET
    description: Any = _UNSET
    content: Any = _UNSET
    module_code: Any = _UNSET
    estimated_duration: Any = _UNSET
    abstract: Any = _UNSET
    teaser_video_url: Any = _UNSET
    target_group: Any = _UNSET
    reflection_prompt: Any = _UNSET


@dataclass(frozen=True)
class QuestionPatch:
    question: Any = _UNSET
    options: Any = _UNSET
    correct_option: Any = _UNSET


@dataclass(frozen=True)
class ResourcePatch:
    name: Any = _UNSET
    link: Any = _UNSET
    license: Any = _UNSET


T = TypeVar("T")


def apply_patch(target: T, patch: Any) -> T:
    """Return a copy of ``target`` with every set field of ``patch`` merged in."""
    changes = {f.name: getattr(patch, f.name) for f in fields(patch) if getattr(patch, f.name) is not _UNSET}
    if not changes:
        return target
    return replace(target, **changes)  # type: ignore[type-var]


def patch_from_mapping(patch_cls: type, data: Any) -> Any:
    """Build a patch from a mapping, ignoring keys the patch type does not know."""
    names = {f.name for f in fields(patch_cls)}
    return patch_cls(**{k: v for k, v in dict(data or {}).items() if k in names})


def clamp_passing_score(value: Any) -> int:
    """Round half-up to an integer percentage and clamp into [0, 100]."""
    if isinstance(value, bool):
        raise ValidationError("invalid_passing_score")
    try:
        number = float(value)
    except (TypeError, ValueError) as exc:
        raise ValidationError("invalid_passing_score") from exc
    if math.isnan(number):
        raise ValidationError("invalid_passing_score")
    if math.isinf(number):
        return 100 if number > 0 else 0
    return max(0, min(100, int(math.floor(number + 0.5))))


def parse_status(value: Any) -> CourseStatus:
    try:
        status = CourseStatus(str(value).strip().lower())
    except ValueError as exc:
        raise ValidationError("invalid_status") from exc
    if status not in SUBMITTABLE_STATUSES:
        raise ValidationError("invalid_status")
    return status


__all__ = [
    "CourseStatus",
    "SUBMITTABLE_STATUSES",
    "Resource",
    "QuizQuestionDraft",
    "QuizDraft",
    "ModuleDraft",
    "CourseDraft",
    "ModulePatch",
    "QuestionPatch",
    "ResourcePatch",
    "apply_patch",
    "patch_from_mapping",
    "clamp_passing_score",
    "parse_status",
    "DEFAULT_OPTION_COUNT",
    "MIN_OPTION_COUNT",
    "DEFAULT_PASSING_SCORE",
]
