"""
Module list editing for a Course Draft.

Every operation takes the current module list and returns a new list with
``order_index`` renumbered to ``0..N-1``. The input list and its modules are
never mutated, so callers can keep the previous state for undo or diffing.

Index handling:
    Invalid positions raise ``IndexOutOfRange``. ``move_module`` is the one
    exception: moving past either end is a no-op, matching the editor where
    the first "up" and the last "down" buttons do nothing.
"""
from __future__ import annotations

from dataclasses import replace
from typing import List, Sequence

from aula.errors import IndexOutOfRange, ValidationError
from aula.teaching.models import (
    DEFAULT_PASSING_SCORE,
    ModuleDraft,
    ModulePatch,
    QuizDraft,
    Resource,
    ResourcePatch,
    apply_patch,
)

DIRECTIONS = ("up", "down")


def _check_index(items: Sequence[object], index: int) -> None:
    if isinstance(index, bool) or not isinstance(index, int) or index < 0 or index >= len(items):
        raise IndexOutOfRange(index, len(items))


def renumber(modules: Sequence[ModuleDraft]) -> List[ModuleDraft]:
    return [m if m.order_index == i else replace(m, order_index=i) for i, m in enumerate(modules)]


def add_module(modules: Sequence[ModuleDraft]) -> List[ModuleDraft]:
    return renumber([*modules, ModuleDraft(order_index=len(modules))])


def update_module(modules: Sequence[ModuleDraft], index: int, patch: ModulePatch) -> List[ModuleDraft]:
    _check_index(modules, index)
    updated = list(modules)
    updated[index] = apply_patch(modules[index], patch)
    return renumber(updated)


def remove_module(modules: Sequence[ModuleDraft], index: int) -> List[ModuleDraft]:
    _check_index(modules, index)
    return renumber([m for i, m in enumerate(modules) if i != index])


def move_module(modules: Sequence[ModuleDraft], index: int, direction: str) -> List[ModuleDraft]:
    if direction not in DIRECTIONS:
        raise ValidationError("invalid_direction")
    if isinstance(index, bool) or not isinstance(index, int):
        raise IndexOutOfRange(index, len(modules))
    target = index - 1 if direction == "up" else index + 1
    if target < 0 or target >= len(modules):
        return list(modules)
    _check_index(modules, index)
    updated = list(modules)
    updated[index], updated[target] = updated[target], updated[index]
    return renumber(updated)


def _replace_at(modules: Sequence[ModuleDraft], index: int, module: ModuleDraft) -> List[ModuleDraft]:
    updated = list(modules)
    updated[index] = module
    return renumber(updated)


# --- Quiz attachment -------------------------------------------------------------

def default_quiz_title(module: ModuleDraft, index: int) -> str:
    return f"Quiz - {module.title or f'Módulo {index + 1}'}"


def toggle_quiz(modules: Sequence[ModuleDraft], index: int) -> List[ModuleDraft]:
    """Attach an empty quiz, or drop the existing one together with its questions."""
    _check_index(modules, index)
    module = modules[index]
    if module.quiz is not None:
        return _replace_at(modules, index, replace(module, quiz=None))
    quiz = QuizDraft(title=default_quiz_title(module, index), passing_score=DEFAULT_PASSING_SCORE)
    return _replace_at(modules, index, replace(module, quiz=quiz))


def set_quiz(modules: Sequence[ModuleDraft], index: int, quiz: QuizDraft) -> List[ModuleDraft]:
    _check_index(modules, index)
    return _replace_at(modules, index, replace(modules[index], quiz=quiz))


def require_quiz(modules: Sequence[ModuleDraft], index: int) -> QuizDraft:
    _check_index(modules, index)
    quiz = modules[index].quiz
    if quiz is None:
        raise ValidationError("quiz_not_enabled")
    return quiz


# --- Learning outcomes -------------------------------------------------------------

def add_learning_outcome(modules: Sequence[ModuleDraft], index: int) -> List[ModuleDraft]:
    _check_index(modules, index)
    module = modules[index]
    return _replace_at(modules, index, replace(module, learning_outcomes=[*module.learning_outcomes, ""]))


def update_learning_outcome(
    modules: Sequence[ModuleDraft], index: int, outcome_index: int, value: str
) -> List[ModuleDraft]:
    _check_index(modules, index)
    module = modules[index]
    _check_index(module.learning_outcomes, outcome_index)
    outcomes = list(module.learning_outcomes)
    outcomes[outcome_index] = value
    return _replace_at(modules, index, replace(module, learning_outcomes=outcomes))


def remove_learning_outcome(modules: Sequence[ModuleDraft], index: int, outcome_index: int) -> List[ModuleDraft]:
    _check_index(modules, index)
    module = modules[index]
    _check_index(module.learning_outcomes, outcome_index)
    outcomes = [o for i, o in enumerate(module.learning_outcomes) if i != outcome_index]
    return _replace_at(modules, index, replace(module, learning_outcomes=outcomes))


# --- Resources ---------------------------------------------------------------------

def add_resource(modules: Sequence[ModuleDraft], index: int) -> List[ModuleDraft]:
    _check_index(modules, index)
    module = modules[index]
    return _replace_at(modules, index, replace(module, resources=[*module.resources, Resource()]))


def update_resource(
    modules: Sequence[ModuleDraft], index: int, resource_index: int, patch: ResourcePatch
) -> List[ModuleDraft]:
    _check_index(modules, index)
    module = modules[index]
    _check_index(module.resources, resource_index)
    resources = list(module.resources)
    resources[resource_index] = apply_patch(resources[resource_index], patch)
    return _replace_at(modules, index, replace(module, resources=resources))


def remove_resource(modules: Sequence[ModuleDraft], index: int, resource_index: int) -> List[ModuleDraft]:
    _check_index(modules, index)
    module = modules[index]
    _check_index(module.resources, resource_index)
    resources = [r for i, r in enumerate(module.resources) if i != resource_index]
    return _replace_at(modules, index, replace(module, resources=resources))


__all__ = [
    "DIRECTIONS",
    "renumber",
    "add_module",
    "update_module",
    "remove_module",
    "move_module",
    "toggle_quiz",
    "set_quiz",
    "require_quiz",
    "default_quiz_title",
    "add_learning_outcome",
    "update_learning_outcome",
    "remove_learning_outcome",
    "add_resource",
    "update_resource",
    "remove_resource",
]
