"""
In-memory store for Course Drafts being edited.

Why: A draft is edited through many small requests before it is submitted, and
nothing is persisted until then. Drafts are keyed by an opaque id and bound to
their author; for multi-process deployments replace this with a shared store.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Optional
import secrets
import time

from aula.errors import NotFoundError
from aula.teaching.models import CourseDraft


def _now() -> int:
    return int(time.time())


@dataclass
class DraftRecord:
    draft_id: str
    owner_sub: str
    draft: CourseDraft
    updated_at: int


class DraftStore:
    def __init__(self):
        self._data: Dict[str, DraftRecord] = {}

    def create(self, *, owner_sub: str, draft: Optional[CourseDraft] = None) -> DraftRecord:
        draft_id = secrets.token_urlsafe(12)
        rec = DraftRecord(draft_id=draft_id, owner_sub=owner_sub, draft=draft or CourseDraft(), updated_at=_now())
        self._data[draft_id] = rec
        return rec

    def get(self, draft_id: str, *, owner_sub: str) -> DraftRecord:
        rec = self._data.get(draft_id)
        # Someone else's draft is reported as missing, never as forbidden.
        if rec is None or rec.owner_sub != owner_sub:
            raise NotFoundError("draft_not_found")
        return rec

    def save(self, draft_id: str, *, owner_sub: str, draft: CourseDraft) -> DraftRecord:
        rec = self.get(draft_id, owner_sub=owner_sub)
        rec.draft = draft
        rec.updated_at = _now()
        return rec

    def delete(self, draft_id: str, *, owner_sub: str) -> None:
        self.get(draft_id, owner_sub=owner_sub)
        self._data.pop(draft_id, None)

    def list_for(self, owner_sub: str) -> List[DraftRecord]:
        return sorted(
            (r for r in self._data.values() if r.owner_sub == owner_sub),
            key=lambda r: r.updated_at,
            reverse=True,
        )


__all__ = ["DraftRecord", "DraftStore"]
