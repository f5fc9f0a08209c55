"""
In-memory Persistence Gateway for development and tests.

Why:
    Local work and the test-suite must not depend on a reachable Supabase
    project. This gateway mimics the parts of the backend the core relies on:
    server-assigned UUID ids, column defaults, unique keys and ON DELETE
    CASCADE between the LMS tables.

Notes:
    - Rows are stored as plain dicts and always copied on the way in and out,
      so callers never alias the store.
    - ``fail_writes`` lets tests simulate a backend failure on a given table.
"""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple
from uuid import uuid4

from aula.errors import GatewayError

from .ports import TABLES

# parent table -> [(child table, foreign key column)]
_CASCADES: Dict[str, List[Tuple[str, str]]] = {
    "courses": [("modules", "course_id"), ("course_enrollments", "course_id")],
    "modules": [
        ("quizzes", "module_id"),
        ("module_progress", "module_id"),
        ("module_comments", "module_id"),
    ],
    "quizzes": [("quiz_questions", "quiz_id"), ("quiz_attempts", "quiz_id")],
}

_UNIQUE_KEYS: Dict[str, Tuple[str, ...]] = {
    "course_enrollments": ("course_id", "student_id"),
    "module_progress": ("module_id", "student_id"),
    "quizzes": ("module_id",),
}


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _defaults(table: str) -> Dict[str, Any]:
    now = _now_iso()
    if table == "courses":
        return {"status": "draft", "description": None, "created_at": now, "updated_at": now}
    if table == "course_enrollments":
        return {"progress": 0, "enrolled_at": now}
    if table == "quiz_attempts":
        return {"completed_at": now}
    if table == "module_progress":
        return {"completed": False, "completed_at": None}
    if table in ("modules", "module_comments", "quizzes", "quiz_questions"):
        return {"created_at": now}
    return {}


def _sort_key(value: Any) -> Tuple[int, Any]:
    # NULLs sort last in ascending order, like Postgres.
    return (1, "") if value is None else (0, value)


class InMemoryGateway:
    def __init__(self) -> None:
        self.tables: Dict[str, List[Dict[str, Any]]] = {name: [] for name in TABLES}
        self._failing: Dict[str, str] = {}

    # --- Test hooks ----------------------------------------------------------

    def fail_writes(self, table: str, message: str = "simulated backend failure") -> None:
        """Make every subsequent write to ``table`` raise GatewayError."""
        self._failing[table] = message

    def heal(self, table: Optional[str] = None) -> None:
        if table is None:
            self._failing.clear()
        else:
            self._failing.pop(table, None)

    # --- Helpers -------------------------------------------------------------

    def _table(self, table: str) -> List[Dict[str, Any]]:
        if table not in self.tables:
            raise GatewayError(f'relation "public.{table}" does not exist', table=table)
        return self.tables[table]

    def _check_writable(self, table: str) -> None:
        message = self._failing.get(table)
        if message:
            raise GatewayError(message, table=table)

    @staticmethod
    def _matches(
        row: Mapping[str, Any],
        eq: Optional[Mapping[str, Any]],
        in_: Optional[Mapping[str, Iterable[Any]]] = None,
    ) -> bool:
        for key, value in (eq or {}).items():
            if row.get(key) != value:
                return False
        for key, values in (in_ or {}).items():
            if row.get(key) not in set(values):
                return False
        return True

    def _check_unique(self, table: str, row: Mapping[str, Any], *, ignore: Optional[Dict[str, Any]] = None) -> None:
        keys = _UNIQUE_KEYS.get(table)
        if not keys:
            return
        for existing in self.tables[table]:
            if existing is ignore:
                continue
            if all(existing.get(k) == row.get(k) for k in keys):
                raise GatewayError(
                    f'duplicate key value violates unique constraint "{table}_{"_".join(keys)}_key"',
                    table=table,
                )

    # --- Protocol ------------------------------------------------------------

    def insert(self, table: str, row: Mapping[str, Any]) -> Dict[str, Any]:
        rows = self._table(table)
        self._check_writable(table)
        record = _defaults(table)
        record.update(dict(row))
        record.setdefault("id", str(uuid4()))
        self._check_unique(table, record)
        rows.append(record)
        return dict(record)

    def insert_many(self, table: str, rows: Sequence[Mapping[str, Any]]) -> List[Dict[str, Any]]:
        self._table(table)
        self._check_writable(table)
        # Batch is all-or-nothing like a single INSERT statement.
        snapshot = list(self.tables[table])
        try:
            return [self.insert(table, row) for row in rows]
        except GatewayError:
            self.tables[table] = snapshot
            raise

    def select(
        self,
        table: str,
        *,
        eq: Optional[Mapping[str, Any]] = None,
        in_: Optional[Mapping[str, Iterable[Any]]] = None,
        order_by: Optional[str] = None,
        ascending: bool = True,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        items = [dict(r) for r in self._table(table) if self._matches(r, eq, in_)]
        if order_by:
            present = [r for r in items if r.get(order_by) is not None]
            missing = [r for r in items if r.get(order_by) is None]
            present.sort(key=lambda r: _sort_key(r.get(order_by)), reverse=not ascending)
            items = present + missing if ascending else missing + present
        if limit is not None:
            items = items[: max(0, int(limit))]
        return items

    def update(self, table: str, patch: Mapping[str, Any], *, eq: Mapping[str, Any]) -> List[Dict[str, Any]]:
        rows = self._table(table)
        self._check_writable(table)
        updated: List[Dict[str, Any]] = []
        for row in rows:
            if self._matches(row, eq):
                candidate = {**row, **dict(patch)}
                self._check_unique(table, candidate, ignore=row)
                row.update(dict(patch))
                if "updated_at" in row:
                    row["updated_at"] = _now_iso()
                updated.append(dict(row))
        return updated

    def delete(self, table: str, *, eq: Mapping[str, Any]) -> List[Dict[str, Any]]:
        self._table(table)
        self._check_writable(table)
        return self._delete_cascading(table, eq)

    def _delete_cascading(self, table: str, eq: Mapping[str, Any]) -> List[Dict[str, Any]]:
        # Cascades run server-side, so they ignore the simulated write failures.
        rows = self.tables[table]
        removed = [r for r in rows if self._matches(r, eq)]
        self.tables[table] = [r for r in rows if not self._matches(r, eq)]
        for row in removed:
            for child, fk in _CASCADES.get(table, []):
                self._delete_cascading(child, {fk: row["id"]})
        return [dict(r) for r in removed]

    def upsert(self, table: str, row: Mapping[str, Any], *, on_conflict: Sequence[str] = ("id",)) -> Dict[str, Any]:
        rows = self._table(table)
        self._check_writable(table)
        keys = tuple(on_conflict)
        if all(k in row for k in keys):
            for existing in rows:
                if all(existing.get(k) == row[k] for k in keys):
                    existing.update(dict(row))
                    return dict(existing)
        return self.insert(table, row)


__all__ = ["InMemoryGateway"]
