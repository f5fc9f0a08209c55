"""Gateway interface consumed by the teaching and learning contexts.

The core only needs equality filters, ``in``-list filters and ordering by one
column. Identifiers are assigned by the backend and returned with the row.
"""
from __future__ import annotations

import json
from typing import Any, Dict, Iterable, List, Mapping, Optional, Protocol, Sequence

# Table names as provisioned in the managed backend.
TABLES = (
    "profiles",
    "courses",
    "modules",
    "quizzes",
    "quiz_questions",
    "quiz_attempts",
    "course_enrollments",
    "module_progress",
    "module_comments",
)


class GatewayProtocol(Protocol):
    def insert(self, table: str, row: Mapping[str, Any]) -> Dict[str, Any]: ...

    def insert_many(self, table: str, rows: Sequence[Mapping[str, Any]]) -> List[Dict[str, Any]]: ...

    def select(
        self,
        table: str,
        *,
        eq: Optional[Mapping[str, Any]] = None,
        in_: Optional[Mapping[str, Iterable[Any]]] = None,
        order_by: Optional[str] = None,
        ascending: bool = True,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]: ...

    def update(self, table: str, patch: Mapping[str, Any], *, eq: Mapping[str, Any]) -> List[Dict[str, Any]]: ...

    def delete(self, table: str, *, eq: Mapping[str, Any]) -> List[Dict[str, Any]]: ...

    def upsert(self, table: str, row: Mapping[str, Any], *, on_conflict: Sequence[str] = ("id",)) -> Dict[str, Any]: ...


def select_one(gateway: GatewayProtocol, table: str, **eq: Any) -> Optional[Dict[str, Any]]:
    """Return the first row matching all equality filters, or None (``maybeSingle``)."""
    rows = gateway.select(table, eq=eq, limit=1)
    return rows[0] if rows else None



def decode_options(value: Any) -> List[str]:
    """Question options as a list of strings; older rows stored a JSON-encoded string."""
    if isinstance(value, str):
        value = json.loads(value)
    return [str(o) for o in (value or [])]


__all__ = ["GatewayProtocol", "TABLES", "decode_options", "select_one"]
