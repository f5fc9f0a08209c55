"""
Supabase-backed Persistence Gateway.

This adapter implements GatewayProtocol on top of a provided Supabase client.
It stays duck-typed on the client so tests can pass a fake. The client is
expected to expose ``.table(name)`` returning a PostgREST request builder
offering:

- insert(json) / upsert(json, on_conflict=...) / update(json) / delete()
- select(columns) with eq(col, value), in_(col, values), order(col, desc=...),
  limit(n)
- execute() -> response with ``.data``

Security:
- The caller decides which key the client carries. With the anon key plus a
  user access token every call stays subject to Row Level Security.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

import httpx
from postgrest.exceptions import APIError

from aula.errors import GatewayError

logger = logging.getLogger("aula.gateway")


class SupabaseGateway:
    """Gateway using a supabase client for table operations."""

    def __init__(self, client: Any):
        # Duck-typed supabase client, e.g. from `supabase.create_client(...)`.
        self._client = client

    # --- Helpers -------------------------------------------------------------

    def _run(self, table: str, op: str, query: Any) -> List[Dict[str, Any]]:
        try:
            res = query.execute()
        except APIError as exc:
            logger.warning("Gateway %s on %s failed: %s", op, table, getattr(exc, "code", None))
            raise GatewayError(exc.message or str(exc), table=table) from exc
        except httpx.HTTPError as exc:
            logger.warning("Gateway %s on %s unreachable: %s", op, table, exc.__class__.__name__)
            raise GatewayError(str(exc) or exc.__class__.__name__, table=table) from exc
        data = getattr(res, "data", None)
        if data is None:
            return []
        if isinstance(data, dict):
            return [data]
        return [dict(r) for r in data]

    @staticmethod
    def _apply_eq(query: Any, eq: Optional[Mapping[str, Any]]) -> Any:
        for column, value in (eq or {}).items():
            query = query.is_(column, "null") if value is None else query.eq(column, value)
        return query

    # --- Protocol ------------------------------------------------------------

    def insert(self, table: str, row: Mapping[str, Any]) -> Dict[str, Any]:
        rows = self._run(table, "insert", self._client.table(table).insert(dict(row)))
        if not rows:
            raise GatewayError("insert returned no row", table=table)
        return rows[0]

    def insert_many(self, table: str, rows: Sequence[Mapping[str, Any]]) -> List[Dict[str, Any]]:
        if not rows:
            return []
        return self._run(table, "insert", self._client.table(table).insert([dict(r) for r in rows]))

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
        query = self._apply_eq(self._client.table(table).select("*"), eq)
        for column, values in (in_ or {}).items():
            values = list(values)
            if not values:
                # PostgREST rejects an empty in-list; nothing can match anyway.
                return []
            query = query.in_(column, values)
        if order_by:
            query = query.order(order_by, desc=not ascending)
        if limit is not None:
            query = query.limit(int(limit))
        return self._run(table, "select", query)

    def update(self, table: str, patch: Mapping[str, Any], *, eq: Mapping[str, Any]) -> List[Dict[str, Any]]:
        query = self._apply_eq(self._client.table(table).update(dict(patch)), eq)
        return self._run(table, "update", query)

    def delete(self, table: str, *, eq: Mapping[str, Any]) -> List[Dict[str, Any]]:
        if not eq:
            raise ValueError("delete requires at least one filter")
        query = self._apply_eq(self._client.table(table).delete(), eq)
        return self._run(table, "delete", query)

    def upsert(self, table: str, row: Mapping[str, Any], *, on_conflict: Sequence[str] = ("id",)) -> Dict[str, Any]:
        query = self._client.table(table).upsert(dict(row), on_conflict=",".join(on_conflict))
        rows = self._run(table, "upsert", query)
        if not rows:
            raise GatewayError("upsert returned no row", table=table)
        return rows[0]


__all__ = ["SupabaseGateway"]
