"""
Postgres-backed Persistence Gateway.

Security:
- Connect with a limited-role DSN so Row Level Security guards every query.
- ``acting_as`` sets ``app.current_sub`` per transaction for RLS policies.

Design:
- Minimal psycopg3 usage; each call opens a short-lived connection unless a
  ``transaction()`` block is active, in which case all calls share it.
- Identifiers are composed with ``psycopg.sql`` so table/column names are
  never interpolated as text.
- Returns plain dicts (``dict_row``) like the other gateways.
"""
from __future__ import annotations

from contextlib import contextmanager
import logging
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional, Sequence

import psycopg
from psycopg import sql
from psycopg.rows import dict_row
from psycopg.types.json import Jsonb

from aula.errors import GatewayError

from .ports import TABLES

logger = logging.getLogger("aula.gateway")


def _adapt(value: Any) -> Any:
    # options, answers, learning_outcomes and resources are jsonb columns.
    if isinstance(value, (dict, list)):
        return Jsonb(value)
    return value


def _where(eq: Optional[Mapping[str, Any]], in_: Optional[Mapping[str, Iterable[Any]]] = None):
    clauses: List[sql.Composable] = []
    params: List[Any] = []
    for column, value in (eq or {}).items():
        if value is None:
            clauses.append(sql.SQL("{} is null").format(sql.Identifier(column)))
        else:
            clauses.append(sql.SQL("{} = %s").format(sql.Identifier(column)))
            params.append(value)
    for column, values in (in_ or {}).items():
        clauses.append(sql.SQL("{} = any(%s)").format(sql.Identifier(column)))
        params.append(list(values))
    if not clauses:
        return sql.SQL(""), params
    return sql.SQL(" where ") + sql.SQL(" and ").join(clauses), params


class PostgresGateway:
    def __init__(self, dsn: str, *, current_sub: Optional[str] = None) -> None:
        if not dsn:
            raise RuntimeError("PostgresGateway requires a DSN")
        self._dsn = dsn
        self._current_sub = current_sub
        self._conn: Any = None

    @staticmethod
    def _check_table(table: str) -> None:
        if table not in TABLES:
            raise GatewayError(f'relation "public.{table}" does not exist', table=table)

    @contextmanager
    def _connection(self) -> Iterator[Any]:
        if self._conn is not None:
            yield self._conn
            return
        with psycopg.connect(self._dsn, row_factory=dict_row) as conn:
            self._set_sub(conn)
            yield conn

    def _set_sub(self, conn: Any) -> None:
        if self._current_sub:
            with conn.cursor() as cur:
                cur.execute("select set_config('app.current_sub', %s, true)", (self._current_sub,))

    def acting_as(self, sub: str) -> "PostgresGateway":
        """Return a gateway whose transactions run with ``app.current_sub = sub``."""
        return PostgresGateway(self._dsn, current_sub=sub)

    @contextmanager
    def transaction(self) -> Iterator["PostgresGateway"]:
        """Run every gateway call inside the block on one connection, atomically."""
        if self._conn is not None:
            yield self
            return
        with psycopg.connect(self._dsn, row_factory=dict_row) as conn:
            self._set_sub(conn)
            self._conn = conn
            try:
                with conn.transaction():
                    yield self
            finally:
                self._conn = None

    def _execute(self, table: str, query: sql.Composable, params: Sequence[Any]) -> List[Dict[str, Any]]:
        self._check_table(table)
        try:
            with self._connection() as conn:
                with conn.cursor() as cur:
                    cur.execute(query, list(params))
                    rows = cur.fetchall() if cur.description else []
        except psycopg.Error as exc:
            logger.warning("Gateway query on %s failed: %s", table, exc.__class__.__name__)
            raise GatewayError(str(exc).strip() or exc.__class__.__name__, table=table) from exc
        return [dict(r) for r in rows]

    # --- Protocol ------------------------------------------------------------

    def insert(self, table: str, row: Mapping[str, Any]) -> Dict[str, Any]:
        rows = self.insert_many(table, [row])
        if not rows:
            raise GatewayError("insert returned no row", table=table)
        return rows[0]

    def insert_many(self, table: str, rows: Sequence[Mapping[str, Any]]) -> List[Dict[str, Any]]:
        if not rows:
            return []
        columns = list(rows[0].keys())
        placeholders = sql.SQL("({})").format(sql.SQL(", ").join(sql.Placeholder() * len(columns)))
        query = sql.SQL("insert into {} ({}) values {} returning *").format(
            sql.Identifier("public", table),
            sql.SQL(", ").join(sql.Identifier(c) for c in columns),
            sql.SQL(", ").join(placeholders for _ in rows),
        )
        params = [_adapt(r.get(c)) for r in rows for c in columns]
        return self._execute(table, query, params)

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
        where, params = _where(eq, in_)
        query = sql.SQL("select * from {}").format(sql.Identifier("public", table)) + where
        if order_by:
            direction = sql.SQL("asc") if ascending else sql.SQL("desc")
            query += sql.SQL(" order by {} {}").format(sql.Identifier(order_by), direction)
        if limit is not None:
            query += sql.SQL(" limit %s")
            params.append(int(limit))
        return self._execute(table, query, params)

    def update(self, table: str, patch: Mapping[str, Any], *, eq: Mapping[str, Any]) -> List[Dict[str, Any]]:
        if not patch:
            return self.select(table, eq=eq)
        assignments = sql.SQL(", ").join(sql.SQL("{} = %s").format(sql.Identifier(c)) for c in patch)
        where, where_params = _where(eq)
        query = (
            sql.SQL("update {} set ").format(sql.Identifier("public", table))
            + assignments
            + where
            + sql.SQL(" returning *")
        )
        params = [_adapt(v) for v in patch.values()] + where_params
        return self._execute(table, query, params)

    def delete(self, table: str, *, eq: Mapping[str, Any]) -> List[Dict[str, Any]]:
        if not eq:
            raise ValueError("delete requires at least one filter")
        where, params = _where(eq)
        query = sql.SQL("delete from {}").format(sql.Identifier("public", table)) + where + sql.SQL(" returning *")
        return self._execute(table, query, params)

    def upsert(self, table: str, row: Mapping[str, Any], *, on_conflict: Sequence[str] = ("id",)) -> Dict[str, Any]:
        columns = list(row.keys())
        updates = [c for c in columns if c not in on_conflict]
        action = (
            sql.SQL("do update set ")
            + sql.SQL(", ").join(sql.SQL("{0} = excluded.{0}").format(sql.Identifier(c)) for c in updates)
            if updates
            else sql.SQL("do nothing")
        )
        query = sql.SQL("insert into {} ({}) values ({}) on conflict ({}) {} returning *").format(
            sql.Identifier("public", table),
            sql.SQL(", ").join(sql.Identifier(c) for c in columns),
            sql.SQL(", ").join(sql.Placeholder() * len(columns)),
            sql.SQL(", ").join(sql.Identifier(c) for c in on_conflict),
            action,
        )
        rows = self._execute(table, query, [_adapt(row[c]) for c in columns])
        if not rows:
            raise GatewayError("upsert returned no row", table=table)
        return rows[0]


__all__ = ["PostgresGateway"]
