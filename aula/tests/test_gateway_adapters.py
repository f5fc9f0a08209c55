"""Supabase and Postgres gateways against fakes of their client libraries."""
from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Dict, List

import pytest
import psycopg
from psycopg.types.json import Jsonb
from postgrest.exceptions import APIError

from aula.errors import GatewayError
from aula.gateway import postgres as postgres_module
from aula.gateway import wiring
from aula.gateway.postgres import PostgresGateway
from aula.gateway.supabase_gateway import SupabaseGateway


# --- Supabase -------------------------------------------------------------------


class _FakeResponse:
    def __init__(self, data: Any) -> None:
        self.data = data


class _FakeQuery:
    def __init__(self, client: "_FakeClient", table: str) -> None:
        self._client = client
        self.table = table
        self.calls: List[tuple] = []

    def _record(self, name: str, *args: Any, **kwargs: Any) -> "_FakeQuery":
        self.calls.append((name, args, kwargs))
        return self

    def insert(self, json, **kwargs):
        return self._record("insert", json)

    def upsert(self, json, on_conflict=""):
        return self._record("upsert", json, on_conflict=on_conflict)

    def update(self, json):
        return self._record("update", json)

    def delete(self):
        return self._record("delete")

    def select(self, columns):
        return self._record("select", columns)

    def eq(self, column, value):
        return self._record("eq", column, value)

    def is_(self, column, value):
        return self._record("is_", column, value)

    def in_(self, column, values):
        return self._record("in_", column, values)

    def order(self, column, desc=False):
        return self._record("order", column, desc=desc)

    def limit(self, n):
        return self._record("limit", n)

    def execute(self):
        self._client.executed.append(self)
        if self._client.error is not None:
            raise self._client.error
        return _FakeResponse(self._client.data)


class _FakeClient:
    def __init__(self, data: Any = None, error: Exception | None = None) -> None:
        self.data = data if data is not None else []
        self.error = error
        self.executed: List[_FakeQuery] = []

    def table(self, name: str) -> _FakeQuery:
        return _FakeQuery(self, name)


def test_supabase_select_builds_filters():
    client = _FakeClient(data=[{"id": "m1"}])
    gw = SupabaseGateway(client)

    rows = gw.select(
        "modules", eq={"course_id": "c1", "description": None}, in_={"id": ["m1"]}, order_by="order_index", limit=5
    )

    assert rows == [{"id": "m1"}]
    names = [c[0] for c in client.executed[0].calls]
    assert names == ["select", "eq", "is_", "in_", "order", "limit"]
    assert client.executed[0].calls[4] == ("order", ("order_index",), {"desc": False})


def test_supabase_empty_in_list_skips_the_request():
    client = _FakeClient()
    assert SupabaseGateway(client).select("modules", in_={"course_id": []}) == []
    assert client.executed == []


def test_supabase_api_error_becomes_gateway_error():
    client = _FakeClient(error=APIError({"message": "new row violates row-level security policy", "code": "42501"}))
    with pytest.raises(GatewayError) as exc:
        SupabaseGateway(client).insert("courses", {"title": "T"})
    assert "row-level security" in str(exc.value)
    assert exc.value.table == "courses"


def test_supabase_insert_without_returned_row_fails():
    with pytest.raises(GatewayError):
        SupabaseGateway(_FakeClient(data=[])).insert("courses", {"title": "T"})


def test_supabase_upsert_joins_conflict_columns():
    client = _FakeClient(data=[{"id": "p1"}])
    SupabaseGateway(client).upsert(
        "module_progress", {"module_id": "m", "student_id": "s"}, on_conflict=("module_id", "student_id")
    )
    assert client.executed[0].calls[0][2] == {"on_conflict": "module_id,student_id"}


def test_supabase_delete_requires_filter():
    with pytest.raises(ValueError):
        SupabaseGateway(_FakeClient()).delete("courses", eq={})


# --- Postgres -------------------------------------------------------------------


class _FakeCursor:
    def __init__(self, conn: "_FakeConnection") -> None:
        self._conn = conn
        self.description = None

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def execute(self, query, params=None):
        if self._conn.error is not None:
            raise self._conn.error
        self._conn.executed.append((query, params))
        self.description = [("id",)]

    def fetchall(self):
        return list(self._conn.rows)


class _FakeConnection:
    def __init__(self, rows: List[Dict[str, Any]], error: Exception | None = None) -> None:
        self.rows = rows
        self.error = error
        self.executed: List[tuple] = []
        self.events: List[str] = []

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.events.append("close")
        return False

    def cursor(self):
        return _FakeCursor(self)

    @contextmanager
    def transaction(self):
        self.events.append("begin")
        try:
            yield
        except Exception:
            self.events.append("rollback")
            raise
        self.events.append("commit")


@pytest.fixture
def fake_pg(monkeypatch: pytest.MonkeyPatch):
    conns: List[_FakeConnection] = []
    state: Dict[str, Any] = {"rows": [{"id": "row-1"}], "error": None}

    def connect(dsn, **kwargs):
        conn = _FakeConnection(state["rows"], state["error"])
        conns.append(conn)
        return conn

    monkeypatch.setattr(postgres_module.psycopg, "connect", connect)
    return conns, state


def test_postgres_requires_dsn():
    with pytest.raises(RuntimeError):
        PostgresGateway("")


def test_postgres_insert_adapts_json_columns(fake_pg):
    conns, _ = fake_pg
    gw = PostgresGateway("postgresql://aula@localhost/aula")

    row = gw.insert("quiz_questions", {"quiz_id": "q", "options": ["a", "b"], "correct_option": 1})

    assert row == {"id": "row-1"}
    _, params = conns[0].executed[0]
    assert params[0] == "q"
    assert isinstance(params[1], Jsonb)
    assert params[2] == 1


def test_postgres_sets_current_sub_when_acting_as(fake_pg):
    conns, _ = fake_pg
    gw = PostgresGateway("postgresql://aula@localhost/aula").acting_as("student-1")
    gw.select("courses", eq={"status": "published"})
    assert conns[0].executed[0][1] == ("student-1",)
    assert conns[0].executed[1][1] == ["published"]


def test_request_gateway_is_scoped_to_the_caller(fake_pg):
    conns, _ = fake_pg
    shared = PostgresGateway("postgresql://aula@localhost/aula")
    wiring.set_gateway(shared)

    assert wiring.gateway_for(None) is shared
    wiring.gateway_for("student-1").select("courses")
    assert conns[0].executed[0][1] == ("student-1",)


def test_postgres_transaction_shares_one_connection(fake_pg):
    conns, _ = fake_pg
    gw = PostgresGateway("postgresql://aula@localhost/aula")

    with gw.transaction() as tx:
        tx.insert("courses", {"title": "T"})
        tx.insert("modules", {"title": "M"})

    assert len(conns) == 1
    assert len(conns[0].executed) == 2
    assert conns[0].events == ["begin", "commit", "close"]


def test_postgres_errors_become_gateway_errors(fake_pg):
    _, state = fake_pg
    state["error"] = psycopg.OperationalError("connection refused")
    with pytest.raises(GatewayError) as exc:
        PostgresGateway("postgresql://aula@localhost/aula").select("courses")
    assert "connection refused" in str(exc.value)


def test_postgres_unknown_table_is_rejected_before_connecting(fake_pg):
    conns, _ = fake_pg
    with pytest.raises(GatewayError):
        PostgresGateway("postgresql://aula@localhost/aula").select("pg_shadow")
    assert conns == []
