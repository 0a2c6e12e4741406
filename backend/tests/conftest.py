"""
Pytest configuration and fixtures

All tests run against an in-memory stand-in for the Supabase client that
supports the fluent query surface the repositories use
(table().select().eq()...execute()). Nothing touches a real database.
"""
import copy
import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional

import pytest

from habitcoach.core import dependencies
from habitcoach.models.context import CallerContext, CallerRole
from habitcoach.utils.timezone import parse_timestamp, to_iso, utc_now


class FakeResult:
    def __init__(self, data: List[Dict[str, Any]]):
        self.data = data


class FakeQuery:
    """One PostgREST-style query against a FakeSupabase table"""

    def __init__(self, db: "FakeSupabase", table: str):
        self.db = db
        self.table = table
        self.op = "select"
        self.payload: Any = None
        self.filters = []
        self.order_column: Optional[str] = None
        self.order_desc = False
        self.limit_count: Optional[int] = None

    # Operations
    def select(self, *columns):
        self.op = "select"
        return self

    def insert(self, data):
        self.op = "insert"
        self.payload = data
        return self

    def update(self, data):
        self.op = "update"
        self.payload = data
        return self

    def delete(self):
        self.op = "delete"
        return self

    # Filters
    def eq(self, column, value):
        self.filters.append(lambda row: row.get(column) == value)
        return self

    def neq(self, column, value):
        self.filters.append(lambda row: row.get(column) != value)
        return self

    def in_(self, column, values):
        values = list(values)
        self.filters.append(lambda row: row.get(column) in values)
        return self

    def gte(self, column, value):
        self.filters.append(lambda row: _comparable(row.get(column)) is not None
                            and _comparable(row.get(column)) >= _comparable(value))
        return self

    def lte(self, column, value):
        self.filters.append(lambda row: _comparable(row.get(column)) is not None
                            and _comparable(row.get(column)) <= _comparable(value))
        return self

    def order(self, column, desc=False):
        self.order_column = column
        self.order_desc = desc
        return self

    def limit(self, count):
        self.limit_count = count
        return self

    def execute(self) -> FakeResult:
        failure = self.db.failures.get((self.table, self.op))
        if failure is not None:
            raise failure

        rows = self.db.tables.setdefault(self.table, [])

        if self.op == "insert":
            payload = self.payload if isinstance(self.payload, list) else [self.payload]
            created = [self.db.seed(self.table, item) for item in payload]
            return FakeResult(copy.deepcopy(created))

        matched = [row for row in rows if all(f(row) for f in self.filters)]

        if self.op == "update":
            for row in matched:
                row.update(copy.deepcopy(self.payload))
                row["updated_at"] = to_iso(utc_now())
            return FakeResult(copy.deepcopy(matched))

        if self.op == "delete":
            self.db.tables[self.table] = [row for row in rows if row not in matched]
            return FakeResult(copy.deepcopy(matched))

        if self.order_column:
            matched = sorted(
                matched,
                key=lambda row: (_comparable(row.get(self.order_column)) is None,
                                 _comparable(row.get(self.order_column)) or 0),
                reverse=self.order_desc
            )
        if self.limit_count is not None:
            matched = matched[:self.limit_count]
        return FakeResult(copy.deepcopy(matched))


def _comparable(value):
    if isinstance(value, (int, float)):
        return value
    parsed = parse_timestamp(value) if isinstance(value, (str, datetime)) else None
    return parsed.timestamp() if parsed is not None else value


class FakeFunctions:
    """Records Edge Function invocations"""

    def __init__(self):
        self.invocations = []
        self.error: Optional[Exception] = None

    def invoke(self, function_name, invoke_options=None):
        if self.error is not None:
            raise self.error
        self.invocations.append((function_name, invoke_options or {}))
        return {"ok": True}


class FakeSupabase:
    """In-memory replacement for supabase.Client"""

    def __init__(self):
        self.tables: Dict[str, List[Dict[str, Any]]] = {}
        self.failures: Dict[tuple, Exception] = {}
        self.functions = FakeFunctions()

    def table(self, name: str) -> FakeQuery:
        return FakeQuery(self, name)

    def seed(self, table: str, row: Dict[str, Any]) -> Dict[str, Any]:
        """Insert a row directly, filling in server-assigned columns"""
        now = to_iso(utc_now())
        stored = {"id": str(uuid.uuid4()), "created_at": now, "updated_at": now}
        if table == "habit_completions":
            stored["completed_at"] = now
        stored.update(copy.deepcopy(row))
        self.tables.setdefault(table, []).append(stored)
        return stored

    def rows(self, table: str) -> List[Dict[str, Any]]:
        return self.tables.get(table, [])

    def fail(self, table: str, op: str, error: Optional[Exception] = None):
        self.failures[(table, op)] = error or RuntimeError(f"{op} on {table} failed")


@pytest.fixture
def fake_db(monkeypatch):
    """Install a fresh in-memory Supabase client for the test"""
    db = FakeSupabase()
    monkeypatch.setattr(dependencies, "_supabase_client", db)
    return db


@pytest.fixture
def client_ctx():
    return CallerContext(caller_id="client-1", caller_role=CallerRole.CLIENT)


@pytest.fixture
def other_client_ctx():
    return CallerContext(caller_id="client-2", caller_role=CallerRole.CLIENT)


@pytest.fixture
def coach_ctx():
    return CallerContext(caller_id="coach-1", caller_role=CallerRole.COACH)


@pytest.fixture
def assign_coach(fake_db):
    """Create an active coach -> client assignment"""
    def _assign(coach_id="coach-1", client_id="client-1", is_active=True):
        return fake_db.seed("coach_client_assignments", {
            "coach_id": coach_id,
            "client_id": client_id,
            "is_active": is_active,
        })
    return _assign


@pytest.fixture
def now():
    return utc_now().replace(microsecond=0)


