"""Shared pytest fixtures for fastapi-request-env tests."""

from __future__ import annotations

import sqlite3
from collections.abc import Mapping, Sequence
from typing import Any

import pytest
from starlette.datastructures import State
from starlette.requests import Request

from fastapi_request_env.bindings import InMemoryKeyValueStore
from fastapi_request_env.context import DepartmentScope, RequestContext
from fastapi_request_env.environment import CapabilityEnvironment

SCHEMA = """
CREATE TABLE users (
  id TEXT PRIMARY KEY,
  email TEXT NOT NULL,
  role TEXT DEFAULT 'civil_servant',
  department TEXT DEFAULT ''
);
CREATE TABLE documents (
  id TEXT PRIMARY KEY,
  title TEXT NOT NULL,
  department TEXT NOT NULL
);
INSERT INTO users VALUES ('u-admin', 'admin@example.com', 'super_admin', '');
INSERT INTO users VALUES ('u-dept', 'dept@example.com', 'dept_admin', 'finance');
INSERT INTO users VALUES ('u-nodept', 'nodept@example.com', 'dept_admin', '');
INSERT INTO users VALUES ('u-user', 'user@example.com', 'civil_servant', 'health');
INSERT INTO documents VALUES ('d1', 'Budget', 'finance');
INSERT INTO documents VALUES ('d2', 'Audit', 'finance');
INSERT INTO documents VALUES ('d3', 'Clinics', 'health');
"""


class FakeDatabase:
    """In-memory SQLite behind the Database protocol; records every statement."""

    def __init__(self) -> None:
        self._conn = sqlite3.connect(":memory:")
        self._conn.row_factory = sqlite3.Row
        self._conn.executescript(SCHEMA)
        self.statements: list[tuple[str, tuple[Any, ...]]] = []

    async def fetch_one(
        self, sql: str, params: Sequence[Any] = ()
    ) -> Mapping[str, Any] | None:
        self.statements.append((sql, tuple(params)))
        row = self._conn.execute(sql, tuple(params)).fetchone()
        return dict(row) if row is not None else None

    async def fetch_all(
        self, sql: str, params: Sequence[Any] = ()
    ) -> list[Mapping[str, Any]]:
        self.statements.append((sql, tuple(params)))
        return [dict(r) for r in self._conn.execute(sql, tuple(params)).fetchall()]

    async def execute(self, sql: str, params: Sequence[Any] = ()) -> int:
        self.statements.append((sql, tuple(params)))
        cursor = self._conn.execute(sql, tuple(params))
        self._conn.commit()
        return cursor.rowcount


class FakeInference:
    async def run(self, model: str, inputs: Mapping[str, Any]) -> Any:
        return {"model": model, "response": "ok"}


class FakeVectorIndex:
    def __init__(self) -> None:
        self.queries: list[dict[str, Any]] = []

    async def query(
        self,
        vector: Sequence[float],
        *,
        top_k: int = 5,
        filter: Mapping[str, Any] | None = None,
    ) -> list[Mapping[str, Any]]:
        self.queries.append({"top_k": top_k, "filter": filter})
        return []

    async def upsert(self, vectors: Sequence[Mapping[str, Any]]) -> None:
        pass


@pytest.fixture
def fake_db() -> FakeDatabase:
    return FakeDatabase()


@pytest.fixture
def fake_vectors() -> FakeVectorIndex:
    return FakeVectorIndex()


@pytest.fixture
def kv() -> InMemoryKeyValueStore:
    return InMemoryKeyValueStore()


@pytest.fixture
def env_kwargs(
    fake_db: FakeDatabase, fake_vectors: FakeVectorIndex, kv: InMemoryKeyValueStore
) -> dict[str, Any]:
    return {
        "ai": FakeInference(),
        "db": fake_db,
        "sessions": kv,
        "vector_index": fake_vectors,
        "jwt_secret": "jwt-test-secret-with-enough-length-000",
        "vapid_public_key": "BPublicVapidKey",
        "payment_secret": "sk_test_123",
    }


@pytest.fixture
def env(env_kwargs: dict[str, Any]) -> CapabilityEnvironment:
    return CapabilityEnvironment(**env_kwargs)


@pytest.fixture
def make_request(env: CapabilityEnvironment) -> Any:
    """Factory for Starlette Requests whose app has the environment installed."""

    def _make(
        method: str = "GET",
        path: str = "/",
        headers: dict[str, str] | None = None,
        query_string: str = "",
        environment: CapabilityEnvironment | None = env,
    ) -> Request:
        app = type("App", (), {})()
        app.state = State()
        if environment is not None:
            app.state.capabilities = environment
        scope: dict[str, Any] = {
            "type": "http",
            "method": method,
            "path": path,
            "query_string": query_string.encode(),
            "headers": [
                (k.lower().encode(), v.encode()) for k, v in (headers or {}).items()
            ],
            "root_path": "",
            "app": app,
            "client": ("203.0.113.7", 5000),
        }
        return Request(scope)

    return _make


@pytest.fixture
def make_ctx(make_request: Any) -> Any:
    """Factory for RequestContexts with a given principal."""

    def _make(
        user_id: str | None = None,
        department: str | None = None,
        grant: str = "self",
        **request_kwargs: Any,
    ) -> RequestContext:
        if department is not None:
            scope = DepartmentScope.restricted(department)
        elif user_id is not None:
            scope = DepartmentScope.unrestricted(grant)
        else:
            scope = DepartmentScope.anonymous()
        return RequestContext(
            request=make_request(**request_kwargs), user_id=user_id, scope=scope
        )

    return _make
