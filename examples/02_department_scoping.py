"""
Department scoping example.

Demonstrates:
- Role-gated authentication that confines dept_admin users to their department
- ScopedDatabase adding the department filter to every statement
- ScopedVectorIndex narrowing similarity search to the same department
- A bootstrap route gated by the optional BOOTSTRAP_SECRET
"""

import sqlite3
from collections.abc import Mapping, Sequence
from typing import Any

from fastapi import Depends, FastAPI

from fastapi_request_env import (
    AllowAnonymous,
    AuditLogHook,
    BootstrapSecretRequired,
    CapabilityEnvironment,
    Flow,
    InMemoryKeyValueStore,
    RateLimit,
    RequestContext,
    ScopedDatabase,
    ScopedVectorIndex,
    SessionAuthentication,
    environment_dependency,
    environment_lifespan,
    flow_dependency,
)

# ========== SQLite stand-in for the DB binding ==========


class SQLiteDatabase:
    def __init__(self) -> None:
        self._conn = sqlite3.connect(":memory:", check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._conn.executescript(
            """
            CREATE TABLE users (id TEXT PRIMARY KEY, role TEXT, department TEXT);
            CREATE TABLE documents (id TEXT PRIMARY KEY, title TEXT, department TEXT);
            INSERT INTO users VALUES ('admin', 'super_admin', '');
            INSERT INTO users VALUES ('fin-admin', 'dept_admin', 'finance');
            INSERT INTO documents VALUES ('d1', 'Budget 2025', 'finance');
            INSERT INTO documents VALUES ('d2', 'Clinic rota', 'health');
            """
        )

    async def fetch_one(self, sql: str, params: Sequence[Any] = ()) -> Any:
        row = self._conn.execute(sql, tuple(params)).fetchone()
        return dict(row) if row else None

    async def fetch_all(self, sql: str, params: Sequence[Any] = ()) -> list[Any]:
        return [dict(r) for r in self._conn.execute(sql, tuple(params)).fetchall()]

    async def execute(self, sql: str, params: Sequence[Any] = ()) -> int:
        cursor = self._conn.execute(sql, tuple(params))
        self._conn.commit()
        return cursor.rowcount


class NoopInference:
    async def run(self, model: str, inputs: Mapping[str, Any]) -> Any:
        return None


class RecordingIndex:
    async def query(self, vector: Any, *, top_k: int = 5, filter: Any = None) -> list[Any]:
        return [{"id": "match", "metadata": filter or {}}]

    async def upsert(self, vectors: Any) -> None:
        pass


def load_environment() -> CapabilityEnvironment:
    sessions = InMemoryKeyValueStore()
    return CapabilityEnvironment(
        ai=NoopInference(),
        db=SQLiteDatabase(),
        sessions=sessions,
        vector_index=RecordingIndex(),
        jwt_secret="change-me-change-me-change-me-00",
        vapid_public_key="BExampleVapidKey",
        payment_secret="sk_test_example",
        bootstrap_secret="let-me-in",
    )


app = FastAPI(title="Department Scoping", lifespan=environment_lifespan(load_environment))

admin_flow = Flow(
    SessionAuthentication(roles={"super_admin", "dept_admin"}),
    RateLimit("api"),
).add_hook(AuditLogHook())

bootstrap_flow = Flow(AllowAnonymous(), RateLimit("auth"), BootstrapSecretRequired())


@app.get("/admin/documents")
async def list_documents(
    ctx: RequestContext = Depends(flow_dependency(admin_flow)),
    env: CapabilityEnvironment = Depends(environment_dependency),
):
    """super_admin sees every department; dept_admin only its own."""
    db = ScopedDatabase(env.db, ctx)
    return {
        "dept_filter": ctx.dept_filter,
        "total": await db.count("documents"),
        "documents": await db.select("documents", order_by=["id"], limit=50),
    }


@app.post("/admin/search")
async def search(
    vector: list[float],
    ctx: RequestContext = Depends(flow_dependency(admin_flow)),
    env: CapabilityEnvironment = Depends(environment_dependency),
):
    index = ScopedVectorIndex(env.vector_index, ctx)
    return {"matches": await index.query(vector, top_k=3)}


@app.post("/admin/bootstrap/{user_id}")
async def bootstrap(
    user_id: str,
    ctx: RequestContext = Depends(flow_dependency(bootstrap_flow)),
    env: CapabilityEnvironment = Depends(environment_dependency),
):
    """Promote the first super admin; refused once any super admin exists."""
    db = ScopedDatabase(env.db, ctx)
    if await db.count("users", where={"role": "super_admin"}) > 0:
        return {"error": "Bootstrap disabled: admin(s) already exist"}
    changed = await db.update("users", {"role": "super_admin"}, where={"id": user_id})
    return {"success": changed == 1}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
