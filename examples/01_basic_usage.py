"""
Basic usage example.

Demonstrates:
- Building the capability environment once at startup
- Session-token authentication
- Reading user_id from the request context in a handler
"""

from collections.abc import Mapping, Sequence
from typing import Any

from fastapi import Depends, FastAPI

from fastapi_request_env import (
    AuditLogHook,
    CapabilityEnvironment,
    Flow,
    InMemoryKeyValueStore,
    RateLimit,
    RequestContext,
    SessionAuthentication,
    SessionStore,
    Settings,
    build_environment,
    environment_dependency,
    environment_lifespan,
    flow_dependency,
)

# ========== Stand-in bindings ==========


class EchoInference:
    async def run(self, model: str, inputs: Mapping[str, Any]) -> Any:
        return {"response": f"[{model}] {inputs.get('prompt', '')}"}


class EmptyDatabase:
    async def fetch_one(self, sql: str, params: Sequence[Any] = ()) -> Any:
        return None

    async def fetch_all(self, sql: str, params: Sequence[Any] = ()) -> list[Any]:
        return []

    async def execute(self, sql: str, params: Sequence[Any] = ()) -> int:
        return 0


class EmptyIndex:
    async def query(self, vector: Any, *, top_k: int = 5, filter: Any = None) -> list[Any]:
        return []

    async def upsert(self, vectors: Any) -> None:
        pass


def load_environment() -> CapabilityEnvironment:
    # Fails startup with ConfigurationFault if JWT_SECRET, VAPID_PUBLIC_KEY
    # or PAYSTACK_SECRET are missing.
    return build_environment(
        Settings.load(),
        ai=EchoInference(),
        db=EmptyDatabase(),
        sessions=InMemoryKeyValueStore(),
        vector_index=EmptyIndex(),
    )


app = FastAPI(title="Basic Usage", lifespan=environment_lifespan(load_environment))

user_flow = Flow(SessionAuthentication(), RateLimit("api")).add_hook(AuditLogHook())


@app.post("/login/{user_id}")
async def login(
    user_id: str,
    env: CapabilityEnvironment = Depends(environment_dependency),
):
    """Issue a session token (no password check in this example)."""
    token = await SessionStore(env.sessions).create(user_id)
    return {"token": token}


@app.get("/me")
async def me(ctx: RequestContext = Depends(flow_dependency(user_flow))):
    """Any valid session token may call this."""
    return {"user_id": ctx.user_id, "dept_filter": ctx.dept_filter}


@app.post("/chat")
async def chat(
    prompt: str,
    ctx: RequestContext = Depends(flow_dependency(Flow(user_flow, RateLimit("chat")))),
    env: CapabilityEnvironment = Depends(environment_dependency),
):
    return await env.ai.run("default", {"prompt": prompt, "user": ctx.user_id})


@app.get("/config")
async def config(env: CapabilityEnvironment = Depends(environment_dependency)):
    """Client-safe configuration only."""
    return env.public_config()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
