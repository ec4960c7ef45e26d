"""flow_dependency() — factory producing FastAPI-compatible dependency callables."""

from __future__ import annotations

from collections.abc import Awaitable, Callable

import structlog
from fastapi import HTTPException
from starlette.requests import Request

from fastapi_request_env.context import RequestContext
from fastapi_request_env.environment import CapabilityEnvironment
from fastapi_request_env.exceptions import (
    FlowAbort,
    FlowException,
    FlowInternalError,
    Throttled,
)
from fastapi_request_env.flow import Flow, ResolvedFlow
from fastapi_request_env.lifespan import get_environment
from fastapi_request_env.logging import get_logger

logger = get_logger(__name__)

_LOG_CONTEXT_KEYS = ("user_id", "dept_filter")


def flow_dependency(flow: Flow) -> Callable[..., Awaitable[RequestContext]]:
    """Return a FastAPI-compatible dependency that executes the flow.

    The returned context is only handed out once authentication and every
    component have completed; a rejected or cancelled request never yields
    a partially built context.
    """
    resolved = flow.resolve()
    dep = _make_dependency(resolved)
    dep._flow_resolved = resolved  # type: ignore[attr-defined]
    return dep


async def environment_dependency(request: Request) -> CapabilityEnvironment:
    """FastAPI dependency returning the deployment's CapabilityEnvironment."""
    try:
        return get_environment(request)
    except FlowInternalError as exc:
        logger.error("capability_environment_missing", path=request.url.path)
        raise HTTPException(status_code=500, detail=exc.detail) from exc


def _http_error(exc: FlowAbort) -> HTTPException:
    headers = None
    if isinstance(exc, Throttled) and exc.retry_after is not None:
        headers = {"Retry-After": str(exc.retry_after)}
    return HTTPException(status_code=exc.status_code, detail=exc.detail, headers=headers)


def _make_dependency(
    resolved: ResolvedFlow,
) -> Callable[..., Awaitable[RequestContext]]:
    async def dependency(request: Request) -> RequestContext:
        # The request may share a task (and its contextvars) with earlier ones.
        structlog.contextvars.unbind_contextvars(*_LOG_CONTEXT_KEYS)
        try:
            return await _run(resolved, request)
        except BaseException:
            structlog.contextvars.unbind_contextvars(*_LOG_CONTEXT_KEYS)
            raise

    return dependency


async def _run(resolved: ResolvedFlow, request: Request) -> RequestContext:
    ctx: RequestContext | None = None

    for hook in resolved.hooks:
        await hook.on_flow_start(request)

    try:
        env = get_environment(request)

        principal = None
        if resolved.authenticator is not None:
            principal = await resolved.authenticator.authenticate(request, env)
        ctx = RequestContext.for_principal(request, principal)

        structlog.contextvars.bind_contextvars(
            user_id=ctx.user_id, dept_filter=ctx.dept_filter
        )
        for hook in resolved.hooks:
            await hook.on_authenticated(ctx)

        for component in resolved.components:
            try:
                await component.resolve(ctx, env)
            except FlowAbort as exc:
                for hook in resolved.hooks:
                    await hook.on_component(ctx, component, exc)
                raise
            else:
                for hook in resolved.hooks:
                    await hook.on_component(ctx, component, None)
    except FlowAbort as exc:
        for hook in resolved.hooks:
            await hook.on_flow_end(request, ctx)
        logger.info(
            "flow_aborted",
            path=request.url.path,
            status_code=exc.status_code,
            detail=exc.detail,
        )
        raise _http_error(exc) from exc
    except FlowInternalError as exc:
        for hook in resolved.hooks:
            await hook.on_flow_end(request, ctx)
        logger.error("flow_internal_error", path=request.url.path, detail=exc.detail)
        raise HTTPException(status_code=500, detail=exc.detail) from exc
    except FlowException:
        for hook in resolved.hooks:
            await hook.on_flow_end(request, ctx)
        raise
    except Exception as exc:
        for hook in resolved.hooks:
            await hook.on_flow_end(request, ctx)
        logger.exception("flow_unexpected_error", path=request.url.path)
        wrapped = FlowInternalError("Internal flow error", cause=exc)
        raise HTTPException(status_code=500, detail=wrapped.detail) from wrapped

    for hook in resolved.hooks:
        await hook.on_flow_end(request, ctx)

    return ctx
