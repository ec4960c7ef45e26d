"""FlowHook base and convenience hook classes."""

from __future__ import annotations

from collections.abc import Awaitable, Callable

from starlette.requests import Request

from fastapi_request_env.component import FlowComponent
from fastapi_request_env.context import RequestContext
from fastapi_request_env.exceptions import FlowException
from fastapi_request_env.logging import get_logger

logger = get_logger(__name__)


class FlowHook:
    """Base abstraction for lifecycle hooks. All methods are no-op by default.

    ``on_flow_end`` receives ``ctx=None`` when the request was rejected
    before a context existed.
    """

    async def on_flow_start(self, request: Request) -> None:
        pass

    async def on_authenticated(self, ctx: RequestContext) -> None:
        pass

    async def on_component(
        self,
        ctx: RequestContext,
        component: FlowComponent,
        error: FlowException | None,
    ) -> None:
        pass

    async def on_flow_end(self, request: Request, ctx: RequestContext | None) -> None:
        pass


class BeforeFlow(FlowHook):
    """Convenience hook that only fires on flow start."""

    def __init__(self, callback: Callable[[Request], Awaitable[None]]) -> None:
        self._callback = callback

    async def on_flow_start(self, request: Request) -> None:
        await self._callback(request)


class AfterFlow(FlowHook):
    """Convenience hook that only fires on flow end."""

    def __init__(
        self, callback: Callable[[Request, RequestContext | None], Awaitable[None]]
    ) -> None:
        self._callback = callback

    async def on_flow_end(self, request: Request, ctx: RequestContext | None) -> None:
        await self._callback(request, ctx)


class AfterComponent(FlowHook):
    """Convenience hook that fires after each component."""

    def __init__(
        self,
        callback: Callable[
            [RequestContext, FlowComponent, FlowException | None], Awaitable[None]
        ],
    ) -> None:
        self._callback = callback

    async def on_component(
        self,
        ctx: RequestContext,
        component: FlowComponent,
        error: FlowException | None,
    ) -> None:
        await self._callback(ctx, component, error)


class AuditLogHook(FlowHook):
    """Logs each principal and how its department scope was granted."""

    async def on_authenticated(self, ctx: RequestContext) -> None:
        if ctx.user_id is None:
            logger.info("request_anonymous", path=ctx.request.url.path)
            return
        if ctx.scope.is_restricted:
            logger.info(
                "request_scope_restricted",
                user_id=ctx.user_id,
                dept_filter=ctx.dept_filter,
                path=ctx.request.url.path,
            )
        else:
            logger.info(
                "request_scope_unrestricted",
                user_id=ctx.user_id,
                grant=ctx.scope.grant,
                path=ctx.request.url.path,
            )
