"""Startup wiring — build the CapabilityEnvironment once, before serving."""

from __future__ import annotations

import inspect
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from typing import Any, Union

from starlette.requests import Request

from fastapi_request_env.environment import CapabilityEnvironment
from fastapi_request_env.exceptions import ConfigurationFault, FlowInternalError
from fastapi_request_env.logging import get_logger

logger = get_logger(__name__)

STATE_ATTR = "capabilities"

EnvironmentFactory = Callable[
    [], Union[CapabilityEnvironment, Awaitable[CapabilityEnvironment]]
]


def install_environment(app: Any, env: CapabilityEnvironment) -> None:
    """Attach an already-built environment to ``app.state``."""
    if not isinstance(env, CapabilityEnvironment):
        raise ConfigurationFault(
            [], detail=f"Expected CapabilityEnvironment, got {type(env).__name__}"
        )
    setattr(app.state, STATE_ATTR, env)
    logger.info(
        "capability_environment_installed",
        bootstrap_enabled=env.bootstrap_enabled,
    )


def environment_lifespan(
    factory: EnvironmentFactory,
) -> Callable[[Any], Any]:
    """Return a FastAPI lifespan that builds the environment at startup.

    Any error raised by ``factory`` propagates out of startup, so the
    application never begins serving with a partial environment.
    """

    @asynccontextmanager
    async def lifespan(app: Any) -> AsyncIterator[None]:
        try:
            env = factory()
            if inspect.isawaitable(env):
                env = await env
        except ConfigurationFault as exc:
            logger.error("capability_environment_invalid", missing=list(exc.missing))
            raise
        install_environment(app, env)
        try:
            yield
        finally:
            if getattr(app.state, STATE_ATTR, None) is env:
                delattr(app.state, STATE_ATTR)

    return lifespan


def get_environment(request: Request) -> CapabilityEnvironment:
    """Fetch the environment installed on the request's application."""
    env = getattr(request.app.state, STATE_ATTR, None)
    if env is None:
        raise FlowInternalError("Capability environment is not installed")
    return env
