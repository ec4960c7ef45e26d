"""Permission components — Authenticated, BootstrapSecretRequired."""

from __future__ import annotations

from typing import TYPE_CHECKING

from fastapi_request_env.component import ComponentCategory, FlowComponent
from fastapi_request_env.context import RequestContext
from fastapi_request_env.exceptions import PermissionDenied
from fastapi_request_env.logging import get_logger
from fastapi_request_env.security import secrets_match

if TYPE_CHECKING:
    from fastapi_request_env.environment import CapabilityEnvironment

logger = get_logger(__name__)


class Authenticated(FlowComponent):
    """Rejects requests that carry no authenticated principal."""

    category = ComponentCategory.PERMISSION

    async def resolve(self, ctx: RequestContext, env: CapabilityEnvironment) -> None:
        ctx.require_user_id()


class BootstrapSecretRequired(FlowComponent):
    """Gates privileged initialization behind the optional BOOTSTRAP_SECRET.

    When the deployment has no bootstrap secret the gated path is disabled.
    """

    category = ComponentCategory.PERMISSION

    def __init__(self, *, header: str = "X-Bootstrap-Secret") -> None:
        self._header = header

    async def resolve(self, ctx: RequestContext, env: CapabilityEnvironment) -> None:
        if env.bootstrap_secret is None:
            raise PermissionDenied("Bootstrap disabled")

        provided = ctx.request.headers.get(self._header)
        if not secrets_match(provided, env.bootstrap_secret.get_secret_value()):
            logger.warning("bootstrap_secret_rejected", path=ctx.request.url.path)
            raise PermissionDenied("Forbidden: invalid bootstrap secret")
