"""Component base classes and ComponentCategory enum."""

from __future__ import annotations

from abc import ABC, abstractmethod
from enum import Enum
from typing import TYPE_CHECKING, ClassVar

from starlette.requests import Request

from fastapi_request_env.context import Principal, RequestContext

if TYPE_CHECKING:
    from fastapi_request_env.environment import CapabilityEnvironment


class ComponentCategory(Enum):
    """Processing component categories, defining strict execution order."""

    AUTHENTICATION = "authentication"
    PERMISSION = "permission"
    THROTTLING = "throttling"
    CUSTOM = "custom"

    @property
    def order(self) -> int:
        _ORDER = {
            "authentication": 1,
            "permission": 2,
            "throttling": 3,
            "custom": 4,
        }
        return _ORDER[self.value]


class Authenticator(ABC):
    """The single point that establishes a request's principal.

    Returns ``None`` for anonymous access. Raising ``FlowAbort`` rejects the
    request before any context exists.
    """

    category: ClassVar[ComponentCategory] = ComponentCategory.AUTHENTICATION

    @abstractmethod
    async def authenticate(
        self, request: Request, env: CapabilityEnvironment
    ) -> Principal | None: ...


class FlowComponent(ABC):
    """Base abstraction for processing units that run after authentication."""

    category: ClassVar[ComponentCategory]

    @abstractmethod
    async def resolve(self, ctx: RequestContext, env: CapabilityEnvironment) -> None: ...
