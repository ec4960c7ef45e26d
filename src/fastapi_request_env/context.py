"""RequestContext — per-request principal and department scope."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from starlette.requests import Request

from fastapi_request_env.exceptions import AuthenticationFailed

ANONYMOUS_GRANT = "anonymous"


@dataclass(frozen=True)
class DepartmentScope:
    """Visibility decision for one request.

    ``department`` set means every data access must filter by it. ``None``
    means global visibility, and ``grant`` records who or what granted it.
    """

    department: str | None
    grant: str

    @classmethod
    def restricted(cls, department: str) -> DepartmentScope:
        if not department or not department.strip():
            raise ValueError("restricted scope requires a department")
        return cls(department=department, grant="department")

    @classmethod
    def unrestricted(cls, grant: str) -> DepartmentScope:
        if not grant or not grant.strip():
            raise ValueError("unrestricted scope requires an explicit grant")
        return cls(department=None, grant=grant)

    @classmethod
    def anonymous(cls) -> DepartmentScope:
        return cls(department=None, grant=ANONYMOUS_GRANT)

    @property
    def is_restricted(self) -> bool:
        return self.department is not None


@dataclass(frozen=True)
class Principal:
    """Outcome of a successful authentication."""

    user_id: str
    scope: DepartmentScope

    def __post_init__(self) -> None:
        if not self.user_id:
            raise ValueError("principal requires a user id")


@dataclass(frozen=True)
class RequestContext:
    """Per-request state handed to components and handlers.

    Built by the flow engine once authentication has finished, so the
    principal fields are fixed for the rest of the request. ``state`` is
    scratch space for non-principal components.
    """

    request: Request
    user_id: str | None = None
    scope: DepartmentScope = field(default_factory=DepartmentScope.anonymous)
    state: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.user_id is None and self.scope.is_restricted:
            raise ValueError("department filter requires an authenticated user")

    @classmethod
    def for_principal(
        cls, request: Request, principal: Principal | None
    ) -> RequestContext:
        if principal is None:
            return cls(request=request)
        return cls(request=request, user_id=principal.user_id, scope=principal.scope)

    @property
    def dept_filter(self) -> str | None:
        return self.scope.department

    @property
    def is_authenticated(self) -> bool:
        return self.user_id is not None

    def require_user_id(self) -> str:
        if self.user_id is None:
            raise AuthenticationFailed()
        return self.user_id
