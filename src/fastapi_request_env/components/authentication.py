"""Authentication components — session tokens, JWT, anonymous."""

from __future__ import annotations

import time
from collections.abc import Iterable
from typing import TYPE_CHECKING

import jwt
from starlette.requests import Request

from fastapi_request_env.component import Authenticator
from fastapi_request_env.config import SESSION_TTL_SECONDS
from fastapi_request_env.context import DepartmentScope, Principal
from fastapi_request_env.exceptions import AuthenticationFailed, PermissionDenied
from fastapi_request_env.logging import get_logger
from fastapi_request_env.sessions import SessionStore

if TYPE_CHECKING:
    from fastapi_request_env.environment import CapabilityEnvironment

logger = get_logger(__name__)

USER_ROLE_QUERY = "SELECT role, department FROM users WHERE id = ?"


def _bearer_token(request: Request, header: str, scheme: str) -> str:
    auth_value = request.headers.get(header)
    if not auth_value:
        raise AuthenticationFailed()

    parts = auth_value.split(" ", 1)
    if len(parts) != 2 or parts[0] != scheme or not parts[1]:
        raise AuthenticationFailed()
    return parts[1]


class SessionAuthentication(Authenticator):
    """Resolves a Bearer session token through the SESSIONS binding.

    Without ``roles`` any valid session is accepted and the principal sees
    only its own data (grant ``"self"``). With ``roles`` the user's role and
    department are loaded from the DB binding; roles listed in
    ``department_roles`` are confined to their department, every other
    allowed role gets global visibility granted by that role.
    """

    def __init__(
        self,
        *,
        roles: Iterable[str] | None = None,
        department_roles: Iterable[str] = ("dept_admin",),
        scheme: str = "Bearer",
        header: str = "Authorization",
    ) -> None:
        self._roles = frozenset(roles) if roles is not None else None
        self._department_roles = frozenset(department_roles)
        self._scheme = scheme
        self._header = header

    async def authenticate(
        self, request: Request, env: CapabilityEnvironment
    ) -> Principal:
        token = _bearer_token(request, self._header, self._scheme)
        user_id = await SessionStore(env.sessions).resolve(token)
        if not user_id:
            raise AuthenticationFailed("Invalid or expired session")

        if self._roles is None:
            return Principal(user_id=user_id, scope=DepartmentScope.unrestricted("self"))

        user = await env.db.fetch_one(USER_ROLE_QUERY, (user_id,))
        role = user.get("role") if user else None
        if role not in self._roles:
            logger.info("role_rejected", user_id=user_id, role=role)
            raise PermissionDenied("Forbidden: insufficient role")

        if role in self._department_roles:
            department = (user or {}).get("department") or ""
            if not department.strip():
                logger.warning("department_missing", user_id=user_id, role=role)
                raise PermissionDenied("Forbidden: no department assigned")
            return Principal(user_id=user_id, scope=DepartmentScope.restricted(department))

        return Principal(user_id=user_id, scope=DepartmentScope.unrestricted(role))


class JWTAuthentication(Authenticator):
    """Verifies an HS256 Bearer token signed with the JWT_SECRET binding.

    The ``sub`` claim is the user id; an optional ``dept`` claim confines the
    principal to that department.
    """

    def __init__(
        self,
        *,
        algorithms: Iterable[str] = ("HS256",),
        audience: str | None = None,
        scheme: str = "Bearer",
        header: str = "Authorization",
    ) -> None:
        self._algorithms = list(algorithms)
        self._audience = audience
        self._scheme = scheme
        self._header = header

    async def authenticate(
        self, request: Request, env: CapabilityEnvironment
    ) -> Principal:
        token = _bearer_token(request, self._header, self._scheme)
        try:
            claims = jwt.decode(
                token,
                env.jwt_secret.get_secret_value(),
                algorithms=self._algorithms,
                audience=self._audience,
                options={"require": ["sub"]},
            )
        except jwt.InvalidTokenError as exc:
            raise AuthenticationFailed("Invalid or expired session") from exc

        user_id = claims.get("sub")
        if not isinstance(user_id, str) or not user_id:
            raise AuthenticationFailed("Invalid or expired session")

        department = claims.get("dept")
        if department is not None:
            if not isinstance(department, str) or not department.strip():
                raise PermissionDenied("Forbidden: invalid department claim")
            return Principal(user_id=user_id, scope=DepartmentScope.restricted(department))
        return Principal(user_id=user_id, scope=DepartmentScope.unrestricted("token"))


def issue_token(
    env: CapabilityEnvironment,
    user_id: str,
    *,
    department: str | None = None,
    expires_in: int = SESSION_TTL_SECONDS,
) -> str:
    """Sign a token that JWTAuthentication accepts."""
    now = int(time.time())
    claims: dict[str, object] = {"sub": user_id, "iat": now, "exp": now + expires_in}
    if department is not None:
        claims["dept"] = department
    return jwt.encode(claims, env.jwt_secret.get_secret_value(), algorithm="HS256")


class AllowAnonymous(Authenticator):
    """Authenticator for public routes: never establishes a principal."""

    async def authenticate(
        self, request: Request, env: CapabilityEnvironment
    ) -> Principal | None:
        return None
