"""Exception hierarchy for controlled flow aborts and startup faults."""

from __future__ import annotations

from collections.abc import Iterable


class FlowException(Exception):
    """Base for all flow exceptions."""


class FlowAbort(FlowException):
    """Controlled abort with HTTP status code and detail."""

    def __init__(self, detail: str, *, status_code: int = 400) -> None:
        super().__init__(detail)
        self.status_code = status_code
        self.detail = detail


class AuthenticationFailed(FlowAbort):
    """No authenticated principal where one is required (401)."""

    def __init__(self, detail: str = "Unauthorized") -> None:
        super().__init__(detail, status_code=401)


class PermissionDenied(FlowAbort):
    """Principal is known but not allowed (403)."""

    def __init__(self, detail: str = "Forbidden") -> None:
        super().__init__(detail, status_code=403)


class DepartmentScopeViolation(PermissionDenied):
    """A data access would bypass the request's department filter (403)."""

    def __init__(self, detail: str = "Department scope violation") -> None:
        super().__init__(detail)


class Throttled(FlowAbort):
    """Rate limit exceeded (429)."""

    def __init__(
        self, detail: str = "Rate limit exceeded", *, retry_after: int | None = None
    ) -> None:
        super().__init__(detail, status_code=429)
        self.retry_after = retry_after


class FlowInternalError(FlowException):
    """Engine-level error wrapping unexpected exceptions."""

    def __init__(self, detail: str, *, cause: Exception | None = None) -> None:
        super().__init__(detail)
        self.detail = detail
        self.cause = cause


class ConfigurationFault(Exception):
    """Required capabilities are missing or malformed at startup.

    Raised while the service is being built, never per request. The message
    names the offending bindings but never their values.
    """

    def __init__(self, missing: Iterable[str], detail: str | None = None) -> None:
        self.missing = tuple(missing)
        message = detail or "Missing or invalid capabilities: " + ", ".join(
            self.missing
        )
        super().__init__(message)
        self.detail = message
