"""Built-in flow components."""

from fastapi_request_env.components.authentication import (
    AllowAnonymous,
    JWTAuthentication,
    SessionAuthentication,
    issue_token,
)
from fastapi_request_env.components.permissions import (
    Authenticated,
    BootstrapSecretRequired,
)
from fastapi_request_env.components.throttling import (
    RATE_LIMITS,
    InMemoryThrottleBackend,
    KeyValueThrottleBackend,
    RateLimit,
    RateLimitPolicy,
    ThrottleBackend,
)

__all__ = [
    "RATE_LIMITS",
    "AllowAnonymous",
    "Authenticated",
    "BootstrapSecretRequired",
    "InMemoryThrottleBackend",
    "JWTAuthentication",
    "KeyValueThrottleBackend",
    "RateLimit",
    "RateLimitPolicy",
    "SessionAuthentication",
    "ThrottleBackend",
    "issue_token",
]
