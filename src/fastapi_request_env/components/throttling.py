"""Throttling components — RateLimit and its counter backends."""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from fastapi_request_env.bindings import KeyValueStore
from fastapi_request_env.component import ComponentCategory, FlowComponent
from fastapi_request_env.context import RequestContext
from fastapi_request_env.exceptions import Throttled
from fastapi_request_env.logging import get_logger

if TYPE_CHECKING:
    from fastapi_request_env.environment import CapabilityEnvironment

logger = get_logger(__name__)


@dataclass(frozen=True)
class RateLimitPolicy:
    max_requests: int
    window_seconds: int


RATE_LIMITS: dict[str, RateLimitPolicy] = {
    "auth": RateLimitPolicy(max_requests=10, window_seconds=300),
    "chat": RateLimitPolicy(max_requests=30, window_seconds=60),
    "api": RateLimitPolicy(max_requests=100, window_seconds=60),
    "share": RateLimitPolicy(max_requests=10, window_seconds=300),
}

# Categories that reject traffic when the counter store is unavailable.
FAIL_CLOSED_CATEGORIES = frozenset({"auth"})


@runtime_checkable
class ThrottleBackend(Protocol):
    """Pluggable storage interface for rate limit counters."""

    async def increment(
        self, key: str, window_seconds: int, limit: int | None = None
    ) -> tuple[int, int]: ...
    async def reset(self, key: str) -> None: ...


class InMemoryThrottleBackend:
    """In-memory throttle backend. Single-process only."""

    def __init__(self) -> None:
        self._counters: dict[str, tuple[int, float]] = {}

    async def increment(
        self, key: str, window_seconds: int, limit: int | None = None
    ) -> tuple[int, int]:
        now = time.monotonic()
        if key in self._counters:
            count, window_start = self._counters[key]
            elapsed = now - window_start
            if elapsed >= window_seconds:
                self._counters[key] = (1, now)
                return 1, window_seconds
            remaining_ttl = max(int(window_seconds - elapsed), 1)
            if limit is not None and count >= limit:
                return count + 1, remaining_ttl
            self._counters[key] = (count + 1, window_start)
            return count + 1, remaining_ttl
        self._counters[key] = (1, now)
        return 1, window_seconds

    async def reset(self, key: str) -> None:
        self._counters.pop(key, None)


class KeyValueThrottleBackend:
    """Counters kept in a KeyValueStore, each written with the window as TTL.

    Read-then-write, so concurrent increments may undercount. Once ``limit``
    is reached the counter is no longer written, so it expires one window
    after the last admitted request.
    """

    def __init__(self, kv: KeyValueStore) -> None:
        self._kv = kv

    async def increment(
        self, key: str, window_seconds: int, limit: int | None = None
    ) -> tuple[int, int]:
        current = await self._kv.get(key)
        count = int(current) + 1 if current else 1
        if limit is not None and count > limit:
            return count, window_seconds
        await self._kv.put(key, str(count), expiration_ttl=window_seconds)
        return count, window_seconds

    async def reset(self, key: str) -> None:
        await self._kv.delete(key)


def _default_key_func(ctx: RequestContext) -> str:
    """Derive rate limit key from user identity or client IP."""
    if ctx.user_id is not None:
        return ctx.user_id
    forwarded = ctx.request.headers.get("cf-connecting-ip") or ctx.request.headers.get(
        "x-forwarded-for"
    )
    if forwarded:
        return forwarded.split(",")[0].strip()
    client = ctx.request.client
    if client is not None:
        return client.host
    return "unknown"


class RateLimit(FlowComponent):
    """Enforces a named rate limit policy.

    Counters live in the SESSIONS binding unless a ``backend`` is given.
    """

    category = ComponentCategory.THROTTLING

    def __init__(
        self,
        category: str = "api",
        *,
        key_func: Callable[[RequestContext], str] | None = None,
        backend: ThrottleBackend | None = None,
        policy: RateLimitPolicy | None = None,
    ) -> None:
        self._category = category
        self._policy = policy or RATE_LIMITS.get(category, RATE_LIMITS["api"])
        self._key_func = key_func or _default_key_func
        self._backend = backend

    async def resolve(self, ctx: RequestContext, env: CapabilityEnvironment) -> None:
        backend = self._backend or KeyValueThrottleBackend(env.sessions)
        key = f"ratelimit:{self._category}:{self._key_func(ctx)}"
        try:
            count, ttl = await backend.increment(
                key, self._policy.window_seconds, self._policy.max_requests
            )
        except Exception as exc:
            logger.warning(
                "rate_limit_backend_error", category=self._category, error=str(exc)
            )
            if self._category in FAIL_CLOSED_CATEGORIES:
                raise Throttled(retry_after=self._policy.window_seconds) from exc
            ctx.state["rate_limit"] = {
                "category": self._category,
                "remaining": self._policy.max_requests,
            }
            return

        if count > self._policy.max_requests:
            raise Throttled(retry_after=ttl)
        ctx.state["rate_limit"] = {
            "category": self._category,
            "remaining": self._policy.max_requests - count,
        }
