"""Opaque session tokens stored in the SESSIONS key-value binding."""

from __future__ import annotations

import uuid

from fastapi_request_env.bindings import KeyValueStore
from fastapi_request_env.config import SESSION_TTL_SECONDS

SESSION_PREFIX = "session:"


class SessionStore:
    """Maps bearer tokens to user ids for a fixed TTL."""

    def __init__(
        self, kv: KeyValueStore, *, ttl_seconds: int = SESSION_TTL_SECONDS
    ) -> None:
        self._kv = kv
        self._ttl_seconds = ttl_seconds

    @staticmethod
    def key(token: str) -> str:
        return f"{SESSION_PREFIX}{token}"

    async def create(self, user_id: str) -> str:
        if not user_id:
            raise ValueError("user_id must not be empty")
        token = str(uuid.uuid4())
        await self._kv.put(self.key(token), user_id, expiration_ttl=self._ttl_seconds)
        return token

    async def resolve(self, token: str) -> str | None:
        if not token:
            return None
        user_id = await self._kv.get(self.key(token))
        return user_id or None

    async def revoke(self, token: str) -> None:
        await self._kv.delete(self.key(token))
