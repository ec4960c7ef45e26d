"""Structural interfaces for the handles supplied by the hosting runtime."""

from __future__ import annotations

import time
from collections.abc import Mapping, Sequence
from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class InferenceEngine(Protocol):
    """AI inference binding."""

    async def run(self, model: str, inputs: Mapping[str, Any]) -> Any: ...


@runtime_checkable
class Database(Protocol):
    """Relational store with positional ``?`` parameters."""

    async def fetch_one(
        self, sql: str, params: Sequence[Any] = ()
    ) -> Mapping[str, Any] | None: ...

    async def fetch_all(
        self, sql: str, params: Sequence[Any] = ()
    ) -> list[Mapping[str, Any]]: ...

    async def execute(self, sql: str, params: Sequence[Any] = ()) -> int: ...


@runtime_checkable
class KeyValueStore(Protocol):
    """String key-value store with optional per-key expiry."""

    async def get(self, key: str) -> str | None: ...

    async def put(
        self, key: str, value: str, *, expiration_ttl: int | None = None
    ) -> None: ...

    async def delete(self, key: str) -> None: ...


@runtime_checkable
class VectorIndex(Protocol):
    """Similarity-search index; metadata filters are passed through opaquely."""

    async def query(
        self,
        vector: Sequence[float],
        *,
        top_k: int = 5,
        filter: Mapping[str, Any] | None = None,
    ) -> list[Mapping[str, Any]]: ...

    async def upsert(self, vectors: Sequence[Mapping[str, Any]]) -> None: ...


class InMemoryKeyValueStore:
    """Dict-backed key-value store. Single-process only."""

    def __init__(self) -> None:
        self._items: dict[str, tuple[str, float | None]] = {}

    async def get(self, key: str) -> str | None:
        item = self._items.get(key)
        if item is None:
            return None
        value, expires_at = item
        if expires_at is not None and time.monotonic() >= expires_at:
            del self._items[key]
            return None
        return value

    async def put(
        self, key: str, value: str, *, expiration_ttl: int | None = None
    ) -> None:
        expires_at = None
        if expiration_ttl is not None:
            expires_at = time.monotonic() + expiration_ttl
        self._items[key] = (value, expires_at)

    async def delete(self, key: str) -> None:
        self._items.pop(key, None)
