"""Shared key-value stores for rate-limit counters and cached retrievals."""

from __future__ import annotations

import json
import time
from typing import Any, Protocol

import redis.asyncio as redis


class CounterStore(Protocol):
    """Fixed-window counter contract."""

    async def incr_window(self, key: str, seconds: int) -> int:
        """Increment ``key`` and return the new value.

        The key's TTL is set in the same atomic step when the window opens,
        so a key can never be left counting without an expiry.
        """

    async def ping(self) -> Any:
        """Liveness probe."""


class CacheStore(Protocol):
    """JSON-value cache contract with per-entry TTL."""

    async def get(self, key: str) -> Any | None:
        """Return the stored value or ``None``."""

    async def set(self, key: str, value: Any, ttl_seconds: int) -> None:
        """Store ``value`` for ``ttl_seconds``."""

    async def ping(self) -> bool:
        """Liveness probe."""


class InMemoryCounterStore:
    """Process-local counter store used for tests and local prototyping."""

    def __init__(self, clock: Any = time.monotonic) -> None:
        self._clock = clock
        self._windows: dict[str, tuple[float, int]] = {}

    async def incr_window(self, key: str, seconds: int) -> int:
        now = self._clock()
        deadline, count = self._windows.get(key, (0.0, 0))
        if now >= deadline:
            deadline, count = now + seconds, 0
        self._windows[key] = (deadline, count + 1)
        return count + 1

    async def ping(self) -> bool:
        return True

    async def aclose(self) -> None:
        self._windows.clear()


class RedisCounterStore:
    """Counter store over one Redis ``MULTI``: ``SET key 0 EX window NX`` then ``INCR``.

    ``INCR`` keeps the TTL set by the first command, so the window always
    expires even if the caller never sees the reply.
    """

    def __init__(self, client: redis.Redis) -> None:
        self._client = client

    async def incr_window(self, key: str, seconds: int) -> int:
        async with self._client.pipeline(transaction=True) as pipe:
            pipe.set(key, 0, ex=seconds, nx=True)
            pipe.incr(key)
            _, current = await pipe.execute()
        return int(current)

    async def ping(self) -> bool:
        return bool(await self._client.ping())

    async def aclose(self) -> None:
        await self._client.aclose()


class InMemoryCacheStore:
    """Process-local cache store used for tests and local prototyping."""

    def __init__(self, clock: Any = time.monotonic) -> None:
        self._clock = clock
        self._entries: dict[str, tuple[float, str]] = {}

    async def get(self, key: str) -> Any | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        deadline, raw = entry
        if self._clock() >= deadline:
            del self._entries[key]
            return None
        return json.loads(raw)

    async def set(self, key: str, value: Any, ttl_seconds: int) -> None:
        # Serialize so callers never share mutable state with the store.
        self._entries[key] = (self._clock() + ttl_seconds, json.dumps(value))

    async def ping(self) -> bool:
        return True

    async def aclose(self) -> None:
        self._entries.clear()


class RedisCacheStore:
    """Cache store over Redis ``GET``/``SETEX`` with JSON payloads."""

    def __init__(self, client: redis.Redis) -> None:
        self._client = client

    async def get(self, key: str) -> Any | None:
        raw = await self._client.get(key)
        if raw is None:
            return None
        return json.loads(raw)

    async def set(self, key: str, value: Any, ttl_seconds: int) -> None:
        await self._client.setex(key, ttl_seconds, json.dumps(value))

    async def ping(self) -> bool:
        return bool(await self._client.ping())

    async def aclose(self) -> None:
        await self._client.aclose()


def create_redis_client(url: str, *, socket_timeout: float = 2.0) -> redis.Redis:
    """Build a lazily-connecting Redis client; no I/O happens until first use."""

    return redis.Redis.from_url(
        url,
        socket_timeout=socket_timeout,
        socket_connect_timeout=socket_timeout,
        decode_responses=True,
    )
