"""Fixed-window rate limiter backed by a shared expiring counter store."""

from __future__ import annotations

from dataclasses import dataclass

from rag_gateway.config import GatewayConfig
from rag_gateway.errors import RateLimiterUnavailableError
from rag_gateway.obs.logging_config import get_logger
from rag_gateway.stores.kv import CounterStore

logger = get_logger(__name__)


@dataclass(frozen=True, slots=True)
class RateLimitDecision:
    allowed: bool
    current: int
    limit: int
    degraded: bool = False


class RateLimiter:
    """Counts calls per ``(server, tool, identity)`` in windows owned by the store.

    The window is never reset here: the store sets the key's TTL in the same
    atomic step as the increment that opens a window, and its own expiry
    starts the next one.
    """

    def __init__(self, store: CounterStore, config: GatewayConfig | None = None) -> None:
        self.store = store
        self.config = config or GatewayConfig()

    def key_for(self, tool_name: str, identity: str) -> str:
        return f"mcp:ratelimit:{self.config.server_name}:{tool_name}:{identity}"

    async def increment(self, key: str) -> int:
        return int(await self.store.incr_window(key, self.config.rate_limit_window_seconds))

    async def check(self, tool_name: str, identity: str, limit: int) -> RateLimitDecision:
        key = self.key_for(tool_name, identity)
        try:
            current = await self.increment(key)
        except Exception as exc:
            return self._allow_on_limiter_failure(key, limit, exc)
        return RateLimitDecision(allowed=current <= limit, current=current, limit=limit)

    def _allow_on_limiter_failure(
        self, key: str, limit: int, exc: Exception
    ) -> RateLimitDecision:
        if not self.config.allow_on_limiter_failure:
            raise RateLimiterUnavailableError(f"Rate limit store unavailable: {exc}") from exc
        logger.warning("rate_limit_check_failed_allowing_call", key=key, error=str(exc))
        return RateLimitDecision(allowed=True, current=0, limit=limit, degraded=True)

    async def ping(self) -> bool:
        return bool(await self.store.ping())

    async def aclose(self) -> None:
        close = getattr(self.store, "aclose", None)
        if close is not None:
            await close()
