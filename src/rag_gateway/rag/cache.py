"""Fingerprinted cache of vector search results."""

from __future__ import annotations

import hashlib
import re
import unicodedata

from rag_gateway.config import RetrievalConfig
from rag_gateway.obs.logging_config import get_logger
from rag_gateway.stores.kv import CacheStore
from rag_gateway.types import SearchResponse

logger = get_logger(__name__)

KEY_PREFIX = "rag:v1:"
_WHITESPACE = re.compile(r"\s+")


def normalize_query(query: str) -> str:
    """Fold case, width and whitespace so equivalent questions share a key."""
    folded = unicodedata.normalize("NFKC", query).casefold()
    return _WHITESPACE.sub(" ", folded).strip()


def fingerprint(query: str, collection_key: str, top_k: int) -> str:
    key_data = f"{collection_key}\x1f{normalize_query(query)}\x1f{top_k}"
    return KEY_PREFIX + hashlib.sha256(key_data.encode("utf-8")).hexdigest()


class RetrievalCache:
    """Cache-aside layer in front of the vector search service.

    Store failures degrade to a miss: the pipeline then runs a live search.
    """

    def __init__(self, store: CacheStore, config: RetrievalConfig | None = None) -> None:
        self.store = store
        self.config = config or RetrievalConfig()
        self.hits = 0
        self.misses = 0

    @property
    def enabled(self) -> bool:
        return self.config.cache_enabled

    async def get(self, query: str, collection_key: str, top_k: int) -> SearchResponse | None:
        if not self.enabled:
            return None

        key = fingerprint(query, collection_key, top_k)
        try:
            payload = await self.store.get(key)
            cached = SearchResponse.from_dict(payload) if payload is not None else None
        except Exception as exc:
            logger.warning("retrieval_cache_get_failed", key=key, error=str(exc))
            cached = None

        if cached is None:
            self.misses += 1
            return None
        self.hits += 1
        return cached

    async def set(
        self, query: str, collection_key: str, top_k: int, result: SearchResponse
    ) -> bool:
        if not self.enabled:
            return False

        key = fingerprint(query, collection_key, top_k)
        try:
            await self.store.set(key, result.to_dict(), self.config.cache_ttl_seconds)
        except Exception as exc:
            logger.warning("retrieval_cache_set_failed", key=key, error=str(exc))
            return False
        return True

    def stats(self) -> dict[str, int]:
        total = self.hits + self.misses
        return {
            "hits": self.hits,
            "misses": self.misses,
            "hit_ratio": round(self.hits / total * 100) if total else 0,
        }
