from dataclasses import dataclass

import pytest

from rag_gateway.config import GatewayConfig, RetrievalConfig
from rag_gateway.gateway.rate_limiter import RateLimiter
from rag_gateway.gateway.registry import ToolRegistry
from rag_gateway.gateway.server import ToolGateway
from rag_gateway.rag.cache import RetrievalCache
from rag_gateway.rag.llm import LazyLLM
from rag_gateway.rag.pipeline import RAGPipeline
from rag_gateway.stores.kv import InMemoryCacheStore, InMemoryCounterStore
from rag_gateway.types import SearchHit, SearchResponse


@dataclass(slots=True)
class _Message:
    content: str


class FakeChatModel:
    """Records prompts and answers with a fixed completion."""

    def __init__(self, reply: str = "Grounded answer [1].") -> None:
        self.reply = reply
        self.prompts: list[str] = []

    async def ainvoke(self, prompt: str) -> _Message:
        self.prompts.append(prompt)
        return _Message(content=self.reply)


class BrokenChatModel:
    def __init__(self) -> None:
        self.calls = 0

    async def ainvoke(self, prompt: str) -> _Message:
        self.calls += 1
        raise TimeoutError("completion timed out")


class StaticSearch:
    """Vector search double returning a canned response and counting calls."""

    def __init__(self, response: SearchResponse) -> None:
        self.response = response
        self.calls: list[tuple[str, str, int]] = []

    async def search(self, collection_key: str, query: str, *, top_k: int) -> SearchResponse:
        self.calls.append((collection_key, query, top_k))
        return SearchResponse(count=self.response.count, results=self.response.results[:top_k])


class UnreachableStore:
    """Counter and cache store whose every call fails like a dropped connection."""

    async def incr_window(self, key: str, seconds: int) -> int:
        raise ConnectionError("store unreachable")

    async def get(self, key: str):
        raise ConnectionError("store unreachable")

    async def set(self, key: str, value, ttl_seconds: int) -> None:
        raise ConnectionError("store unreachable")

    async def ping(self) -> bool:
        raise ConnectionError("store unreachable")


@pytest.fixture
def counter_store() -> InMemoryCounterStore:
    return InMemoryCounterStore()


@pytest.fixture
def unreachable_store() -> UnreachableStore:
    return UnreachableStore()


@pytest.fixture
def gateway(counter_store: InMemoryCounterStore) -> ToolGateway:
    config = GatewayConfig(server_name="test")
    return ToolGateway(
        registry=ToolRegistry(),
        rate_limiter=RateLimiter(counter_store, config),
        config=config,
    )


@pytest.fixture
def chat_model() -> FakeChatModel:
    return FakeChatModel()


@pytest.fixture
def broken_chat_model() -> BrokenChatModel:
    return BrokenChatModel()


@pytest.fixture
def static_search():
    """Build a search double over hits with the given scores."""

    def _make(*scores: float, count: int | None = None) -> StaticSearch:
        hits = [
            SearchHit(
                content=f"Passage {idx} explains recursion and base cases.",
                score=score,
                metadata={"rank": idx},
            )
            for idx, score in enumerate(scores, start=1)
        ]
        return StaticSearch(SearchResponse(count=len(hits) if count is None else count, results=hits))

    return _make


@pytest.fixture
def make_pipeline(chat_model: FakeChatModel):
    def _make(
        search,
        *,
        min_score: float = 0.5,
        cache_store=None,
        cache_enabled: bool = True,
        llm: LazyLLM | None = None,
    ) -> RAGPipeline:
        config = RetrievalConfig(min_score=min_score, cache_enabled=cache_enabled)
        return RAGPipeline(
            search=search,
            cache=RetrievalCache(cache_store or InMemoryCacheStore(), config),
            llm=llm or LazyLLM.from_client(chat_model),
            config=config,
        )

    return _make
