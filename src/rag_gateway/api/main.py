"""FastAPI entrypoint for tool execution, RAG queries and operations."""

from __future__ import annotations

from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any

from fastapi import FastAPI, HTTPException, Request
from pydantic import BaseModel, Field

from rag_gateway.config import Settings, get_settings
from rag_gateway.errors import ConfigurationError
from rag_gateway.gateway.rate_limiter import RateLimiter
from rag_gateway.gateway.registry import ToolRegistry
from rag_gateway.gateway.server import ToolGateway
from rag_gateway.gateway.tools import register_rag_tools
from rag_gateway.obs.logging_config import configure_logging
from rag_gateway.rag.cache import RetrievalCache
from rag_gateway.rag.llm import LazyLLM
from rag_gateway.rag.pipeline import QueryOptions, RAGPipeline
from rag_gateway.retrieval.vector_search import InMemoryVectorSearch
from rag_gateway.stores.kv import (
    InMemoryCacheStore,
    InMemoryCounterStore,
    RedisCacheStore,
    RedisCounterStore,
    create_redis_client,
)


@dataclass(slots=True)
class Services:
    gateway: ToolGateway
    pipeline: RAGPipeline
    cache: RetrievalCache
    search: InMemoryVectorSearch

    async def aclose(self) -> None:
        await self.gateway.aclose()
        close = getattr(self.cache.store, "aclose", None)
        if close is not None:
            await close()


def create_services(settings: Settings) -> Services:
    """Wire stores, gateway and pipeline. No connection is opened here."""

    if settings.redis_url:
        counter_store: Any = RedisCounterStore(
            create_redis_client(settings.redis_url, socket_timeout=settings.redis_socket_timeout)
        )
        cache_store: Any = RedisCacheStore(
            create_redis_client(settings.redis_url, socket_timeout=settings.redis_socket_timeout)
        )
    else:
        counter_store = InMemoryCounterStore()
        cache_store = InMemoryCacheStore()

    gateway_config = settings.gateway_config()
    retrieval_config = settings.retrieval_config()

    search = InMemoryVectorSearch()
    cache = RetrievalCache(cache_store, retrieval_config)
    pipeline = RAGPipeline(
        search=search,
        cache=cache,
        llm=LazyLLM(settings.llm_config()),
        config=retrieval_config,
    )
    gateway = ToolGateway(
        registry=ToolRegistry(),
        rate_limiter=RateLimiter(counter_store, gateway_config),
        config=gateway_config,
    )
    register_rag_tools(gateway, pipeline)
    return Services(gateway=gateway, pipeline=pipeline, cache=cache, search=search)


class ExecuteRequest(BaseModel):
    input: dict[str, Any] = Field(default_factory=dict)
    user_id: str | None = None


class RagQueryRequest(BaseModel):
    question: str = Field(min_length=1)
    collection: str | None = None
    top_k: int | None = Field(default=None, ge=1, le=20)


class AddDocumentsRequest(BaseModel):
    contents: list[str] = Field(min_length=1)
    metadatas: list[dict[str, Any]] | None = None


@asynccontextmanager
async def _lifespan(app: FastAPI):
    yield
    await app.state.services.aclose()


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or get_settings()
    configure_logging(settings.log_level)

    app = FastAPI(title="RAG Tool Gateway", version="0.1.0", lifespan=_lifespan)
    app.state.services = create_services(settings)

    def services(request: Request) -> Services:
        return request.app.state.services

    @app.get("/health")
    async def health(request: Request) -> dict[str, Any]:
        svc = services(request)
        return {
            **(await svc.gateway.health_check()),
            "llm_initialized": svc.pipeline.llm.initialized,
        }

    @app.get("/tools")
    async def tools(request: Request) -> dict[str, Any]:
        return {"items": services(request).gateway.list_tool_definitions()}

    @app.post("/tools/{name}/execute")
    async def execute(name: str, body: ExecuteRequest, request: Request) -> dict[str, Any]:
        context = {
            "user_id": body.user_id,
            "ip_address": request.client.host if request.client else None,
        }
        outcome = await services(request).gateway.execute(name, body.input, context)
        return outcome.to_dict()

    @app.post("/rag/query")
    async def rag_query(body: RagQueryRequest, request: Request) -> dict[str, Any]:
        try:
            answer = await services(request).pipeline.query(
                body.question,
                QueryOptions(collection_key=body.collection, top_k=body.top_k),
            )
        except ConfigurationError as exc:
            raise HTTPException(status_code=503, detail=str(exc)) from exc
        if answer.invalid_question:
            raise HTTPException(status_code=422, detail=answer.error)
        return {**answer.to_dict(), "answer_html": answer.as_html()}

    @app.post("/collections/{key}/documents")
    async def add_documents(key: str, body: AddDocumentsRequest, request: Request) -> dict[str, Any]:
        search = services(request).search
        try:
            ids = search.add_documents(key, body.contents, body.metadatas)
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        return {"ids": ids, "count": search.count(key)}

    @app.get("/stats")
    async def stats(request: Request) -> dict[str, Any]:
        svc = services(request)
        return {**svc.gateway.get_stats(), "retrieval_cache": svc.cache.stats()}

    return app


app = create_app()
