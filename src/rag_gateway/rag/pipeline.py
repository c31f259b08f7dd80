"""Retrieval-augmented generation: cached search, relevance gate, one LLM call."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from langchain_core.prompts import PromptTemplate

from rag_gateway.config import RetrievalConfig
from rag_gateway.errors import ConfigurationError, GenerationError, VectorSearchError
from rag_gateway.obs.logging_config import get_logger
from rag_gateway.obs.timing import Timer
from rag_gateway.rag.cache import RetrievalCache
from rag_gateway.rag.llm import LazyLLM
from rag_gateway.rag.prompts import (
    EXPLAIN_CONCEPT,
    QA_WITH_CONTEXT,
    ROADMAP_GUIDANCE,
    format_context,
)
from rag_gateway.retrieval.vector_search import VectorSearchService
from rag_gateway.safety.sanitizer import detect_injection, sanitize_text
from rag_gateway.types import AnswerStatus, RAGAnswer, SearchHit, SearchResponse, Source

logger = get_logger(__name__)


@dataclass(slots=True)
class QueryOptions:
    collection_key: str | None = None
    top_k: int | None = None
    prompt: PromptTemplate | None = None
    prompt_variables: dict[str, Any] = field(default_factory=dict)


class RAGPipeline:
    """Answers questions from a vector collection through a single LLM call.

    States: cache check, then search on a miss, then the empty-collection and
    relevance gates, then generation. The two gates end the request without
    calling the LLM. Concurrent misses on one fingerprint may each search;
    results are idempotent so the duplicate work is only wasted, not wrong.
    """

    def __init__(
        self,
        *,
        search: VectorSearchService,
        cache: RetrievalCache,
        llm: LazyLLM,
        config: RetrievalConfig | None = None,
    ) -> None:
        self.search = search
        self.cache = cache
        self.llm = llm
        self.config = config or RetrievalConfig()

    async def query(self, question: str, options: QueryOptions | None = None) -> RAGAnswer:
        options = options or QueryOptions()
        collection_key = options.collection_key or self.config.default_collection
        top_k = options.top_k or self.config.top_k

        clean_question = sanitize_text(question)
        if not clean_question:
            return RAGAnswer(
                answer="Please ask a question so I can search the course material.",
                status=AnswerStatus.INVALID_QUESTION,
                error="Question is empty after sanitization.",
            )
        report = detect_injection(clean_question)
        if report.detected:
            logger.warning(
                "prompt_injection_suspected", collection=collection_key, patterns=report.match_count
            )

        with Timer() as timer:
            try:
                search_results, cached = await self.retrieve(clean_question, collection_key, top_k)
            except VectorSearchError as exc:
                logger.error("vector_search_failed", collection=collection_key, error=str(exc))
                return _failure(str(exc), kind=exc.kind)
            answer = await self._answer(
                clean_question, collection_key, search_results, cached, options
            )

        logger.info(
            "rag_query_completed",
            collection=collection_key,
            status=answer.status.value,
            cached=cached,
            confidence=answer.confidence,
            latency_ms=round(timer.elapsed_ms, 2),
        )
        return answer

    async def explain_concept(self, concept: str, student_level: str = "beginner") -> RAGAnswer:
        return await self.query(
            concept,
            QueryOptions(
                top_k=3,
                prompt=EXPLAIN_CONCEPT,
                prompt_variables={"level": student_level},
            ),
        )

    async def get_roadmap_guidance(
        self,
        question: str,
        roadmap_id: str | None = None,
        progress: str | None = None,
    ) -> RAGAnswer:
        variables: dict[str, Any] = {}
        if progress:
            variables["progress"] = progress
        if roadmap_id:
            logger.debug("roadmap_guidance_requested", roadmap_id=roadmap_id)
        return await self.query(
            question,
            QueryOptions(
                collection_key="roadmaps",
                top_k=5,
                prompt=ROADMAP_GUIDANCE,
                prompt_variables=variables,
            ),
        )

    async def retrieve(
        self, question: str, collection_key: str, top_k: int
    ) -> tuple[SearchResponse, bool]:
        """Return search results for a fingerprint and whether they came from cache."""
        cached = await self.cache.get(question, collection_key, top_k)
        if cached is not None:
            return cached, True

        try:
            results = await self.search.search(collection_key, question, top_k=top_k)
        except Exception as exc:
            raise VectorSearchError(f"Vector search failed for {collection_key}: {exc}") from exc

        await self.cache.set(question, collection_key, top_k, results)
        return results, False

    async def _answer(
        self,
        question: str,
        collection_key: str,
        search_results: SearchResponse,
        cached: bool,
        options: QueryOptions,
    ) -> RAGAnswer:
        if search_results.count == 0:
            return RAGAnswer(
                answer=(
                    f"The {collection_key} collection is currently empty. "
                    "Please add some content first to enable knowledge search."
                ),
                status=AnswerStatus.COLLECTION_EMPTY,
                cached=cached,
            )

        threshold = self.config.min_score
        relevant = sorted(
            (hit for hit in search_results.results if hit.score >= threshold),
            key=lambda hit: hit.score,
            reverse=True,
        )
        if not relevant:
            best_score = max((hit.score for hit in search_results.results), default=0.0)
            return RAGAnswer(
                answer=(
                    "I don't have enough information to answer this question accurately. "
                    f"The closest match had a relevance score of {best_score * 100:.1f}%, "
                    f"but the minimum threshold is {threshold * 100:.1f}%."
                ),
                status=AnswerStatus.BELOW_THRESHOLD,
                cached=cached,
                best_score=best_score,
                threshold=threshold,
            )

        template = options.prompt or QA_WITH_CONTEXT
        prompt = template.format(
            context=format_context([hit.content for hit in relevant]),
            question=question,
            **options.prompt_variables,
        )
        try:
            text = await self.llm.complete(prompt)
        except ConfigurationError:
            raise
        except Exception as exc:
            logger.error("llm_generation_failed", collection=collection_key, error=str(exc))
            return _failure(
                f"LLM generation failed: {exc}", kind=GenerationError.kind, cached=cached
            )

        return RAGAnswer(
            answer=text,
            sources=tuple(self._source(hit) for hit in relevant),
            confidence=relevant[0].score,
            status=AnswerStatus.ANSWERED,
            cached=cached,
            best_score=relevant[0].score,
            threshold=threshold,
        )

    def _source(self, hit: SearchHit) -> Source:
        return Source(
            content=_truncate(hit.content, self.config.source_preview_chars),
            score=hit.score,
            metadata=dict(hit.metadata),
        )


_UNAVAILABLE_ANSWER = (
    "I couldn't answer right now because a service is unavailable. Please try again later."
)


def _failure(message: str, *, kind: str, cached: bool = False) -> RAGAnswer:
    return RAGAnswer(
        answer=_UNAVAILABLE_ANSWER,
        status=AnswerStatus.FAILED,
        cached=cached,
        error=message,
        error_kind=kind,
    )


def _truncate(text: str, max_length: int) -> str:
    if len(text) <= max_length:
        return text
    return text[: max_length - 3] + "..."
