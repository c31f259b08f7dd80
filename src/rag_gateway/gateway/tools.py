"""Built-in tools exposing the RAG pipeline through the gateway."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field

from rag_gateway.errors import (
    FieldViolation,
    GenerationError,
    ToolValidationError,
    VectorSearchError,
)
from rag_gateway.gateway.server import ToolGateway
from rag_gateway.rag.pipeline import QueryOptions, RAGPipeline
from rag_gateway.types import RAGAnswer, ToolContext

Collection = Literal["knowledge", "courses", "roadmaps", "flashcards"]


class KnowledgeSearchInput(BaseModel):
    query: str = Field(min_length=1, max_length=500)
    collection: Collection = "knowledge"
    top_k: int = Field(default=5, ge=1, le=20)


class RagQueryInput(BaseModel):
    query: str = Field(min_length=1, max_length=10000)
    collection: Collection = "knowledge"
    top_k: int = Field(default=5, ge=1, le=20)


class ExplainConceptInput(BaseModel):
    concept: str = Field(min_length=1, max_length=500)
    student_level: Literal["beginner", "intermediate", "advanced"] = "beginner"


class RoadmapGuidanceInput(BaseModel):
    question: str = Field(min_length=1, max_length=2000)
    roadmap_id: str | None = None
    progress: str | None = Field(default=None, max_length=4000)


def register_rag_tools(gateway: ToolGateway, pipeline: RAGPipeline) -> None:
    """Register the default tool set backed by the RAG pipeline.

    Tools:
    - `knowledge_search`: cached vector search returning scored passages.
    - `rag_query`: grounded question answering.
    - `explain_concept`: concept explanation at the student's level.
    - `roadmap_guidance`: advice grounded in the roadmaps collection.
    """

    async def _search(data: KnowledgeSearchInput, context: ToolContext) -> dict[str, object]:
        results, cached = await pipeline.retrieve(data.query, data.collection, data.top_k)
        return {**results.to_dict(), "cached": cached}

    async def _query(data: RagQueryInput, context: ToolContext) -> RAGAnswer:
        answer = await pipeline.query(
            data.query, QueryOptions(collection_key=data.collection, top_k=data.top_k)
        )
        return _checked(answer, "rag_query", "query")

    async def _explain(data: ExplainConceptInput, context: ToolContext) -> RAGAnswer:
        answer = await pipeline.explain_concept(data.concept, data.student_level)
        return _checked(answer, "explain_concept", "concept")

    async def _roadmap(data: RoadmapGuidanceInput, context: ToolContext) -> RAGAnswer:
        answer = await pipeline.get_roadmap_guidance(data.question, data.roadmap_id, data.progress)
        return _checked(answer, "roadmap_guidance", "question")

    gateway.register_tool(
        "knowledge_search",
        _search,
        description="Search a knowledge collection and return scored passages.",
        input_schema=KnowledgeSearchInput,
    )
    gateway.register_tool(
        "rag_query",
        _query,
        description="Answer a question grounded in a knowledge collection.",
        input_schema=RagQueryInput,
        rate_limit_per_minute=30,
    )
    gateway.register_tool(
        "explain_concept",
        _explain,
        description="Explain a concept from the learning materials.",
        input_schema=ExplainConceptInput,
        rate_limit_per_minute=30,
    )
    gateway.register_tool(
        "roadmap_guidance",
        _roadmap,
        description="Give learning-path guidance from roadmap content.",
        input_schema=RoadmapGuidanceInput,
        rate_limit_per_minute=30,
    )


def _checked(answer: RAGAnswer, tool_name: str, field: str) -> RAGAnswer:
    # Insufficient evidence is a valid answer; bad input and dependency failures are not.
    if answer.invalid_question:
        raise ToolValidationError(
            tool_name, [FieldViolation(field=field, message=answer.error or "empty question")]
        )
    if answer.failed:
        message = answer.error or "RAG pipeline failed"
        if answer.error_kind == VectorSearchError.kind:
            raise VectorSearchError(message)
        raise GenerationError(message)
    return answer
