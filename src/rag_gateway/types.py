"""Shared domain models."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any


@dataclass(slots=True)
class SearchHit:
    """One document returned by the vector search service."""

    content: str
    score: float
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True)
class SearchResponse:
    """Vector search output. ``count`` is the size of the whole collection."""

    count: int
    results: list[SearchHit] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {"count": self.count, "results": [asdict(hit) for hit in self.results]}

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "SearchResponse":
        return cls(
            count=int(payload.get("count", 0)),
            results=[
                SearchHit(
                    content=str(item.get("content", "")),
                    score=float(item.get("score", 0.0)),
                    metadata=dict(item.get("metadata") or {}),
                )
                for item in payload.get("results", [])
            ],
        )


@dataclass(frozen=True, slots=True)
class Source:
    """A truncated, score-annotated view of a document backing an answer."""

    content: str
    score: float
    metadata: dict[str, Any]


class AnswerStatus(str, Enum):
    ANSWERED = "answered"
    COLLECTION_EMPTY = "collection_empty"
    BELOW_THRESHOLD = "below_threshold"
    INVALID_QUESTION = "invalid_question"
    FAILED = "failed"


@dataclass(frozen=True, slots=True)
class RAGAnswer:
    """The pipeline's output for one question. Built once, never mutated."""

    answer: str
    sources: tuple[Source, ...] = ()
    confidence: float = 0.0
    status: AnswerStatus = AnswerStatus.ANSWERED
    cached: bool = False
    best_score: float | None = None
    threshold: float | None = None
    error: str | None = None
    # Error kind of the failing dependency when status is FAILED.
    error_kind: str | None = None

    @property
    def collection_empty(self) -> bool:
        return self.status is AnswerStatus.COLLECTION_EMPTY

    @property
    def below_threshold(self) -> bool:
        return self.status is AnswerStatus.BELOW_THRESHOLD

    @property
    def invalid_question(self) -> bool:
        return self.status is AnswerStatus.INVALID_QUESTION

    @property
    def failed(self) -> bool:
        return self.status is AnswerStatus.FAILED

    def as_html(self) -> str:
        from rag_gateway.safety.sanitizer import sanitize_html

        return sanitize_html(self.answer)

    def to_dict(self) -> dict[str, Any]:
        return {
            "answer": self.answer,
            "sources": [asdict(source) for source in self.sources],
            "confidence": self.confidence,
            "status": self.status.value,
            "collection_empty": self.collection_empty,
            "below_threshold": self.below_threshold,
            "cached": self.cached,
            "best_score": self.best_score,
            "threshold": self.threshold,
            "error": self.error,
            "error_kind": self.error_kind,
        }


@dataclass(slots=True)
class ToolContext:
    """Caller context handed to every tool handler."""

    user_id: str | None = None
    ip_address: str | None = None
    roles: tuple[str, ...] = ()
    extra: dict[str, Any] = field(default_factory=dict)

    @property
    def identity(self) -> str:
        return self.user_id or self.ip_address or "anonymous"

    @classmethod
    def from_value(cls, value: "ToolContext | Mapping[str, Any] | None") -> "ToolContext":
        if isinstance(value, ToolContext):
            return value
        if not value:
            return cls()
        data = dict(value)
        user = data.pop("user", None)
        user_id = data.pop("user_id", None)
        if user_id is None and isinstance(user, Mapping):
            user_id = user.get("id")
        roles = data.pop("roles", ())
        if not roles and isinstance(user, Mapping) and user.get("role"):
            roles = (user["role"],)
        return cls(
            user_id=str(user_id) if user_id is not None else None,
            ip_address=data.pop("ip_address", None),
            roles=tuple(roles),
            extra=data,
        )


@dataclass(slots=True)
class ToolTrace:
    """Trace record for an executed tool call."""

    name: str
    input_payload: dict[str, Any]
    output_preview: str
    latency_ms: float
    success: bool = True


@dataclass(frozen=True, slots=True)
class ToolError:
    kind: str
    message: str
    details: list[dict[str, Any]] = field(default_factory=list)


@dataclass(frozen=True, slots=True)
class ExecutionOutcome:
    """Uniform envelope returned by the gateway for every call."""

    success: bool
    tool: str
    server: str
    latency_ms: float
    result: Any = None
    error: ToolError | None = None
    warnings: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "success": self.success,
            "tool": self.tool,
            "latency_ms": self.latency_ms,
            "server": self.server,
        }
        if self.success:
            payload["result"] = self.result
        else:
            payload["error"] = asdict(self.error) if self.error else None
        if self.warnings:
            payload["warnings"] = list(self.warnings)
        return payload
