"""Vector search service contract and a local in-memory implementation."""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from math import sqrt
from typing import Any, Protocol

from rag_gateway.retrieval.embedder import Embedder, HashingEmbedder
from rag_gateway.types import SearchHit, SearchResponse


class VectorSearchService(Protocol):
    """Black-box nearest-neighbour search over named collections."""

    async def search(self, collection_key: str, query: str, *, top_k: int) -> SearchResponse:
        """Return the ``top_k`` closest documents and the collection size."""


@dataclass(slots=True)
class _StoredDocument:
    doc_id: str
    content: str
    metadata: dict[str, Any]
    embedding: list[float]


class InMemoryVectorSearch:
    """Deterministic vector search used for tests and local prototyping.

    Scores are cosine similarities clamped to ``[0, 1]``.
    """

    def __init__(self, embedder: Embedder | None = None) -> None:
        self.embedder = embedder or HashingEmbedder()
        self._collections: dict[str, dict[str, _StoredDocument]] = {}
        self.searches_performed = 0

    def add_documents(
        self,
        collection_key: str,
        contents: list[str],
        metadatas: list[dict[str, Any]] | None = None,
        ids: list[str] | None = None,
    ) -> list[str]:
        metadatas = metadatas or [{} for _ in contents]
        ids = ids or [str(uuid.uuid4()) for _ in contents]
        if not (len(contents) == len(metadatas) == len(ids)):
            raise ValueError("contents, metadatas and ids must have the same length")

        collection = self._collections.setdefault(collection_key, {})
        embeddings = self.embedder.embed_documents(contents)
        for doc_id, content, metadata, embedding in zip(
            ids, contents, metadatas, embeddings, strict=True
        ):
            collection[doc_id] = _StoredDocument(
                doc_id=doc_id, content=content, metadata=dict(metadata), embedding=embedding
            )
        return ids

    def count(self, collection_key: str) -> int:
        return len(self._collections.get(collection_key, {}))

    async def search(self, collection_key: str, query: str, *, top_k: int) -> SearchResponse:
        self.searches_performed += 1
        documents = list(self._collections.get(collection_key, {}).values())
        if not documents:
            return SearchResponse(count=0, results=[])

        query_embedding = self.embedder.embed_query(query)
        ranked = sorted(
            (
                SearchHit(
                    content=doc.content,
                    score=min(1.0, max(0.0, _cosine_similarity(query_embedding, doc.embedding))),
                    metadata={**doc.metadata, "id": doc.doc_id},
                )
                for doc in documents
            ),
            key=lambda hit: hit.score,
            reverse=True,
        )
        return SearchResponse(count=len(documents), results=ranked[:top_k])


def _cosine_similarity(a: list[float], b: list[float]) -> float:
    if not a or not b or len(a) != len(b):
        return 0.0
    numerator = sum(x * y for x, y in zip(a, b, strict=True))
    norm_a = sqrt(sum(x * x for x in a))
    norm_b = sqrt(sum(y * y for y in b))
    if norm_a == 0 or norm_b == 0:
        return 0.0
    return numerator / (norm_a * norm_b)
