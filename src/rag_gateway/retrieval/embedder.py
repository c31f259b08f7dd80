"""Embedders for the in-memory vector search service."""

from __future__ import annotations

import re
import unicodedata
from abc import ABC, abstractmethod
from collections import Counter
from hashlib import blake2b
from math import sqrt

_WORD = re.compile(r"\w+")


def tokenize(text: str) -> list[str]:
    """Word tokens folded the same way the retrieval cache folds questions."""
    return _WORD.findall(unicodedata.normalize("NFKC", text).casefold())


class Embedder(ABC):
    """Turns collection documents and questions into comparable vectors."""

    @abstractmethod
    def embed_documents(self, texts: list[str]) -> list[list[float]]:
        """Embed documents added to a collection."""

    @abstractmethod
    def embed_query(self, text: str) -> list[float]:
        """Embed one question."""


class HashingEmbedder(Embedder):
    """Unit-length bag-of-words vectors built with signed feature hashing.

    Questions that differ only in case, width or punctuation embed
    identically, so they score the same against a collection.
    """

    def __init__(self, dimension: int = 256) -> None:
        self.dimension = dimension

    def embed_documents(self, texts: list[str]) -> list[list[float]]:
        return [self._embed(text) for text in texts]

    def embed_query(self, text: str) -> list[float]:
        return self._embed(text)

    def _embed(self, text: str) -> list[float]:
        vector = [0.0] * self.dimension
        for token, occurrences in Counter(tokenize(text)).items():
            idx, sign = self._bucket(token)
            vector[idx] += sign * occurrences

        norm = sqrt(sum(value * value for value in vector))
        return [value / norm for value in vector] if norm else vector

    def _bucket(self, token: str) -> tuple[int, float]:
        digest = blake2b(token.encode("utf-8"), digest_size=8).digest()
        return int.from_bytes(digest[:4], "little") % self.dimension, -1.0 if digest[4] % 2 else 1.0
