"""
Retrieval boundary and an in-memory vector index.

The turn loop only needs ``Retriever.top_k``. ``InMemoryVectorIndex`` is a
small numpy-backed implementation that ranks stored documents by cosine
similarity to the query embedding.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

import numpy as np

from .errors import RetrievalError
from .providers.types import Document

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RetrievedDocument:
    """A retrieval hit. Higher ``score`` means more relevant."""

    id: str
    text: str
    score: float
    metadata: dict[str, Any] = field(default_factory=dict, compare=False)

    def to_document(self) -> Document:
        return Document(id=self.id, text=self.text, metadata=dict(self.metadata))


@runtime_checkable
class Retriever(Protocol):
    """Anything that can return the ``k`` documents most relevant to a query."""

    async def top_k(self, query: str, k: int) -> list[RetrievedDocument]:
        """
        Raises:
            RetrievalError: The underlying store could not be queried.
        """
        ...


@runtime_checkable
class Embedder(Protocol):
    """Turns texts into fixed-size vectors."""

    async def embed(self, texts: Sequence[str]) -> list[list[float]]: ...


class InMemoryVectorIndex:
    """
    Cosine-similarity index held in memory.

    Example:
        ```python
        index = InMemoryVectorIndex(embedder)
        await index.add([Document("faq-1", "Refunds take 5 days")])
        hits = await index.top_k("how long do refunds take?", 3)
        ```

    Results are ordered by descending score; equal scores keep insertion
    order.
    """

    def __init__(self, embedder: Embedder) -> None:
        self.embedder = embedder
        self._documents: list[Document] = []
        self._matrix: np.ndarray | None = None

    def __len__(self) -> int:
        return len(self._documents)

    async def add(self, documents: Sequence[Document]) -> None:
        if not documents:
            return
        vectors = await self.embedder.embed([doc.text for doc in documents])
        if len(vectors) != len(documents):
            raise RetrievalError(f"Embedder returned {len(vectors)} vectors for {len(documents)} documents")
        block = self._normalize(np.asarray(vectors, dtype=np.float32))
        if self._matrix is not None and block.shape[1] != self._matrix.shape[1]:
            raise RetrievalError(
                f"Embedding dimension mismatch: index has {self._matrix.shape[1]}, got {block.shape[1]}"
            )
        self._matrix = block if self._matrix is None else np.vstack([self._matrix, block])
        self._documents.extend(documents)
        logger.debug("Indexed %d documents (%d total)", len(documents), len(self._documents))

    async def top_k(self, query: str, k: int) -> list[RetrievedDocument]:
        if k <= 0 or self._matrix is None:
            return []
        try:
            query_vectors = await self.embedder.embed([query])
        except RetrievalError:
            raise
        except Exception as exc:
            raise RetrievalError(f"Failed to embed query: {exc}", cause=exc) from exc
        query_vec = self._normalize(np.asarray(query_vectors, dtype=np.float32))[0]
        scores = self._matrix @ query_vec
        # Stable sort on the negated scores keeps insertion order for ties
        order = np.argsort(-scores, kind="stable")[:k]
        return [
            RetrievedDocument(
                id=self._documents[i].id,
                text=self._documents[i].text,
                score=float(scores[i]),
                metadata=dict(self._documents[i].metadata),
            )
            for i in order
        ]

    @staticmethod
    def _normalize(matrix: np.ndarray) -> np.ndarray:
        if matrix.ndim != 2:
            raise RetrievalError(f"Expected a 2-D embedding matrix, got shape {matrix.shape}")
        norms = np.linalg.norm(matrix, axis=1, keepdims=True)
        norms[norms == 0] = 1.0
        return matrix / norms


__all__ = ["RetrievedDocument", "Retriever", "Embedder", "InMemoryVectorIndex"]
