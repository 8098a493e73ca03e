"""
Context assembly.

Builds the context attached to each completion request: the preamble
verbatim, the static documents in registration order, then the top-k
dynamic documents for the current query. Retrieval failures are reported as
diagnostics and never fail the turn.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from .errors import CancelledError
from .hooks import HookManager
from .providers.types import Document
from .retrieval import RetrievedDocument, Retriever

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DynamicContext:
    """Query ``retriever`` for the ``k`` best documents on every request."""

    retriever: Retriever
    k: int

    def __post_init__(self) -> None:
        if self.k < 0:
            raise ValueError("k must be >= 0")


@dataclass
class Diagnostic:
    """A non-fatal problem observed while serving a request."""

    source: str
    message: str
    error: BaseException | None = field(default=None, repr=False)

    def to_dict(self) -> dict[str, Any]:
        return {"source": self.source, "message": self.message}


@dataclass
class AssembledContext:
    preamble: str | None
    documents: list[Document]
    diagnostics: list[Diagnostic] = field(default_factory=list)

    @property
    def degraded(self) -> bool:
        return bool(self.diagnostics)


def rank_documents(hits: list[RetrievedDocument], k: int) -> list[RetrievedDocument]:
    """Top ``k`` by descending score; equal scores keep their original order."""
    return sorted(hits, key=lambda hit: -hit.score)[:k]


class ContextAssembler:
    """
    Assembles preamble, static and dynamic context for one agent.

    Args:
        preamble: System instructions, passed through verbatim
        documents: Static context documents, always attached in order
        dynamic: Optional retrieval policy
        hooks: Receives ``retrieval.error`` events
    """

    def __init__(
        self,
        preamble: str | None = None,
        documents: list[Document] | tuple[Document, ...] = (),
        dynamic: DynamicContext | None = None,
        hooks: HookManager | None = None,
    ) -> None:
        self.preamble = preamble
        self.documents = tuple(documents)
        self.dynamic = dynamic
        self.hooks = hooks or HookManager()

    async def assemble(self, query: str, context: Any = None) -> AssembledContext:
        documents = list(self.documents)
        diagnostics: list[Diagnostic] = []

        if self.dynamic is not None and self.dynamic.k > 0:
            try:
                hits = await self.dynamic.retriever.top_k(query, self.dynamic.k)
            except CancelledError:
                raise
            except Exception as exc:
                logger.warning("Dynamic context retrieval failed: %s", exc)
                diagnostics.append(Diagnostic(source="retrieval", message=str(exc), error=exc))
                await self.hooks.emit("retrieval.error", {"error": str(exc), "query": query}, context)
            else:
                documents.extend(hit.to_document() for hit in rank_documents(list(hits), self.dynamic.k))

        return AssembledContext(preamble=self.preamble, documents=documents, diagnostics=diagnostics)


__all__ = [
    "DynamicContext",
    "Diagnostic",
    "AssembledContext",
    "ContextAssembler",
    "rank_documents",
]
