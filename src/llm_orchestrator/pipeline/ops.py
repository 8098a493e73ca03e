"""
Basic pipeline operators.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

from ..context import rank_documents
from ..errors import PipelineError, StepFailedError
from ..retrieval import RetrievedDocument, Retriever
from .base import Op, as_op, call_function

logger = logging.getLogger(__name__)


class Sequence(Op):
    """
    Run steps one after another, feeding each output into the next step.

    A failing step stops the sequence; later steps are not run. Nested
    sequences are flattened.
    """

    def __init__(self, *steps: Any) -> None:
        if not steps:
            raise ValueError("Sequence needs at least one step")
        flat: list[Op] = []
        for step in steps:
            op = as_op(step)
            flat.extend(op.steps if isinstance(op, Sequence) else [op])
        self.steps: tuple[Op, ...] = tuple(flat)

    @property
    def name(self) -> str:
        return "Sequence"

    async def execute(self, input: Any) -> Any:
        value = input
        for step in self.steps:
            value = await step.run(value)
        return value

    def then(self, next_op: Any) -> Sequence:
        return Sequence(*self.steps, next_op)

    def __len__(self) -> int:
        return len(self.steps)

    def __repr__(self) -> str:
        return f"Sequence({', '.join(repr(s) for s in self.steps)})"


class Map(Op):
    """Apply a function that is not expected to fail (sync or async)."""

    def __init__(self, func: Callable[[Any], Any], *, name: str | None = None) -> None:
        if not callable(func):
            raise TypeError("Map needs a callable")
        self.func = func
        self._name = name or getattr(func, "__name__", "map")

    @property
    def name(self) -> str:
        return self._name

    async def execute(self, input: Any) -> Any:
        return await call_function(self.func, input)

    def __repr__(self) -> str:
        return f"Map({self._name})"


class TryMap(Map):
    """
    Apply a function that may fail.

    Exceptions raised by the function are reported as ``StepFailedError``,
    so callers of ``Op.call`` also see a ``PipelineError``.
    """

    async def execute(self, input: Any) -> Any:
        try:
            return await call_function(self.func, input)
        except PipelineError:
            raise
        except Exception as exc:
            raise StepFailedError(
                f"Step '{self.name}' failed: {type(exc).__name__}: {exc}",
                step=self.name,
                cause=exc,
            ) from exc

    def __repr__(self) -> str:
        return f"TryMap({self._name})"


class Passthrough(Op):
    """Return the input unchanged. Useful as a parallel branch."""

    async def execute(self, input: Any) -> Any:
        return input


class Lookup(Op):
    """
    Retrieve the ``k`` best documents for the input text.

    Output is a list of ``RetrievedDocument`` by descending score. Unlike
    agent context assembly, a retrieval failure here fails the step.
    """

    def __init__(self, retriever: Retriever, k: int = 3) -> None:
        if k < 1:
            raise ValueError("k must be >= 1")
        self.retriever = retriever
        self.k = k

    async def execute(self, input: Any) -> list[RetrievedDocument]:
        query = input if isinstance(input, str) else str(input)
        hits = await self.retriever.top_k(query, self.k)
        logger.debug("Lookup returned %d documents for query of %d chars", len(hits), len(query))
        return rank_documents(list(hits), self.k)

    def __repr__(self) -> str:
        return f"Lookup(k={self.k})"


__all__ = ["Sequence", "Map", "TryMap", "Passthrough", "Lookup"]
