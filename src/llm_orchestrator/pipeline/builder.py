"""
Fluent pipeline construction.

Example:
    ```python
    from llm_orchestrator import pipeline

    chain = (
        pipeline.new()
        .chain(pipeline.parallel(pipeline.passthrough(), pipeline.lookup(index, k=2)))
        .map(lambda pair: format_prompt(*pair))
        .prompt(agent)
        .build()
    )
    answer = await chain.call("What is a flurbo?")
    ```
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from typing import TYPE_CHECKING, Any

from .agent_ops import Extract, Prompt
from .base import Op, as_op
from .ops import Lookup, Map, Passthrough, Sequence, TryMap
from .parallel import Parallel
from .route import Route

if TYPE_CHECKING:
    from ..agent.core import Agent
    from ..agent.extractor import Extractor
    from ..retrieval import Retriever


class PipelineBuilder:
    """
    Immutable builder; every method returns a new builder.

    ``build()`` returns the composed op. An empty builder builds a
    ``Passthrough``.
    """

    def __init__(self, steps: tuple[Op, ...] = ()) -> None:
        self._steps = steps

    def chain(self, step: Any) -> PipelineBuilder:
        """Append any op, agent, extractor or callable."""
        return PipelineBuilder((*self._steps, as_op(step)))

    def map(self, func: Callable[[Any], Any]) -> PipelineBuilder:
        return self.chain(Map(func))

    def try_map(self, func: Callable[[Any], Any]) -> PipelineBuilder:
        return self.chain(TryMap(func))

    def prompt(self, agent: Agent, *, max_turns: int | None = None) -> PipelineBuilder:
        return self.chain(Prompt(agent, max_turns=max_turns))

    def extract(self, extractor: Extractor) -> PipelineBuilder:
        return self.chain(Extract(extractor))

    def lookup(self, retriever: Retriever, k: int = 3) -> PipelineBuilder:
        return self.chain(Lookup(retriever, k))

    def parallel(self, *branches: Any, partial: bool = False) -> PipelineBuilder:
        return self.chain(Parallel(*branches, partial=partial))

    def route(self, classifier: Any, branches: Mapping[Any, Any]) -> PipelineBuilder:
        return self.chain(Route(classifier, branches))

    def build(self) -> Op:
        if not self._steps:
            return Passthrough()
        if len(self._steps) == 1:
            return self._steps[0]
        return Sequence(*self._steps)

    def __len__(self) -> int:
        return len(self._steps)


def new() -> PipelineBuilder:
    """Start an empty pipeline."""
    return PipelineBuilder()


def passthrough() -> Passthrough:
    return Passthrough()


def map(func: Callable[[Any], Any]) -> Map:  # noqa: A001
    return Map(func)


def try_map(func: Callable[[Any], Any]) -> TryMap:
    return TryMap(func)


def lookup(retriever: Retriever, k: int = 3) -> Lookup:
    return Lookup(retriever, k)


def prompt(agent: Agent, *, max_turns: int | None = None) -> Prompt:
    return Prompt(agent, max_turns=max_turns)


def extract(extractor: Extractor) -> Extract:
    return Extract(extractor)


def parallel(*branches: Any, partial: bool = False, max_concurrency: int | None = None) -> Parallel:
    return Parallel(*branches, partial=partial, max_concurrency=max_concurrency)


def route(classifier: Any, branches: Mapping[Any, Any]) -> Route:
    return Route(classifier, branches)


def sequence(*steps: Any) -> Sequence:
    return Sequence(*steps)


__all__ = [
    "PipelineBuilder",
    "new",
    "passthrough",
    "map",
    "try_map",
    "lookup",
    "prompt",
    "extract",
    "parallel",
    "route",
    "sequence",
]
