"""
Pipeline combinators.

Compose agents, extractors, retrievers and plain functions into reusable,
stateless workflows: sequences, parallel joins, routing and maps.
"""

from .agent_ops import Extract, Prompt
from .base import Op, as_op
from .builder import (
    PipelineBuilder,
    extract,
    lookup,
    map,
    new,
    parallel,
    passthrough,
    prompt,
    route,
    sequence,
    try_map,
)
from .ops import Lookup, Map, Passthrough, Sequence, TryMap
from .parallel import BranchOutcome, Parallel
from .route import Route

__all__ = [
    # Ops
    "Op",
    "Sequence",
    "Map",
    "TryMap",
    "Passthrough",
    "Lookup",
    "Prompt",
    "Extract",
    "Parallel",
    "BranchOutcome",
    "Route",
    "as_op",
    # Builder
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
