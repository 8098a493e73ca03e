"""
Parallel fan-out with an ordered join.
"""

from __future__ import annotations

import asyncio
import copy
import logging
from typing import Any

from ..concurrency import Outcome, gather_bounded
from ..errors import CancelledError, ParallelJoinError, TimedOutError
from .base import Op, as_op

logger = logging.getLogger(__name__)

# Per-slot result of a partial join
BranchOutcome = Outcome


def branch_input(value: Any) -> Any:
    """A private deep copy of ``value``, or ``value`` itself when it cannot be copied."""
    try:
        return copy.deepcopy(value)
    except (TypeError, copy.Error) as exc:
        logger.debug("Sharing uncopyable parallel input (%s)", exc)
        return value


class Parallel(Op):
    """
    Run every branch on the same input concurrently.

    Each branch receives its own deep copy of the input; an input that cannot
    be deep-copied (locks, clients, generators) is shared instead. The output is a
    tuple with one entry per branch, in declared order, regardless of which
    branch finished first.

    By default the join fails if any branch fails, with a
    ``ParallelJoinError`` for the lowest-index failing branch. All branches
    are awaited first so the reported failure does not depend on timing.
    With ``partial=True`` the output is a tuple of ``BranchOutcome`` and
    branch failures do not fail the join.

    Args:
        *branches: Ops (or agents, extractors, callables)
        partial: Report per-branch outcomes instead of failing
        max_concurrency: Upper bound on branches running at once
    """

    def __init__(self, *branches: Any, partial: bool = False, max_concurrency: int | None = None) -> None:
        if not branches:
            raise ValueError("Parallel needs at least one branch")
        self.branches: tuple[Op, ...] = tuple(as_op(b) for b in branches)
        self.partial = partial
        self.max_concurrency = max_concurrency

    async def execute(self, input: Any) -> tuple[Any, ...]:
        inputs = [branch_input(input) for _ in self.branches]
        results = await gather_bounded(
            [lambda branch=branch, value=value: branch.run(value) for branch, value in zip(self.branches, inputs)],
            max_concurrency=self.max_concurrency,
            return_exceptions=True,
        )

        for result in results:
            if isinstance(result, (asyncio.CancelledError, CancelledError, TimedOutError)):
                raise result

        if self.partial:
            return tuple(
                BranchOutcome(error=r) if isinstance(r, BaseException) else BranchOutcome(value=r)
                for r in results
            )

        for index, result in enumerate(results):
            if isinstance(result, BaseException):
                raise ParallelJoinError(index, result) from result
        return tuple(results)

    def __len__(self) -> int:
        return len(self.branches)

    def __repr__(self) -> str:
        return f"Parallel({', '.join(repr(b) for b in self.branches)}, partial={self.partial})"


__all__ = ["Parallel", "BranchOutcome"]
