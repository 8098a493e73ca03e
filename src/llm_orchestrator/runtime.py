"""
Per-request run context.

Every public entry point (``Agent.run``, ``Op.call``) creates a
``RunContext``. It is frozen so it can be shared by concurrent capability
invocations and parallel branches; the cancellation token inside it is the
one mutable part.
"""

from __future__ import annotations

import time
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass, field, replace
from typing import Any

from .cancellation import CancellationToken


def _default_cancel_token() -> CancellationToken:
    return CancellationToken.none()


@dataclass(frozen=True)
class RunContext:
    """Correlation and cancellation for one orchestrated request."""

    request_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    parent_id: str | None = None
    agent: str | None = None
    depth: int = 0
    tags: dict[str, str] = field(default_factory=dict)
    created_at: float = field(default_factory=time.time)
    cancellation_token: CancellationToken = field(default_factory=_default_cancel_token)

    @classmethod
    def ensure(cls, ctx: RunContext | None, **kwargs: Any) -> RunContext:
        """Return ``ctx`` or a fresh context built from ``kwargs``."""
        return ctx if ctx is not None else cls(**kwargs)

    def child(self, *, agent: str | None = None) -> RunContext:
        """Context for a nested agent or pipeline step.

        Shares the cancellation token, so cancelling the parent cancels the
        child.
        """
        return RunContext(
            parent_id=self.request_id,
            agent=agent or self.agent,
            depth=self.depth + 1,
            tags=dict(self.tags),
            cancellation_token=self.cancellation_token,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "request_id": self.request_id,
            "parent_id": self.parent_id,
            "agent": self.agent,
            "depth": self.depth,
            "tags": dict(self.tags),
            "created_at": self.created_at,
        }


_CURRENT: ContextVar[RunContext | None] = ContextVar("llm_orchestrator_run_context", default=None)


def current_context() -> RunContext | None:
    """Run context of the enclosing turn or pipeline call, if any."""
    return _CURRENT.get()


@contextmanager
def use_context(ctx: RunContext) -> Iterator[RunContext]:
    """Make ``ctx`` the current run context for the enclosed block.

    Tasks created inside the block inherit it, which is how nested agents
    find the cancellation token of the turn that invoked them.
    """
    token = _CURRENT.set(ctx)
    try:
        yield ctx
    finally:
        _CURRENT.reset(token)


def derive_context(
    context: RunContext | None,
    cancellation_token: CancellationToken | None = None,
    *,
    agent: str | None = None,
) -> RunContext:
    """
    Context for a new top-level call.

    Without an explicit ``context`` the call nests under the current one, if
    any. A caller-supplied token is linked to the context token so either
    of them cancels the call.
    """
    if context is None:
        parent = current_context()
        context = parent.child(agent=agent) if parent is not None else RunContext(agent=agent)
    if cancellation_token is None or cancellation_token is context.cancellation_token:
        return context
    linked = cancellation_token.child()
    context.cancellation_token.link(linked)
    return replace(context, cancellation_token=linked)


__all__ = ["RunContext", "current_context", "derive_context", "use_context"]
