"""
Pipeline step abstraction.

An ``Op`` is an asynchronous step from one input value to one output value.
Composite ops (``Sequence``, ``Parallel``, ``Route``) hold other ops and are
built once, then reused: an op keeps no state between invocations, so the
same pipeline object can serve any number of concurrent calls.

Entry points:
- ``call``: run and let the step's own exception propagate
- ``try_call``: run and report failures as ``PipelineError``
- ``batch_call``: run many independent inputs with bounded concurrency
"""

from __future__ import annotations

import inspect
import time
from abc import ABC, abstractmethod
from collections.abc import Callable, Iterable
from contextvars import ContextVar
from typing import TYPE_CHECKING, Any

from ..cancellation import CancellationToken
from ..concurrency import gather_bounded, run_with_deadline
from ..errors import CancelledError, PipelineError, StepFailedError, TimedOutError
from ..hooks import Hook, HookManager
from ..runtime import RunContext, current_context, derive_context, use_context

if TYPE_CHECKING:
    from .ops import Sequence

_HOOKS: ContextVar[HookManager | None] = ContextVar("llm_orchestrator_pipeline_hooks", default=None)


class Op(ABC):
    """
    Base class for pipeline steps.

    Subclasses implement ``execute``. Composites run their children through
    ``run`` so every step checks cancellation and reports a
    ``pipeline.step`` event.
    """

    @property
    def name(self) -> str:
        return type(self).__name__

    @abstractmethod
    async def execute(self, input: Any) -> Any:
        """Transform ``input`` into the step's output. May raise."""
        ...

    async def run(self, input: Any) -> Any:
        """Execute this step inside an ongoing pipeline call."""
        ctx = current_context()
        if ctx is not None:
            ctx.cancellation_token.raise_if_cancelled()

        start = time.monotonic()
        try:
            output = await self.execute(input)
        except Exception as exc:
            # The innermost failing step is the one reported by try_call
            if getattr(exc, "pipeline_step", None) is None:
                exc.pipeline_step = self.name  # type: ignore[attr-defined]
            await _emit_step(self.name, "error", start, ctx, error=exc)
            raise
        await _emit_step(self.name, "success", start, ctx)
        return output

    async def call(
        self,
        input: Any,
        *,
        cancellation_token: CancellationToken | None = None,
        timeout: float | None = None,
        hooks: HookManager | Iterable[Hook] | None = None,
        context: RunContext | None = None,
    ) -> Any:
        """
        Run the pipeline on ``input``.

        Failures propagate unchanged; use this when a failure is not expected.

        Raises:
            CancelledError: ``cancellation_token`` fired.
            TimedOutError: ``timeout`` elapsed.
        """
        ctx = derive_context(context, cancellation_token)
        manager = hooks if isinstance(hooks, HookManager) or hooks is None else HookManager(hooks)
        hooks_token = _HOOKS.set(manager if manager is not None else _HOOKS.get())
        try:
            with use_context(ctx):
                return await run_with_deadline(
                    self.run(input),
                    timeout=timeout,
                    cancellation_token=ctx.cancellation_token,
                )
        finally:
            _HOOKS.reset(hooks_token)

    async def try_call(self, input: Any, **kwargs: Any) -> Any:
        """
        Run the pipeline, reporting step failures as ``PipelineError``.

        Errors that are already pipeline errors (``NoMatchingRouteError``,
        ``ParallelJoinError``) pass through. Cancellation and timeouts are
        not step failures and propagate unchanged.

        Raises:
            PipelineError: A step failed.
        """
        try:
            return await self.call(input, **kwargs)
        except (PipelineError, CancelledError, TimedOutError):
            raise
        except Exception as exc:
            step = getattr(exc, "pipeline_step", None) or self.name
            raise StepFailedError(
                f"Step '{step}' failed: {type(exc).__name__}: {exc}",
                step=step,
                cause=exc,
            ) from exc

    async def batch_call(
        self,
        inputs: Iterable[Any],
        *,
        max_concurrency: int | None = None,
        **kwargs: Any,
    ) -> list[Any]:
        """Call the pipeline on every input, at most ``max_concurrency`` at a time. Results keep input order."""
        return await gather_bounded(
            [lambda item=item: self.call(item, **kwargs) for item in inputs],
            max_concurrency=max_concurrency,
        )

    # ------------------------------------------------------------ composition

    def then(self, next_op: Any) -> Sequence:
        """Feed this step's output into ``next_op``."""
        from .ops import Sequence

        return Sequence(self, next_op)

    def map(self, func: Callable[[Any], Any]) -> Sequence:
        """Post-process this step's output with ``func``."""
        from .ops import Map

        return self.then(Map(func))

    def try_map(self, func: Callable[[Any], Any]) -> Sequence:
        """Post-process with ``func``, which may fail."""
        from .ops import TryMap

        return self.then(TryMap(func))

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


async def call_function(func: Callable[[Any], Any], value: Any) -> Any:
    """Apply a sync or async callable."""
    if inspect.iscoroutinefunction(func):
        return await func(value)
    result = func(value)
    if inspect.isawaitable(result):
        return await result
    return result


def as_op(step: Any) -> Op:
    """
    Coerce ``step`` to an ``Op``.

    Accepts ops, agents (prompted with the input), extractors and plain
    callables (applied as ``Map``).
    """
    if isinstance(step, Op):
        return step

    from ..agent.core import Agent
    from ..agent.extractor import Extractor
    from .agent_ops import Extract, Prompt
    from .ops import Map

    if isinstance(step, Agent):
        return Prompt(step)
    if isinstance(step, Extractor):
        return Extract(step)
    if callable(step):
        return Map(step)
    raise TypeError(f"Cannot use {type(step).__name__} as a pipeline step")


async def _emit_step(
    name: str,
    status: str,
    start: float,
    ctx: RunContext | None,
    error: BaseException | None = None,
) -> None:
    hooks = _HOOKS.get()
    if not hooks:
        return
    payload: dict[str, Any] = {
        "step": name,
        "status": status,
        "duration_ms": (time.monotonic() - start) * 1000,
    }
    if error is not None:
        payload["error"] = f"{type(error).__name__}: {error}"
    await hooks.emit("pipeline.step", payload, ctx)


__all__ = ["Op", "as_op", "call_function"]
