"""
Capability execution for the turn loop.

Turns the invocations of one completion response into one
``CapabilityOutcome`` each, in request order. Recoverable problems (unknown
name, bad arguments, a capability raising, a timeout) become failure text
for the model. Only ``FatalCapabilityError`` and cancellation escape.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import TYPE_CHECKING

from ..concurrency import gather_bounded
from ..errors import (
    CancelledError,
    CapabilityError,
    CapabilityExecutionError,
    CapabilityTimeoutError,
    InvalidArgumentsError,
    OrchestratorError,
    UnknownCapabilityError,
)
from ..serialization import to_text
from ..validation import validate_against_schema
from .result import CapabilityOutcome

if TYPE_CHECKING:
    from ..capabilities.base import CapabilityDescriptor
    from ..capabilities.registry import CapabilityRegistry
    from ..config import AgentConfig
    from ..hooks import HookManager
    from ..providers.types import Invocation
    from ..runtime import RunContext

logger = logging.getLogger(__name__)


def failure_text(error: BaseException) -> str:
    """Text handed to the model in place of a failed capability's result."""
    message = error.message if isinstance(error, OrchestratorError) else str(error)
    return f"Error: {message}"


async def execute_invocations(
    invocations: list[Invocation],
    registry: CapabilityRegistry,
    descriptors: dict[str, CapabilityDescriptor],
    config: AgentConfig,
    *,
    context: RunContext,
    hooks: HookManager,
    prompt: str = "",
    allowed: bool = True,
) -> list[CapabilityOutcome]:
    """
    Execute invocations, optionally in parallel, returning outcomes in request order.

    Args:
        invocations: Invocations from one completion response
        registry: Registry to resolve names against
        descriptors: Descriptors advertised for this request, by name; used
            for argument validation
        config: Agent configuration with execution settings
        context: Run context; its token is checked before each invocation
        hooks: Receives ``capability.invoked`` and ``capability.error``
        prompt: Prompt used to build a descriptor for capabilities that were
            not advertised
        allowed: False when the selection policy forbids capabilities; every
            invocation is then refused without resolving or invoking it

    Raises:
        FatalCapabilityError: A capability reported a fatal failure.
        CancelledError: The run was cancelled.
    """
    if not invocations:
        return []
    if not allowed:
        return [await refuse_invocation(inv, context=context, hooks=hooks) for inv in invocations]

    limit = config.max_invocations_per_turn
    accepted = invocations if limit is None else invocations[:limit]
    rejected = [] if limit is None else invocations[limit:]

    async def run(invocation: Invocation) -> CapabilityOutcome:
        return await execute_single_invocation(
            invocation,
            registry,
            descriptors,
            config.capability_timeout,
            context=context,
            hooks=hooks,
            prompt=prompt,
        )

    outcomes: list[CapabilityOutcome]
    if config.parallel_capabilities and len(accepted) > 1:
        context.cancellation_token.raise_if_cancelled()
        outcomes = await gather_bounded([lambda inv=inv: run(inv) for inv in accepted])
    else:
        outcomes = []
        for invocation in accepted:
            context.cancellation_token.raise_if_cancelled()
            outcomes.append(await run(invocation))

    for invocation in rejected:
        error = CapabilityExecutionError(
            f"Invocation limit of {limit} per turn exceeded; {invocation.name} was not run",
            capability=invocation.name,
        )
        outcomes.append(CapabilityOutcome(invocation=invocation, content=failure_text(error), error=error))

    return [apply_output_limit(o, config.max_capability_output_chars) for o in outcomes]


async def execute_single_invocation(
    invocation: Invocation,
    registry: CapabilityRegistry,
    descriptors: dict[str, CapabilityDescriptor],
    timeout: float | None,
    *,
    context: RunContext,
    hooks: HookManager,
    prompt: str = "",
) -> CapabilityOutcome:
    """
    Resolve, validate and invoke one capability.

    Returns:
        CapabilityOutcome with the serialised result or the failure text
    """
    start = time.monotonic()
    token = context.cancellation_token
    try:
        capability = registry.resolve(invocation.name)
    except UnknownCapabilityError as exc:
        logger.info("Model requested unknown capability %s", invocation.name)
        await hooks.emit(
            "capability.error",
            {"capability": invocation.name, "error": exc.code.value, "fatal": False},
            context,
        )
        return CapabilityOutcome(invocation=invocation, content=failure_text(exc), error=exc, duration_ms=0.0)

    try:
        arguments = invocation.parse_arguments()
        descriptor = descriptors.get(invocation.name) or await capability.descriptor(prompt)
        result = validate_against_schema(arguments, descriptor.parameters)
        if not result:
            raise InvalidArgumentsError(f"Invalid arguments: {result.message()}", capability=invocation.name)

        await hooks.emit(
            "capability.invoked",
            {"capability": invocation.name, "invocation_id": invocation.id},
            context,
        )
        try:
            if timeout is None:
                value = await token.guard(capability.invoke(arguments))
            else:
                value = await asyncio.wait_for(token.guard(capability.invoke(arguments)), timeout=timeout)
        except asyncio.TimeoutError as exc:
            raise CapabilityTimeoutError(
                f"Capability '{invocation.name}' timed out after {timeout}s",
                timeout=timeout,
                capability=invocation.name,
                cause=exc,
            ) from exc
        except OrchestratorError as exc:
            if isinstance(exc, (CapabilityError, CancelledError)):
                raise
            raise CapabilityExecutionError(str(exc.message), capability=invocation.name, cause=exc) from exc
        except Exception as exc:
            raise CapabilityExecutionError(
                f"{type(exc).__name__}: {exc}", capability=invocation.name, cause=exc
            ) from exc
        content = to_text(value)
    except CapabilityError as exc:
        if exc.capability is None:
            exc.capability = invocation.name
        if exc.fatal:
            await hooks.emit(
                "capability.error",
                {"capability": invocation.name, "error": exc.code.value, "fatal": True},
                context,
            )
            raise
        logger.info("Capability %s failed: %s", invocation.name, exc.message)
        await hooks.emit(
            "capability.error",
            {"capability": invocation.name, "error": exc.code.value, "fatal": False},
            context,
        )
        return CapabilityOutcome(
            invocation=invocation,
            content=failure_text(exc),
            error=exc,
            duration_ms=(time.monotonic() - start) * 1000,
        )

    return CapabilityOutcome(
        invocation=invocation,
        content=content,
        duration_ms=(time.monotonic() - start) * 1000,
    )


async def refuse_invocation(invocation: Invocation, *, context: RunContext, hooks: HookManager) -> CapabilityOutcome:
    """Failure outcome for an invocation made while capabilities are disabled."""
    error = CapabilityExecutionError(
        f"Capabilities are disabled for this call; {invocation.name} was not run",
        capability=invocation.name,
    )
    logger.info("Refused invocation of %s: capabilities are disabled", invocation.name)
    await hooks.emit(
        "capability.error",
        {"capability": invocation.name, "error": error.code.value, "fatal": False},
        context,
    )
    return CapabilityOutcome(invocation=invocation, content=failure_text(error), error=error, duration_ms=0.0)


def apply_output_limit(outcome: CapabilityOutcome, limit: int | None) -> CapabilityOutcome:
    """Truncate an outcome's text to ``limit`` characters."""
    if not limit or len(outcome.content) <= limit:
        return outcome
    return CapabilityOutcome(
        invocation=outcome.invocation,
        content=outcome.content[:limit],
        error=outcome.error,
        duration_ms=outcome.duration_ms,
    )


__all__ = [
    "execute_invocations",
    "execute_single_invocation",
    "refuse_invocation",
    "apply_output_limit",
    "failure_text",
]
