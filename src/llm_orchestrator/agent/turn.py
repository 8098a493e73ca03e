"""
Turn loop engine.

One call to ``TurnLoop.run`` drives a bounded exchange between the model and
the agent's capabilities:

    Start -> AwaitingCompletion -> AssistantFinal -> Terminal
                                -> AssistantRequestedCapabilities
                                   -> CapabilityExecution -> AwaitingCompletion ...

Each iteration re-assembles context, sends the full history, and appends the
assistant message followed by exactly one result message per invocation, in
request order. The loop ends when a response carries no invocations, when
the turn limit is reached, or on a fatal error. ``TurnLoop.stream`` runs the
same loop and yields text deltas and capability results as they arrive.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import aclosing
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from ..errors import (
    CapabilityFatalError,
    CompletionError,
    CompletionFailedError,
    ErrorContext,
    FatalCapabilityError,
    TurnLimitExceededError,
)
from ..providers.types import CompletionRequest, CompletionResponse, Message, StreamEvent, StreamEventType, Usage
from .execution import execute_invocations
from .result import CapabilityOutcome, PromptResponse, TurnRecord

if TYPE_CHECKING:
    from ..capabilities.base import CapabilityDescriptor
    from ..capabilities.registry import CapabilityRegistry
    from ..config import AgentConfig
    from ..context import ContextAssembler, Diagnostic
    from ..engine import CompletionEngine
    from ..hooks import HookManager
    from ..providers.types import CapabilityChoice, GenerationParams
    from ..runtime import RunContext

logger = logging.getLogger(__name__)


@dataclass
class Turn:
    """Mutable state of one orchestrated call. Never shared between calls."""

    prompt: str
    history: list[Message]
    completions: int = 0
    terminated: bool = False
    last_content: str = ""
    usage: Usage = field(default_factory=Usage)
    trace: list[TurnRecord] = field(default_factory=list)
    diagnostics: list[Diagnostic] = field(default_factory=list)

    def finish(self, content: str) -> PromptResponse:
        self.terminated = True
        return PromptResponse(
            content=content,
            history=list(self.history),
            completions=self.completions,
            usage=self.usage,
            trace=list(self.trace),
            diagnostics=list(self.diagnostics),
        )


class TurnLoop:
    """
    Executes turns for one agent definition.

    Holds only read-only collaborators, so one instance serves any number of
    concurrent calls; all per-call state lives in a ``Turn``.
    """

    def __init__(
        self,
        *,
        name: str,
        engine: CompletionEngine,
        assembler: ContextAssembler,
        registry: CapabilityRegistry,
        choice: CapabilityChoice,
        params: GenerationParams,
        config: AgentConfig,
        hooks: HookManager,
    ) -> None:
        self.name = name
        self.engine = engine
        self.assembler = assembler
        self.registry = registry
        self.choice = choice
        self.params = params
        self.config = config
        self.hooks = hooks

    async def run(
        self,
        prompt: str,
        *,
        history: list[Message] | None = None,
        max_turns: int,
        context: RunContext,
    ) -> PromptResponse:
        """
        Run the loop for ``prompt`` on top of ``history``.

        Raises:
            TurnLimitExceededError: The model still requested capabilities
                after ``max_turns`` completions.
            CompletionFailedError: A completion failed and retries ran out.
            CapabilityFatalError: A capability raised a fatal error.
            CancelledError: The run's cancellation token fired.
        """
        turn = Turn(prompt=prompt, history=[*(history or []), Message.user(prompt)])
        await self.hooks.emit("turn.start", {"agent": self.name, "max_turns": max_turns}, context)
        status = "error"
        try:
            response = await self._loop(turn, max_turns, context)
            status = "success"
            return response
        except TurnLimitExceededError:
            status = "turn_limit"
            raise
        finally:
            await self._emit_end(turn, status, context)

    async def stream(
        self,
        prompt: str,
        *,
        history: list[Message] | None = None,
        max_turns: int,
        context: RunContext,
    ) -> AsyncIterator[StreamEvent]:
        """
        Run the loop like ``run``, yielding events as they happen.

        Yields TOKEN and INVOCATION events from every completion, one
        CAPABILITY_RESULT per executed invocation, and finally one DONE event
        carrying the ``PromptResponse``. Raises what ``run`` raises.
        """
        turn = Turn(prompt=prompt, history=[*(history or []), Message.user(prompt)])
        await self.hooks.emit("turn.start", {"agent": self.name, "max_turns": max_turns}, context)
        status = "error"
        try:
            async with aclosing(self._stream_loop(turn, max_turns, context)) as events:
                async for event in events:
                    yield event
            status = "success"
        except TurnLimitExceededError:
            status = "turn_limit"
            raise
        except GeneratorExit:
            status = "closed"
            raise
        finally:
            await self._emit_end(turn, status, context)

    async def _loop(self, turn: Turn, max_turns: int, context: RunContext) -> PromptResponse:
        token = context.cancellation_token
        while True:
            token.raise_if_cancelled()

            request, descriptors = await self._build_request(turn, context)
            try:
                response = await self.engine.complete(request, context=context)
            except CompletionError as exc:
                raise self._completion_failed(exc, context, turn) from exc

            record = self._record(turn, request, response)
            if self._is_final(response, max_turns):
                return self._conclude(turn, response)

            await self._run_capabilities(turn, record, descriptors, context)
            self._check_turn_limit(turn, max_turns, context)

    async def _stream_loop(self, turn: Turn, max_turns: int, context: RunContext) -> AsyncIterator[StreamEvent]:
        token = context.cancellation_token
        while True:
            token.raise_if_cancelled()

            request, descriptors = await self._build_request(turn, context)
            response: CompletionResponse | None = None
            try:
                async with aclosing(self.engine.stream(request, context=context)) as events:
                    async for event in events:
                        if event.type is StreamEventType.DONE:
                            response = event.data
                        else:
                            yield event
            except CompletionError as exc:
                raise self._completion_failed(exc, context, turn) from exc

            record = self._record(turn, request, response)
            if self._is_final(response, max_turns):
                yield StreamEvent(StreamEventType.DONE, self._conclude(turn, response))
                return

            for outcome in await self._run_capabilities(turn, record, descriptors, context):
                yield StreamEvent(StreamEventType.CAPABILITY_RESULT, outcome)
            self._check_turn_limit(turn, max_turns, context)

    def _record(self, turn: Turn, request: CompletionRequest, response: CompletionResponse) -> TurnRecord:
        turn.completions += 1
        if response.usage is not None:
            turn.usage = turn.usage + response.usage
        if response.content:
            turn.last_content = response.content
        record = TurnRecord(index=turn.completions, request=request, response=response)
        if self.config.trace:
            turn.trace.append(record)
        return record

    @staticmethod
    def _is_final(response: CompletionResponse, max_turns: int) -> bool:
        # Single-shot calls advertise descriptors but never resolve or invoke capabilities
        return not response.has_invocations or max_turns == 1

    @staticmethod
    def _conclude(turn: Turn, response: CompletionResponse) -> PromptResponse:
        turn.history.append(Message.assistant(content=response.content))
        return turn.finish(response.content)

    async def _run_capabilities(
        self,
        turn: Turn,
        record: TurnRecord,
        descriptors: dict[str, CapabilityDescriptor],
        context: RunContext,
    ) -> list[CapabilityOutcome]:
        response = record.response
        turn.history.append(response.to_message())
        try:
            outcomes = await execute_invocations(
                response.invocations,
                self.registry,
                descriptors,
                self.config,
                context=context,
                hooks=self.hooks,
                prompt=turn.prompt,
                allowed=self.choice.advertises,
            )
        except FatalCapabilityError as exc:
            raise CapabilityFatalError(
                f"Capability '{exc.capability}' failed fatally: {exc.message}",
                cause=exc,
                context=self._error_context(context, turn, capability=exc.capability),
            ) from exc
        record.outcomes = outcomes
        turn.history.extend(outcome.to_message() for outcome in outcomes)
        return outcomes

    def _check_turn_limit(self, turn: Turn, max_turns: int, context: RunContext) -> None:
        if turn.completions >= max_turns:
            raise TurnLimitExceededError(
                max_turns=max_turns,
                content=turn.last_content,
                history=turn.history,
                context=self._error_context(context, turn),
            )

    def _completion_failed(self, exc: CompletionError, context: RunContext, turn: Turn) -> CompletionFailedError:
        logger.warning("Completion failed for agent %s: %s", self.name, exc)
        return CompletionFailedError(
            f"Completion failed: {exc.message}",
            cause=exc,
            context=self._error_context(context, turn),
        )

    async def _emit_end(self, turn: Turn, status: str, context: RunContext) -> None:
        await self.hooks.emit(
            "turn.end",
            {
                "agent": self.name,
                "status": status,
                "completions": turn.completions,
                "usage": turn.usage.to_dict(),
            },
            context,
        )

    async def _build_request(self, turn: Turn, context: RunContext) -> tuple[CompletionRequest, dict]:
        assembled = await self.assembler.assemble(turn.prompt, context)
        turn.diagnostics.extend(assembled.diagnostics)
        descriptors = await self.registry.descriptors(turn.prompt) if self.choice.advertises else []
        request = CompletionRequest(
            messages=list(turn.history),
            preamble=assembled.preamble,
            documents=assembled.documents,
            capabilities=descriptors,
            choice=self.choice,
            params=self.params,
        )
        return request, {d.name: d for d in descriptors}

    def _error_context(self, context: RunContext, turn: Turn, capability: str | None = None) -> ErrorContext:
        return ErrorContext(
            request_id=context.request_id,
            agent=self.name,
            capability=capability,
            turn=turn.completions,
        )


__all__ = ["Turn", "TurnLoop"]
