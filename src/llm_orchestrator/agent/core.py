"""
Agent core implementation.

An ``Agent`` bundles a completion model with a preamble, context documents,
capabilities and generation parameters. It is immutable once built: every
call runs its own turn, so one agent can serve many concurrent callers and
can itself be registered as a capability of another agent.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Iterable, Sequence
from contextlib import aclosing
from typing import TYPE_CHECKING, Any

from ..cache import PromptCache
from ..cancellation import CancellationToken
from ..capabilities.base import Capability
from ..capabilities.registry import CapabilityRegistry
from ..concurrency import gather_bounded, run_with_deadline
from ..config import AgentConfig
from ..context import ContextAssembler, DynamicContext
from ..engine import CompletionEngine, RetryConfig
from ..hooks import Hook, HookManager
from ..providers.base import CompletionModel
from ..providers.types import CapabilityChoice, Document, GenerationParams, Message, StreamEvent, StreamEventType
from ..retrieval import Retriever
from ..runtime import RunContext, derive_context, use_context
from .result import PromptResponse
from .turn import TurnLoop

if TYPE_CHECKING:
    from .capability import AgentCapability


def _as_documents(items: Iterable[Document | str]) -> tuple[Document, ...]:
    docs: list[Document] = []
    for i, item in enumerate(items):
        docs.append(item if isinstance(item, Document) else Document(id=f"static_doc_{i}", text=str(item)))
    return tuple(docs)


class Agent:
    """
    Completion model plus preamble, context and capabilities.

    Example:
        ```python
        from llm_orchestrator import Agent, OpenAIProvider, capability

        @capability
        def add(a: int, b: int) -> int:
            '''Add two integers.'''
            return a + b

        calculator = Agent(
            OpenAIProvider(model="gpt-4o-mini"),
            name="calculator",
            preamble="You are a calculator. Use the tools to compute answers.",
            capabilities=[add],
        )

        # Single-shot: one completion, capabilities are not executed
        text = await calculator.prompt("Say hi")

        # Let the agent call tools for up to 4 completions
        text = await calculator.prompt_multi_turn("What is 2 + 5?", max_turns=4)
        ```

    Args:
        model: Completion model used for every request
        name: Agent name, used for logging and as the default capability name
        description: Shown to a parent agent when wrapped as a capability
        preamble: System instructions, passed verbatim
        context: Static documents (``Document`` or plain strings), always attached
        dynamic_context: ``(retriever, k)`` or ``DynamicContext`` for per-request retrieval
        capabilities: Capabilities or a ``CapabilityRegistry``; the registry is frozen
        choice: Capability selection policy (defaults to auto)
        temperature: Sampling temperature
        max_tokens: Maximum tokens to generate
        params: Extra provider-specific generation parameters
        config: Turn loop configuration
        retry: Backoff policy for retryable completion errors
        cache: Optional completion cache shared by all calls
        hooks: Observer hooks
    """

    def __init__(
        self,
        model: CompletionModel,
        *,
        name: str = "agent",
        description: str | None = None,
        preamble: str | None = None,
        context: Iterable[Document | str] = (),
        dynamic_context: DynamicContext | tuple[Retriever, int] | None = None,
        capabilities: Iterable[Capability] | CapabilityRegistry | None = None,
        choice: CapabilityChoice | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
        params: dict[str, Any] | None = None,
        config: AgentConfig | None = None,
        retry: RetryConfig | None = None,
        cache: PromptCache | None = None,
        hooks: HookManager | Iterable[Hook] | None = None,
    ) -> None:
        if isinstance(capabilities, CapabilityRegistry):
            registry = capabilities
        else:
            registry = CapabilityRegistry(list(capabilities or []))
        registry.freeze()

        choice = choice or CapabilityChoice.auto()
        choice.check(registry.names)

        if isinstance(dynamic_context, tuple):
            dynamic_context = DynamicContext(*dynamic_context)

        hook_manager = hooks if isinstance(hooks, HookManager) else HookManager(hooks)
        documents = _as_documents(context)

        self._set("model", model)
        self._set("name", name)
        self._set("description", description or f"Delegate a task to the {name} agent")
        self._set("preamble", preamble)
        self._set("documents", documents)
        self._set("dynamic_context", dynamic_context)
        self._set("registry", registry)
        self._set("choice", choice)
        self._set("params", GenerationParams(temperature=temperature, max_tokens=max_tokens, extra=dict(params or {})))
        self._set("config", config or AgentConfig())
        self._set("retry", retry or RetryConfig())
        self._set("cache", cache)
        self._set("hooks", hook_manager)

        engine = CompletionEngine(model, retry=self.retry, cache=cache, hooks=hook_manager)
        assembler = ContextAssembler(preamble, documents, dynamic_context, hooks=hook_manager)
        self._set(
            "_loop",
            TurnLoop(
                name=name,
                engine=engine,
                assembler=assembler,
                registry=registry,
                choice=choice,
                params=self.params,
                config=self.config,
                hooks=hook_manager,
            ),
        )

    def _set(self, key: str, value: Any) -> None:
        object.__setattr__(self, key, value)

    def __setattr__(self, key: str, value: Any) -> None:
        raise AttributeError(f"{type(self).__name__} is immutable; use with_options() to derive a new agent")

    def __delattr__(self, key: str) -> None:
        raise AttributeError(f"{type(self).__name__} is immutable")

    def __repr__(self) -> str:
        return f"Agent(name={self.name!r}, capabilities={self.registry.names!r})"

    # ------------------------------------------------------------------ calls

    async def run(
        self,
        prompt: str,
        *,
        history: Sequence[Message] | None = None,
        max_turns: int | None = None,
        cancellation_token: CancellationToken | None = None,
        timeout: float | None = None,
        context: RunContext | None = None,
    ) -> PromptResponse:
        """
        Run one orchestrated call and return the full result.

        Args:
            prompt: User text for this call
            history: Prior conversation, owned by the caller; not modified
            max_turns: Completion budget; defaults to ``config.max_turns``
            cancellation_token: Cancels the call and any in-flight boundary calls
            timeout: Deadline in seconds for the whole call
            context: Explicit run context (nested calls inherit the current one)

        Raises:
            TurnLimitExceededError, CompletionFailedError, CapabilityFatalError,
            CancelledError, TimedOutError
        """
        max_turns = self.config.max_turns if max_turns is None else max_turns
        if max_turns < 1:
            raise ValueError("max_turns must be at least 1")

        ctx = derive_context(context, cancellation_token, agent=self.name)
        with use_context(ctx):
            return await run_with_deadline(
                self._loop.run(prompt, history=list(history or []), max_turns=max_turns, context=ctx),
                timeout=timeout,
                cancellation_token=ctx.cancellation_token,
            )

    async def stream(
        self,
        prompt: str,
        *,
        history: Sequence[Message] | None = None,
        max_turns: int | None = None,
        cancellation_token: CancellationToken | None = None,
        context: RunContext | None = None,
    ) -> AsyncIterator[StreamEvent]:
        """
        Run one orchestrated call, yielding events as they happen.

        Yields TOKEN events (text deltas) and INVOCATION events from every
        completion, a CAPABILITY_RESULT event per executed invocation, and a
        final DONE event carrying the ``PromptResponse``. Capability
        round-trips run exactly as in ``run``.

        The loop runs in its own task so nested agents see this call's
        context. Closing the iterator early cancels the call.

        Raises:
            TurnLimitExceededError, CompletionFailedError, CapabilityFatalError,
            CancelledError
        """
        max_turns = self.config.max_turns if max_turns is None else max_turns
        if max_turns < 1:
            raise ValueError("max_turns must be at least 1")

        ctx = derive_context(context, cancellation_token, agent=self.name)
        queue: asyncio.Queue[StreamEvent | None] = asyncio.Queue()

        async def produce() -> None:
            try:
                with use_context(ctx):
                    events = self._loop.stream(prompt, history=list(history or []), max_turns=max_turns, context=ctx)
                    async with aclosing(events):
                        async for event in events:
                            queue.put_nowait(event)
            finally:
                queue.put_nowait(None)

        producer = asyncio.create_task(produce())
        try:
            while (event := await queue.get()) is not None:
                yield event
            await producer
        finally:
            producer.cancel()
            await asyncio.gather(producer, return_exceptions=True)

    async def stream_prompt(self, prompt: str, **kwargs: Any) -> AsyncIterator[str]:
        """Text deltas of ``stream``; capability round-trips still run."""
        async with aclosing(self.stream(prompt, **kwargs)) as events:
            async for event in events:
                if event.type is StreamEventType.TOKEN:
                    yield event.data

    async def prompt(self, prompt: str, **kwargs: Any) -> str:
        """Single call using the configured turn limit; returns the assistant text."""
        response = await self.run(prompt, **kwargs)
        return response.content

    async def prompt_multi_turn(self, prompt: str, max_turns: int, **kwargs: Any) -> str:
        """Let the agent invoke capabilities for up to ``max_turns`` completions."""
        response = await self.run(prompt, max_turns=max_turns, **kwargs)
        return response.content

    async def chat(self, prompt: str, history: Sequence[Message], **kwargs: Any) -> str:
        """Continue a caller-owned conversation. ``history`` is not modified."""
        response = await self.run(prompt, history=history, **kwargs)
        return response.content

    async def batch_prompt(
        self,
        prompts: Iterable[str],
        *,
        max_concurrency: int | None = None,
        **kwargs: Any,
    ) -> list[str]:
        """Prompt concurrently, at most ``max_concurrency`` at a time; results in input order."""
        limit = max_concurrency or self.config.batch_concurrency
        return await gather_bounded(
            [lambda p=p: self.prompt(p, **kwargs) for p in prompts],
            max_concurrency=limit,
        )

    # --------------------------------------------------------------- building

    def as_capability(self, name: str | None = None, description: str | None = None) -> AgentCapability:
        """Wrap this agent so another agent can invoke it."""
        from .capability import AgentCapability

        return AgentCapability(self, name=name, description=description)

    def with_options(self, **changes: Any) -> Agent:
        """Return a new agent with some constructor arguments replaced."""
        options: dict[str, Any] = {
            "name": self.name,
            "description": self.description,
            "preamble": self.preamble,
            "context": self.documents,
            "dynamic_context": self.dynamic_context,
            "capabilities": self.registry.copy(),
            "choice": self.choice,
            "temperature": self.params.temperature,
            "max_tokens": self.params.max_tokens,
            "params": dict(self.params.extra),
            "config": self.config,
            "retry": self.retry,
            "cache": self.cache,
            "hooks": self.hooks,
        }
        unknown = set(changes) - set(options) - {"model"}
        if unknown:
            raise TypeError(f"Unknown agent options: {sorted(unknown)}")
        options.update(changes)
        model = options.pop("model", self.model)
        return Agent(model, **options)


__all__ = ["Agent"]
