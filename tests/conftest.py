"""
Shared test fixtures and fakes for llm-orchestrator tests.

This module provides:
- ScriptedModel, a completion model that replays canned responses
- StreamingModel, the same with native streaming in small deltas
- EchoModel, a model that answers with a function of the prompt
- Response factories for plain replies and capability calls
- Sample capabilities and an in-memory retriever
"""

from __future__ import annotations

import asyncio
import inspect
import itertools
from collections.abc import AsyncIterator, Callable, Sequence
from typing import Any

import orjson
import pytest

from llm_orchestrator.capabilities import capability
from llm_orchestrator.hooks import InMemoryHook
from llm_orchestrator.providers.base import BaseCompletionModel
from llm_orchestrator.providers.types import (
    CompletionRequest,
    CompletionResponse,
    Invocation,
    StopReason,
    StreamEvent,
    StreamEventType,
    Usage,
)
from llm_orchestrator.retrieval import RetrievedDocument

_ids = itertools.count(1)


# =============================================================================
# Response Factories
# =============================================================================


def make_usage(input_tokens: int = 10, output_tokens: int = 5) -> Usage:
    return Usage(input_tokens=input_tokens, output_tokens=output_tokens, total_tokens=input_tokens + output_tokens)


def reply(content: str = "Test response", usage: Usage | None = None) -> CompletionResponse:
    """A final assistant message with no invocations."""
    return CompletionResponse(content=content, usage=usage or make_usage(), model="scripted-model")


def invocation(name: str, arguments: dict[str, Any] | str | None = None, id: str | None = None) -> Invocation:
    if isinstance(arguments, str):
        raw = arguments
    else:
        raw = orjson.dumps(arguments or {}).decode()
    return Invocation(id=id or f"call_{next(_ids)}", name=name, arguments=raw)


def calls(*invocations: Invocation, content: str = "") -> CompletionResponse:
    """An assistant message requesting capability invocations, in order."""
    return CompletionResponse(
        content=content,
        invocations=list(invocations),
        stop_reason=StopReason.CAPABILITY_CALLS,
        usage=make_usage(),
        model="scripted-model",
    )


def call(name: str, arguments: dict[str, Any] | str | None = None, *, id: str | None = None, content: str = "") -> CompletionResponse:
    return calls(invocation(name, arguments, id=id), content=content)


# =============================================================================
# Fake Models
# =============================================================================


class ScriptedModel(BaseCompletionModel):
    """
    Replays a fixed list of responses, one per ``complete`` call.

    Items may be ``CompletionResponse`` objects, exceptions (raised), or
    callables taking the request (sync or async).
    """

    def __init__(self, responses: Sequence[Any], model: str = "scripted-model", delay: float = 0.0) -> None:
        super().__init__(model)
        self._responses = list(responses)
        self.delay = delay
        self.requests: list[CompletionRequest] = []

    @property
    def call_count(self) -> int:
        return len(self.requests)

    async def complete(self, request: CompletionRequest) -> CompletionResponse:
        self.requests.append(request)
        if self.delay:
            await asyncio.sleep(self.delay)
        if not self._responses:
            raise AssertionError("ScriptedModel ran out of responses")
        item = self._responses.pop(0)
        if isinstance(item, BaseException):
            raise item
        if callable(item):
            item = item(request)
            if inspect.isawaitable(item):
                item = await item
        return item


class StreamingModel(ScriptedModel):
    """
    ScriptedModel with native streaming: each response's content arrives in
    ``chunk``-sized TOKEN deltas, followed by its invocations and DONE.
    """

    def __init__(self, responses: Sequence[Any], chunk: int = 4, **kwargs: Any) -> None:
        super().__init__(responses, **kwargs)
        self.chunk = chunk
        self.streams = 0

    async def stream(self, request: CompletionRequest) -> AsyncIterator[StreamEvent]:
        self.streams += 1
        response = await self.complete(request)
        for start in range(0, len(response.content), self.chunk):
            yield StreamEvent(StreamEventType.TOKEN, response.content[start : start + self.chunk])
        for inv in response.invocations:
            yield StreamEvent(StreamEventType.INVOCATION, inv)
        yield StreamEvent(StreamEventType.DONE, response)


class EchoModel(BaseCompletionModel):
    """Answers every request with ``transform(prompt)``."""

    def __init__(self, transform: Callable[[str], str] = lambda p: f"echo: {p}", delay: float = 0.0) -> None:
        super().__init__("echo-model")
        self.transform = transform
        self.delay = delay
        self.requests: list[CompletionRequest] = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def complete(self, request: CompletionRequest) -> CompletionResponse:
        self.requests.append(request)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            return reply(self.transform(request.prompt))
        finally:
            self.in_flight -= 1


class SlowModel(BaseCompletionModel):
    """Never answers in time; records whether it was cancelled."""

    def __init__(self, delay: float = 10.0) -> None:
        super().__init__("slow-model")
        self.delay = delay
        self.cancelled = False

    async def complete(self, request: CompletionRequest) -> CompletionResponse:
        try:
            await asyncio.sleep(self.delay)
        except asyncio.CancelledError:
            self.cancelled = True
            raise
        return reply("too late")


# =============================================================================
# Retrieval Fakes
# =============================================================================


class StaticRetriever:
    """Returns fixed hits for every query and records the queries."""

    def __init__(self, hits: list[RetrievedDocument]) -> None:
        self.hits = hits
        self.queries: list[tuple[str, int]] = []

    async def top_k(self, query: str, k: int) -> list[RetrievedDocument]:
        self.queries.append((query, k))
        return list(self.hits)


class FailingRetriever:
    async def top_k(self, query: str, k: int) -> list[RetrievedDocument]:
        raise ConnectionError("vector store unreachable")


class KeywordEmbedder:
    """Deterministic bag-of-keywords embeddings."""

    def __init__(self, vocabulary: Sequence[str]) -> None:
        self.vocabulary = [w.lower() for w in vocabulary]

    async def embed(self, texts: Sequence[str]) -> list[list[float]]:
        out = []
        for text in texts:
            words = text.lower().split()
            out.append([float(words.count(w)) for w in self.vocabulary])
        return out


# =============================================================================
# Sample Capabilities
# =============================================================================


@capability
def add(a: int, b: int) -> int:
    """Add two integers.

    Args:
        a: First operand
        b: Second operand
    """
    return a + b


@capability
async def echo(message: str) -> str:
    """Echo a message back."""
    return f"Echo: {message}"


@capability
async def slow(delay: float = 0.2) -> str:
    """Sleep, then answer."""
    await asyncio.sleep(delay)
    return f"Completed after {delay}s"


@capability
async def explode(reason: str = "boom") -> str:
    """Always fails."""
    raise ValueError(reason)


# =============================================================================
# Pytest Fixtures
# =============================================================================


@pytest.fixture
def hook():
    """Fixture providing an event recorder."""
    return InMemoryHook()


@pytest.fixture
def scripted():
    """Fixture providing a factory for scripted models."""

    def _factory(*responses, delay: float = 0.0):
        return ScriptedModel(list(responses), delay=delay)

    return _factory
