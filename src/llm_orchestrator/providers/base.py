"""
Completion model protocol.

The turn loop only ever talks to a ``CompletionModel``. Anything that can
turn a ``CompletionRequest`` into a ``CompletionResponse`` (a hosted API, a
local model, a scripted fake in tests) plugs in here.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from typing import Any, Protocol, runtime_checkable

from .types import CompletionRequest, CompletionResponse, StreamEvent, StreamEventType


@runtime_checkable
class CompletionModel(Protocol):
    """
    Protocol for completion services.

    Implementations raise ``CompletionError`` subclasses on failure:
    ``RateLimitedError`` and ``ProviderUnavailableError`` are retried by the
    engine, ``InvalidRequestError`` and ``UnauthorizedError`` are not.
    """

    @property
    def model_name(self) -> str:
        """Identifier of the underlying model, used in cache keys and logs."""
        ...

    async def complete(self, request: CompletionRequest) -> CompletionResponse:
        """
        Produce the next assistant message for ``request``.

        Args:
            request: Preamble, context documents, history, descriptors,
                selection policy and generation parameters

        Returns:
            CompletionResponse with content and ordered invocations
        """
        ...

    # Streaming is optional; see ``open_stream``.


class BaseCompletionModel(CompletionModel, ABC):
    """
    Abstract base class for completion model implementations.
    """

    def __init__(self, model: str, **kwargs: Any) -> None:
        if not model:
            raise ValueError("model name is required")
        self._model_name = model

    @property
    def model_name(self) -> str:
        return self._model_name

    @abstractmethod
    async def complete(self, request: CompletionRequest) -> CompletionResponse:
        ...

    async def stream(self, request: CompletionRequest) -> AsyncIterator[StreamEvent]:
        """
        Stream a completion as events, ending with one ``DONE`` event that
        carries the full ``CompletionResponse``.

        The default completes the request and replays the response; adapters
        with native streaming override it.
        """
        async for event in replay_response(await self.complete(request)):
            yield event

    async def close(self) -> None:
        """Clean up provider resources."""

    async def __aenter__(self) -> BaseCompletionModel:
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()


async def replay_response(response: CompletionResponse) -> AsyncIterator[StreamEvent]:
    """Events for an already complete response."""
    if response.content:
        yield StreamEvent(StreamEventType.TOKEN, response.content)
    for invocation in response.invocations:
        yield StreamEvent(StreamEventType.INVOCATION, invocation)
    yield StreamEvent(StreamEventType.DONE, response)


async def _complete_and_replay(model: CompletionModel, request: CompletionRequest) -> AsyncIterator[StreamEvent]:
    async for event in replay_response(await model.complete(request)):
        yield event


def open_stream(model: CompletionModel, request: CompletionRequest) -> AsyncIterator[StreamEvent]:
    """Stream from ``model``, replaying ``complete`` when it has no ``stream`` method."""
    stream = getattr(model, "stream", None)
    if stream is None:
        return _complete_and_replay(model, request)
    return stream(request)


__all__ = ["CompletionModel", "BaseCompletionModel", "replay_response", "open_stream"]
