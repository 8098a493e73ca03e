"""
Completion engine: retries, caching, cancellation and hooks around a model.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator

from .cache import PromptCache
from .config.retry import RetryConfig
from .errors import CompletionError, ProviderUnavailableError, is_retryable
from .hooks import HookManager
from .logging import Timer
from .providers.base import CompletionModel, open_stream
from .providers.types import CompletionRequest, CompletionResponse, StreamEvent, StreamEventType
from .runtime import RunContext

logger = logging.getLogger(__name__)


class CompletionEngine:
    """
    Wraps a ``CompletionModel`` with the runtime's cross-cutting concerns.

    - Retryable ``CompletionError``s (rate limits, unavailability) are retried
      with exponential backoff and jitter, up to ``retry.attempts``.
    - Non-retryable errors propagate after the first attempt.
    - With a ``PromptCache``, identical requests share one in-flight call.
    - The run context's cancellation token interrupts in-flight calls and
      backoff sleeps.
    - ``stream`` yields the model's events and retries only before the
      first one reaches the caller.
    """

    def __init__(
        self,
        model: CompletionModel,
        *,
        retry: RetryConfig | None = None,
        cache: PromptCache[CompletionResponse] | None = None,
        hooks: HookManager | None = None,
    ) -> None:
        self.model = model
        self.retry = retry or RetryConfig()
        self.cache = cache
        self.hooks = hooks or HookManager()

    async def complete(
        self,
        request: CompletionRequest,
        *,
        context: RunContext | None = None,
    ) -> CompletionResponse:
        ctx = RunContext.ensure(context)
        if self.cache is None:
            return await self._complete_with_retry(request, ctx)

        key = self.cache.key_for(self._model_name(), request.to_dict())
        response, hit = await self.cache.get_or_compute(key, lambda: self._complete_with_retry(request, ctx))
        await self.hooks.emit("cache.hit" if hit else "cache.miss", {"key": key}, ctx)
        return response

    async def _complete_with_retry(self, request: CompletionRequest, ctx: RunContext) -> CompletionResponse:
        token = ctx.cancellation_token
        model_name = self._model_name()
        attempt = 0
        while True:
            attempt += 1
            token.raise_if_cancelled()
            await self.hooks.emit(
                "completion.request",
                {"model": model_name, "attempt": attempt, "messages": len(request.messages)},
                ctx,
            )
            timer = Timer()
            try:
                response = await token.guard(self.model.complete(request))
            except CompletionError as exc:
                if not is_retryable(exc) or attempt >= self.retry.attempts:
                    exc.context.extra["attempts"] = attempt
                    raise
                delay = self.retry.delay(attempt, getattr(exc, "retry_after", None))
                logger.info(
                    "Retrying completion after %s (attempt %d/%d, sleeping %.2fs)",
                    type(exc).__name__,
                    attempt,
                    self.retry.attempts,
                    delay,
                )
                await self.hooks.emit(
                    "completion.retry",
                    {"model": model_name, "attempt": attempt, "error": exc.code.value, "delay": delay},
                    ctx,
                )
                await token.guard(asyncio.sleep(delay))
                continue

            await self.hooks.emit(
                "completion.response",
                {
                    "model": model_name,
                    "attempt": attempt,
                    "latency_ms": int(timer.stop()),
                    "invocations": len(response.invocations),
                    "stop_reason": response.stop_reason.value,
                },
                ctx,
            )
            return response

    async def stream(
        self,
        request: CompletionRequest,
        *,
        context: RunContext | None = None,
    ) -> AsyncIterator[StreamEvent]:
        """
        Stream a completion, ending with the model's ``DONE`` event.

        Streams bypass the cache. A retryable failure is retried only while
        nothing has been yielded; once a delta has reached the caller the
        error propagates.
        """
        ctx = RunContext.ensure(context)
        token = ctx.cancellation_token
        model_name = self._model_name()
        attempt = 0
        while True:
            attempt += 1
            token.raise_if_cancelled()
            await self.hooks.emit(
                "completion.request",
                {"model": model_name, "attempt": attempt, "messages": len(request.messages), "stream": True},
                ctx,
            )
            timer = Timer()
            events = open_stream(self.model, request)
            response: CompletionResponse | None = None
            delivered = False
            try:
                while (event := await token.guard(anext(events, None))) is not None:
                    if event.type is StreamEventType.DONE:
                        response = event.data
                    delivered = True
                    yield event
            except CompletionError as exc:
                if delivered or not is_retryable(exc) or attempt >= self.retry.attempts:
                    exc.context.extra["attempts"] = attempt
                    raise
                delay = self.retry.delay(attempt, getattr(exc, "retry_after", None))
                logger.info(
                    "Retrying stream after %s (attempt %d/%d, sleeping %.2fs)",
                    type(exc).__name__,
                    attempt,
                    self.retry.attempts,
                    delay,
                )
                await self.hooks.emit(
                    "completion.retry",
                    {"model": model_name, "attempt": attempt, "error": exc.code.value, "delay": delay},
                    ctx,
                )
                await token.guard(asyncio.sleep(delay))
                continue
            finally:
                await events.aclose()

            if response is None:
                raise ProviderUnavailableError(f"Stream from {model_name} ended without a final response")
            await self.hooks.emit(
                "completion.response",
                {
                    "model": model_name,
                    "attempt": attempt,
                    "latency_ms": int(timer.stop()),
                    "invocations": len(response.invocations),
                    "stop_reason": response.stop_reason.value,
                },
                ctx,
            )
            return

    def _model_name(self) -> str:
        return getattr(self.model, "model_name", type(self.model).__name__)


__all__ = ["RetryConfig", "CompletionEngine"]
