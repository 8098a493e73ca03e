"""
OpenAI completion and embedding adapters.

Works with any OpenAI-compatible chat completions endpoint via ``base_url``.
SDK exceptions are mapped onto the runtime's ``CompletionError`` taxonomy so
the engine can tell retryable failures from fatal ones.
"""

from __future__ import annotations

import inspect
import logging
from collections.abc import AsyncIterator, Sequence
from dataclasses import replace
from typing import Any

import openai
from openai import AsyncOpenAI

from ..config.provider import OpenAIConfig
from ..errors import (
    CompletionError,
    InvalidRequestError,
    ProviderUnavailableError,
    RateLimitedError,
    UnauthorizedError,
    error_from_status,
)
from ..logging import redact_api_key
from .base import BaseCompletionModel
from .types import (
    CapabilityChoice,
    CompletionRequest,
    CompletionResponse,
    Invocation,
    Message,
    Role,
    StopReason,
    StreamEvent,
    StreamEventType,
    Usage,
)

logger = logging.getLogger(__name__)

_STOP_REASONS = {
    "stop": StopReason.STOP,
    "tool_calls": StopReason.CAPABILITY_CALLS,
    "function_call": StopReason.CAPABILITY_CALLS,
    "length": StopReason.LENGTH,
    "content_filter": StopReason.CONTENT_FILTER,
}


def _build_client(config: OpenAIConfig) -> AsyncOpenAI:
    client_kwargs: dict[str, Any] = {
        "timeout": config.timeout,
        "max_retries": config.max_retries,
    }
    if config.api_key:
        client_kwargs["api_key"] = config.api_key
    if config.base_url:
        client_kwargs["base_url"] = config.base_url
    if config.organization:
        client_kwargs["organization"] = config.organization
    return AsyncOpenAI(**client_kwargs)


def _retry_after(exc: openai.APIStatusError) -> float | None:
    headers = getattr(getattr(exc, "response", None), "headers", None) or {}
    value = headers.get("retry-after")
    if value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def map_openai_error(exc: Exception) -> CompletionError:
    """Translate an OpenAI SDK exception into a ``CompletionError``."""
    if isinstance(exc, openai.RateLimitError):
        return RateLimitedError(f"Rate limit exceeded: {exc}", retry_after=_retry_after(exc), cause=exc)
    if isinstance(exc, (openai.AuthenticationError, openai.PermissionDeniedError)):
        return UnauthorizedError(str(exc), http_status=exc.status_code, cause=exc)
    if isinstance(exc, (openai.BadRequestError, openai.NotFoundError, openai.UnprocessableEntityError)):
        return InvalidRequestError(str(exc), http_status=exc.status_code, cause=exc)
    if isinstance(exc, openai.APIConnectionError):
        # Also covers APITimeoutError
        return ProviderUnavailableError(f"Connection error: {exc.__cause__ or exc}", cause=exc)
    if isinstance(exc, openai.APIStatusError):
        err = error_from_status(exc.status_code, str(exc))
        err.cause = exc
        return err
    return CompletionError(f"{type(exc).__name__}: {exc}", cause=exc)


class OpenAIProvider(BaseCompletionModel):
    """
    Chat completions adapter.

    Example:
        ```python
        provider = OpenAIProvider(model="gpt-4o-mini")
        agent = Agent(provider, preamble="Be concise.")
        print(await agent.prompt("Hello"))
        ```

    Args:
        model: Model name; defaults to ``config.model``
        config: Connection settings (API key from ``OPENAI_API_KEY`` by default)
        api_key: Overrides ``config.api_key``
        base_url: Overrides ``config.base_url``
        client: Pre-built ``AsyncOpenAI`` client, mainly for tests
    """

    def __init__(
        self,
        model: str | None = None,
        *,
        config: OpenAIConfig | None = None,
        api_key: str | None = None,
        base_url: str | None = None,
        client: AsyncOpenAI | None = None,
    ) -> None:
        config = config or OpenAIConfig()
        if api_key or base_url:
            config = replace(config, api_key=api_key or config.api_key, base_url=base_url or config.base_url)
        super().__init__(model or config.model)
        self.config = config
        self.client = client or _build_client(config)
        logger.debug(
            "OpenAI provider ready: model=%s base_url=%s key=%s",
            self.model_name,
            config.base_url or "default",
            redact_api_key(config.api_key),
        )

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        close_fn = getattr(self.client, "close", None)
        if close_fn:
            res = close_fn()
            if inspect.isawaitable(res):
                await res

    def build_params(self, request: CompletionRequest) -> dict[str, Any]:
        """Translate a request into chat.completions.create keyword arguments."""
        messages: list[dict[str, Any]] = []
        system = request.system_prompt()
        if system:
            messages.append({"role": "system", "content": system})
        messages.extend(_message_to_api(m) for m in request.messages)

        params: dict[str, Any] = {"model": self.model_name, "messages": messages}

        if request.capabilities and request.choice.advertises:
            params["tools"] = [d.to_openai_format() for d in request.capabilities]
            params["tool_choice"] = _tool_choice(request.choice)

        if request.params.temperature is not None:
            params["temperature"] = request.params.temperature
        if request.params.max_tokens is not None:
            params["max_tokens"] = request.params.max_tokens
        params.update(request.params.extra)
        return params

    async def complete(self, request: CompletionRequest) -> CompletionResponse:
        """
        Request one chat completion.

        Raises:
            RateLimitedError, ProviderUnavailableError: Retryable failures
            InvalidRequestError, UnauthorizedError: Non-retryable failures
        """
        params = self.build_params(request)
        try:
            response = await self.client.chat.completions.create(**params)
        except openai.OpenAIError as exc:
            raise map_openai_error(exc) from exc

        if not response.choices:
            raise ProviderUnavailableError("Completion response contained no choices")
        choice = response.choices[0]
        msg = choice.message

        invocations = [
            Invocation(id=tc.id, name=tc.function.name, arguments=tc.function.arguments or "")
            for tc in (getattr(msg, "tool_calls", None) or [])
        ]

        return CompletionResponse(
            content=msg.content or "",
            invocations=invocations,
            stop_reason=_STOP_REASONS.get(choice.finish_reason or "", StopReason.OTHER),
            usage=_parse_usage(response.usage),
            model=getattr(response, "model", None) or self.model_name,
            raw_response=response,
        )

    async def stream(self, request: CompletionRequest) -> AsyncIterator[StreamEvent]:
        """
        Stream one chat completion.

        Yields a TOKEN event per content delta and an INVOCATION event per
        tool call once the stream finishes, then DONE with the assembled
        ``CompletionResponse``. Errors are mapped as in ``complete``, whether
        they occur before or during the stream.
        """
        params = self.build_params(request)
        params["stream"] = True
        params["stream_options"] = {"include_usage": True}

        content_buffer = ""
        calls_buffer: dict[int, dict[str, str]] = {}  # index -> {id, name, arguments}
        finish_reason = ""
        usage = None
        model = self.model_name

        try:
            stream = await self.client.chat.completions.create(**params)
            async for chunk in stream:
                model = getattr(chunk, "model", None) or model
                if getattr(chunk, "usage", None) is not None:
                    usage = _parse_usage(chunk.usage)
                if not chunk.choices:
                    continue

                choice = chunk.choices[0]
                delta = choice.delta
                if delta.content:
                    content_buffer += delta.content
                    yield StreamEvent(StreamEventType.TOKEN, delta.content)

                for tc_delta in getattr(delta, "tool_calls", None) or []:
                    entry = calls_buffer.setdefault(tc_delta.index, {"id": "", "name": "", "arguments": ""})
                    if tc_delta.id:
                        entry["id"] = tc_delta.id
                    if tc_delta.function:
                        if tc_delta.function.name:
                            entry["name"] = tc_delta.function.name
                        if tc_delta.function.arguments:
                            entry["arguments"] += tc_delta.function.arguments

                if choice.finish_reason:
                    finish_reason = choice.finish_reason
        except openai.OpenAIError as exc:
            raise map_openai_error(exc) from exc

        invocations = [
            Invocation(id=entry["id"], name=entry["name"], arguments=entry["arguments"])
            for _, entry in sorted(calls_buffer.items())
        ]
        for invocation in invocations:
            yield StreamEvent(StreamEventType.INVOCATION, invocation)

        yield StreamEvent(
            StreamEventType.DONE,
            CompletionResponse(
                content=content_buffer,
                invocations=invocations,
                stop_reason=_STOP_REASONS.get(finish_reason, StopReason.OTHER),
                usage=usage,
                model=model,
            ),
        )


class OpenAIEmbedder:
    """
    Embeddings adapter for ``InMemoryVectorIndex``.

    Example:
        ```python
        index = InMemoryVectorIndex(OpenAIEmbedder())
        await index.add(documents)
        ```
    """

    def __init__(
        self,
        model: str = "text-embedding-3-small",
        *,
        config: OpenAIConfig | None = None,
        client: AsyncOpenAI | None = None,
        dimensions: int | None = None,
    ) -> None:
        self.model = model
        self.dimensions = dimensions
        self.client = client or _build_client(config or OpenAIConfig())

    async def embed(self, texts: Sequence[str]) -> list[list[float]]:
        if not texts:
            return []
        params: dict[str, Any] = {"model": self.model, "input": list(texts), "encoding_format": "float"}
        if self.dimensions is not None:
            params["dimensions"] = self.dimensions
        try:
            response = await self.client.embeddings.create(**params)
        except openai.OpenAIError as exc:
            raise map_openai_error(exc) from exc
        data = sorted(response.data, key=lambda d: d.index)
        return [list(d.embedding) for d in data]


def _message_to_api(message: Message) -> dict[str, Any]:
    data = message.to_dict()
    if message.role == Role.TOOL:
        # Tool result messages carry only the call id and content
        data.pop("name", None)
        data.setdefault("content", "")
    elif message.role == Role.ASSISTANT and "content" not in data:
        data["content"] = None
    return data


def _tool_choice(choice: CapabilityChoice) -> str | dict[str, Any]:
    if choice.mode == "forced":
        return {"type": "function", "function": {"name": choice.name}}
    return choice.mode


def _parse_usage(raw: Any) -> Usage | None:
    if raw is None:
        return None
    input_tokens = int(getattr(raw, "prompt_tokens", 0) or 0)
    output_tokens = int(getattr(raw, "completion_tokens", 0) or 0)
    total = int(getattr(raw, "total_tokens", 0) or 0) or input_tokens + output_tokens
    return Usage(input_tokens=input_tokens, output_tokens=output_tokens, total_tokens=total)


__all__ = ["OpenAIProvider", "OpenAIEmbedder", "map_openai_error"]
