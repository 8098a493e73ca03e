"""
Tests for the OpenAI provider implementation.

These tests use a mocked ``AsyncOpenAI`` client to avoid making real API calls.
The tests validate:
- Request translation (system prompt, messages, tools, parameters)
- Response parsing (content, invocations, stop reason, usage)
- Streaming chunk assembly
- Error mapping onto the completion error taxonomy
- Embeddings
"""
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import httpx
import openai
import pytest

from llm_orchestrator.capabilities import CapabilityDescriptor
from llm_orchestrator.config import OpenAIConfig
from llm_orchestrator.errors import (
    CompletionError,
    InvalidRequestError,
    ProviderUnavailableError,
    RateLimitedError,
    UnauthorizedError,
)
from llm_orchestrator.providers import OpenAIEmbedder, OpenAIProvider
from llm_orchestrator.providers.openai import map_openai_error
from llm_orchestrator.providers.types import (
    CapabilityChoice,
    CompletionRequest,
    Document,
    GenerationParams,
    Invocation,
    Message,
    StopReason,
    StreamEventType,
)

API_URL = "https://api.openai.com/v1/chat/completions"


def status_error(cls, status: int, headers: dict | None = None):
    response = httpx.Response(status, headers=headers or {}, request=httpx.Request("POST", API_URL))
    return cls("error from service", response=response, body=None)


def completion(content=None, tool_calls=None, finish_reason="stop", usage=True):
    return SimpleNamespace(
        choices=[
            SimpleNamespace(
                message=SimpleNamespace(content=content, tool_calls=tool_calls),
                finish_reason=finish_reason,
            )
        ],
        usage=SimpleNamespace(prompt_tokens=12, completion_tokens=4, total_tokens=16) if usage else None,
        model="gpt-4o-mini-2024-07-18",
    )


def tool_call(id, name, arguments):
    return SimpleNamespace(id=id, function=SimpleNamespace(name=name, arguments=arguments))


@pytest.fixture
def client():
    mock = MagicMock()
    mock.chat.completions.create = AsyncMock()
    mock.embeddings.create = AsyncMock()
    mock.close = AsyncMock()
    return mock


@pytest.fixture
def provider(client):
    return OpenAIProvider("gpt-4o-mini", config=OpenAIConfig(api_key="sk-test"), client=client)


WEATHER = CapabilityDescriptor(
    name="get_weather",
    description="Weather for a city",
    parameters={"type": "object", "properties": {"city": {"type": "string"}}, "required": ["city"]},
)


class TestBuildParams:
    """Test request translation."""

    def test_system_prompt_and_messages(self, provider):
        request = CompletionRequest(
            messages=[Message.user("Hi")],
            preamble="Be brief.",
            documents=[Document(id="d1", text="Flurbos are green.")],
        )

        params = provider.build_params(request)

        assert params["model"] == "gpt-4o-mini"
        system = params["messages"][0]
        assert system["role"] == "system"
        assert system["content"].startswith("Be brief.")
        assert '<document id="d1">' in system["content"]
        assert params["messages"][1] == {"role": "user", "content": "Hi"}
        assert "tools" not in params

    def test_tools_and_forced_choice(self, provider):
        request = CompletionRequest(
            messages=[Message.user("Weather?")],
            capabilities=[WEATHER],
            choice=CapabilityChoice.forced("get_weather"),
            params=GenerationParams(temperature=0.2, max_tokens=100, extra={"seed": 7}),
        )

        params = provider.build_params(request)

        assert params["tools"][0]["function"]["name"] == "get_weather"
        assert params["tool_choice"] == {"type": "function", "function": {"name": "get_weather"}}
        assert params["temperature"] == 0.2
        assert params["max_tokens"] == 100
        assert params["seed"] == 7

    def test_auto_choice(self, provider):
        request = CompletionRequest(messages=[Message.user("x")], capabilities=[WEATHER])

        assert provider.build_params(request)["tool_choice"] == "auto"

    def test_capability_history(self, provider):
        inv = Invocation(id="call_1", name="get_weather", arguments='{"city": "Oslo"}')
        request = CompletionRequest(
            messages=[
                Message.user("Weather in Oslo?"),
                Message.assistant(invocations=[inv]),
                Message.capability_result("call_1", "Rainy", name="get_weather"),
            ]
        )

        messages = provider.build_params(request)["messages"]

        assert messages[1]["content"] is None
        assert messages[1]["tool_calls"][0]["id"] == "call_1"
        assert messages[2] == {"role": "tool", "content": "Rainy", "tool_call_id": "call_1"}


class TestComplete:
    """Test response parsing."""

    async def test_plain_reply(self, provider, client):
        client.chat.completions.create.return_value = completion(content="Hello!")

        response = await provider.complete(CompletionRequest(messages=[Message.user("Hi")]))

        assert response.content == "Hello!"
        assert response.invocations == []
        assert response.stop_reason == StopReason.STOP
        assert response.usage.total_tokens == 16
        assert response.model == "gpt-4o-mini-2024-07-18"
        client.chat.completions.create.assert_awaited_once()

    async def test_tool_calls(self, provider, client):
        client.chat.completions.create.return_value = completion(
            tool_calls=[
                tool_call("c1", "get_weather", '{"city": "Tokyo"}'),
                tool_call("c2", "get_weather", '{"city": "Paris"}'),
            ],
            finish_reason="tool_calls",
        )

        response = await provider.complete(CompletionRequest(messages=[Message.user("x")]))

        assert response.content == ""
        assert [inv.id for inv in response.invocations] == ["c1", "c2"]
        assert response.invocations[0].parse_arguments() == {"city": "Tokyo"}
        assert response.stop_reason == StopReason.CAPABILITY_CALLS

    async def test_unknown_finish_reason(self, provider, client):
        client.chat.completions.create.return_value = completion(content="x", finish_reason="weird", usage=False)

        response = await provider.complete(CompletionRequest(messages=[Message.user("x")]))

        assert response.stop_reason == StopReason.OTHER
        assert response.usage is None

    async def test_no_choices(self, provider, client):
        client.chat.completions.create.return_value = SimpleNamespace(choices=[], usage=None, model="m")

        with pytest.raises(ProviderUnavailableError):
            await provider.complete(CompletionRequest(messages=[Message.user("x")]))

    async def test_sdk_errors_are_mapped(self, provider, client):
        client.chat.completions.create.side_effect = status_error(openai.RateLimitError, 429, {"retry-after": "3"})

        with pytest.raises(RateLimitedError) as exc_info:
            await provider.complete(CompletionRequest(messages=[Message.user("x")]))

        assert exc_info.value.retry_after == 3.0
        assert exc_info.value.retryable

    async def test_close(self, provider, client):
        async with provider:
            pass

        client.close.assert_awaited_once()


def chunk(content=None, tool_calls=None, finish_reason=None, usage=None, choices=True):
    return SimpleNamespace(
        choices=[
            SimpleNamespace(
                delta=SimpleNamespace(content=content, tool_calls=tool_calls),
                finish_reason=finish_reason,
            )
        ]
        if choices
        else [],
        usage=usage,
        model="gpt-4o-mini-2024-07-18",
    )


def tool_delta(index, id=None, name=None, arguments=None):
    function = SimpleNamespace(name=name, arguments=arguments) if name or arguments else None
    return SimpleNamespace(index=index, id=id, function=function)


def chunk_stream(*chunks, error=None):
    async def gen():
        for item in chunks:
            yield item
        if error is not None:
            raise error

    return gen()


class TestStream:
    """Test streaming chunk assembly."""

    async def test_text_deltas(self, provider, client):
        client.chat.completions.create.return_value = chunk_stream(
            chunk(content="Hel"),
            chunk(content="lo!"),
            chunk(finish_reason="stop"),
            chunk(choices=False, usage=SimpleNamespace(prompt_tokens=7, completion_tokens=2, total_tokens=9)),
        )

        events = [e async for e in provider.stream(CompletionRequest(messages=[Message.user("Hi")]))]

        assert [(e.type, e.data) for e in events[:2]] == [
            (StreamEventType.TOKEN, "Hel"),
            (StreamEventType.TOKEN, "lo!"),
        ]
        done = events[-1]
        assert done.type == StreamEventType.DONE
        assert done.data.content == "Hello!"
        assert done.data.stop_reason == StopReason.STOP
        assert done.data.usage.total_tokens == 9
        params = client.chat.completions.create.call_args.kwargs
        assert params["stream"] is True
        assert params["stream_options"] == {"include_usage": True}

    async def test_tool_call_deltas_are_assembled(self, provider, client):
        client.chat.completions.create.return_value = chunk_stream(
            chunk(tool_calls=[tool_delta(0, id="c1", name="get_weather")]),
            chunk(tool_calls=[tool_delta(0, arguments='{"city": '), tool_delta(1, id="c2", name="get_weather")]),
            chunk(tool_calls=[tool_delta(0, arguments='"Tokyo"}'), tool_delta(1, arguments='{"city": "Paris"}')]),
            chunk(finish_reason="tool_calls"),
        )

        events = [e async for e in provider.stream(CompletionRequest(messages=[Message.user("x")]))]

        assert [e.type for e in events] == [
            StreamEventType.INVOCATION,
            StreamEventType.INVOCATION,
            StreamEventType.DONE,
        ]
        response = events[-1].data
        assert response.content == ""
        assert [inv.id for inv in response.invocations] == ["c1", "c2"]
        assert response.invocations[0].parse_arguments() == {"city": "Tokyo"}
        assert response.invocations[1].parse_arguments() == {"city": "Paris"}
        assert response.stop_reason == StopReason.CAPABILITY_CALLS
        assert response.usage is None

    async def test_errors_before_stream_are_mapped(self, provider, client):
        client.chat.completions.create.side_effect = status_error(openai.RateLimitError, 429)

        with pytest.raises(RateLimitedError):
            async for _ in provider.stream(CompletionRequest(messages=[Message.user("x")])):
                pass

    async def test_errors_during_stream_are_mapped(self, provider, client):
        client.chat.completions.create.return_value = chunk_stream(
            chunk(content="Hel"),
            error=openai.APIConnectionError(request=httpx.Request("POST", API_URL)),
        )
        deltas = []

        with pytest.raises(ProviderUnavailableError):
            async for event in provider.stream(CompletionRequest(messages=[Message.user("x")])):
                deltas.append(event.data)

        assert deltas == ["Hel"]


class TestErrorMapping:
    """Test SDK exception translation."""

    @pytest.mark.parametrize(
        "cls,status,expected",
        [
            (openai.AuthenticationError, 401, UnauthorizedError),
            (openai.PermissionDeniedError, 403, UnauthorizedError),
            (openai.BadRequestError, 400, InvalidRequestError),
            (openai.NotFoundError, 404, InvalidRequestError),
            (openai.InternalServerError, 500, ProviderUnavailableError),
        ],
    )
    def test_status_errors(self, cls, status, expected):
        err = map_openai_error(status_error(cls, status))

        assert isinstance(err, expected)
        assert isinstance(err.cause, cls)

    def test_connection_error(self):
        err = map_openai_error(openai.APIConnectionError(request=httpx.Request("POST", API_URL)))

        assert isinstance(err, ProviderUnavailableError)

    def test_unknown_error(self):
        err = map_openai_error(RuntimeError("odd"))

        assert type(err) is CompletionError
        assert not err.retryable


class TestConfiguration:
    def test_overrides_do_not_mutate_config(self, client):
        config = OpenAIConfig(api_key="sk-original")
        provider = OpenAIProvider(config=config, api_key="sk-override", base_url="http://localhost:8000/v1", client=client)

        assert provider.model_name == "gpt-4o-mini"
        assert provider.config.api_key == "sk-override"
        assert provider.config.base_url == "http://localhost:8000/v1"
        assert config.api_key == "sk-original"
        assert config.base_url is None


class TestEmbedder:
    async def test_embeddings_in_input_order(self, client):
        client.embeddings.create.return_value = SimpleNamespace(
            data=[
                SimpleNamespace(index=1, embedding=[0.0, 1.0]),
                SimpleNamespace(index=0, embedding=[1.0, 0.0]),
            ]
        )
        embedder = OpenAIEmbedder(client=client, dimensions=2)

        vectors = await embedder.embed(["first", "second"])

        assert vectors == [[1.0, 0.0], [0.0, 1.0]]
        kwargs = client.embeddings.create.call_args.kwargs
        assert kwargs["dimensions"] == 2
        assert kwargs["input"] == ["first", "second"]

    async def test_empty_input(self, client):
        assert await OpenAIEmbedder(client=client).embed([]) == []
        client.embeddings.create.assert_not_called()
