"""
Tests for the Agent class and the turn loop.
"""

import asyncio
import gc

import pytest

from conftest import (
    EchoModel,
    FailingRetriever,
    ScriptedModel,
    SlowModel,
    StaticRetriever,
    StreamingModel,
    add,
    call,
    calls,
    echo,
    explode,
    invocation,
    reply,
    slow,
)
from llm_orchestrator import Agent, AgentConfig, CancellationToken, RetryConfig
from llm_orchestrator.agent import execute_single_invocation
from llm_orchestrator.capabilities import CapabilityRegistry, capability
from llm_orchestrator.errors import (
    CancelledError,
    CapabilityFatalError,
    CompletionFailedError,
    FatalCapabilityError,
    InvalidArgumentsError,
    InvalidRequestError,
    ProviderUnavailableError,
    TimedOutError,
    TurnLimitExceededError,
)
from llm_orchestrator.hooks import HookManager, InMemoryHook
from llm_orchestrator.providers.types import CapabilityChoice, Document, Message, Role, StreamEvent, StreamEventType
from llm_orchestrator.retrieval import RetrievedDocument
from llm_orchestrator.runtime import RunContext


def multi(max_turns: int = 4, **kwargs) -> AgentConfig:
    return AgentConfig(max_turns=max_turns, **kwargs)


class CountingRegistry(CapabilityRegistry):
    """Registry that records every name it resolves."""

    def __init__(self, capabilities):
        super().__init__(capabilities)
        self.resolved = []

    def resolve(self, name):
        self.resolved.append(name)
        return super().resolve(name)


class TestSingleShot:
    async def test_prompt_returns_content(self):
        model = ScriptedModel([reply("Hello! How can I help?")])
        agent = Agent(model, preamble="You are helpful.")

        assert await agent.prompt("Hello!") == "Hello! How can I help?"

        request = model.requests[0]
        assert request.preamble == "You are helpful."
        assert [(m.role, m.content) for m in request.messages] == [(Role.USER, "Hello!")]

    async def test_requested_capabilities_are_not_executed(self):
        executed = []

        @capability
        def record(value: str) -> str:
            executed.append(value)
            return value

        model = ScriptedModel([call("record", {"value": "x"}, content="Let me check")])
        agent = Agent(model, capabilities=[record])

        response = await agent.run("go")

        assert response.content == "Let me check"
        assert executed == []
        assert response.completions == 1
        assert [(m.role, m.content) for m in response.history] == [
            (Role.USER, "go"),
            (Role.ASSISTANT, "Let me check"),
        ]
        assert response.history[-1].invocations is None

    async def test_registry_never_resolves_in_single_shot(self):
        registry = CountingRegistry([add])
        model = ScriptedModel([call("add", {"a": 2, "b": 2}, content="4")])
        agent = Agent(model, capabilities=registry)

        assert await agent.prompt("2+2") == "4"
        assert registry.resolved == []
        assert [d.name for d in model.requests[0].capabilities] == ["add"]

    async def test_max_turns_must_be_positive(self):
        agent = Agent(ScriptedModel([reply()]))

        with pytest.raises(ValueError):
            await agent.run("hi", max_turns=0)


class TestMultiTurn:
    async def test_results_appended_in_request_order(self):
        @capability
        async def first(value: str) -> str:
            await asyncio.sleep(0.05)
            return f"first:{value}"

        @capability
        async def second(value: str) -> str:
            return f"second:{value}"

        model = ScriptedModel(
            [
                calls(
                    invocation("first", {"value": "a"}, id="c1"),
                    invocation("second", {"value": "b"}, id="c2"),
                ),
                reply("done"),
            ]
        )
        agent = Agent(model, capabilities=[first, second], config=multi())

        response = await agent.run("do both")

        assert response.content == "done"
        assert response.completions == 2
        history = response.history
        assert [m.role for m in history] == [Role.USER, Role.ASSISTANT, Role.TOOL, Role.TOOL, Role.ASSISTANT]
        assert [inv.id for inv in history[1].invocations] == ["c1", "c2"]
        assert (history[2].invocation_id, history[2].content) == ("c1", "first:a")
        assert (history[3].invocation_id, history[3].content) == ("c2", "second:b")

        # The second request carries the full history so far
        second_request = model.requests[1]
        assert [m.role for m in second_request.messages] == [Role.USER, Role.ASSISTANT, Role.TOOL, Role.TOOL]

    async def test_sequential_execution_keeps_order(self):
        model = ScriptedModel(
            [
                calls(invocation("add", {"a": 1, "b": 2}, id="x"), invocation("echo", {"message": "hi"}, id="y")),
                reply("ok"),
            ]
        )
        agent = Agent(model, capabilities=[add, echo], config=multi(parallel_capabilities=False))

        response = await agent.run("go")

        assert [m.content for m in response.history if m.role == Role.TOOL] == ["3", "Echo: hi"]

    async def test_prompt_multi_turn(self):
        model = ScriptedModel([call("add", {"a": 2, "b": 5}), reply("2 + 5 = 7")])
        agent = Agent(model, capabilities=[add])

        assert await agent.prompt_multi_turn("What is 2 + 5?", max_turns=3) == "2 + 5 = 7"

    async def test_turn_limit_exceeded(self):
        model = ScriptedModel(
            [
                call("add", {"a": 1, "b": 1}, content="thinking"),
                call("add", {"a": 2, "b": 2}),
            ]
        )
        hook = InMemoryHook()
        agent = Agent(model, capabilities=[add], hooks=[hook])

        with pytest.raises(TurnLimitExceededError) as exc_info:
            await agent.run("loop", max_turns=2)

        err = exc_info.value
        assert err.max_turns == 2
        assert err.content == "thinking"
        assert model.call_count == 2
        assert hook.capability_calls == {"add": 2}
        assert [m.role for m in err.history][-1] == Role.TOOL
        assert hook.of("turn.end")[0]["status"] == "turn_limit"

    async def test_usage_is_accumulated(self):
        model = ScriptedModel([call("add", {"a": 1, "b": 2}), reply("3")])
        agent = Agent(model, capabilities=[add], config=multi())

        response = await agent.run("sum")

        assert response.usage.input_tokens == 20
        assert response.usage.total_tokens == 30


class TestCapabilityFailures:
    async def test_unknown_capability_reported_to_model(self):
        model = ScriptedModel([call("nope", {}, id="u1"), reply("recovered")])
        agent = Agent(model, capabilities=[add], config=multi())

        response = await agent.run("go")

        assert response.content == "recovered"
        tool_message = model.requests[1].messages[-1]
        assert tool_message.invocation_id == "u1"
        assert tool_message.content == "Error: Capability not found: nope"

    async def test_invalid_arguments_reported_to_model(self):
        model = ScriptedModel([call("add", {"a": "one"}), reply("sorry")])
        agent = Agent(model, capabilities=[add], config=multi())

        response = await agent.run("go")

        assert response.content == "sorry"
        assert response.history[2].content.startswith("Error: Invalid arguments:")

    async def test_malformed_json_arguments(self):
        model = ScriptedModel([call("add", "{not json"), reply("sorry")])
        agent = Agent(model, capabilities=[add], config=multi())

        response = await agent.run("go")

        assert response.history[2].content.startswith("Error: Arguments are not valid JSON")

    async def test_raising_capability_reported_to_model(self):
        model = ScriptedModel([call("explode", {"reason": "kaboom"}), reply("handled")])
        agent = Agent(model, capabilities=[explode], config=multi())

        response = await agent.run("go")

        assert response.content == "handled"
        assert response.history[2].content == "Error: ValueError: kaboom"

    async def test_capability_timeout_reported_to_model(self):
        model = ScriptedModel([call("slow", {"delay": 1.0}), reply("gave up")])
        agent = Agent(model, capabilities=[slow], config=multi(capability_timeout=0.05))

        response = await agent.run("go")

        assert response.content == "gave up"
        assert "timed out" in response.history[2].content

    async def test_fatal_capability_aborts_turn(self):
        @capability
        def halt() -> str:
            raise FatalCapabilityError("database is gone")

        model = ScriptedModel([call("halt", {}), reply("never")])
        hook = InMemoryHook()
        agent = Agent(model, capabilities=[halt], config=multi(), hooks=[hook])

        with pytest.raises(CapabilityFatalError) as exc_info:
            await agent.run("go")

        assert isinstance(exc_info.value.cause, FatalCapabilityError)
        assert exc_info.value.context.capability == "halt"
        assert model.call_count == 1
        assert hook.of("capability.error")[0]["fatal"] is True

    async def test_invocation_cap_per_turn(self):
        model = ScriptedModel(
            [
                calls(invocation("echo", {"message": "1"}), invocation("echo", {"message": "2"})),
                reply("ok"),
            ]
        )
        agent = Agent(model, capabilities=[echo], config=multi(max_invocations_per_turn=1))

        response = await agent.run("go")

        tool_messages = [m for m in response.history if m.role == Role.TOOL]
        assert tool_messages[0].content == "Echo: 1"
        assert "Invocation limit" in tool_messages[1].content

    async def test_output_is_truncated(self):
        @capability
        def long_text() -> str:
            return "x" * 100

        model = ScriptedModel([call("long_text", {}), reply("ok")])
        agent = Agent(model, capabilities=[long_text], config=multi(max_capability_output_chars=10))

        response = await agent.run("go")

        assert response.history[2].content == "x" * 10


class TestCompletionFailures:
    async def test_non_retryable_error_fails_turn(self):
        model = ScriptedModel([InvalidRequestError("bad request")])
        agent = Agent(model, retry=RetryConfig(attempts=3, backoff=0))

        with pytest.raises(CompletionFailedError) as exc_info:
            await agent.run("go")

        assert isinstance(exc_info.value.cause, InvalidRequestError)
        assert model.call_count == 1

    async def test_retryable_error_is_retried(self):
        model = ScriptedModel([ProviderUnavailableError("503"), reply("second time lucky")])
        hook = InMemoryHook()
        agent = Agent(model, retry=RetryConfig(attempts=3, backoff=0), hooks=[hook])

        assert await agent.prompt("go") == "second time lucky"
        assert model.call_count == 2
        assert hook.counters["completion.retry"] == 1

    async def test_retries_are_bounded(self):
        model = ScriptedModel([ProviderUnavailableError("503")] * 3)
        agent = Agent(model, retry=RetryConfig(attempts=2, backoff=0))

        with pytest.raises(CompletionFailedError) as exc_info:
            await agent.run("go")

        assert model.call_count == 2
        assert exc_info.value.cause.context.extra["attempts"] == 2


class TestCancellation:
    async def test_cancelled_before_start(self):
        model = ScriptedModel([reply()])
        token = CancellationToken()
        token.cancel()

        with pytest.raises(CancelledError):
            await Agent(model).run("go", cancellation_token=token)

        assert model.call_count == 0

    async def test_cancel_interrupts_in_flight_completion(self):
        model = SlowModel()
        token = CancellationToken()
        asyncio.get_running_loop().call_later(0.05, token.cancel)

        with pytest.raises(CancelledError):
            await asyncio.wait_for(Agent(model).run("go", cancellation_token=token), timeout=2.0)

        await asyncio.sleep(0)
        assert model.cancelled

    async def test_timeout(self):
        with pytest.raises(TimedOutError) as exc_info:
            await Agent(SlowModel()).run("go", timeout=0.05)

        assert exc_info.value.timeout == 0.05

    async def test_cancel_during_capability_execution(self):
        model = ScriptedModel([call("slow", {"delay": 5.0}), reply("never")])
        agent = Agent(model, capabilities=[slow], config=multi(capability_timeout=None))
        token = CancellationToken()
        asyncio.get_running_loop().call_later(0.05, token.cancel)

        with pytest.raises(CancelledError):
            await asyncio.wait_for(agent.run("go", cancellation_token=token), timeout=2.0)

        assert model.call_count == 1


    async def test_reused_token_does_not_grow(self):
        model = EchoModel()
        agent = Agent(model)
        token = CancellationToken()

        for _ in range(50):
            await agent.prompt("hi", cancellation_token=token)
        gc.collect()

        assert len(model.requests) == 50
        assert token._callbacks == []
        assert len(token._children) == 0


class TestNestedAgents:
    async def test_agent_as_capability(self):
        child_model = ScriptedModel([reply("Bonjour means hello")])
        child = Agent(child_model, name="translator", preamble="Translate to English.")

        parent_model = ScriptedModel([call("translator", {"prompt": "Bonjour"}), reply("It means hello")])
        parent = Agent(parent_model, name="orchestrator", capabilities=[child.as_capability()], config=multi())

        assert await parent.prompt("What does Bonjour mean?") == "It means hello"
        assert child_model.requests[0].prompt == "Bonjour"
        assert [m.role for m in child_model.requests[0].messages] == [Role.USER]
        assert parent_model.requests[1].messages[-1].content == "Bonjour means hello"

    async def test_child_failure_is_recoverable(self):
        child = Agent(ScriptedModel([InvalidRequestError("child broke")]), name="helper")
        parent_model = ScriptedModel([call("helper", {"prompt": "x"}), reply("fallback")])
        parent = Agent(parent_model, capabilities=[child.as_capability()], config=multi())

        assert await parent.prompt("go") == "fallback"
        assert parent_model.requests[1].messages[-1].content.startswith("Error: Completion failed")

    async def test_parent_cancellation_reaches_child(self):
        child_model = SlowModel()
        child = Agent(child_model, name="child")
        parent = Agent(
            ScriptedModel([call("child", {"prompt": "work"}), reply("never")]),
            capabilities=[child.as_capability()],
            config=multi(capability_timeout=None),
        )
        token = CancellationToken()
        asyncio.get_running_loop().call_later(0.05, token.cancel)

        with pytest.raises(CancelledError):
            await asyncio.wait_for(parent.run("go", cancellation_token=token), timeout=2.0)

        await asyncio.sleep(0)
        assert child_model.cancelled


class TestConversation:
    async def test_chat_does_not_modify_history(self):
        model = ScriptedModel([reply("Paris")])
        history = [Message.user("Hi"), Message.assistant("Hello!")]

        answer = await Agent(model).chat("Capital of France?", history)

        assert answer == "Paris"
        assert len(history) == 2
        assert [m.content for m in model.requests[0].messages] == ["Hi", "Hello!", "Capital of France?"]

    async def test_context_documents_attached_in_order(self):
        retriever = StaticRetriever(
            [
                RetrievedDocument(id="low", text="low", score=0.1),
                RetrievedDocument(id="high", text="high", score=0.9),
                RetrievedDocument(id="mid", text="mid", score=0.5),
            ]
        )
        model = ScriptedModel([reply()])
        agent = Agent(
            model,
            context=["static one", Document(id="faq", text="static two")],
            dynamic_context=(retriever, 2),
        )

        await agent.prompt("query text")

        assert [d.id for d in model.requests[0].documents] == ["static_doc_0", "faq", "high", "mid"]
        assert retriever.queries == [("query text", 2)]

    async def test_retrieval_failure_degrades(self):
        model = ScriptedModel([reply("still fine")])
        hook = InMemoryHook()
        agent = Agent(model, context=["static"], dynamic_context=(FailingRetriever(), 3), hooks=[hook])

        response = await agent.run("go")

        assert response.content == "still fine"
        assert [d.text for d in model.requests[0].documents] == ["static"]
        assert response.diagnostics[0].source == "retrieval"
        assert hook.counters["retrieval.error"] == 1

    async def test_choice_none_advertises_nothing(self):
        model = ScriptedModel([reply()])
        agent = Agent(model, capabilities=[add], choice=CapabilityChoice.none())

        await agent.prompt("go")

        assert model.requests[0].capabilities == []

    async def test_descriptors_advertised(self):
        model = ScriptedModel([reply()])
        agent = Agent(model, capabilities=[add, echo])

        await agent.prompt("go")

        assert [d.name for d in model.requests[0].capabilities] == ["add", "echo"]


class TestAgentSurface:
    def test_agent_is_immutable(self):
        agent = Agent(ScriptedModel([reply()]), name="fixed")

        with pytest.raises(AttributeError):
            agent.name = "changed"

    async def test_with_options_derives_new_agent(self):
        agent = Agent(EchoModel(), name="base", preamble="one")
        derived = agent.with_options(preamble="two")

        assert derived.preamble == "two"
        assert agent.preamble == "one"
        assert derived.name == "base"
        with pytest.raises(TypeError):
            agent.with_options(unknown=True)

    async def test_batch_prompt_keeps_order_and_bound(self):
        model = EchoModel(transform=lambda p: p.upper(), delay=0.01)
        agent = Agent(model)

        answers = await agent.batch_prompt(["a", "b", "c", "d", "e"], max_concurrency=2)

        assert answers == ["A", "B", "C", "D", "E"]
        assert model.max_in_flight <= 2

    async def test_trace_records_turns(self):
        model = ScriptedModel([call("add", {"a": 1, "b": 2}), reply("3")])
        agent = Agent(model, capabilities=[add], config=multi(trace=True))

        response = await agent.run("sum")

        assert [record.index for record in response.trace] == [1, 2]
        assert response.trace[0].outcomes[0].content == "3"
        assert response.outcomes[0].ok
        assert response.content == "3"

    async def test_hook_events_for_single_shot(self):
        hook = InMemoryHook()
        agent = Agent(ScriptedModel([reply()]), hooks=[hook])

        await agent.prompt("go")

        assert hook.names() == ["turn.start", "completion.request", "completion.response", "turn.end"]
        assert hook.of("turn.end")[0]["status"] == "success"


class TestCapabilityChoiceNone:
    async def test_requested_capabilities_are_refused(self):
        executed = []

        @capability
        def record(value: str) -> str:
            executed.append(value)
            return value

        model = ScriptedModel([call("record", {"value": "x"}, id="r1"), reply("done")])
        hook = InMemoryHook()
        agent = Agent(
            model,
            capabilities=[record],
            choice=CapabilityChoice.none(),
            config=multi(max_turns=3),
            hooks=[hook],
        )

        response = await agent.run("go")

        assert response.content == "done"
        assert executed == []
        assert hook.capability_calls == {}
        assert hook.of("capability.error")[0]["fatal"] is False
        tool_message = model.requests[1].messages[-1]
        assert tool_message.invocation_id == "r1"
        assert tool_message.content == "Error: Capabilities are disabled for this call; record was not run"

    async def test_registry_is_not_consulted(self):
        registry = CountingRegistry([add])
        model = ScriptedModel([call("add", {"a": 1, "b": 2}), reply("done")])
        agent = Agent(model, capabilities=registry, choice=CapabilityChoice.none(), config=multi())

        await agent.run("go")

        assert registry.resolved == []
        assert model.requests[0].capabilities == []


class TestArgumentValidation:
    async def test_unadvertised_capability_is_still_validated(self):
        executed = []

        @capability
        def record(value: str) -> str:
            executed.append(value)
            return value

        outcome = await execute_single_invocation(
            invocation("record", {"wrong": 1}),
            CapabilityRegistry([record]),
            {},
            None,
            context=RunContext(),
            hooks=HookManager(),
        )

        assert executed == []
        assert isinstance(outcome.error, InvalidArgumentsError)
        assert outcome.content.startswith("Error: Invalid arguments:")


class TestCalculatorChain:
    async def test_each_result_is_threaded_into_the_next_request(self):
        def second_step(request):
            first_sum = int(request.messages[-1].content)
            return call("add", {"a": first_sum, "b": 4}, id="c2")

        model = ScriptedModel([call("add", {"a": 1, "b": 2}, id="c1"), second_step, reply("The answer is 7")])
        agent = Agent(model, capabilities=[add], config=multi())

        response = await agent.run("Add 1 and 2, then add 4")

        assert response.content == "The answer is 7"
        assert model.call_count == 3
        second = model.requests[1].messages
        assert [m.role for m in second] == [Role.USER, Role.ASSISTANT, Role.TOOL]
        assert (second[2].invocation_id, second[2].content) == ("c1", "3")
        third = model.requests[2].messages
        assert [m.role for m in third] == [Role.USER, Role.ASSISTANT, Role.TOOL, Role.ASSISTANT, Role.TOOL]
        assert [inv.id for inv in third[3].invocations] == ["c2"]
        assert (third[4].invocation_id, third[4].content) == ("c2", "7")


class BrokenStreamModel(ScriptedModel):
    """Streams one delta, then loses the connection."""

    async def stream(self, request):
        self.requests.append(request)
        yield StreamEvent(StreamEventType.TOKEN, "Hel")
        raise ProviderUnavailableError("connection reset")


class PlainModel:
    """A completion model with no ``stream`` method."""

    model_name = "plain-model"

    async def complete(self, request):
        return reply("plain answer")


class TestStreaming:
    async def test_text_deltas_are_streamed(self):
        model = StreamingModel([reply("Hello there")], chunk=5)

        deltas = [delta async for delta in Agent(model).stream_prompt("hi")]

        assert deltas == ["Hello", " ther", "e"]
        assert model.streams == 1

    async def test_capability_round_trip_runs_while_streaming(self):
        model = StreamingModel([call("add", {"a": 2, "b": 3}, id="c1"), reply("The sum is 5")], chunk=100)
        agent = Agent(model, capabilities=[add], config=multi())

        events = [event async for event in agent.stream("2 + 3?")]

        assert [e.type for e in events] == [
            StreamEventType.INVOCATION,
            StreamEventType.CAPABILITY_RESULT,
            StreamEventType.TOKEN,
            StreamEventType.DONE,
        ]
        assert events[0].data.id == "c1"
        assert events[1].data.content == "5"
        done = events[-1].data
        assert done.content == "The sum is 5"
        assert done.completions == 2
        assert [m.role for m in done.history] == [Role.USER, Role.ASSISTANT, Role.TOOL, Role.ASSISTANT]
        assert (model.requests[1].messages[-1].invocation_id, model.requests[1].messages[-1].content) == ("c1", "5")

    async def test_stream_prompt_still_runs_capabilities(self):
        model = StreamingModel([call("add", {"a": 2, "b": 3}), reply("The sum is 5")], chunk=3)
        agent = Agent(model, capabilities=[add], config=multi())

        text = "".join([delta async for delta in agent.stream_prompt("2 + 3?")])

        assert text == "The sum is 5"
        assert model.call_count == 2
        assert model.requests[1].messages[-1].content == "5"

    async def test_single_shot_stream_does_not_invoke(self):
        model = StreamingModel([call("add", {"a": 1, "b": 1})])
        agent = Agent(model, capabilities=[add])

        events = [event async for event in agent.stream("go")]

        assert [e.type for e in events] == [StreamEventType.INVOCATION, StreamEventType.DONE]
        assert [m.role for m in events[-1].data.history] == [Role.USER, Role.ASSISTANT]

    async def test_turn_limit_while_streaming(self):
        model = StreamingModel([call("add", {"a": 1, "b": 1}), call("add", {"a": 2, "b": 2})])
        agent = Agent(model, capabilities=[add], config=multi(2))
        seen = []

        with pytest.raises(TurnLimitExceededError):
            async for event in agent.stream("loop"):
                seen.append(event.type)

        assert seen.count(StreamEventType.CAPABILITY_RESULT) == 2
        assert StreamEventType.DONE not in seen

    async def test_retry_before_first_delta(self):
        model = StreamingModel([ProviderUnavailableError("503"), reply("ok")])
        hook = InMemoryHook()
        agent = Agent(model, retry=RetryConfig(attempts=3, backoff=0), hooks=[hook])

        text = "".join([delta async for delta in agent.stream_prompt("go")])

        assert text == "ok"
        assert model.streams == 2
        assert hook.counters["completion.retry"] == 1

    async def test_failure_after_first_delta_is_not_retried(self):
        model = BrokenStreamModel([])
        agent = Agent(model, retry=RetryConfig(attempts=3, backoff=0))
        deltas = []

        with pytest.raises(CompletionFailedError) as exc_info:
            async for delta in agent.stream_prompt("go"):
                deltas.append(delta)

        assert deltas == ["Hel"]
        assert model.call_count == 1
        assert exc_info.value.cause.context.extra["attempts"] == 1

    async def test_model_without_native_streaming_is_replayed(self):
        deltas = [delta async for delta in Agent(ScriptedModel([reply("whole answer")])).stream_prompt("go")]
        assert deltas == ["whole answer"]

        events = [event async for event in Agent(PlainModel()).stream("go")]
        assert [e.type for e in events] == [StreamEventType.TOKEN, StreamEventType.DONE]
        assert events[-1].data.content == "plain answer"

    async def test_cancelled_token_stops_stream(self):
        model = StreamingModel([reply()])
        token = CancellationToken()
        token.cancel()

        with pytest.raises(CancelledError):
            async for _ in Agent(model).stream("go", cancellation_token=token):
                pass

        assert model.call_count == 0

    async def test_closing_early(self):
        model = StreamingModel([reply("abc")], chunk=1)
        deltas = Agent(model).stream_prompt("go")

        assert await deltas.__anext__() == "a"
        await deltas.aclose()

        with pytest.raises(StopAsyncIteration):
            await deltas.__anext__()

    async def test_max_turns_must_be_positive(self):
        with pytest.raises(ValueError):
            async for _ in Agent(StreamingModel([reply()])).stream("go", max_turns=0):
                pass

    async def test_hook_events_match_run(self):
        hook = InMemoryHook()
        agent = Agent(StreamingModel([reply()]), hooks=[hook])

        [event async for event in agent.stream("go")]

        assert hook.names() == ["turn.start", "completion.request", "completion.response", "turn.end"]
        assert hook.of("completion.request")[0]["stream"] is True
        assert hook.of("turn.end")[0]["status"] == "success"
