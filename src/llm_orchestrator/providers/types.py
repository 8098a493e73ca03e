"""
Core types for the completion boundary.

A ``CompletionRequest`` carries everything the turn loop hands to a model:
the preamble, the assembled context documents, the full conversation
history, the advertised capability descriptors, the selection policy and the
generation parameters. A ``CompletionResponse`` carries back the assistant
text and the ordered capability invocations the model asked for.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Literal

import orjson

from ..capabilities.base import CapabilityDescriptor
from ..errors import InvalidArgumentsError, UnknownCapabilityError


class Role(str, Enum):
    """Message roles in a conversation."""

    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"


class StopReason(str, Enum):
    """Why the model stopped generating."""

    STOP = "stop"
    CAPABILITY_CALLS = "capability_calls"
    LENGTH = "length"
    CONTENT_FILTER = "content_filter"
    OTHER = "other"


@dataclass
class Invocation:
    """A capability invocation requested by the model."""

    id: str
    name: str
    arguments: str  # JSON string of arguments

    def parse_arguments(self) -> dict[str, Any]:
        """
        Parse the JSON arguments string.

        Raises:
            InvalidArgumentsError: Arguments are not a JSON object.
        """
        if not self.arguments or not self.arguments.strip():
            return {}
        try:
            parsed = orjson.loads(self.arguments)
        except orjson.JSONDecodeError as exc:
            raise InvalidArgumentsError(
                f"Arguments are not valid JSON: {exc}", capability=self.name, cause=exc
            ) from exc
        if not isinstance(parsed, dict):
            raise InvalidArgumentsError(
                f"Arguments must be a JSON object, got {type(parsed).__name__}",
                capability=self.name,
            )
        return parsed

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "name": self.name, "arguments": self.arguments}


@dataclass
class Message:
    """A message in a conversation."""

    role: Role
    content: str | None = None
    name: str | None = None
    invocations: list[Invocation] | None = None
    invocation_id: str | None = None  # For capability result messages

    def to_dict(self) -> dict[str, Any]:
        """Convert to an OpenAI-compatible chat message."""
        d: dict[str, Any] = {"role": self.role.value}

        if self.content is not None:
            d["content"] = self.content
        if self.name is not None:
            d["name"] = self.name
        if self.invocations:
            d["tool_calls"] = [
                {"id": inv.id, "type": "function", "function": {"name": inv.name, "arguments": inv.arguments}}
                for inv in self.invocations
            ]
        if self.invocation_id is not None:
            d["tool_call_id"] = self.invocation_id

        return d

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Message:
        """Create a Message from a chat message dictionary."""
        invocations = None
        if data.get("tool_calls"):
            invocations = [
                Invocation(id=tc["id"], name=tc["function"]["name"], arguments=tc["function"]["arguments"])
                for tc in data["tool_calls"]
            ]
        return cls(
            role=Role(data["role"]),
            content=data.get("content"),
            name=data.get("name"),
            invocations=invocations,
            invocation_id=data.get("tool_call_id"),
        )

    @classmethod
    def user(cls, content: str) -> Message:
        return cls(role=Role.USER, content=content)

    @classmethod
    def assistant(cls, content: str | None = None, invocations: list[Invocation] | None = None) -> Message:
        return cls(role=Role.ASSISTANT, content=content, invocations=invocations)

    @classmethod
    def system(cls, content: str) -> Message:
        return cls(role=Role.SYSTEM, content=content)

    @classmethod
    def capability_result(cls, invocation_id: str, content: str, name: str | None = None) -> Message:
        """Create the result message answering one invocation."""
        return cls(role=Role.TOOL, content=content, invocation_id=invocation_id, name=name)


@dataclass
class Usage:
    """Token usage statistics."""

    input_tokens: int = 0
    output_tokens: int = 0
    total_tokens: int = 0

    def __add__(self, other: Usage) -> Usage:
        return Usage(
            input_tokens=self.input_tokens + other.input_tokens,
            output_tokens=self.output_tokens + other.output_tokens,
            total_tokens=self.total_tokens + other.total_tokens,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "input_tokens": self.input_tokens,
            "output_tokens": self.output_tokens,
            "total_tokens": self.total_tokens,
        }


@dataclass(frozen=True)
class Document:
    """A context document attached to completion requests."""

    id: str
    text: str
    metadata: dict[str, Any] = field(default_factory=dict, compare=False)

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "text": self.text, "metadata": dict(self.metadata)}


@dataclass(frozen=True)
class CapabilityChoice:
    """
    Policy telling the model whether and which capabilities it may invoke.

    - ``auto``: the model decides
    - ``required``: the model must invoke at least one capability
    - ``forced``: the model must invoke the named capability
    - ``none``: no capabilities are advertised
    """

    mode: Literal["auto", "required", "forced", "none"] = "auto"
    name: str | None = None

    def __post_init__(self) -> None:
        if self.mode == "forced" and not self.name:
            raise ValueError("forced capability choice requires a name")
        if self.mode != "forced" and self.name is not None:
            raise ValueError(f"capability choice {self.mode!r} does not take a name")

    @classmethod
    def auto(cls) -> CapabilityChoice:
        return cls("auto")

    @classmethod
    def required(cls) -> CapabilityChoice:
        return cls("required")

    @classmethod
    def forced(cls, name: str) -> CapabilityChoice:
        return cls("forced", name)

    @classmethod
    def none(cls) -> CapabilityChoice:
        return cls("none")

    @property
    def advertises(self) -> bool:
        return self.mode != "none"

    def check(self, names: Sequence[str]) -> None:
        """Raise UnknownCapabilityError if a forced name is not available."""
        if self.mode == "forced" and self.name not in names:
            raise UnknownCapabilityError(self.name)

    def to_dict(self) -> dict[str, Any]:
        return {"mode": self.mode, "name": self.name}


@dataclass(frozen=True)
class GenerationParams:
    """Sampling parameters forwarded to the model."""

    temperature: float | None = None
    max_tokens: int | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {"temperature": self.temperature, "max_tokens": self.max_tokens, "extra": dict(self.extra)}


@dataclass
class CompletionRequest:
    """Everything a completion model needs to produce the next assistant message."""

    messages: list[Message]
    preamble: str | None = None
    documents: list[Document] = field(default_factory=list)
    capabilities: list[CapabilityDescriptor] = field(default_factory=list)
    choice: CapabilityChoice = field(default_factory=CapabilityChoice.auto)
    params: GenerationParams = field(default_factory=GenerationParams)

    @property
    def prompt(self) -> str:
        """Text of the latest user message, or an empty string."""
        for message in reversed(self.messages):
            if message.role == Role.USER and message.content:
                return message.content
        return ""

    def system_prompt(self) -> str | None:
        """Render preamble and documents as a single system prompt."""
        parts: list[str] = []
        if self.preamble:
            parts.append(self.preamble)
        if self.documents:
            rendered = "\n".join(f'<document id="{doc.id}">\n{doc.text}\n</document>' for doc in self.documents)
            parts.append(f"<attachments>\n{rendered}\n</attachments>")
        return "\n\n".join(parts) or None

    def to_dict(self) -> dict[str, Any]:
        return {
            "messages": [m.to_dict() for m in self.messages],
            "preamble": self.preamble,
            "documents": [d.to_dict() for d in self.documents],
            "capabilities": [c.to_dict() for c in self.capabilities],
            "choice": self.choice.to_dict(),
            "params": self.params.to_dict(),
        }


@dataclass
class CompletionResponse:
    """Result of one completion request."""

    content: str = ""
    invocations: list[Invocation] = field(default_factory=list)
    stop_reason: StopReason = StopReason.STOP
    usage: Usage | None = None
    model: str | None = None
    raw_response: Any | None = field(default=None, repr=False)

    @property
    def has_invocations(self) -> bool:
        return bool(self.invocations)

    def to_message(self) -> Message:
        """Convert this response to an assistant message."""
        return Message.assistant(content=self.content or None, invocations=list(self.invocations) or None)

    def to_dict(self) -> dict[str, Any]:
        return {
            "content": self.content,
            "invocations": [inv.to_dict() for inv in self.invocations],
            "stop_reason": self.stop_reason.value,
            "usage": self.usage.to_dict() if self.usage else None,
            "model": self.model,
        }


class StreamEventType(str, Enum):
    """Kinds of event emitted while a completion streams."""

    TOKEN = "token"
    INVOCATION = "invocation"
    CAPABILITY_RESULT = "capability_result"
    DONE = "done"


@dataclass
class StreamEvent:
    """
    One streaming event.

    Event types and their data:
    - TOKEN: str (a text delta)
    - INVOCATION: Invocation (complete, once its arguments have arrived)
    - CAPABILITY_RESULT: CapabilityOutcome (agent streams only)
    - DONE: CompletionResponse from a model, PromptResponse from an agent
    """

    type: StreamEventType
    data: Any


__all__ = [
    "Role",
    "StopReason",
    "Invocation",
    "Message",
    "Usage",
    "Document",
    "CapabilityChoice",
    "GenerationParams",
    "CompletionRequest",
    "CompletionResponse",
    "StreamEventType",
    "StreamEvent",
]
