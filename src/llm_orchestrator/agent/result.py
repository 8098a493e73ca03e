"""
Agent result types.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from ..providers.types import Message, Usage

if TYPE_CHECKING:
    from ..context import Diagnostic
    from ..errors import OrchestratorError
    from ..providers.types import CompletionRequest, CompletionResponse, Invocation


@dataclass
class CapabilityOutcome:
    """What happened to one requested invocation."""

    invocation: Invocation
    content: str
    error: OrchestratorError | None = None
    duration_ms: float | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_message(self) -> Message:
        return Message.capability_result(self.invocation.id, self.content, name=self.invocation.name)

    def to_dict(self) -> dict[str, Any]:
        return {
            "invocation": self.invocation.to_dict(),
            "content": self.content,
            "ok": self.ok,
            "error": self.error.to_dict() if self.error else None,
            "duration_ms": self.duration_ms,
        }


@dataclass
class TurnRecord:
    """Trace entry for one completion request and the capability work it caused."""

    index: int
    request: CompletionRequest
    response: CompletionResponse
    outcomes: list[CapabilityOutcome] = field(default_factory=list)

    @property
    def content(self) -> str:
        return self.response.content

    def to_dict(self) -> dict[str, Any]:
        return {
            "index": self.index,
            "response": self.response.to_dict(),
            "outcomes": [o.to_dict() for o in self.outcomes],
        }


@dataclass
class PromptResponse:
    """Final result of an agent call."""

    content: str
    history: list[Message] = field(default_factory=list)
    completions: int = 0
    usage: Usage = field(default_factory=Usage)
    trace: list[TurnRecord] = field(default_factory=list)
    diagnostics: list[Diagnostic] = field(default_factory=list)

    @property
    def outcomes(self) -> list[CapabilityOutcome]:
        """Capability outcomes across all recorded turns."""
        out: list[CapabilityOutcome] = []
        for record in self.trace:
            out.extend(record.outcomes)
        return out

    def to_dict(self) -> dict[str, Any]:
        return {
            "content": self.content,
            "completions": self.completions,
            "usage": self.usage.to_dict(),
            "history": [m.to_dict() for m in self.history],
            "trace": [t.to_dict() for t in self.trace],
            "diagnostics": [d.to_dict() for d in self.diagnostics],
        }


__all__ = ["CapabilityOutcome", "TurnRecord", "PromptResponse"]
