"""
Agent runtime.

Agents pair a completion model with a preamble, context documents and
capabilities. The turn loop drives model/capability exchanges; an agent can
be wrapped as a capability of another agent, and an ``Extractor`` turns text
into schema-validated data.
"""

from .capability import AgentCapability
from .core import Agent
from .execution import execute_invocations, execute_single_invocation, failure_text, refuse_invocation
from .extractor import ExtractionResult, Extractor, SubmitCapability
from .result import CapabilityOutcome, PromptResponse, TurnRecord
from .turn import Turn, TurnLoop

__all__ = [
    "Agent",
    "AgentCapability",
    "Extractor",
    "ExtractionResult",
    "SubmitCapability",
    "PromptResponse",
    "CapabilityOutcome",
    "TurnRecord",
    "Turn",
    "TurnLoop",
    "execute_invocations",
    "execute_single_invocation",
    "refuse_invocation",
    "failure_text",
]
