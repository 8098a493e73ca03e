"""
Agents as capabilities.

``AgentCapability`` lets a parent agent delegate to a child agent. Each
invocation is an independent ``chat(prompt, history=[])`` call on the child:
no conversation state carries over between invocations unless a
``history_provider`` supplies it.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from typing import TYPE_CHECKING, Any

from ..capabilities.base import BaseCapability
from ..providers.types import Message

if TYPE_CHECKING:
    from .core import Agent


class AgentCapability(BaseCapability):
    """
    Capability that forwards its ``prompt`` argument to another agent.

    Example:
        ```python
        translator = Agent(model, name="translator", preamble="Translate to English.")
        orchestrator = Agent(
            model,
            name="orchestrator",
            capabilities=[translator.as_capability()],
            config=AgentConfig(max_turns=4),
        )
        ```

    Failures of the child (turn limit, completion errors) surface to the
    parent as recoverable capability errors; cancellation of the parent run
    propagates into the child.
    """

    PARAMETERS = {
        "type": "object",
        "properties": {
            "prompt": {"type": "string", "description": "Task or question for the agent"},
        },
        "required": ["prompt"],
    }

    def __init__(
        self,
        agent: Agent,
        *,
        name: str | None = None,
        description: str | None = None,
        history_provider: Callable[[], Sequence[Message]] | None = None,
    ) -> None:
        super().__init__(name or agent.name, description or agent.description, self.PARAMETERS)
        self.agent = agent
        self.history_provider = history_provider

    async def invoke(self, arguments: dict[str, Any]) -> str:
        history = list(self.history_provider()) if self.history_provider is not None else []
        return await self.agent.chat(arguments["prompt"], history)


__all__ = ["AgentCapability"]
