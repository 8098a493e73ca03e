"""
Pipeline steps backed by agents and extractors.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from ..serialization import to_text
from .base import Op

if TYPE_CHECKING:
    from ..agent.core import Agent
    from ..agent.extractor import Extractor


class Prompt(Op):
    """
    Prompt an agent with the input and return its text answer.

    Non-string inputs are serialised to text first. The agent runs nested
    under the pipeline's run context, so cancelling the pipeline cancels it.
    """

    def __init__(self, agent: Agent, *, max_turns: int | None = None) -> None:
        self.agent = agent
        self.max_turns = max_turns

    @property
    def name(self) -> str:
        return f"Prompt[{self.agent.name}]"

    async def execute(self, input: Any) -> str:
        response = await self.agent.run(to_text(input), max_turns=self.max_turns)
        return response.content


class Extract(Op):
    """Run an extractor on the input text and return the validated data."""

    def __init__(self, extractor: Extractor) -> None:
        self.extractor = extractor

    @property
    def name(self) -> str:
        return f"Extract[{self.extractor.name}]"

    async def execute(self, input: Any) -> Any:
        return await self.extractor.extract(to_text(input))


__all__ = ["Prompt", "Extract"]
