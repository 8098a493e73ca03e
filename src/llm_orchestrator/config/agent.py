"""
Agent configuration.
"""

from __future__ import annotations

from dataclasses import dataclass, replace

from ..errors import InvalidConfigError


@dataclass
class AgentConfig:
    """Configuration for turn loop behavior.

    ``max_turns`` bounds the number of completion requests in one call.
    With the default of 1 an agent answers single-shot: requested
    capabilities are not executed.
    """

    # Turn limits
    max_turns: int = 1
    max_invocations_per_turn: int | None = None

    # Capability execution
    parallel_capabilities: bool = True
    capability_timeout: float | None = 30.0
    max_capability_output_chars: int | None = None

    # Behavior
    trace: bool = False
    batch_concurrency: int = 8

    def __post_init__(self):
        if self.max_turns < 1:
            raise InvalidConfigError("max_turns must be at least 1")
        if self.capability_timeout is not None and self.capability_timeout <= 0:
            raise InvalidConfigError("capability_timeout must be positive")
        if self.max_invocations_per_turn is not None and self.max_invocations_per_turn < 1:
            raise InvalidConfigError("max_invocations_per_turn must be at least 1")
        if self.max_capability_output_chars is not None and self.max_capability_output_chars < 1:
            raise InvalidConfigError("max_capability_output_chars must be at least 1")
        if self.batch_concurrency < 1:
            raise InvalidConfigError("batch_concurrency must be at least 1")

    def with_overrides(self, **changes) -> AgentConfig:
        """Return a copy with some fields replaced."""
        return replace(self, **changes)


__all__ = ["AgentConfig"]
