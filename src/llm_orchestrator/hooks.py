"""
Observer hooks for the orchestration runtime.

Hooks receive a named event, a payload dict and the ``RunContext`` of the
request that produced it. Events emitted by the runtime:

- ``turn.start`` / ``turn.end``
- ``completion.request`` / ``completion.response`` / ``completion.retry``
- ``capability.invoked`` / ``capability.error``
- ``retrieval.error``
- ``cache.hit`` / ``cache.miss``
- ``pipeline.step``
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable
from typing import Any, Protocol


class Hook(Protocol):
    """Protocol for observability hooks."""

    async def emit(self, event: str, payload: dict, context: Any) -> None:
        """Emit an event with payload and run context."""
        ...


class HookManager:
    """Broadcasts events to every registered hook, in registration order."""

    def __init__(self, hooks: Iterable[Hook] | None = None) -> None:
        self._hooks = list(hooks or [])

    def add(self, hook: Hook) -> None:
        self._hooks.append(hook)

    def __bool__(self) -> bool:
        return bool(self._hooks)

    def __len__(self) -> int:
        return len(self._hooks)

    async def emit(self, event: str, payload: dict, context: Any) -> None:
        for hook in self._hooks:
            result = hook.emit(event, payload, context)
            if asyncio.iscoroutine(result):
                await result


class InMemoryHook:
    """
    Event recorder for tests and local inspection.

    Keeps every event in order, plus counters per event name and per
    capability.
    """

    def __init__(self) -> None:
        self.events: list[tuple[str, dict[str, Any]]] = []
        self.counters: dict[str, int] = {}
        self.capability_calls: dict[str, int] = {}
        self.errors: list[dict[str, Any]] = []

    async def emit(self, event: str, payload: dict, context: Any) -> None:
        self.events.append((event, dict(payload)))
        self.counters[event] = self.counters.get(event, 0) + 1

        if event == "capability.invoked":
            name = payload.get("capability", "unknown")
            self.capability_calls[name] = self.capability_calls.get(name, 0) + 1
        elif event.endswith(".error"):
            self.errors.append({"event": event, "payload": payload})

    def names(self) -> list[str]:
        """Event names in emission order."""
        return [name for name, _ in self.events]

    def of(self, event: str) -> list[dict[str, Any]]:
        """Payloads of every occurrence of ``event``."""
        return [payload for name, payload in self.events if name == event]

    def snapshot(self) -> dict[str, Any]:
        return {
            "counters": dict(self.counters),
            "capability_calls": dict(self.capability_calls),
            "errors": list(self.errors),
        }

    def reset(self) -> dict[str, Any]:
        """Reset state and return the previous snapshot."""
        snapshot = self.snapshot()
        self.events.clear()
        self.counters.clear()
        self.capability_calls.clear()
        self.errors.clear()
        return snapshot


class LoggingHook:
    """Writes hook events to a standard logger."""

    def __init__(self, logger: logging.Logger | None = None, level: int = logging.DEBUG) -> None:
        self.logger = logger or logging.getLogger("llm_orchestrator.events")
        self.level = level

    async def emit(self, event: str, payload: dict, context: Any) -> None:
        level = logging.WARNING if event.endswith(".error") else self.level
        if not self.logger.isEnabledFor(level):
            return
        request_id = getattr(context, "request_id", None)
        self.logger.log(
            level,
            "%s",
            event,
            extra={"event": event, "request_id": request_id, "payload": payload},
        )


__all__ = ["Hook", "HookManager", "InMemoryHook", "LoggingHook"]
