"""Cancellation tokens for cooperative task interruption.

A ``CancellationToken`` is handed to ``Agent.prompt``, ``Op.call`` and the
batch helpers. The runtime checks it at its suspension points (before each
completion request, before each capability invoke) and also races it against
in-flight boundary calls, so a cancel request interrupts a slow completion or
tool instead of waiting for it to return.

Cancelling is a one-way latch backed by an ``asyncio.Event``:
- Cancelling is idempotent and fires registered callbacks once
- Child tokens are cancelled with their parent, never the other way round
"""

from __future__ import annotations

import asyncio
import logging
import weakref
from collections.abc import Awaitable
from dataclasses import dataclass, field
from typing import Any, Callable, TypeVar

from .errors import CancelledError

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(eq=False)
class CancellationToken:
    """Shared cancel flag for one run and everything it starts.

    Example:
        token = CancellationToken()
        task = asyncio.create_task(agent.prompt("hi", cancellation_token=token))
        token.cancel()  # the prompt raises CancelledError
    """

    _event: asyncio.Event = field(default_factory=asyncio.Event, init=False)
    _callbacks: list[Callable[[], Any]] = field(default_factory=list, init=False)
    _children: weakref.WeakSet[CancellationToken] = field(default_factory=weakref.WeakSet, init=False, repr=False)
    _noop: bool = field(default=False, init=False, repr=False)

    @property
    def is_cancelled(self) -> bool:
        """True once ``cancel()`` has been called."""
        if self._noop:
            return False
        return self._event.is_set()

    def cancel(self) -> None:
        """Fire the token. Later calls do nothing."""
        if self._noop or self._event.is_set():
            return
        self._event.set()
        for callback in list(self._callbacks):
            self._run_callback(callback)
        for child in list(self._children):
            child.cancel()

    async def wait(self) -> None:
        """Block until ``cancel()`` is called."""
        if self._noop:
            await asyncio.Future()
            return
        await self._event.wait()

    def on_cancel(self, callback: Callable[[], Any]) -> Callable[[], None]:
        """Run ``callback`` when the token fires, or now if it already has.

        Returns a function that unregisters the callback.
        """
        if self._noop:
            return _unregistered
        self._callbacks.append(callback)
        if self._event.is_set():
            self._run_callback(callback)

        def unregister() -> None:
            if callback in self._callbacks:
                self._callbacks.remove(callback)

        return unregister

    def raise_if_cancelled(self) -> None:
        """Raise ``CancelledError`` if the token has fired."""
        if self.is_cancelled:
            raise CancelledError("Operation was cancelled")

    def child(self) -> CancellationToken:
        """Create a token that is cancelled whenever this one is."""
        token = CancellationToken()
        self.link(token)
        return token

    def link(self, token: CancellationToken) -> None:
        """Cancel ``token`` whenever this one fires.

        The link is weak: a linked token that is no longer referenced drops
        out, so a long-lived token can parent any number of calls.
        """
        if self._noop or token is self:
            return
        if self._event.is_set():
            token.cancel()
            return
        self._children.add(token)

    async def guard(self, awaitable: Awaitable[T]) -> T:
        """Await ``awaitable`` unless the token fires first.

        When the token fires the in-flight task is cancelled and
        ``CancelledError`` is raised.
        """
        self.raise_if_cancelled()
        task = asyncio.ensure_future(awaitable)
        if self._noop:
            return await task
        waiter = asyncio.ensure_future(self._event.wait())
        try:
            done, _ = await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            task.cancel()
            raise
        finally:
            waiter.cancel()
        if task in done:
            return task.result()
        task.cancel()
        try:
            await task
        except (asyncio.CancelledError, Exception):
            logger.debug("Task raised while being cancelled", exc_info=True)
        raise CancelledError("Operation was cancelled")

    @staticmethod
    def _run_callback(callback: Callable[[], Any]) -> None:
        try:
            callback()
        except Exception:
            logger.warning("Cancellation callback failed", exc_info=True)

    @classmethod
    def none(cls) -> CancellationToken:
        """Return a no-op token that never cancels."""
        global _NEVER_CANCEL
        if _NEVER_CANCEL is None:
            token = cls()
            token._noop = True
            _NEVER_CANCEL = token
        return _NEVER_CANCEL


def _unregistered() -> None:
    return None


# Created lazily so no event loop is needed at import time
_NEVER_CANCEL: CancellationToken | None = None


__all__ = ["CancellationToken", "CancelledError"]
