"""
Decorators for defining capabilities from plain functions.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any, TypeVar, overload

from .base import FunctionCapability, capability_from_function

F = TypeVar("F", bound=Callable[..., Any])


@overload
def capability(func: F) -> FunctionCapability: ...


@overload
def capability(
    *,
    name: str | None = None,
    description: str | None = None,
) -> Callable[[F], FunctionCapability]: ...


def capability(
    func: F | None = None,
    *,
    name: str | None = None,
    description: str | None = None,
) -> FunctionCapability | Callable[[F], FunctionCapability]:
    """
    Decorator to convert a function into a FunctionCapability.

    Can be used with or without arguments:

    ```python
    @capability
    async def search(query: str) -> str:
        '''Search the knowledge base.'''
        return f"Results for {query}"

    @capability(name="add", description="Add two integers")
    def add_numbers(a: int, b: int) -> int:
        return a + b
    ```

    Sync functions are run in the shared thread pool when invoked.
    """

    def decorator(fn: F) -> FunctionCapability:
        return capability_from_function(fn, name=name, description=description)

    if func is not None:
        return decorator(func)

    return decorator


__all__ = ["capability"]
