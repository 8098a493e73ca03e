"""
Capability interface.

This module provides:
- CapabilityDescriptor, the name/description/schema advertised to the model
- Capability, the protocol every invokable unit implements
- BaseCapability and FunctionCapability for native Python functions
- capability_from_function to derive a schema from a signature
"""

from __future__ import annotations

import inspect
import types
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import (
    Any,
    Literal,
    Protocol,
    Union,
    get_args,
    get_origin,
    get_type_hints,
    runtime_checkable,
)

from ..concurrency import run_sync
from ..errors import InvalidArgumentsError, InvalidSchemaError
from ..validation import check_schema, validate_against_schema, validate_capability_name


@dataclass(frozen=True)
class CapabilityDescriptor:
    """What the model sees of a capability."""

    name: str
    description: str
    parameters: dict[str, Any] = field(default_factory=lambda: {"type": "object", "properties": {}})

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "description": self.description, "parameters": self.parameters}

    def to_openai_format(self) -> dict[str, Any]:
        """Convert to OpenAI tools format."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters,
            },
        }


@runtime_checkable
class Capability(Protocol):
    """
    A named, invokable unit the model can request.

    ``invoke`` receives arguments that already passed schema validation and
    returns any value; the turn loop serialises it to text for the model.
    Failures are reported by raising ``CapabilityError``.
    """

    @property
    def name(self) -> str: ...

    async def descriptor(self, prompt: str) -> CapabilityDescriptor: ...

    async def invoke(self, arguments: dict[str, Any]) -> Any: ...


class BaseCapability(ABC):
    """
    Base class for capabilities with a fixed descriptor.

    Validates the name and parameter schema at construction so configuration
    mistakes surface before any request is made.
    """

    def __init__(
        self,
        name: str,
        description: str,
        parameters: dict[str, Any] | None = None,
    ) -> None:
        result = validate_capability_name(name)
        if not result:
            raise InvalidSchemaError(result.message())
        parameters = parameters if parameters is not None else {"type": "object", "properties": {}}
        check_schema(parameters, owner=name)
        self._name = name
        self.description = description
        self.parameters = parameters

    @property
    def name(self) -> str:
        return self._name

    async def descriptor(self, prompt: str) -> CapabilityDescriptor:
        return CapabilityDescriptor(name=self._name, description=self.description, parameters=self.parameters)

    def validate_arguments(self, arguments: dict[str, Any]) -> None:
        """
        Raises:
            InvalidArgumentsError: Arguments do not satisfy the parameter schema.
        """
        result = validate_against_schema(arguments, self.parameters)
        if not result:
            raise InvalidArgumentsError(f"Invalid arguments: {result.message()}", capability=self._name)

    @abstractmethod
    async def invoke(self, arguments: dict[str, Any]) -> Any: ...

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self._name!r})"


class FunctionCapability(BaseCapability):
    """
    Capability backed by a Python callable.

    Example:
        ```python
        async def add(a: int, b: int) -> int:
            return a + b

        adder = FunctionCapability(
            name="add",
            description="Add two integers",
            parameters={
                "type": "object",
                "properties": {"a": {"type": "integer"}, "b": {"type": "integer"}},
                "required": ["a", "b"],
            },
            handler=add,
        )
        ```

    Synchronous handlers run in the shared thread pool.
    """

    def __init__(
        self,
        name: str,
        description: str,
        parameters: dict[str, Any] | None,
        handler: Callable[..., Any],
    ) -> None:
        super().__init__(name, description, parameters)
        self.handler = handler

    async def invoke(self, arguments: dict[str, Any]) -> Any:
        if inspect.iscoroutinefunction(self.handler):
            return await self.handler(**arguments)
        result = await run_sync(self.handler, **arguments)
        if inspect.isawaitable(result):
            return await result
        return result


def _python_type_to_json_schema(py_type: Any) -> dict[str, Any]:
    """Convert Python type annotations to JSON Schema."""
    origin = get_origin(py_type)
    args = get_args(py_type)

    if origin in (Union, types.UnionType):
        non_none = [a for a in args if a is not type(None)]
        if len(non_none) == 1:
            return _python_type_to_json_schema(non_none[0])
        return {"anyOf": [_python_type_to_json_schema(a) for a in non_none]}

    if origin is Literal:
        return {"enum": list(args)}

    if origin in (list, tuple, set, frozenset):
        return {"type": "array", "items": _python_type_to_json_schema(args[0]) if args else {}}

    if origin is dict:
        return {"type": "object"}

    type_map: dict[Any, dict[str, Any]] = {
        str: {"type": "string"},
        int: {"type": "integer"},
        float: {"type": "number"},
        bool: {"type": "boolean"},
        list: {"type": "array"},
        dict: {"type": "object"},
        type(None): {"type": "null"},
        Any: {},
    }
    return dict(type_map.get(py_type, {"type": "string"}))


def _param_descriptions(doc: str | None) -> dict[str, str]:
    """Pull ``name: description`` lines out of a Google-style Args section."""
    if not doc:
        return {}
    descriptions: dict[str, str] = {}
    in_args = False
    for raw in doc.splitlines():
        line = raw.strip()
        if line in ("Args:", "Arguments:", "Parameters:"):
            in_args = True
            continue
        if not in_args or not line:
            continue
        # Next section header, e.g. "Returns:"
        if line.endswith(":") and " " not in line:
            break
        key, sep, text = line.partition(":")
        key = key.split("(")[0].strip()
        if sep and key.isidentifier():
            descriptions[key] = text.strip()
    return descriptions


def capability_from_function(
    func: Callable[..., Any],
    *,
    name: str | None = None,
    description: str | None = None,
) -> FunctionCapability:
    """
    Create a FunctionCapability from a function (sync or async).

    Uses the signature for the parameter schema and the docstring for the
    description and per-parameter descriptions.

    Args:
        func: Function to convert
        name: Capability name (defaults to the function name)
        description: Description (defaults to the docstring's first paragraph)

    Example:
        ```python
        def lookup_order(order_id: str, include_items: bool = False) -> dict:
            '''Fetch an order by id.

            Args:
                order_id: Order identifier
                include_items: Also return line items
            '''
            ...

        cap = capability_from_function(lookup_order)
        ```
    """
    sig = inspect.signature(func)
    try:
        hints = get_type_hints(func)
    except (NameError, TypeError):
        hints = {}
    doc = inspect.getdoc(func)
    param_docs = _param_descriptions(doc)

    properties: dict[str, Any] = {}
    required: list[str] = []
    for param_name, param in sig.parameters.items():
        if param_name in ("self", "cls") or param.kind in (param.VAR_POSITIONAL, param.VAR_KEYWORD):
            continue
        schema = _python_type_to_json_schema(hints.get(param_name, str))
        if param_name in param_docs:
            schema["description"] = param_docs[param_name]
        properties[param_name] = schema
        if param.default is inspect.Parameter.empty:
            required.append(param_name)

    parameters: dict[str, Any] = {"type": "object", "properties": properties}
    if required:
        parameters["required"] = required

    summary = description
    if not summary and doc:
        summary = doc.split("\n\n")[0].strip()

    return FunctionCapability(
        name=name or func.__name__,
        description=summary or f"Execute {func.__name__}",
        parameters=parameters,
        handler=func,
    )


__all__ = [
    "CapabilityDescriptor",
    "Capability",
    "BaseCapability",
    "FunctionCapability",
    "capability_from_function",
]
