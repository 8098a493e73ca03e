"""
Capability registry.

Keeps capabilities in registration order, rejects duplicate names at
registration time and resolves invocation names during a turn.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from typing import Any

from ..errors import ConfigurationError, DuplicateCapabilityError, InvalidSchemaError, UnknownCapabilityError
from ..validation import check_schema, validate_capability_name
from .base import Capability, CapabilityDescriptor

logger = logging.getLogger(__name__)


class CapabilityRegistry:
    """
    Ordered mapping from capability name to capability.

    Example:
        ```python
        registry = CapabilityRegistry([add, subtract])
        registry.register(multiply)

        descriptors = await registry.descriptors("what is 2 * 3?")
        cap = registry.resolve("multiply")
        ```

    Once an agent is built from the registry it is frozen: the same registry
    may then be shared by concurrent turns without locking.
    """

    def __init__(self, capabilities: list[Capability] | None = None) -> None:
        self._capabilities: dict[str, Capability] = {}
        self._frozen = False
        for capability in capabilities or []:
            self.register(capability)

    def register(self, capability: Capability) -> CapabilityRegistry:
        """
        Register a capability.

        Returns:
            Self for chaining

        Raises:
            DuplicateCapabilityError: A capability with the same name exists
            InvalidSchemaError: The name or the parameter schema is malformed
            ConfigurationError: The registry is frozen
        """
        if self._frozen:
            raise ConfigurationError("Capability registry is frozen")
        if not isinstance(capability, Capability):
            raise ConfigurationError(f"Not a capability: {capability!r}")
        name = capability.name
        result = validate_capability_name(name)
        if not result:
            raise InvalidSchemaError(result.message())
        if name in self._capabilities:
            raise DuplicateCapabilityError(name)
        parameters = getattr(capability, "parameters", None)
        if parameters is not None:
            check_schema(parameters, owner=name)

        self._capabilities[name] = capability
        logger.debug("Registered capability %s", name)
        return self

    def resolve(self, name: str) -> Capability:
        """
        Raises:
            UnknownCapabilityError: No capability is registered under ``name``.
        """
        try:
            return self._capabilities[name]
        except KeyError:
            raise UnknownCapabilityError(name) from None

    def get(self, name: str) -> Capability | None:
        return self._capabilities.get(name)

    async def descriptors(self, prompt: str) -> list[CapabilityDescriptor]:
        """Descriptors for every capability, in registration order."""
        out: list[CapabilityDescriptor] = []
        for capability in self._capabilities.values():
            descriptor = await capability.descriptor(prompt)
            if descriptor.name != capability.name:
                raise ConfigurationError(
                    f"Descriptor name {descriptor.name!r} does not match capability {capability.name!r}"
                )
            out.append(descriptor)
        return out

    def freeze(self) -> CapabilityRegistry:
        self._frozen = True
        return self

    @property
    def frozen(self) -> bool:
        return self._frozen

    def copy(self) -> CapabilityRegistry:
        """Unfrozen copy with the same capabilities, in the same order."""
        return CapabilityRegistry(list(self._capabilities.values()))

    @property
    def names(self) -> list[str]:
        return list(self._capabilities)

    def __contains__(self, name: Any) -> bool:
        return name in self._capabilities

    def __len__(self) -> int:
        return len(self._capabilities)

    def __iter__(self) -> Iterator[Capability]:
        return iter(list(self._capabilities.values()))

    def __repr__(self) -> str:
        return f"CapabilityRegistry({self.names!r})"


__all__ = ["CapabilityRegistry"]
