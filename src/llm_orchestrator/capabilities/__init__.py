"""
Capabilities: named, schema-described units the model can invoke.
"""

from .base import (
    BaseCapability,
    Capability,
    CapabilityDescriptor,
    FunctionCapability,
    capability_from_function,
)
from .decorators import capability
from .registry import CapabilityRegistry

__all__ = [
    "BaseCapability",
    "Capability",
    "CapabilityDescriptor",
    "CapabilityRegistry",
    "FunctionCapability",
    "capability",
    "capability_from_function",
]
