"""
Completion model adapters.
"""

from .base import BaseCompletionModel, CompletionModel, open_stream, replay_response
from .openai import OpenAIEmbedder, OpenAIProvider, map_openai_error
from .types import (
    CapabilityChoice,
    CompletionRequest,
    CompletionResponse,
    Document,
    GenerationParams,
    Invocation,
    Message,
    Role,
    StopReason,
    StreamEvent,
    StreamEventType,
    Usage,
)

__all__ = [
    # Protocol
    "CompletionModel",
    "BaseCompletionModel",
    "open_stream",
    "replay_response",
    # Adapters
    "OpenAIProvider",
    "OpenAIEmbedder",
    "map_openai_error",
    # Types
    "CapabilityChoice",
    "CompletionRequest",
    "CompletionResponse",
    "Document",
    "GenerationParams",
    "Invocation",
    "Message",
    "Role",
    "StopReason",
    "StreamEvent",
    "StreamEventType",
    "Usage",
]
