"""
Top-level package for the agent orchestration runtime.

Environment variables are loaded from the nearest `.env` so API keys are
available to providers and ``Settings.from_env``.
"""
from dotenv import find_dotenv, load_dotenv

# Keep side effect so API keys are loaded on import.
_ = load_dotenv(find_dotenv(), override=False)

from . import pipeline
from .agent import (
    Agent,
    AgentCapability,
    CapabilityOutcome,
    ExtractionResult,
    Extractor,
    PromptResponse,
    TurnRecord,
)
from .cache import CacheStats, PromptCache
from .cancellation import CancellationToken
from .capabilities import (
    BaseCapability,
    Capability,
    CapabilityDescriptor,
    CapabilityRegistry,
    FunctionCapability,
    capability,
    capability_from_function,
)
from .concurrency import BatchRunner, Outcome, gather_bounded, run_with_deadline
from .config import AgentConfig, OpenAIConfig, RetryConfig, Settings, get_settings
from .context import AssembledContext, ContextAssembler, Diagnostic, DynamicContext
from .engine import CompletionEngine
from .errors import (
    CancelledError,
    CapabilityError,
    CapabilityFatalError,
    CompletionError,
    CompletionFailedError,
    ConfigurationError,
    DuplicateCapabilityError,
    ExtractionFailedError,
    FatalCapabilityError,
    InvalidArgumentsError,
    InvalidSchemaError,
    NoMatchingRouteError,
    OrchestrationError,
    OrchestratorError,
    ParallelJoinError,
    PipelineError,
    ProviderUnavailableError,
    RateLimitedError,
    StepFailedError,
    TimedOutError,
    TurnLimitExceededError,
    UnknownCapabilityError,
)
from .hooks import Hook, HookManager, InMemoryHook, LoggingHook
from .logging import configure_logging
from .pipeline import Op, Parallel, Route
from .providers import (
    BaseCompletionModel,
    CapabilityChoice,
    CompletionModel,
    CompletionRequest,
    CompletionResponse,
    Document,
    Invocation,
    Message,
    OpenAIEmbedder,
    OpenAIProvider,
    Role,
    StopReason,
    StreamEvent,
    StreamEventType,
    Usage,
)
from .retrieval import Embedder, InMemoryVectorIndex, RetrievedDocument, Retriever
from .runtime import RunContext, current_context

__version__ = "0.1.0"

__all__ = [
    # Agents
    "Agent",
    "AgentCapability",
    "Extractor",
    "ExtractionResult",
    "PromptResponse",
    "CapabilityOutcome",
    "TurnRecord",
    # Capabilities
    "Capability",
    "BaseCapability",
    "FunctionCapability",
    "CapabilityDescriptor",
    "CapabilityRegistry",
    "capability",
    "capability_from_function",
    # Providers
    "CompletionModel",
    "BaseCompletionModel",
    "OpenAIProvider",
    "OpenAIEmbedder",
    "CapabilityChoice",
    "CompletionRequest",
    "CompletionResponse",
    "Document",
    "Invocation",
    "Message",
    "Role",
    "StopReason",
    "StreamEvent",
    "StreamEventType",
    "Usage",
    # Context and retrieval
    "ContextAssembler",
    "AssembledContext",
    "DynamicContext",
    "Diagnostic",
    "Retriever",
    "Embedder",
    "RetrievedDocument",
    "InMemoryVectorIndex",
    # Pipelines
    "pipeline",
    "Op",
    "Parallel",
    "Route",
    # Runtime
    "CompletionEngine",
    "PromptCache",
    "CacheStats",
    "CancellationToken",
    "RunContext",
    "current_context",
    "BatchRunner",
    "Outcome",
    "gather_bounded",
    "run_with_deadline",
    # Config and logging
    "AgentConfig",
    "OpenAIConfig",
    "RetryConfig",
    "Settings",
    "get_settings",
    "configure_logging",
    # Hooks
    "Hook",
    "HookManager",
    "InMemoryHook",
    "LoggingHook",
    # Errors
    "OrchestratorError",
    "ConfigurationError",
    "DuplicateCapabilityError",
    "UnknownCapabilityError",
    "InvalidSchemaError",
    "CapabilityError",
    "InvalidArgumentsError",
    "FatalCapabilityError",
    "CompletionError",
    "RateLimitedError",
    "ProviderUnavailableError",
    "OrchestrationError",
    "TurnLimitExceededError",
    "CancelledError",
    "TimedOutError",
    "CompletionFailedError",
    "CapabilityFatalError",
    "ExtractionFailedError",
    "PipelineError",
    "StepFailedError",
    "NoMatchingRouteError",
    "ParallelJoinError",
]
