"""
Error taxonomy for llm-orchestrator.

This module provides a hierarchical exception system with:
- Error codes for programmatic handling
- Retryable vs fatal classification for completion failures
- Structured context for debugging
- HTTP status mapping for completion adapters

Every error raised by the runtime derives from ``OrchestratorError``. The
families mirror the layers of the runtime: configuration problems surface at
construction time, capability and retrieval errors stay inside a turn,
completion errors come from the model boundary, orchestration errors are what
callers of ``Agent.prompt`` see, and pipeline errors are what ``Op.try_call``
reports.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    """Standardized error codes for the orchestration runtime."""

    # Configuration errors (1xxx)
    CONFIG_ERROR = "ORC_1000"
    DUPLICATE_CAPABILITY = "ORC_1001"
    UNKNOWN_CAPABILITY = "ORC_1002"
    INVALID_SCHEMA = "ORC_1003"
    INVALID_CONFIG = "ORC_1004"

    # Capability errors (2xxx)
    CAPABILITY_ERROR = "ORC_2000"
    INVALID_ARGUMENTS = "ORC_2001"
    CAPABILITY_EXECUTION = "ORC_2002"
    CAPABILITY_TIMEOUT = "ORC_2003"
    CAPABILITY_FATAL = "ORC_2004"

    # Completion errors (3xxx)
    COMPLETION_ERROR = "ORC_3000"
    RATE_LIMITED = "ORC_3001"
    INVALID_REQUEST = "ORC_3002"
    PROVIDER_UNAVAILABLE = "ORC_3003"
    UNAUTHORIZED = "ORC_3004"

    # Retrieval errors (4xxx)
    RETRIEVAL_ERROR = "ORC_4000"

    # Orchestration errors (5xxx)
    ORCHESTRATION_ERROR = "ORC_5000"
    TURN_LIMIT_EXCEEDED = "ORC_5001"
    CANCELLED = "ORC_5002"
    TIMED_OUT = "ORC_5003"
    COMPLETION_FAILED = "ORC_5004"
    CAPABILITY_ABORTED = "ORC_5005"
    EXTRACTION_FAILED = "ORC_5006"

    # Pipeline errors (6xxx)
    PIPELINE_ERROR = "ORC_6000"
    STEP_FAILED = "ORC_6001"
    NO_MATCHING_ROUTE = "ORC_6002"
    PARALLEL_JOIN = "ORC_6003"

    # Internal errors (9xxx)
    INTERNAL_ERROR = "ORC_9000"


@dataclass
class ErrorContext:
    """Structured context for error debugging."""

    request_id: str | None = None
    agent: str | None = None
    capability: str | None = None
    turn: int | None = None
    operation: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "request_id": self.request_id,
            "agent": self.agent,
            "capability": self.capability,
            "turn": self.turn,
            "operation": self.operation,
            **self.extra,
        }


class OrchestratorError(Exception):
    """
    Base exception for all orchestration runtime errors.

    Attributes:
        code: Standardized error code for programmatic handling
        message: Human-readable error message
        retryable: Whether the operation can be retried
        context: Structured debugging context
        cause: Original exception that caused this error
    """

    code: ErrorCode = ErrorCode.INTERNAL_ERROR
    retryable: bool = False

    def __init__(
        self,
        message: str,
        *,
        code: ErrorCode | None = None,
        retryable: bool | None = None,
        context: ErrorContext | None = None,
        cause: BaseException | None = None,
    ):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        if retryable is not None:
            self.retryable = retryable
        self.context = context or ErrorContext()
        self.cause = cause

    def __str__(self) -> str:
        parts = [f"[{self.code.value}] {self.message}"]
        if self.context.request_id:
            parts.append(f"(request_id={self.context.request_id})")
        return " ".join(parts)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "code": self.code.value,
            "message": self.message,
            "retryable": self.retryable,
            "context": self.context.to_dict(),
            "cause": str(self.cause) if self.cause else None,
        }


# =============================================================================
# Configuration Errors
# =============================================================================


class ConfigurationError(OrchestratorError):
    """Raised at construction time, before any request is made."""

    code = ErrorCode.CONFIG_ERROR


class DuplicateCapabilityError(ConfigurationError):
    """A capability with the same name is already registered."""

    code = ErrorCode.DUPLICATE_CAPABILITY

    def __init__(self, name: str, **kwargs):
        super().__init__(f"Capability already registered: {name}", **kwargs)
        self.name = name


class UnknownCapabilityError(ConfigurationError):
    """No capability is registered under the requested name."""

    code = ErrorCode.UNKNOWN_CAPABILITY

    def __init__(self, name: str, **kwargs):
        super().__init__(f"Capability not found: {name}", **kwargs)
        self.name = name


class InvalidSchemaError(ConfigurationError):
    """A parameter schema is not a valid JSON Schema."""

    code = ErrorCode.INVALID_SCHEMA


class InvalidConfigError(ConfigurationError):
    """Configuration values are invalid."""

    code = ErrorCode.INVALID_CONFIG


# =============================================================================
# Capability Errors
# =============================================================================


class CapabilityError(OrchestratorError):
    """
    Base class for failures raised by a capability invocation.

    Non-fatal capability errors are reported back to the model as result
    text. Subclasses with ``fatal = True`` abort the turn instead.
    """

    code = ErrorCode.CAPABILITY_ERROR
    fatal: bool = False

    def __init__(
        self,
        message: str = "Capability failed",
        *,
        capability: str | None = None,
        **kwargs,
    ):
        super().__init__(message, **kwargs)
        self.capability = capability


class InvalidArgumentsError(CapabilityError):
    """Arguments did not parse or did not match the parameter schema."""

    code = ErrorCode.INVALID_ARGUMENTS


class CapabilityExecutionError(CapabilityError):
    """The capability raised while running."""

    code = ErrorCode.CAPABILITY_EXECUTION


class CapabilityTimeoutError(CapabilityError):
    """The capability did not finish within its time budget."""

    code = ErrorCode.CAPABILITY_TIMEOUT

    def __init__(
        self,
        message: str = "Capability timed out",
        *,
        timeout: float | None = None,
        **kwargs,
    ):
        super().__init__(message, **kwargs)
        self.timeout = timeout


class FatalCapabilityError(CapabilityError):
    """A capability failure that must abort the whole turn."""

    code = ErrorCode.CAPABILITY_FATAL
    fatal = True


# =============================================================================
# Completion Errors
# =============================================================================


class CompletionError(OrchestratorError):
    """Base class for errors from the completion boundary."""

    code = ErrorCode.COMPLETION_ERROR
    retryable = False
    http_status: int | None = None

    def __init__(
        self,
        message: str,
        *,
        http_status: int | None = None,
        **kwargs,
    ):
        super().__init__(message, **kwargs)
        if http_status is not None:
            self.http_status = http_status


class RateLimitedError(CompletionError):
    """Rate limit exceeded. Retryable after a delay."""

    code = ErrorCode.RATE_LIMITED
    retryable = True
    http_status = 429

    def __init__(
        self,
        message: str = "Rate limit exceeded",
        *,
        retry_after: float | None = None,
        **kwargs,
    ):
        super().__init__(message, **kwargs)
        self.retry_after = retry_after


class ProviderUnavailableError(CompletionError):
    """Completion service is temporarily unavailable. Retryable."""

    code = ErrorCode.PROVIDER_UNAVAILABLE
    retryable = True
    http_status = 503

    def __init__(self, message: str = "Completion service unavailable", **kwargs):
        super().__init__(message, **kwargs)


class InvalidRequestError(CompletionError):
    """The completion service rejected the request. Not retryable."""

    code = ErrorCode.INVALID_REQUEST
    http_status = 400

    def __init__(self, message: str = "Invalid completion request", **kwargs):
        super().__init__(message, **kwargs)


class UnauthorizedError(CompletionError):
    """Invalid or missing credentials. Not retryable."""

    code = ErrorCode.UNAUTHORIZED
    http_status = 401

    def __init__(self, message: str = "Authentication failed. Check your API key.", **kwargs):
        super().__init__(message, **kwargs)


# =============================================================================
# Retrieval Errors
# =============================================================================


class RetrievalError(OrchestratorError):
    """A retrieval query failed. Never fatal to a turn."""

    code = ErrorCode.RETRIEVAL_ERROR


# =============================================================================
# Orchestration Errors
# =============================================================================


class OrchestrationError(OrchestratorError):
    """Base class for errors surfaced by the turn loop to its caller."""

    code = ErrorCode.ORCHESTRATION_ERROR


class TurnLimitExceededError(OrchestrationError):
    """
    The turn limit was reached while the model still requested capabilities.

    Attributes:
        content: Last non-empty assistant content produced during the turn
        history: Full message history at the point the limit was reached
        max_turns: The configured limit
    """

    code = ErrorCode.TURN_LIMIT_EXCEEDED

    def __init__(
        self,
        message: str = "Maximum turns exceeded",
        *,
        max_turns: int | None = None,
        content: str = "",
        history: list | None = None,
        **kwargs,
    ):
        if max_turns is not None:
            message = f"{message} (max_turns={max_turns})"
        super().__init__(message, **kwargs)
        self.max_turns = max_turns
        self.content = content
        self.history = list(history or [])


class CancelledError(OrchestrationError):
    """The operation was cancelled through its cancellation token."""

    code = ErrorCode.CANCELLED

    def __init__(self, message: str = "Operation cancelled", **kwargs):
        super().__init__(message, **kwargs)


class TimedOutError(OrchestrationError):
    """The operation exceeded its timeout."""

    code = ErrorCode.TIMED_OUT

    def __init__(
        self,
        message: str = "Operation timed out",
        *,
        timeout: float | None = None,
        **kwargs,
    ):
        super().__init__(message, **kwargs)
        self.timeout = timeout


class CompletionFailedError(OrchestrationError):
    """A completion request failed and could not be retried any further."""

    code = ErrorCode.COMPLETION_FAILED


class CapabilityFatalError(OrchestrationError):
    """A capability raised a fatal error and the turn was aborted."""

    code = ErrorCode.CAPABILITY_ABORTED


class ExtractionFailedError(OrchestrationError):
    """Structured extraction produced no valid data within its repair budget."""

    code = ErrorCode.EXTRACTION_FAILED

    def __init__(
        self,
        message: str = "Extraction failed",
        *,
        errors: list[str] | None = None,
        attempts: int = 0,
        **kwargs,
    ):
        super().__init__(message, **kwargs)
        self.errors = list(errors or [])
        self.attempts = attempts


# =============================================================================
# Pipeline Errors
# =============================================================================


class PipelineError(OrchestratorError):
    """Base class for failures reported by ``Op.try_call``."""

    code = ErrorCode.PIPELINE_ERROR


class StepFailedError(PipelineError):
    """A pipeline step raised. The original exception is kept in ``cause``."""

    code = ErrorCode.STEP_FAILED

    def __init__(
        self,
        message: str = "Pipeline step failed",
        *,
        step: str | None = None,
        **kwargs,
    ):
        super().__init__(message, **kwargs)
        self.step = step


class NoMatchingRouteError(PipelineError):
    """A router produced a discriminator with no registered branch."""

    code = ErrorCode.NO_MATCHING_ROUTE

    def __init__(self, discriminator: Any, **kwargs):
        super().__init__(f"No route for discriminator: {discriminator!r}", **kwargs)
        self.discriminator = discriminator


class ParallelJoinError(PipelineError):
    """A branch of a parallel join failed. Reports the first failure by position."""

    code = ErrorCode.PARALLEL_JOIN

    def __init__(self, index: int, cause: BaseException, **kwargs):
        super().__init__(f"Parallel branch {index} failed: {cause}", cause=cause, **kwargs)
        self.index = index


# =============================================================================
# Error Mapping from HTTP Status Codes
# =============================================================================


def error_from_status(
    status: int,
    message: str,
    *,
    context: ErrorContext | None = None,
    retry_after: float | None = None,
) -> CompletionError:
    """
    Create the matching CompletionError from an HTTP status code.

    Args:
        status: HTTP status code
        message: Error message from the completion service
        context: Additional error context
        retry_after: Retry hint in seconds, used for 429 responses

    Returns:
        CompletionError subclass for the status
    """
    if status == 429:
        return RateLimitedError(message, retry_after=retry_after, context=context)
    if status in (401, 403):
        return UnauthorizedError(message, http_status=status, context=context)
    if status in (400, 404, 413, 422):
        return InvalidRequestError(message, http_status=status, context=context)
    if status >= 500 or status == 408:
        return ProviderUnavailableError(message, http_status=status, context=context)
    return CompletionError(message, http_status=status, context=context)


def is_retryable(error: BaseException) -> bool:
    """
    Check if an error is retryable.

    Args:
        error: Exception to check

    Returns:
        True if the error is retryable
    """
    if isinstance(error, OrchestratorError):
        return error.retryable

    retryable_types = (
        asyncio.TimeoutError,
        ConnectionError,
        TimeoutError,
    )
    return isinstance(error, retryable_types)


__all__ = [
    # Base
    "ErrorCode",
    "ErrorContext",
    "OrchestratorError",
    # Configuration
    "ConfigurationError",
    "DuplicateCapabilityError",
    "UnknownCapabilityError",
    "InvalidSchemaError",
    "InvalidConfigError",
    # Capability
    "CapabilityError",
    "InvalidArgumentsError",
    "CapabilityExecutionError",
    "CapabilityTimeoutError",
    "FatalCapabilityError",
    # Completion
    "CompletionError",
    "RateLimitedError",
    "ProviderUnavailableError",
    "InvalidRequestError",
    "UnauthorizedError",
    # Retrieval
    "RetrievalError",
    # Orchestration
    "OrchestrationError",
    "TurnLimitExceededError",
    "CancelledError",
    "TimedOutError",
    "CompletionFailedError",
    "CapabilityFatalError",
    "ExtractionFailedError",
    # Pipeline
    "PipelineError",
    "StepFailedError",
    "NoMatchingRouteError",
    "ParallelJoinError",
    # Utilities
    "error_from_status",
    "is_retryable",
]
