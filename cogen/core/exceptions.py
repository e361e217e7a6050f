"""Custom exception hierarchy for cogen.

All exceptions inherit from CogenError so callers can catch broadly
or narrowly as needed. Failures that reach a caller are
OrchestrationError subclasses carrying a closed ErrorKind.
"""

from __future__ import annotations

import enum
from typing import Any, Optional


class CogenError(Exception):
    """Base exception for all cogen errors."""


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

class ConfigError(CogenError):
    """Invalid or missing configuration."""


# ---------------------------------------------------------------------------
# LLM
# ---------------------------------------------------------------------------

class LLMError(CogenError):
    """Failed LLM operation."""


class AuthenticationError(LLMError):
    """Invalid API key or unauthorized."""


class ModelNotFoundError(LLMError):
    """Requested model not available."""


class ResponseParseError(LLMError):
    """Failed to parse LLM response."""


# ---------------------------------------------------------------------------
# Injected collaborators (generation capability, context provider)
# ---------------------------------------------------------------------------

class CapabilityError(CogenError):
    """A collaborator failed to produce its output."""


class TransientGenerationError(CapabilityError):
    """Generator failed this attempt; the loop may try again."""


class FatalGenerationError(CapabilityError):
    """Generator is unavailable; the loop must abort."""


# ---------------------------------------------------------------------------
# Caller-visible failures
# ---------------------------------------------------------------------------

class ErrorKind(str, enum.Enum):
    RATE_LIMIT_EXCEEDED = "RateLimitExceeded"
    DIRECTIVE_TOO_LARGE = "DirectiveTooLarge"
    GENERATION_EXHAUSTED = "GenerationExhausted"
    GENERATION_CAPABILITY_FAILURE = "GenerationCapabilityFailure"
    VALIDATION_SANDBOX_FAULT = "ValidationSandboxFault"
    REQUEST_TIMEOUT = "RequestTimeout"


class OrchestrationError(CogenError):
    """Failure surfaced to the caller of the orchestrator."""

    kind: ErrorKind

    def __init__(self, message: str, **context: Any):
        self.context = {k: v for k, v in context.items() if v is not None}
        super().__init__(message)

    def to_payload(self) -> dict[str, Any]:
        """Structured, log-safe body for the caller. No diagnostic text."""
        return {"error": self.kind.value, **self.context}


class RateLimitExceeded(OrchestrationError):
    """Caller exceeded the admission ceiling for the current window."""

    kind = ErrorKind.RATE_LIMIT_EXCEEDED

    def __init__(self, caller_id: str, retry_after_seconds: Optional[float] = None):
        self.caller_id = caller_id
        self.retry_after_seconds = retry_after_seconds
        retry = round(retry_after_seconds, 3) if retry_after_seconds is not None else None
        super().__init__(
            f"Caller {caller_id} exceeded admission ceiling",
            retry_after_seconds=retry,
        )


class DirectiveTooLarge(OrchestrationError):
    """Prompt or mission exceeds its length bound."""

    kind = ErrorKind.DIRECTIVE_TOO_LARGE

    def __init__(self, field: str, length: int, limit: int):
        self.field = field
        self.length = length
        self.limit = limit
        super().__init__(
            f"Directive {field} is {length} characters (limit {limit})",
            field=field,
            limit=limit,
        )


class GenerationExhausted(OrchestrationError):
    """Loop reached its cycle bound without an accepted candidate."""

    kind = ErrorKind.GENERATION_EXHAUSTED

    def __init__(self, cycles: int, reasons: Optional[list[str]] = None):
        self.cycles = cycles
        self.reasons = list(reasons or [])
        super().__init__(f"No candidate accepted after {cycles} cycles", cycles=cycles)


class GenerationCapabilityFailure(OrchestrationError):
    """Generator unavailable or faulted; no further attempts were made."""

    kind = ErrorKind.GENERATION_CAPABILITY_FAILURE

    def __init__(self, message: str = "Generation capability unavailable", cycles: int = 0):
        self.cycles = cycles
        super().__init__(message, cycles=cycles)


class ValidationSandboxFault(OrchestrationError):
    """Sandbox crashed independent of candidate content."""

    kind = ErrorKind.VALIDATION_SANDBOX_FAULT

    def __init__(self, message: str = "Validation sandbox fault"):
        super().__init__(message)


class RequestTimeout(OrchestrationError):
    """Caller stopped waiting; the generation run continues in the background."""

    kind = ErrorKind.REQUEST_TIMEOUT

    def __init__(self, timeout_seconds: float):
        self.timeout_seconds = timeout_seconds
        super().__init__(
            f"No result within {timeout_seconds}s",
            timeout_seconds=timeout_seconds,
        )
