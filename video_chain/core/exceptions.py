"""
Custom Exceptions
=================

Unified exception hierarchy for consistent error handling across the chain.

Every failure raised by a component derives from VideoChainError. When the
orchestrator aborts a run it tags the original exception with the segment
ordinal and phase it occurred in (see ``with_context``) and re-raises it, so
callers can still catch the specific type.
"""

from typing import Optional, Dict, Any, List


class VideoChainError(Exception):
    """Base exception for all Video Chain errors."""

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        recoverable: bool = False,
    ):
        super().__init__(message)
        self.message = message
        self.code = code or self.__class__.__name__
        self.details = details or {}
        self.recoverable = recoverable
        self.segment_ordinal: Optional[int] = None
        self.phase: Optional[str] = None
        # RunContext of the run that failed, attached by the orchestrator
        self.context: Optional[Any] = None

    def with_context(
        self,
        segment_ordinal: Optional[int] = None,
        phase: Optional[str] = None,
    ) -> "VideoChainError":
        """Tag the error with where in the chain it happened."""
        if segment_ordinal is not None:
            self.segment_ordinal = segment_ordinal
            self.details["segment_ordinal"] = segment_ordinal
        if phase:
            self.phase = phase
            self.details["phase"] = phase
        return self

    def __str__(self) -> str:
        if self.segment_ordinal is not None:
            return f"[segment {self.segment_ordinal}] {self.message}"
        return self.message

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for serialization."""
        return {
            "error": self.code,
            "message": self.message,
            "details": self.details,
            "recoverable": self.recoverable,
        }


class ConfigurationError(VideoChainError):
    """Configuration-related errors."""

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        expected_type: Optional[str] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if config_key:
            details["config_key"] = config_key
        if expected_type:
            details["expected_type"] = expected_type
        super().__init__(message, details=details, **kwargs)


class ValidationError(VideoChainError):
    """Request shape or value rejected before anything is submitted."""

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        value: Optional[Any] = None,
        constraint: Optional[str] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if field:
            details["field"] = field
        if value is not None:
            details["value"] = str(value)[:100]
        if constraint:
            details["constraint"] = constraint
        super().__init__(message, details=details, **kwargs)


class InvalidInputError(ValidationError):
    """Input collection is unusable (e.g. nothing to concatenate)."""


class TransportError(VideoChainError):
    """Connectivity failure talking to a remote service."""

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if operation:
            details["operation"] = operation
        recoverable = kwargs.pop("recoverable", True)
        super().__init__(message, details=details, recoverable=recoverable, **kwargs)


class RemoteError(VideoChainError):
    """Provider answered with a non-success response."""

    def __init__(
        self,
        message: str,
        provider: Optional[str] = None,
        status_code: Optional[int] = None,
        response_body: Optional[str] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if provider:
            details["provider"] = provider
        if status_code:
            details["status_code"] = status_code
        if response_body:
            # Truncate large responses
            details["response_body"] = response_body[:500] if len(response_body) > 500 else response_body
        self.status_code = status_code

        recoverable = kwargs.pop("recoverable", status_code in (429, 500, 502, 503, 504) if status_code else False)
        super().__init__(message, recoverable=recoverable, details=details, **kwargs)


class RateLimitError(RemoteError):
    """Rate limit exceeded errors."""

    def __init__(
        self,
        message: str,
        retry_after: Optional[int] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if retry_after:
            details["retry_after_seconds"] = retry_after
        kwargs.pop("status_code", None)
        super().__init__(message, status_code=429, recoverable=True, details=details, **kwargs)


class JobFailedError(VideoChainError):
    """A remote job reached its failed terminal state."""

    def __init__(
        self,
        message: str,
        job_id: Optional[str] = None,
        error_detail: Optional[str] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if job_id:
            details["job_id"] = job_id
        if error_detail:
            details["error_detail"] = error_detail
        self.job_id = job_id
        self.error_detail = error_detail
        super().__init__(message, details=details, **kwargs)


class DecodeError(VideoChainError):
    """Video could not be opened, seeked or rendered."""

    def __init__(self, message: str, stage: Optional[str] = None, **kwargs):
        details = kwargs.pop("details", {})
        if stage:
            details["stage"] = stage
        super().__init__(message, details=details, **kwargs)


class EncodeError(VideoChainError):
    """A rendered frame could not be serialized as an image."""


class ConcatenationError(VideoChainError):
    """Every concatenation strategy failed."""

    def __init__(
        self,
        message: str,
        attempts: Optional[List[Dict[str, str]]] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        self.attempts = attempts or []
        if self.attempts:
            details["attempts"] = self.attempts
        super().__init__(message, details=details, **kwargs)


class PlanningError(VideoChainError):
    """The planning collaborator returned something unusable."""


class ChainStepError(VideoChainError):
    """Unexpected failure inside a chain step; the original is the __cause__."""

    def __init__(self, message: str, cause_type: Optional[str] = None, **kwargs):
        details = kwargs.pop("details", {})
        if cause_type:
            details["cause_type"] = cause_type
        super().__init__(message, details=details, **kwargs)


class RunInProgressError(VideoChainError):
    """A run was started while another one is active on the same orchestrator."""


class RunCancelledError(VideoChainError):
    """The run observed its cancellation signal and stopped."""


class DeadlineExceededError(VideoChainError):
    """A caller-supplied deadline elapsed."""

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        timeout_seconds: Optional[float] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if operation:
            details["operation"] = operation
        if timeout_seconds:
            details["timeout_seconds"] = timeout_seconds
        super().__init__(message, recoverable=True, details=details, **kwargs)
