"""
Core Module
===========

Core utilities, configuration, scheduling and exceptions for Video Chain.
"""

from .config import (
    Config,
    GenerationConfig,
    ApiConfig,
    PlannerConfig,
    ChainingConfig,
    ConcatConfig,
    OutputConfig,
    get_config,
    set_config,
    reset_config,
)
from .exceptions import (
    VideoChainError,
    ConfigurationError,
    ValidationError,
    InvalidInputError,
    TransportError,
    RemoteError,
    RateLimitError,
    JobFailedError,
    DecodeError,
    EncodeError,
    ConcatenationError,
    PlanningError,
    ChainStepError,
    RunInProgressError,
    RunCancelledError,
    DeadlineExceededError,
)
from .scheduling import Clock, SystemClock, CancelToken, Deadline, PollSchedule
from .security import sanitize_filename, sanitize_prompt, redact_api_key

__all__ = [
    # Configuration
    "Config",
    "GenerationConfig",
    "ApiConfig",
    "PlannerConfig",
    "ChainingConfig",
    "ConcatConfig",
    "OutputConfig",
    "get_config",
    "set_config",
    "reset_config",
    # Exceptions
    "VideoChainError",
    "ConfigurationError",
    "ValidationError",
    "InvalidInputError",
    "TransportError",
    "RemoteError",
    "RateLimitError",
    "JobFailedError",
    "DecodeError",
    "EncodeError",
    "ConcatenationError",
    "PlanningError",
    "ChainStepError",
    "RunInProgressError",
    "RunCancelledError",
    "DeadlineExceededError",
    # Scheduling
    "Clock",
    "SystemClock",
    "CancelToken",
    "Deadline",
    "PollSchedule",
    # Security
    "sanitize_filename",
    "sanitize_prompt",
    "redact_api_key",
]
