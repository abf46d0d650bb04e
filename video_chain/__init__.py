"""
Video Chain
===========

Chained AI video generation: long videos built from short generated
segments, where each segment starts from the last frame of the one before.

Features:
- Shot planning from a single base prompt (OpenAI chat model or static)
- Sora job client with per-model size/duration validation
- Last-frame continuity between segments
- Stream-copy concatenation with a re-encode fallback
- Structured progress events, cancellation and deadlines

Quick Start:
    from video_chain import ChainOrchestrator, get_config

    orchestrator = ChainOrchestrator.from_config(get_config())
    orchestrator.progress.subscribe(print)

    final = await orchestrator.plan_and_run(
        base_prompt="A paper boat drifting down a rain-soaked street",
        seconds_per_segment=8,
        segment_count=3,
        frame_size="1280x720",
        model="sora-2",
    )
    with open("chained_video.mp4", "wb") as f:
        f.write(final.data)

Explicit Plans:
    from video_chain import SegmentPlan

    plan = [
        SegmentPlan(1, "Opening", 8, "A lighthouse at dusk"),
        SegmentPlan(2, "Closer", 8, "The lighthouse beam sweeps the waves"),
    ]
    final = await orchestrator.run(plan, "1280x720", "sora-2")
"""

__version__ = "0.2.0"
__author__ = "Video Chain"

# =============================================================================
# Chain Workflow
# =============================================================================

from .workflow import (
    ChainOrchestrator,
    ContinuityExtractor,
    ConcatenationEngine,
    SegmentPlanner,
    StaticPlanner,
    OpenAIPlanner,
    SegmentPlan,
    SegmentResult,
    FinalVideo,
    RunContext,
    RunState,
    ProgressEvent,
    ProgressChannel,
)

# =============================================================================
# Remote Job Clients
# =============================================================================

from .api import (
    BaseJobClient,
    FrameSize,
    GenerationRequest,
    JobStatus,
    RemoteJob,
    get_client,
    list_clients,
)

# Core Utilities
from .core.config import Config, get_config
from .core.scheduling import CancelToken
from .core.exceptions import (
    VideoChainError,
    ConfigurationError,
    ValidationError,
    InvalidInputError,
    TransportError,
    RemoteError,
    JobFailedError,
    DecodeError,
    EncodeError,
    ConcatenationError,
    RunInProgressError,
    RunCancelledError,
    DeadlineExceededError,
)

# =============================================================================
# Public API
# =============================================================================

__all__ = [
    # Version
    "__version__",

    # Workflow
    "ChainOrchestrator",
    "ContinuityExtractor",
    "ConcatenationEngine",
    "SegmentPlanner",
    "StaticPlanner",
    "OpenAIPlanner",
    "SegmentPlan",
    "SegmentResult",
    "FinalVideo",
    "RunContext",
    "RunState",
    "ProgressEvent",
    "ProgressChannel",

    # Clients
    "BaseJobClient",
    "FrameSize",
    "GenerationRequest",
    "JobStatus",
    "RemoteJob",
    "get_client",
    "list_clients",

    # Core
    "Config",
    "get_config",
    "CancelToken",

    # Exceptions
    "VideoChainError",
    "ConfigurationError",
    "ValidationError",
    "InvalidInputError",
    "TransportError",
    "RemoteError",
    "JobFailedError",
    "DecodeError",
    "EncodeError",
    "ConcatenationError",
    "RunInProgressError",
    "RunCancelledError",
    "DeadlineExceededError",
]
