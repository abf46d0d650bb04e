"""
Workflow Orchestration
======================

Chained segment generation: planning, per-segment generation, continuity
frame extraction and final concatenation.

Components:
- ChainOrchestrator: Runs a plan end to end
- ContinuityExtractor: Extracts the last frame of a segment
- ConcatenationEngine: Joins segments with a stream-copy fast path
- SegmentPlanner: Produces the shot list
"""

from .models import RunState, SegmentPlan, SegmentResult, FinalVideo, RunContext
from .progress import ProgressEvent, ProgressChannel, ProgressRecorder
from .chainer import ContinuityExtractor
from .concat import (
    ConcatenationEngine,
    ConcatOutcome,
    ConcatStrategy,
    StreamCopyStrategy,
    ReencodeStrategy,
)
from .planner import SegmentPlanner, StaticPlanner, OpenAIPlanner, clamp_plan
from .orchestrator import ChainOrchestrator

__all__ = [
    "RunState",
    "SegmentPlan",
    "SegmentResult",
    "FinalVideo",
    "RunContext",
    "ProgressEvent",
    "ProgressChannel",
    "ProgressRecorder",
    "ContinuityExtractor",
    "ConcatenationEngine",
    "ConcatOutcome",
    "ConcatStrategy",
    "StreamCopyStrategy",
    "ReencodeStrategy",
    "SegmentPlanner",
    "StaticPlanner",
    "OpenAIPlanner",
    "clamp_plan",
    "ChainOrchestrator",
]
