"""
Chain Models
============

Data models for a chained generation run: the planned segments, the
produced segments, the final video and the per-run context.
"""

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional, List, Dict, Any

from ..api.base import FrameSize
from ..core.config import ALLOWED_SEGMENT_SECONDS
from ..core.exceptions import ValidationError

logger = logging.getLogger(__name__)


class RunState(Enum):
    """Lifecycle state of a chain run."""

    IDLE = "idle"
    PLANNED = "planned"
    GENERATING = "generating"
    EXTRACTING = "extracting"
    CONCATENATING = "concatenating"
    DONE = "done"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class SegmentPlan:
    """One planned shot. Immutable; its position in the plan is its ordinal."""

    ordinal: int
    title: str
    target_duration_seconds: int
    prompt_text: str

    def __post_init__(self):
        if self.ordinal < 1:
            raise ValidationError(
                f"Segment ordinal must be >= 1, got {self.ordinal}",
                field="ordinal",
                value=self.ordinal,
            )
        if self.target_duration_seconds not in ALLOWED_SEGMENT_SECONDS:
            raise ValidationError(
                f"Segment duration must be one of {ALLOWED_SEGMENT_SECONDS}, got {self.target_duration_seconds}",
                field="target_duration_seconds",
                value=self.target_duration_seconds,
            )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ordinal": self.ordinal,
            "title": self.title,
            "seconds": self.target_duration_seconds,
            "prompt": self.prompt_text,
        }


@dataclass(frozen=True)
class SegmentResult:
    """A downloaded segment."""

    ordinal: int
    job_id: str
    video_bytes: bytes = field(repr=False)

    @property
    def size_bytes(self) -> int:
        return len(self.video_bytes)


@dataclass(frozen=True)
class FinalVideo:
    """The stitched output of a run."""

    data: bytes = field(repr=False)
    strategy: str
    segment_count: int

    def __bytes__(self) -> bytes:
        return self.data

    def __len__(self) -> int:
        return len(self.data)


@dataclass
class RunContext:
    """
    All mutable state of one run.

    Owned and written only by the orchestrator while the run is active; the
    caller keeps a reference so completed segments stay reachable after a
    failure.
    """

    plan: List[SegmentPlan]
    frame_size: FrameSize
    model: str
    run_id: str = field(default_factory=lambda: uuid.uuid4().hex[:8])
    state: RunState = RunState.IDLE
    current_ordinal: Optional[int] = None
    results: List[SegmentResult] = field(default_factory=list)
    reference_image: Optional[bytes] = field(default=None, repr=False)
    reference_ordinal: Optional[int] = None
    final_video: Optional[FinalVideo] = None
    error: Optional[BaseException] = None
    phase: Optional[str] = None
    started_at: datetime = field(default_factory=datetime.now)
    finished_at: Optional[datetime] = None

    @property
    def segment_count(self) -> int:
        return len(self.plan)

    @property
    def completed_segments(self) -> List[SegmentResult]:
        return list(self.results)

    def add_result(self, result: SegmentResult) -> None:
        """Append a downloaded segment, keeping ordinals contiguous."""
        expected = len(self.results) + 1
        if result.ordinal != expected:
            raise ValidationError(
                f"Segment {result.ordinal} arrived out of order (expected {expected})",
                field="ordinal",
                value=result.ordinal,
            )
        if len(self.results) >= len(self.plan):
            raise ValidationError("More segment results than planned segments", field="results")
        self.results.append(result)

    def hold_reference(self, image: bytes, source_ordinal: int) -> None:
        """Store the continuity frame taken from segment ``source_ordinal``."""
        self.reference_image = image
        self.reference_ordinal = source_ordinal

    def reference_for(self, ordinal: int) -> Optional[bytes]:
        """Continuity frame to feed segment ``ordinal``; only ever from ordinal - 1."""
        if ordinal == 1:
            return None
        if self.reference_ordinal != ordinal - 1:
            raise ValidationError(
                f"No continuity frame from segment {ordinal - 1} for segment {ordinal}",
                field="reference_image",
            )
        return self.reference_image

    def release(self) -> None:
        """Drop locally held buffers."""
        self.results.clear()
        self.reference_image = None
        self.reference_ordinal = None

    def to_dict(self) -> Dict[str, Any]:
        """Summary for metadata files (no video bytes)."""
        return {
            "run_id": self.run_id,
            "state": self.state.value,
            "model": self.model,
            "size": str(self.frame_size),
            "plan": [segment.to_dict() for segment in self.plan],
            "segments": [
                {"ordinal": r.ordinal, "job_id": r.job_id, "size_bytes": r.size_bytes}
                for r in self.results
            ],
            "final_video": {
                "strategy": self.final_video.strategy,
                "size_bytes": len(self.final_video),
            } if self.final_video is not None else None,
            "failed_segment": self.current_ordinal if self.state is RunState.FAILED else None,
            "failed_phase": self.phase if self.state is RunState.FAILED else None,
            "error": str(self.error) if self.error is not None else None,
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
        }
