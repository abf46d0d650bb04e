"""
Chain Orchestrator
==================

Drives a chained run: for each planned segment, submit the generation job,
wait for it, download it, and (unless it is the last one) extract its final
frame to use as the next segment's reference image. When every segment is
in, the ordered buffers are concatenated into the final video.

Segments are strictly sequential: segment i+1 needs segment i's last frame.
The first failure aborts the run; the exception is tagged with the segment
ordinal and phase and re-raised, while the segments finished so far stay on
the RunContext.
"""

import logging
from datetime import datetime
from typing import Optional, Sequence, Union

from ..api.base import BaseJobClient, FrameSize, GenerationRequest, JobStatus
from ..api.factory import get_client
from ..core.config import Config
from ..core.exceptions import (
    ChainStepError,
    InvalidInputError,
    RunCancelledError,
    RunInProgressError,
    ValidationError,
    VideoChainError,
)
from ..core.scheduling import CancelToken, Clock, Deadline, SystemClock
from ..utils.process import ToolRunner
from .chainer import ContinuityExtractor
from .concat import ConcatenationEngine
from .models import FinalVideo, RunContext, RunState, SegmentPlan, SegmentResult
from .planner import OpenAIPlanner, SegmentPlanner
from .progress import ProgressChannel, ProgressEvent

logger = logging.getLogger(__name__)


# Share of the overall progress bar spent generating; the rest is concatenation
GENERATION_SHARE = 95.0


class ChainOrchestrator:
    """
    Runs one chained generation at a time.

    Usage:
        orchestrator = ChainOrchestrator.from_config(get_config())
        orchestrator.progress.subscribe(print)
        final = await orchestrator.run(plan, "1280x720", "sora-2")
    """

    def __init__(
        self,
        client: BaseJobClient,
        extractor: Optional[ContinuityExtractor] = None,
        concat_engine: Optional[ConcatenationEngine] = None,
        planner: Optional[SegmentPlanner] = None,
        progress: Optional[ProgressChannel] = None,
        poll_interval: float = 2.0,
        segment_timeout: Optional[float] = None,
        default_deadline: Optional[float] = None,
        clock: Optional[Clock] = None,
    ):
        """
        Initialize the orchestrator.

        Args:
            client: Remote job client used for every segment
            extractor: Continuity frame extractor
            concat_engine: Concatenation engine for the final join
            planner: Planning collaborator for ``plan_and_run``
            progress: Channel progress events are published on
            poll_interval: Seconds between job status checks
            segment_timeout: Optional bound on each job's wait, in seconds
            default_deadline: Optional bound on a whole run, in seconds
            clock: Clock for deadlines (defaults to the client's clock)
        """
        self.client = client
        self.extractor = extractor or ContinuityExtractor()
        self.concat_engine = concat_engine or ConcatenationEngine()
        self.planner = planner
        self.progress = progress if progress is not None else ProgressChannel()
        self.poll_interval = poll_interval
        self.segment_timeout = segment_timeout
        self.default_deadline = default_deadline
        self.clock = clock or getattr(client, "clock", None) or SystemClock()

        self._running = False
        self.last_run: Optional[RunContext] = None

    @classmethod
    def from_config(
        cls,
        config: Config,
        client: Optional[BaseJobClient] = None,
        planner: Optional[SegmentPlanner] = None,
        runner: Optional[ToolRunner] = None,
    ) -> "ChainOrchestrator":
        """Build an orchestrator and its collaborators from configuration."""
        if client is None:
            client = get_client(
                config.api.provider,
                api_key=config.api.api_key,
                base_url=config.api.base_url,
                timeout=config.api.timeout,
                poll_retries=config.generation.poll_retries,
                retry_delay=config.generation.retry_delay,
            )
        if planner is None:
            planner = OpenAIPlanner(
                api_key=config.api.api_key,
                model=config.planner.model,
                temperature=config.planner.temperature,
                base_url=config.planner.base_url,
                timeout=config.planner.timeout,
            )
        runner = runner or ToolRunner(timeout=config.concat.tool_timeout)
        extractor = ContinuityExtractor(
            runner=runner,
            ffmpeg_path=config.concat.ffmpeg_path,
            ffprobe_path=config.chaining.ffprobe_path,
            quality=config.chaining.frame_quality,
            tail_window=config.chaining.tail_window,
        )
        engine = ConcatenationEngine(runner=runner, config=config.concat)
        return cls(
            client=client,
            extractor=extractor,
            concat_engine=engine,
            planner=planner,
            poll_interval=config.generation.poll_interval,
            default_deadline=config.generation.deadline_seconds,
        )

    @property
    def is_running(self) -> bool:
        return self._running

    # -------------------------------------------------------------------------
    # Public Operations
    # -------------------------------------------------------------------------

    async def plan_and_run(
        self,
        base_prompt: str,
        seconds_per_segment: int,
        segment_count: int,
        frame_size: Union[str, FrameSize],
        model: str,
        cancel_token: Optional[CancelToken] = None,
        deadline_seconds: Optional[float] = None,
    ) -> FinalVideo:
        """Ask the planner for a shot list, then run it."""
        if self.planner is None:
            raise InvalidInputError("No planner configured", field="planner")
        if isinstance(frame_size, str):
            frame_size = FrameSize.parse(frame_size)
        # Checked before the planner makes its own network call
        self.client.validate_request(GenerationRequest(
            prompt_text=base_prompt,
            frame_size=frame_size,
            duration_seconds=seconds_per_segment,
            model=model,
        ))
        self._emit("planning", 0.0, f"Planning {segment_count} segments")
        plan = await self.planner.plan(base_prompt, seconds_per_segment, segment_count)
        return await self.run(
            plan,
            frame_size,
            model,
            cancel_token=cancel_token,
            deadline_seconds=deadline_seconds,
        )

    async def run(
        self,
        plan: Sequence[SegmentPlan],
        frame_size: Union[str, FrameSize],
        model: str,
        context: Optional[RunContext] = None,
        cancel_token: Optional[CancelToken] = None,
        deadline_seconds: Optional[float] = None,
    ) -> FinalVideo:
        """
        Generate every planned segment in order and stitch them together.

        Args:
            plan: Ordered shot list with ordinals 1..N
            frame_size: Target size, e.g. "1280x720"
            model: Provider model identifier
            context: Optional caller-held RunContext to fill (created if omitted);
                its plan, frame size and model are set from the arguments
            cancel_token: Cooperative cancellation signal
            deadline_seconds: Optional bound on the whole run

        Returns:
            FinalVideo

        Raises:
            RunInProgressError: another run is active on this orchestrator
            VideoChainError: the first failure, tagged with segment/phase
        """
        if self._running:
            raise RunInProgressError("A run is already in progress on this orchestrator")
        self._running = True
        try:
            if isinstance(frame_size, str):
                frame_size = FrameSize.parse(frame_size)
            plan = self._validate_plan(plan)
            if context is None:
                context = RunContext(plan=plan, frame_size=frame_size, model=model)
            else:
                context.plan, context.frame_size, context.model = plan, frame_size, model
            self.last_run = context

            timeout = deadline_seconds if deadline_seconds is not None else self.default_deadline
            deadline = Deadline(self.clock, timeout, operation="run") if timeout else None
            return await self._execute(context, cancel_token, deadline)
        finally:
            self._running = False

    # -------------------------------------------------------------------------
    # Run Loop
    # -------------------------------------------------------------------------

    async def _execute(
        self,
        context: RunContext,
        cancel_token: Optional[CancelToken],
        deadline: Optional[Deadline],
    ) -> FinalVideo:
        context.state = RunState.PLANNED
        logger.info(
            f"Run {context.run_id}: {context.segment_count} segments, "
            f"{context.frame_size} on {context.model}"
        )
        try:
            for segment in context.plan:
                await self._generate_segment(context, segment, cancel_token, deadline)
            return await self._concatenate(context)

        except RunCancelledError as e:
            context.state = RunState.CANCELLED
            context.error = e
            context.finished_at = datetime.now()
            context.release()
            e.context = context
            logger.info(f"Run {context.run_id} cancelled during segment {context.current_ordinal}")
            self._emit("cancelled", self._overall(context), "Run cancelled")
            raise

        except VideoChainError as e:
            e.with_context(segment_ordinal=context.current_ordinal, phase=context.phase)
            e.context = context
            self._mark_failed(context, e)
            raise

        except Exception as e:
            error = ChainStepError(
                f"Unexpected {type(e).__name__} during {context.phase}: {e}",
                cause_type=type(e).__name__,
            ).with_context(segment_ordinal=context.current_ordinal, phase=context.phase)
            error.context = context
            self._mark_failed(context, error)
            raise error from e

    async def _generate_segment(
        self,
        context: RunContext,
        segment: SegmentPlan,
        cancel_token: Optional[CancelToken],
        deadline: Optional[Deadline],
    ) -> None:
        ordinal = segment.ordinal
        total = context.segment_count
        context.current_ordinal = ordinal
        context.state = RunState.GENERATING
        context.phase = "submit"

        if cancel_token is not None:
            cancel_token.raise_if_cancelled()
        if deadline is not None:
            deadline.check()

        request = GenerationRequest(
            prompt_text=segment.prompt_text,
            frame_size=context.frame_size,
            duration_seconds=segment.target_duration_seconds,
            model=context.model,
            reference_image=context.reference_for(ordinal),
        )
        self._emit("submitting", self._overall(context), f"Generating segment {ordinal}/{total}", ordinal, total)
        job = await self.client.submit(request)

        context.phase = "await"

        def on_job_progress(status: JobStatus, percent: float) -> None:
            self._emit(
                "generating",
                self._overall(context, percent),
                f"{status.label} {percent:.1f}%",
                ordinal,
                total,
            )

        job = await self.client.await_completion(
            job,
            on_progress=on_job_progress,
            poll_interval=self.poll_interval,
            timeout=self.segment_timeout,
            cancel_token=cancel_token,
            deadline=deadline,
        )

        context.phase = "download"
        self._emit("downloading", self._overall(context, 100.0), "Downloading...", ordinal, total)
        video_bytes = await self.client.fetch_content(job.id)
        context.add_result(SegmentResult(ordinal=ordinal, job_id=job.id, video_bytes=video_bytes))
        self._emit("segment_complete", self._overall(context), f"Segment {ordinal}/{total} complete", ordinal, total)

        if ordinal < total:
            context.state = RunState.EXTRACTING
            context.phase = "extract"
            self._emit("extracting", self._overall(context), "Extracting last frame...", ordinal, total)
            frame = await self.extractor.extract_final_frame(
                video_bytes,
                context.frame_size.width,
                context.frame_size.height,
            )
            context.hold_reference(frame, ordinal)

    async def _concatenate(self, context: RunContext) -> FinalVideo:
        context.state = RunState.CONCATENATING
        context.current_ordinal = None
        context.phase = "concatenate"
        self._emit("concatenating", GENERATION_SHARE, "Concatenating segments...")

        def on_concat_progress(milestone: str, percent: float, message: str) -> None:
            self._emit(
                f"concat_{milestone}",
                GENERATION_SHARE + percent * (100.0 - GENERATION_SHARE) / 100.0,
                message,
            )

        outcome = await self.concat_engine.merge(
            [result.video_bytes for result in context.results],
            on_progress=on_concat_progress,
        )
        final = FinalVideo(data=outcome.data, strategy=outcome.strategy, segment_count=len(context.results))

        context.final_video = final
        context.state = RunState.DONE
        context.phase = None
        context.reference_image = None
        context.finished_at = datetime.now()
        logger.info(f"Run {context.run_id} complete: {len(final)} bytes via {final.strategy}")
        self._emit("complete", 100.0, "Complete!")
        return final

    # -------------------------------------------------------------------------
    # Helper Methods
    # -------------------------------------------------------------------------

    @staticmethod
    def _validate_plan(plan: Sequence[SegmentPlan]) -> list:
        plan = list(plan or [])
        if not plan:
            raise InvalidInputError("Plan has no segments", field="plan")
        ordinals = [segment.ordinal for segment in plan]
        if ordinals != list(range(1, len(plan) + 1)):
            raise ValidationError(
                f"Plan ordinals must run 1..{len(plan)} in order, got {ordinals}",
                field="plan",
            )
        return plan

    def _mark_failed(self, context: RunContext, error: BaseException) -> None:
        context.state = RunState.FAILED
        context.error = error
        context.finished_at = datetime.now()
        context.reference_image = None
        where = f"segment {context.current_ordinal}" if context.current_ordinal else "concatenation"
        logger.error(
            f"Run {context.run_id} failed at {where} ({context.phase}): {error}. "
            f"{len(context.results)} segment(s) completed"
        )
        self._emit("failed", self._overall(context), f"Generation failed: {error}")

    @staticmethod
    def _overall(context: RunContext, job_percent: float = 0.0) -> float:
        """Whole-run percentage while segments are generating."""
        total = context.segment_count or 1
        done = len(context.results)
        if context.current_ordinal is not None and done < context.current_ordinal:
            done += job_percent / 100.0
        return min(done / total * GENERATION_SHARE, GENERATION_SHARE)

    def _emit(
        self,
        phase: str,
        percent: float,
        message: str,
        segment_ordinal: Optional[int] = None,
        segment_count: Optional[int] = None,
    ) -> None:
        self.progress.emit(ProgressEvent(
            phase=phase,
            percent=percent,
            message=message,
            segment_ordinal=segment_ordinal,
            segment_count=segment_count,
        ))
