"""
Concatenation Engine
====================

Joins an ordered list of video buffers into one MP4.

Strategies are tried in order and the first success wins:

1. ``stream_copy`` - concat demuxer with ``-c copy``. Fast, but only valid
   when every segment shares codec parameters. This is not checked up front;
   any tool failure disqualifies the strategy.
2. ``reencode`` - same ordered join, re-encoded to a fixed H.264/AAC profile.

If every strategy fails a ConcatenationError carrying each attempt's error is
raised; no partial output is ever returned.
"""

import logging
import shutil
import tempfile
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List, Optional, Sequence

import aiofiles

from ..core.config import ConcatConfig
from ..core.exceptions import ConcatenationError, InvalidInputError
from ..utils.process import ToolRunner

logger = logging.getLogger(__name__)


ConcatProgressCallback = Callable[[str, float, str], None]


@dataclass(frozen=True)
class ConcatOutcome:
    """Merged buffer and the strategy that produced it."""

    data: bytes
    strategy: str


class ConcatStrategy(ABC):
    """One way of joining staged segment files."""

    name = "base"
    milestone = "fast_path"
    percent = 30.0
    description = "Concatenating"

    @abstractmethod
    def output_args(self) -> List[str]:
        """ffmpeg output options for this strategy."""
        pass


class StreamCopyStrategy(ConcatStrategy):
    """Bitstream copy, no re-encoding."""

    name = "stream_copy"
    milestone = "fast_path"
    percent = 30.0
    description = "Concatenating (copy mode)"

    def output_args(self) -> List[str]:
        return ["-c", "copy"]


class ReencodeStrategy(ConcatStrategy):
    """Re-encode video and audio to a widely compatible profile."""

    name = "reencode"
    milestone = "fallback"
    percent = 50.0
    description = "Concatenating (re-encode mode)"

    def __init__(self, profile: Optional[ConcatConfig] = None):
        self.profile = profile or ConcatConfig()

    def output_args(self) -> List[str]:
        p = self.profile
        return [
            "-c:v", p.video_codec,
            "-preset", p.preset,
            "-crf", str(p.crf),
            "-c:a", p.audio_codec,
            "-b:a", p.audio_bitrate,
            "-ar", str(p.audio_sample_rate),
            "-ac", str(p.audio_channels),
        ]


class ConcatenationEngine:
    """
    Merges ordered video buffers with automatic degradation.

    Every attempt stages its inputs, list file and output in a fresh
    temporary directory that is removed when the attempt ends, whether it
    succeeded or not.
    """

    def __init__(
        self,
        runner: Optional[ToolRunner] = None,
        config: Optional[ConcatConfig] = None,
        strategies: Optional[Sequence[ConcatStrategy]] = None,
    ):
        self.config = config or ConcatConfig()
        self.runner = runner or ToolRunner(timeout=self.config.tool_timeout)
        if strategies is None:
            strategies = [StreamCopyStrategy(), ReencodeStrategy(self.config)]
        self.strategies: List[ConcatStrategy] = list(strategies)
        if not self.strategies:
            raise ValueError("At least one concatenation strategy is required")

    async def concatenate(
        self,
        segments: Sequence[bytes],
        on_progress: Optional[ConcatProgressCallback] = None,
    ) -> bytes:
        """
        Merge segments in order.

        Args:
            segments: Encoded videos, in playback order
            on_progress: Called with (milestone, percent, message)

        Returns:
            The merged video. A single segment is returned unchanged.

        Raises:
            InvalidInputError: no segments were given
            ConcatenationError: every strategy failed
        """
        outcome = await self.merge(segments, on_progress)
        return outcome.data

    async def merge(
        self,
        segments: Sequence[bytes],
        on_progress: Optional[ConcatProgressCallback] = None,
    ) -> ConcatOutcome:
        """Like ``concatenate`` but also reports which strategy succeeded."""
        if not segments:
            raise InvalidInputError("No video segments to concatenate", field="segments")

        if len(segments) == 1:
            return ConcatOutcome(data=segments[0], strategy="passthrough")

        reporter = _MonotonicReporter(on_progress)
        reporter.report("loading", 0.0, "Preparing segments")

        attempts = []
        for strategy in self.strategies:
            reporter.report(strategy.milestone, strategy.percent, f"{strategy.description}...")
            try:
                data = await self._attempt(strategy, segments)
            except ConcatenationError as e:
                attempts.append({"strategy": strategy.name, "error": e.message})
                logger.warning(f"Concatenation strategy {strategy.name} failed: {e.message}")
                continue

            reporter.report("complete", 100.0, "Concatenation complete")
            logger.info(f"Concatenated {len(segments)} segments with {strategy.name} ({len(data)} bytes)")
            return ConcatOutcome(data=data, strategy=strategy.name)

        logger.error(f"All concatenation strategies failed for {len(segments)} segments")
        raise ConcatenationError(
            f"Failed to concatenate videos with all {len(attempts)} methods",
            attempts=attempts,
        )

    async def _attempt(self, strategy: ConcatStrategy, segments: Sequence[bytes]) -> bytes:
        """Run one strategy in its own staging directory."""
        try:
            workdir = Path(tempfile.mkdtemp(prefix=f"video_chain_{strategy.name}_"))
        except OSError as e:
            raise ConcatenationError(f"{strategy.name}: cannot create staging directory: {e}") from e

        try:
            list_lines = []
            for i, segment in enumerate(segments):
                input_path = workdir / f"input{i}.mp4"
                async with aiofiles.open(input_path, "wb") as f:
                    await f.write(segment)
                list_lines.append(f"file '{input_path.name}'")

            list_path = workdir / "concat.txt"
            async with aiofiles.open(list_path, "w") as f:
                await f.write("\n".join(list_lines) + "\n")

            output_path = workdir / "output.mp4"
            cmd = [
                self.config.ffmpeg_path, "-y",
                "-f", "concat",
                "-safe", "0",
                "-i", str(list_path),
                *strategy.output_args(),
                str(output_path),
            ]
            result = await self.runner.run(cmd)

            if not result.ok:
                raise ConcatenationError(
                    f"{strategy.name}: ffmpeg exited with {result.returncode}: {result.tail()}"
                )
            if not output_path.exists() or output_path.stat().st_size == 0:
                raise ConcatenationError(f"{strategy.name}: ffmpeg produced no output")

            async with aiofiles.open(output_path, "rb") as f:
                return await f.read()
        except OSError as e:
            raise ConcatenationError(f"{strategy.name}: staging failed: {e}") from e
        finally:
            shutil.rmtree(workdir, ignore_errors=True)


class _MonotonicReporter:
    """Forwards milestones, never letting the percentage go backwards."""

    def __init__(self, callback: Optional[ConcatProgressCallback]):
        self.callback = callback
        self.last = 0.0

    def report(self, milestone: str, percent: float, message: str) -> None:
        self.last = max(self.last, min(percent, 100.0))
        if self.callback is not None:
            self.callback(milestone, self.last, message)
