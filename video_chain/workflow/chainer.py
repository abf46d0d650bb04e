"""
Continuity Extractor
====================

Produces the still image that seeds the next segment: the final frame of a
finished segment, scaled to exactly the frame size the next generation
request will use.
"""

import logging
import shutil
import tempfile
from pathlib import Path
from typing import Optional

import aiofiles

from ..api.base import FrameSize
from ..core.exceptions import DecodeError
from ..utils.image_utils import load_image, fit_to_size, encode_jpeg
from ..utils.process import ToolRunner

logger = logging.getLogger(__name__)


# Seconds before end-of-stream to start decoding; the last decoded frame wins
DEFAULT_TAIL_WINDOW = 1.0


class ContinuityExtractor:
    """
    Extracts the last renderable frame of a video.

    Decoding is done by ffprobe/ffmpeg through a ToolRunner; scaling and JPEG
    encoding are done with Pillow. The extractor never retries.
    """

    def __init__(
        self,
        runner: Optional[ToolRunner] = None,
        ffmpeg_path: str = "ffmpeg",
        ffprobe_path: str = "ffprobe",
        quality: int = 95,
        tail_window: float = DEFAULT_TAIL_WINDOW,
    ):
        """
        Initialize the extractor.

        Args:
            runner: Tool runner used to invoke ffmpeg/ffprobe
            ffmpeg_path: ffmpeg executable
            ffprobe_path: ffprobe executable
            quality: JPEG quality (1-100)
            tail_window: Seconds before the end of the stream to start decoding
        """
        self.runner = runner or ToolRunner()
        self.ffmpeg_path = ffmpeg_path
        self.ffprobe_path = ffprobe_path
        self.quality = quality
        self.tail_window = tail_window

    async def extract_final_frame(
        self,
        video_bytes: bytes,
        target_width: int,
        target_height: int,
    ) -> bytes:
        """
        Render the final instant of a video as a JPEG of the target size.

        Args:
            video_bytes: Encoded video (MP4)
            target_width: Output width in pixels
            target_height: Output height in pixels

        Returns:
            JPEG bytes, exactly target_width x target_height

        Raises:
            DecodeError: the video cannot be opened, seeked or rendered
            EncodeError: the frame cannot be serialized
        """
        if not video_bytes:
            raise DecodeError("Cannot extract a frame from an empty video", stage="open")

        try:
            workdir = Path(tempfile.mkdtemp(prefix="video_chain_frame_"))
        except OSError as e:
            raise DecodeError(f"Cannot create staging directory: {e}", stage="open") from e

        try:
            video_path = workdir / "segment.mp4"
            frame_path = workdir / "last_frame.png"

            async with aiofiles.open(video_path, "wb") as f:
                await f.write(video_bytes)

            duration = await self._read_duration(video_path)
            window = min(self.tail_window, duration)

            # The image is rewritten for every decoded frame, leaving the last one
            result = await self.runner.run([
                self.ffmpeg_path, "-y",
                "-sseof", f"-{window:.3f}",
                "-i", str(video_path),
                "-an",
                "-update", "1",
                "-q:v", "1",
                str(frame_path),
            ])
            if not result.ok or not frame_path.exists() or frame_path.stat().st_size == 0:
                raise DecodeError(
                    f"Failed to render the last {window:.3f}s of {duration:.3f}s video: "
                    f"{result.tail() or 'no frame produced'}",
                    stage="render",
                )

            async with aiofiles.open(frame_path, "rb") as f:
                raw_frame = await f.read()
        except OSError as e:
            raise DecodeError(f"Frame staging failed: {e}", stage="open") from e
        finally:
            shutil.rmtree(workdir, ignore_errors=True)

        frame = fit_to_size(load_image(raw_frame), target_width, target_height)
        image = encode_jpeg(frame, quality=self.quality)

        logger.info(f"Extracted final frame of {duration:.3f}s video ({target_width}x{target_height}, {len(image)} bytes)")
        return image

    async def extract_final_frame_for(self, video_bytes: bytes, frame_size: FrameSize) -> bytes:
        """Same as ``extract_final_frame`` with a FrameSize."""
        return await self.extract_final_frame(video_bytes, frame_size.width, frame_size.height)

    async def _read_duration(self, video_path: Path) -> float:
        """Get the duration of a video in seconds."""
        result = await self.runner.run([
            self.ffprobe_path, "-v", "error",
            "-show_entries", "format=duration",
            "-of", "default=noprint_wrappers=1:nokey=1",
            str(video_path),
        ])
        if not result.ok:
            raise DecodeError(f"Failed to open video: {result.tail()}", stage="open")
        try:
            duration = float(result.stdout.strip())
        except ValueError:
            raise DecodeError(
                f"Could not read video duration: {result.stdout.strip()!r}",
                stage="seek",
            )
        if duration <= 0:
            raise DecodeError(f"Video has no renderable frames (duration {duration})", stage="seek")
        return duration
