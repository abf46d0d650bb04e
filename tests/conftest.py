"""
Pytest Configuration and Fixtures

Shared fixtures and test doubles for all tests. No test touches the network,
runs ffmpeg or really sleeps.
"""

import io
import shutil
import tempfile
from pathlib import Path
from typing import Any, Dict, List, Optional

import pytest
from PIL import Image

from video_chain.api.base import BaseJobClient, GenerationRequest, ModelConstraints
from video_chain.core.exceptions import DecodeError
from video_chain.core.scheduling import Clock
from video_chain.utils.process import ToolResult
from video_chain.workflow.models import SegmentPlan


# =============================================================================
# Test Doubles
# =============================================================================


class FakeClock(Clock):
    """Clock that advances instantly and records every sleep."""

    def __init__(self, start: float = 0.0):
        self.now = start
        self.sleeps: List[float] = []

    def monotonic(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


class FakeToolRunner:
    """
    Stands in for ffmpeg/ffprobe.

    - ffprobe prints ``duration``
    - ffmpeg rendering a still writes a PNG of ``frame_size``. Like real
      ffmpeg, an input seek (``-ss``) past the last frame's timestamp
      (``duration - 1/fps``) exits 0 without writing anything
    - ffmpeg with ``-f concat`` joins the listed inputs byte-wise, in list
      order, into the output path
    """

    def __init__(
        self,
        duration: str = "8.000000",
        frame_size=(1920, 1080),
        fail_copy: bool = False,
        fail_reencode: bool = False,
        ffprobe_fails: bool = False,
        render_fails: bool = False,
        frame_bytes: Optional[bytes] = None,
        fps: float = 30.0,
    ):
        self.duration = duration
        self.frame_size = frame_size
        self.fail_copy = fail_copy
        self.fail_reencode = fail_reencode
        self.ffprobe_fails = ffprobe_fails
        self.render_fails = render_fails
        self.frame_bytes = frame_bytes
        self.fps = fps
        self.calls: List[List[str]] = []
        self.workdirs: List[Path] = []

    async def run(self, args, timeout=None) -> ToolResult:
        args = list(args)
        self.calls.append(args)

        if args[0].endswith("ffprobe"):
            self.workdirs.append(Path(args[-1]).parent)
            if self.ffprobe_fails:
                return ToolResult(args=args, returncode=1, stderr="moov atom not found\nInvalid data found")
            return ToolResult(args=args, returncode=0, stdout=self.duration + "\n")

        if "concat" not in args:
            if self.render_fails:
                return ToolResult(args=args, returncode=1, stderr="Output file is empty, nothing was encoded")
            last_frame_pts = float(self.duration) - 1.0 / self.fps
            if "-ss" in args and float(args[args.index("-ss") + 1]) > last_frame_pts:
                return ToolResult(args=args, returncode=0, stderr="Output file is empty, nothing was encoded")
            if self.frame_bytes is not None:
                Path(args[-1]).write_bytes(self.frame_bytes)
            else:
                Image.new("RGB", self.frame_size, (200, 40, 40)).save(args[-1], "PNG")
            return ToolResult(args=args, returncode=0)

        list_path = Path(args[args.index("-i") + 1])
        self.workdirs.append(list_path.parent)
        copy_mode = "copy" in args
        if (copy_mode and self.fail_copy) or (not copy_mode and self.fail_reencode):
            return ToolResult(
                args=args,
                returncode=1,
                stderr="Non-monotonous DTS in output stream\nError while opening encoder",
            )

        joined = b""
        for line in list_path.read_text().splitlines():
            name = line.split("'")[1]
            joined += (list_path.parent / name).read_bytes()
        Path(args[-1]).write_bytes(joined)
        return ToolResult(args=args, returncode=0)

    def concat_calls(self) -> List[List[str]]:
        return [call for call in self.calls if "concat" in call]


class FakeJobClient(BaseJobClient):
    """
    In-memory job API with Sora's constraint table.

    Each job reports queued -> in_progress -> completed. ``fail_ordinals``
    maps a submission number to the error message its job fails with.
    """

    CONSTRAINTS = {
        "sora-2": ModelConstraints(sizes=("1280x720", "720x1280")),
        "sora-2-pro": ModelConstraints(sizes=("1280x720", "720x1280", "1024x1792", "1792x1024")),
    }

    def __init__(self, fail_ordinals: Optional[Dict[int, str]] = None, **kwargs):
        kwargs.setdefault("api_key", "sk-test-key-123456")
        super().__init__(**kwargs)
        self.fail_ordinals = fail_ordinals or {}
        self.requests: List[GenerationRequest] = []
        self.scripts: Dict[str, List[Dict[str, Any]]] = {}
        self.polls: List[str] = []
        self.downloads: List[str] = []
        self.on_submit = None

    @property
    def provider_name(self) -> str:
        return "Fake"

    @property
    def env_key_name(self) -> str:
        return "FAKE_API_KEY"

    @property
    def model_constraints(self) -> Dict[str, ModelConstraints]:
        return self.CONSTRAINTS

    def _get_default_base_url(self) -> str:
        return "https://fake.invalid/v1"

    async def _create_job(self, request: GenerationRequest) -> Dict[str, Any]:
        self.requests.append(request)
        number = len(self.requests)
        job_id = f"job_{number}"
        last = {"id": job_id, "status": "completed", "progress": 100}
        if number in self.fail_ordinals:
            last = {"id": job_id, "status": "failed", "error": {"message": self.fail_ordinals[number]}}
        self.scripts[job_id] = [
            {"id": job_id, "status": "in_progress", "progress": 50},
            last,
        ]
        if self.on_submit is not None:
            self.on_submit(number)
        return {"id": job_id, "status": "queued", "progress": 0}

    async def _retrieve_job(self, job_id: str) -> Dict[str, Any]:
        self.polls.append(job_id)
        script = self.scripts[job_id]
        return script.pop(0) if len(script) > 1 else script[0]

    async def _download_content(self, job_id: str) -> bytes:
        self.downloads.append(job_id)
        return f"VIDEO<{job_id}>".encode()


class TaggingExtractor:
    """Extractor double whose frames name the video they came from."""

    def __init__(self, fail_on: Optional[bytes] = None):
        self.fail_on = fail_on
        self.calls: List[bytes] = []

    async def extract_final_frame(self, video_bytes: bytes, target_width: int, target_height: int) -> bytes:
        self.calls.append(video_bytes)
        if video_bytes == self.fail_on:
            raise DecodeError("Failed to open video", stage="open")
        return b"FRAME<" + video_bytes + f"@{target_width}x{target_height}>".encode()


def make_png(width: int = 64, height: int = 36, color=(10, 120, 200)) -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", (width, height), color).save(buffer, "PNG")
    return buffer.getvalue()


def make_plan(count: int, seconds: int = 8) -> List[SegmentPlan]:
    return [
        SegmentPlan(
            ordinal=i,
            title=f"Generation {i}",
            target_duration_seconds=seconds,
            prompt_text=f"Shot {i} of a paper boat drifting down a rainy street",
        )
        for i in range(1, count + 1)
    ]


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def temp_dir():
    """Create a temporary directory for tests."""
    temp_path = tempfile.mkdtemp()
    yield Path(temp_path)
    shutil.rmtree(temp_path, ignore_errors=True)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def runner() -> FakeToolRunner:
    return FakeToolRunner()


@pytest.fixture
def job_client(clock) -> FakeJobClient:
    return FakeJobClient(clock=clock)


@pytest.fixture
def extractor() -> TaggingExtractor:
    return TaggingExtractor()


@pytest.fixture
def two_segment_plan() -> List[SegmentPlan]:
    return make_plan(2)


@pytest.fixture
def sample_config() -> Dict[str, Any]:
    """Sample configuration for testing."""
    return {
        "generation": {
            "model": "sora-2-pro",
            "size": "1792x1024",
            "seconds_per_segment": 12,
            "segment_count": 4,
        },
        "api": {
            "api_key": "${VIDEO_CHAIN_TEST_KEY:-sk-fallback-key}",
            "timeout": 60,
        },
        "concat": {
            "crf": 20,
        },
        "output": {
            "metadata_format": "yaml",
        },
    }
