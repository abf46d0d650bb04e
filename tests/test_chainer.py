"""
Tests for the Continuity Extractor

Tests for video_chain/workflow/chainer.py and video_chain/utils/image_utils.py
"""

import pytest
from PIL import Image

from video_chain.api.base import FrameSize
from video_chain.core.exceptions import DecodeError, EncodeError
from video_chain.utils.image_utils import encode_jpeg, fit_to_size, get_image_dimensions, load_image
from video_chain.utils.process import ToolResult
from video_chain.workflow.chainer import ContinuityExtractor

from conftest import FakeToolRunner, make_png


class TestImageUtils:
    """Tests for frame helpers."""

    def test_fit_to_size_stretches(self):
        image = load_image(make_png(64, 64))

        assert fit_to_size(image, 128, 72).size == (128, 72)

    def test_encode_jpeg(self):
        data = encode_jpeg(load_image(make_png(32, 18)), quality=95)

        assert data[:2] == b"\xff\xd8"
        assert get_image_dimensions(data) == (32, 18)

    def test_load_image_rejects_garbage(self):
        with pytest.raises(DecodeError):
            load_image(b"not an image")

    def test_encode_jpeg_rejects_unwritable_raster(self):
        with pytest.raises(EncodeError):
            encode_jpeg(Image.new("RGBA", (8, 8)))


class TestContinuityExtractor:
    """Tests for final frame extraction."""

    @pytest.mark.asyncio
    async def test_output_matches_target_size(self):
        runner = FakeToolRunner(duration="8.000000", frame_size=(1920, 1080))
        extractor = ContinuityExtractor(runner=runner)

        image = await extractor.extract_final_frame(b"MP4DATA", 1280, 720)

        assert image[:2] == b"\xff\xd8"
        assert get_image_dimensions(image) == (1280, 720)

    @pytest.mark.asyncio
    async def test_decodes_tail_and_keeps_last_frame(self):
        runner = FakeToolRunner(duration="8.000000")
        extractor = ContinuityExtractor(runner=runner)

        await extractor.extract_final_frame(b"MP4DATA", 1280, 720)

        render = runner.calls[-1]
        assert render[render.index("-sseof") + 1] == "-1.000"
        assert render[render.index("-update") + 1] == "1"
        assert "-ss" not in render
        assert "-frames:v" not in render

    @pytest.mark.asyncio
    async def test_frame_found_when_last_pts_precedes_duration(self):
        # 24 fps: the last frame starts at 7.958s, well before the 8s duration
        runner = FakeToolRunner(duration="8.000000", fps=24.0)
        extractor = ContinuityExtractor(runner=runner)

        image = await extractor.extract_final_frame(b"MP4DATA", 1280, 720)

        assert get_image_dimensions(image) == (1280, 720)

    @pytest.mark.asyncio
    async def test_tail_window_clamped_to_short_video(self):
        runner = FakeToolRunner(duration="0.400000")
        extractor = ContinuityExtractor(runner=runner)

        await extractor.extract_final_frame(b"MP4DATA", 1280, 720)

        render = runner.calls[-1]
        assert render[render.index("-sseof") + 1] == "-0.400"

    @pytest.mark.asyncio
    async def test_no_frame_written(self):
        class SilentRunner(FakeToolRunner):
            async def run(self, args, timeout=None):
                if "-update" in args:
                    self.calls.append(list(args))
                    return ToolResult(args=list(args), returncode=0)
                return await super().run(args, timeout)

        with pytest.raises(DecodeError) as exc_info:
            await ContinuityExtractor(runner=SilentRunner()).extract_final_frame(b"MP4DATA", 1280, 720)

        assert exc_info.value.details["stage"] == "render"
        assert "no frame produced" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_frame_size_variant(self):
        extractor = ContinuityExtractor(runner=FakeToolRunner(frame_size=(640, 360)))

        image = await extractor.extract_final_frame_for(b"MP4DATA", FrameSize.parse("720x1280"))

        assert get_image_dimensions(image) == (720, 1280)

    @pytest.mark.asyncio
    async def test_removes_staging_directory(self):
        runner = FakeToolRunner()
        extractor = ContinuityExtractor(runner=runner)

        await extractor.extract_final_frame(b"MP4DATA", 1280, 720)

        assert runner.workdirs
        assert not any(path.exists() for path in runner.workdirs)

    @pytest.mark.asyncio
    async def test_empty_video(self):
        with pytest.raises(DecodeError):
            await ContinuityExtractor(runner=FakeToolRunner()).extract_final_frame(b"", 1280, 720)

    @pytest.mark.asyncio
    async def test_unreadable_video(self):
        runner = FakeToolRunner(ffprobe_fails=True)

        with pytest.raises(DecodeError) as exc_info:
            await ContinuityExtractor(runner=runner).extract_final_frame(b"garbage", 1280, 720)

        assert exc_info.value.details["stage"] == "open"
        assert not any(path.exists() for path in runner.workdirs)

    @pytest.mark.asyncio
    async def test_unknown_duration(self):
        runner = FakeToolRunner(duration="N/A")

        with pytest.raises(DecodeError) as exc_info:
            await ContinuityExtractor(runner=runner).extract_final_frame(b"MP4DATA", 1280, 720)

        assert exc_info.value.details["stage"] == "seek"

    @pytest.mark.asyncio
    async def test_render_failure(self):
        runner = FakeToolRunner(render_fails=True)

        with pytest.raises(DecodeError) as exc_info:
            await ContinuityExtractor(runner=runner).extract_final_frame(b"MP4DATA", 1280, 720)

        assert exc_info.value.details["stage"] == "render"

    @pytest.mark.asyncio
    async def test_unreadable_frame(self):
        runner = FakeToolRunner(frame_bytes=b"not a png")

        with pytest.raises(DecodeError):
            await ContinuityExtractor(runner=runner).extract_final_frame(b"MP4DATA", 1280, 720)
