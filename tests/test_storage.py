"""
Tests for Storage Utilities

Tests for video_chain/utils/storage.py
"""

import json

import pytest
import yaml

from video_chain.api.base import FrameSize
from video_chain.core.exceptions import JobFailedError
from video_chain.utils.storage import (
    MANIFEST_VERSION,
    build_manifest,
    format_file_size,
    load_manifest,
    save_manifest,
    save_segments,
    segment_filename,
    write_video,
)
from video_chain.workflow.models import FinalVideo, RunContext, RunState, SegmentResult

from conftest import make_plan


@pytest.fixture
def finished_context():
    context = RunContext(plan=make_plan(2), frame_size=FrameSize(1280, 720), model="sora-2")
    context.add_result(SegmentResult(1, "job_1", b"one"))
    context.add_result(SegmentResult(2, "job_2", b"two!"))
    context.final_video = FinalVideo(data=b"onetwo!", strategy="stream_copy", segment_count=2)
    context.state = RunState.DONE
    return context


@pytest.fixture
def failed_context():
    context = RunContext(plan=make_plan(3), frame_size=FrameSize(1280, 720), model="sora-2")
    context.add_result(SegmentResult(1, "job_1", b"one"))
    context.state = RunState.FAILED
    context.current_ordinal = 2
    context.phase = "await"
    context.error = JobFailedError("content policy violation", job_id="job_2")
    return context


class TestWriteVideo:
    """Tests for write_video."""

    def test_creates_parent_directories(self, temp_dir):
        path = write_video(b"MP4DATA", temp_dir / "nested" / "out.mp4")

        assert path.read_bytes() == b"MP4DATA"

    def test_replaces_existing_file_without_leftovers(self, temp_dir):
        target = temp_dir / "out.mp4"
        target.write_bytes(b"OLD")

        write_video(b"NEW", target)

        assert target.read_bytes() == b"NEW"
        assert [p.name for p in temp_dir.iterdir()] == ["out.mp4"]


class TestSaveSegments:
    """Tests for segment files."""

    def test_writes_one_file_per_segment(self, temp_dir, finished_context):
        files = save_segments(finished_context.results, temp_dir / "segments")

        assert sorted(files) == [1, 2]
        assert files[1].name == "segment_01.mp4"
        assert files[2].read_bytes() == b"two!"

    def test_nothing_to_save(self, temp_dir):
        assert save_segments([], temp_dir / "segments") == {}


class TestManifest:
    """Tests for run manifests."""

    def test_successful_run(self, temp_dir, finished_context):
        files = save_segments(finished_context.results, temp_dir / "segments")

        manifest = build_manifest(
            finished_context.to_dict(),
            segment_files=files,
            video_file=temp_dir / "chained_video.mp4",
        )

        assert manifest["manifest_version"] == MANIFEST_VERSION
        assert manifest["run"]["run_id"] == finished_context.run_id
        assert manifest["run"]["state"] == "done"
        assert manifest["run"]["size"] == "1280x720"
        assert [s["ordinal"] for s in manifest["plan"]] == [1, 2]
        assert manifest["segments"][0]["file"] == str(files[1])
        assert manifest["segments"][1]["size_bytes"] == 4
        assert manifest["final_video"]["strategy"] == "stream_copy"
        assert manifest["final_video"]["file"].endswith("chained_video.mp4")
        assert manifest["failure"] is None

    def test_failed_run_records_where(self, failed_context):
        error_details = failed_context.error.to_dict()

        manifest = build_manifest(failed_context.to_dict(), error_details=error_details)

        assert manifest["failure"]["segment"] == 2
        assert manifest["failure"]["phase"] == "await"
        assert manifest["failure"]["error"] == "content policy violation"
        assert manifest["failure"]["details"]["error"] == "JobFailedError"
        assert manifest["segments"] == [{"ordinal": 1, "job_id": "job_1", "size_bytes": 3, "file": None}]
        assert manifest["final_video"] is None

    def test_summary_is_not_modified(self, finished_context):
        summary = finished_context.to_dict()

        build_manifest(summary, video_file=None)

        assert "file" not in summary["segments"][0]
        assert "file" not in summary["final_video"]

    def test_json_round_trip(self, temp_dir, finished_context):
        manifest = build_manifest(finished_context.to_dict())

        path = save_manifest(manifest, temp_dir)

        assert path.name == f"run_{finished_context.run_id}.json"
        assert load_manifest(path)["run"] == manifest["run"]
        assert "\n  " in path.read_text()

    def test_yaml_format(self, temp_dir, finished_context):
        path = save_manifest(build_manifest(finished_context.to_dict()), temp_dir, format="yaml")

        assert path.suffix == ".yaml"
        with open(path) as f:
            assert yaml.safe_load(f)["run"]["run_id"] == finished_context.run_id

    def test_unsupported_format(self, temp_dir, finished_context):
        with pytest.raises(ValueError):
            save_manifest(build_manifest(finished_context.to_dict()), temp_dir, format="xml")

    def test_missing_file(self, temp_dir):
        assert load_manifest(temp_dir / "missing.json") is None

    def test_rejects_other_json(self, temp_dir):
        path = temp_dir / "run_other.json"
        path.write_text(json.dumps({"run_id": "abc123"}))

        with pytest.raises(ValueError):
            load_manifest(path)


class TestFilenames:
    """Tests for filename helpers."""

    def test_segment_filename(self):
        assert segment_filename(3) == "segment_03.mp4"

    def test_format_file_size(self):
        assert format_file_size(512) == "512.0 B"
        assert format_file_size(1536) == "1.5 KB"
