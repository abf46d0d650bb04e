"""
Storage Utilities
=================

Writes the artifacts of a run: the final video, the intermediate segments
and a run manifest that ties them to the plan and, for a failed run, to the
segment and phase that failed.

Manifest layout (JSON or YAML)::

    manifest_version: 1
    run:      {run_id, state, model, size, started_at, finished_at}
    plan:     [{ordinal, title, seconds, prompt}, ...]
    segments: [{ordinal, job_id, size_bytes, file}, ...]
    final_video: {strategy, size_bytes, file} | null
    failure:  {segment, phase, error, details} | null
    saved_at: ISO timestamp
"""

import json
import logging
import os
import tempfile
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Iterable, Optional, Union

import yaml

logger = logging.getLogger(__name__)


MANIFEST_VERSION = 1

RUN_FIELDS = ("run_id", "state", "model", "size", "started_at", "finished_at")


def write_video(video_data: bytes, output_path: Union[str, Path]) -> Path:
    """
    Write video bytes, replacing any existing file atomically.

    The bytes go to a temporary file in the target directory first, so an
    interrupted write never leaves a truncated MP4 under the final name.
    """
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    fd, tmp_name = tempfile.mkstemp(prefix=f".{output_path.name}.", dir=output_path.parent)
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(video_data)
        os.replace(tmp_name, output_path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise

    logger.info(f"Video saved to {output_path} ({format_file_size(len(video_data))})")
    return output_path


def save_segments(results: Iterable[Any], directory: Union[str, Path]) -> Dict[int, Path]:
    """
    Write each downloaded segment as ``segment_NN.mp4``.

    Args:
        results: SegmentResult-like objects (``ordinal``, ``video_bytes``)
        directory: Target directory

    Returns:
        Written paths keyed by segment ordinal
    """
    directory = Path(directory)
    return {
        result.ordinal: write_video(result.video_bytes, directory / segment_filename(result.ordinal))
        for result in results
    }


def build_manifest(
    summary: Dict[str, Any],
    segment_files: Optional[Dict[int, Path]] = None,
    video_file: Optional[Path] = None,
    error_details: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """
    Build a run manifest from a RunContext summary (``RunContext.to_dict()``).

    Saved file paths are recorded next to the entries they belong to. The
    summary itself is not modified.
    """
    segment_files = segment_files or {}

    segments = []
    for entry in summary.get("segments") or []:
        entry = dict(entry)
        path = segment_files.get(entry["ordinal"])
        entry["file"] = str(path) if path is not None else None
        segments.append(entry)

    final_video = summary.get("final_video")
    if final_video is not None:
        final_video = dict(final_video)
        final_video["file"] = str(video_file) if video_file is not None else None

    failure = None
    if summary.get("error") is not None:
        failure = {
            "segment": summary.get("failed_segment"),
            "phase": summary.get("failed_phase"),
            "error": summary["error"],
            "details": error_details,
        }

    return {
        "manifest_version": MANIFEST_VERSION,
        "run": {key: summary.get(key) for key in RUN_FIELDS},
        "plan": list(summary.get("plan") or []),
        "segments": segments,
        "final_video": final_video,
        "failure": failure,
        "saved_at": datetime.now().isoformat(),
    }


def save_manifest(
    manifest: Dict[str, Any],
    directory: Union[str, Path],
    format: str = "json",
) -> Path:
    """
    Write a manifest as ``run_<run_id>.json`` or ``run_<run_id>.yaml``.

    Returns:
        Path to the manifest
    """
    if format not in ("json", "yaml"):
        raise ValueError(f"Unsupported manifest format: {format}")

    path = Path(directory) / manifest_filename(manifest["run"]["run_id"], format)
    path.parent.mkdir(parents=True, exist_ok=True)

    with open(path, "w") as f:
        if format == "yaml":
            yaml.safe_dump(manifest, f, default_flow_style=False, sort_keys=False)
        else:
            json.dump(manifest, f, indent=2, default=str)

    logger.debug(f"Manifest saved to {path}")
    return path


def load_manifest(path: Union[str, Path]) -> Optional[Dict[str, Any]]:
    """
    Load a run manifest.

    Returns:
        Manifest dictionary, or None if the file does not exist

    Raises:
        ValueError: the file is not a run manifest this version can read
    """
    path = Path(path)

    if not path.exists():
        return None

    with open(path, "r") as f:
        if path.suffix in (".yml", ".yaml"):
            manifest = yaml.safe_load(f)
        else:
            manifest = json.load(f)

    if not isinstance(manifest, dict) or manifest.get("manifest_version") != MANIFEST_VERSION:
        raise ValueError(f"{path} is not a version {MANIFEST_VERSION} run manifest")
    return manifest


def ensure_dir(path: Union[str, Path]) -> Path:
    """Ensure a directory exists, creating it if necessary."""
    path = Path(path)
    path.mkdir(parents=True, exist_ok=True)
    return path


def segment_filename(ordinal: int) -> str:
    """File name used for a saved intermediate segment."""
    return f"segment_{ordinal:02d}.mp4"


def manifest_filename(run_id: str, format: str = "json") -> str:
    return f"run_{run_id}.{format}"


def format_file_size(size_bytes: int) -> str:
    """
    Format file size in human-readable format.

    Returns:
        Formatted string (e.g., "1.5 MB")
    """
    size = float(size_bytes)
    for unit in ["B", "KB", "MB", "GB"]:
        if size < 1024:
            return f"{size:.1f} {unit}"
        size /= 1024
    return f"{size:.1f} TB"
