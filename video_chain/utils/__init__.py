"""
Utilities
=========

Helper functions and utilities for Video Chain.
"""

from .image_utils import load_image, fit_to_size, encode_jpeg, get_image_dimensions
from .process import ToolRunner, ToolResult
from .storage import (
    write_video,
    save_segments,
    build_manifest,
    save_manifest,
    load_manifest,
    ensure_dir,
    segment_filename,
    format_file_size,
)

__all__ = [
    "load_image",
    "fit_to_size",
    "encode_jpeg",
    "get_image_dimensions",
    "ToolRunner",
    "ToolResult",
    "write_video",
    "save_segments",
    "build_manifest",
    "save_manifest",
    "load_manifest",
    "ensure_dir",
    "segment_filename",
    "format_file_size",
]
