"""
Configuration System
====================

Centralized, validated configuration management with typed dataclasses.
"""

import os
import re
import logging
from dataclasses import dataclass, field, asdict
from pathlib import Path
from typing import Optional, Dict, Any, Union
import yaml

from .exceptions import ConfigurationError

logger = logging.getLogger(__name__)


ALLOWED_SEGMENT_SECONDS = (4, 8, 12)
MIN_SEGMENTS = 2
MAX_SEGMENTS = 20


# =============================================================================
# Configuration Dataclasses
# =============================================================================


@dataclass
class GenerationConfig:
    """Segment generation settings."""

    model: str = "sora-2"
    size: str = "1280x720"
    seconds_per_segment: int = 8
    segment_count: int = 3
    poll_interval: float = 2.0
    deadline_seconds: Optional[float] = None
    poll_retries: int = 0
    retry_delay: float = 2.0

    def __post_init__(self):
        self.validate()

    def validate(self) -> None:
        """Validate configuration values."""
        if self.seconds_per_segment not in ALLOWED_SEGMENT_SECONDS:
            raise ConfigurationError(
                f"seconds_per_segment must be one of {ALLOWED_SEGMENT_SECONDS}, got {self.seconds_per_segment}",
                config_key="generation.seconds_per_segment",
            )
        if not MIN_SEGMENTS <= self.segment_count <= MAX_SEGMENTS:
            raise ConfigurationError(
                f"segment_count must be {MIN_SEGMENTS}-{MAX_SEGMENTS}, got {self.segment_count}",
                config_key="generation.segment_count",
            )
        if self.poll_interval < 0:
            raise ConfigurationError(
                f"poll_interval must be >= 0, got {self.poll_interval}",
                config_key="generation.poll_interval",
            )
        if self.deadline_seconds is not None and self.deadline_seconds <= 0:
            raise ConfigurationError(
                f"deadline_seconds must be positive, got {self.deadline_seconds}",
                config_key="generation.deadline_seconds",
            )
        if not 0 <= self.poll_retries <= 10:
            raise ConfigurationError(
                f"poll_retries must be 0-10, got {self.poll_retries}",
                config_key="generation.poll_retries",
            )


@dataclass
class ApiConfig:
    """Video provider connection settings."""

    provider: str = "sora"
    base_url: str = "https://api.openai.com/v1"
    api_key: Optional[str] = None
    timeout: int = 300

    def __post_init__(self):
        if not self.api_key:
            self.api_key = None
        if self.timeout <= 0:
            raise ConfigurationError(
                f"timeout must be positive, got {self.timeout}",
                config_key="api.timeout",
            )


@dataclass
class PlannerConfig:
    """Prompt planner settings."""

    model: str = "gpt-4o"
    temperature: float = 0.7
    base_url: str = "https://api.openai.com/v1"
    timeout: int = 120

    def __post_init__(self):
        if not 0.0 <= self.temperature <= 2.0:
            raise ConfigurationError(
                f"temperature must be 0.0-2.0, got {self.temperature}",
                config_key="planner.temperature",
            )


@dataclass
class ChainingConfig:
    """Continuity frame settings."""

    frame_quality: int = 95
    tail_window: float = 1.0
    ffprobe_path: str = "ffprobe"

    def __post_init__(self):
        if not 1 <= self.frame_quality <= 100:
            raise ConfigurationError(
                f"frame_quality must be 1-100, got {self.frame_quality}",
                config_key="chaining.frame_quality",
            )
        if self.tail_window <= 0:
            raise ConfigurationError(
                f"tail_window must be positive, got {self.tail_window}",
                config_key="chaining.tail_window",
            )


@dataclass
class ConcatConfig:
    """Concatenation settings and the re-encode fallback profile."""

    ffmpeg_path: str = "ffmpeg"
    video_codec: str = "libx264"
    preset: str = "medium"
    crf: int = 23
    audio_codec: str = "aac"
    audio_bitrate: str = "128k"
    audio_sample_rate: int = 48000
    audio_channels: int = 2
    tool_timeout: float = 600.0

    def __post_init__(self):
        if not 0 <= self.crf <= 51:
            raise ConfigurationError(
                f"crf must be 0-51, got {self.crf}",
                config_key="concat.crf",
            )


@dataclass
class OutputConfig:
    """Output and storage settings."""

    base_path: str = "./output"
    filename: str = "chained_video.mp4"
    save_segments: bool = True
    save_metadata: bool = True
    metadata_format: str = "json"

    def __post_init__(self):
        if self.metadata_format not in ("json", "yaml"):
            raise ConfigurationError(
                f"metadata_format must be json or yaml, got {self.metadata_format!r}",
                config_key="output.metadata_format",
            )


# =============================================================================
# Main Configuration Class
# =============================================================================


@dataclass
class Config:
    """
    Main configuration container with validation and loading.

    Provides a unified interface to all configuration settings with:
    - Type-safe access to configuration values
    - Validation on load and modification
    - Environment variable interpolation
    - Sensible defaults for all values
    """

    generation: GenerationConfig = field(default_factory=GenerationConfig)
    api: ApiConfig = field(default_factory=ApiConfig)
    planner: PlannerConfig = field(default_factory=PlannerConfig)
    chaining: ChainingConfig = field(default_factory=ChainingConfig)
    concat: ConcatConfig = field(default_factory=ConcatConfig)
    output: OutputConfig = field(default_factory=OutputConfig)

    SECTIONS = ("generation", "api", "planner", "chaining", "concat", "output")

    @classmethod
    def load(cls, path: Optional[Union[str, Path]] = None) -> "Config":
        """
        Load configuration from file with environment variable interpolation.

        Args:
            path: Path to YAML config file (defaults.yaml)

        Returns:
            Validated Config instance
        """
        search_paths = [
            Path("./config/defaults.yaml"),
            Path("./defaults.yaml"),
            Path.home() / ".video-chain" / "config.yaml",
        ]

        if path:
            search_paths.insert(0, Path(path))

        config_data = {}

        for search_path in search_paths:
            if search_path.exists():
                logger.info(f"Loading config from: {search_path}")
                try:
                    with open(search_path, "r") as f:
                        config_data = yaml.safe_load(f) or {}
                    break
                except yaml.YAMLError as e:
                    raise ConfigurationError(
                        f"Invalid YAML in config file: {e}",
                        config_key=str(search_path),
                    )
        else:
            logger.info("No config file found, using defaults")

        config_data = cls._interpolate_env_vars(config_data)

        return cls.from_dict(config_data)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Config":
        """Create Config from dictionary with validation."""
        try:
            return cls(
                generation=GenerationConfig(**(data.get("generation") or {})),
                api=ApiConfig(**(data.get("api") or {})),
                planner=PlannerConfig(**(data.get("planner") or {})),
                chaining=ChainingConfig(**(data.get("chaining") or {})),
                concat=ConcatConfig(**(data.get("concat") or {})),
                output=OutputConfig(**(data.get("output") or {})),
            )
        except TypeError as e:
            raise ConfigurationError(f"Invalid configuration: {e}")

    @staticmethod
    def _interpolate_env_vars(data: Any) -> Any:
        """Recursively interpolate ${VAR} patterns with environment variables."""
        if isinstance(data, str):
            # Handle ${VAR} and ${VAR:-default} patterns
            pattern = r"\$\{([^}:]+)(?::-([^}]*))?\}"

            def replace(match):
                var_name = match.group(1)
                default = match.group(2) or ""
                return os.environ.get(var_name, default)

            return re.sub(pattern, replace, data)
        elif isinstance(data, dict):
            return {k: Config._interpolate_env_vars(v) for k, v in data.items()}
        elif isinstance(data, list):
            return [Config._interpolate_env_vars(item) for item in data]
        return data

    def to_dict(self) -> Dict[str, Any]:
        """Convert config to dictionary (API key omitted)."""
        result = {section: asdict(getattr(self, section)) for section in self.SECTIONS}
        result["api"].pop("api_key", None)
        return result


# =============================================================================
# Convenience Functions
# =============================================================================


_global_config: Optional[Config] = None


def get_config() -> Config:
    """Get the global configuration instance (lazily loaded)."""
    global _global_config
    if _global_config is None:
        _global_config = Config.load()
    return _global_config


def set_config(config: Config) -> None:
    """Set the global configuration instance."""
    global _global_config
    _global_config = config


def reset_config() -> None:
    """Reset global configuration to None (forces reload on next access)."""
    global _global_config
    _global_config = None
