"""
Tests for Configuration Module

Tests for video_chain/core/config.py
"""

import pytest
import yaml

from video_chain.core.config import (
    Config,
    GenerationConfig,
    ChainingConfig,
    ConcatConfig,
    OutputConfig,
    get_config,
    reset_config,
    set_config,
)
from video_chain.core.exceptions import ConfigurationError


class TestConfigDefaults:
    """Tests for default configuration values."""

    def test_defaults(self):
        config = Config()

        assert config.generation.model == "sora-2"
        assert config.generation.size == "1280x720"
        assert config.generation.seconds_per_segment == 8
        assert config.generation.poll_interval == 2.0
        assert config.generation.deadline_seconds is None
        assert config.planner.model == "gpt-4o"
        assert config.chaining.frame_quality == 95
        assert config.chaining.tail_window == 1.0
        assert config.concat.video_codec == "libx264"
        assert config.concat.crf == 23
        assert config.concat.audio_sample_rate == 48000

    def test_to_dict_omits_api_key(self):
        config = Config.from_dict({"api": {"api_key": "sk-secret-value"}})

        data = config.to_dict()

        assert "api_key" not in data["api"]
        assert data["generation"]["model"] == "sora-2"


class TestConfigValidation:
    """Tests for value validation."""

    @pytest.mark.parametrize("seconds", [0, 5, 10, 16])
    def test_rejects_unsupported_segment_length(self, seconds):
        with pytest.raises(ConfigurationError) as exc_info:
            GenerationConfig(seconds_per_segment=seconds)

        assert exc_info.value.details["config_key"] == "generation.seconds_per_segment"

    @pytest.mark.parametrize("count", [1, 21])
    def test_rejects_segment_count_out_of_range(self, count):
        with pytest.raises(ConfigurationError):
            GenerationConfig(segment_count=count)

    def test_rejects_bad_deadline(self):
        with pytest.raises(ConfigurationError):
            GenerationConfig(deadline_seconds=0)

    def test_rejects_bad_frame_quality(self):
        with pytest.raises(ConfigurationError):
            ChainingConfig(frame_quality=0)

    def test_rejects_non_positive_tail_window(self):
        with pytest.raises(ConfigurationError) as exc_info:
            ChainingConfig(tail_window=0)

        assert exc_info.value.details["config_key"] == "chaining.tail_window"

    def test_rejects_unknown_metadata_format(self):
        with pytest.raises(ConfigurationError):
            OutputConfig(metadata_format="xml")

    def test_rejects_bad_crf(self):
        with pytest.raises(ConfigurationError):
            ConcatConfig(crf=60)

    def test_unknown_key(self):
        with pytest.raises(ConfigurationError):
            Config.from_dict({"generation": {"fps": 24}})


class TestConfigLoading:
    """Tests for YAML loading and env interpolation."""

    def test_load_from_file(self, temp_dir, sample_config, monkeypatch):
        monkeypatch.delenv("VIDEO_CHAIN_TEST_KEY", raising=False)
        config_path = temp_dir / "config.yaml"
        config_path.write_text(yaml.safe_dump(sample_config))

        config = Config.load(config_path)

        assert config.generation.model == "sora-2-pro"
        assert config.generation.seconds_per_segment == 12
        assert config.generation.segment_count == 4
        assert config.api.api_key == "sk-fallback-key"
        assert config.api.timeout == 60
        assert config.concat.crf == 20
        assert config.output.metadata_format == "yaml"

    def test_env_var_interpolation(self, temp_dir, sample_config, monkeypatch):
        monkeypatch.setenv("VIDEO_CHAIN_TEST_KEY", "sk-from-env")
        config_path = temp_dir / "config.yaml"
        config_path.write_text(yaml.safe_dump(sample_config))

        config = Config.load(config_path)

        assert config.api.api_key == "sk-from-env"

    def test_empty_api_key_becomes_none(self):
        config = Config.from_dict({"api": {"api_key": ""}})

        assert config.api.api_key is None

    def test_invalid_yaml(self, temp_dir):
        config_path = temp_dir / "broken.yaml"
        config_path.write_text("generation: [unclosed")

        with pytest.raises(ConfigurationError):
            Config.load(config_path)


class TestGlobalConfig:
    """Tests for the global config accessors."""

    def test_set_and_reset(self):
        custom = Config.from_dict({"generation": {"segment_count": 5}})
        set_config(custom)
        try:
            assert get_config() is custom
        finally:
            reset_config()
