"""
Tests for Security Utilities

Tests for video_chain/core/security.py
"""

from video_chain.core.security import redact_api_key, sanitize_filename, sanitize_prompt


class TestSanitizeFilename:
    """Tests for sanitize_filename."""

    def test_replaces_path_separators(self):
        assert "/" not in sanitize_filename("../../etc/passwd")

    def test_empty_name(self):
        assert sanitize_filename("") == "unnamed"
        assert sanitize_filename("..") == "unnamed"

    def test_keeps_extension_when_truncating(self):
        name = sanitize_filename("a" * 300 + ".mp4", max_length=20)

        assert len(name) == 20
        assert name.endswith(".mp4")


class TestSanitizePrompt:
    """Tests for sanitize_prompt."""

    def test_strips_control_characters(self):
        assert sanitize_prompt("A boat\x00 on\x07 water") == "A boat on water"

    def test_keeps_newlines(self):
        assert sanitize_prompt("Context\nPrompt: a boat") == "Context\nPrompt: a boat"

    def test_removes_template_tokens(self):
        assert sanitize_prompt("[INST]a lighthouse[/INST]") == "a lighthouse"

    def test_truncates(self):
        assert len(sanitize_prompt("x" * 50, max_length=10)) == 10

    def test_empty(self):
        assert sanitize_prompt("") == ""


class TestRedactApiKey:
    """Tests for redact_api_key."""

    def test_redacts_bearer_token(self):
        assert "abc123" not in redact_api_key("Authorization: Bearer abc123")

    def test_redacts_openai_key(self):
        text = redact_api_key("Incorrect API key provided: sk-proj-abcdef123456")

        assert "abcdef123456" not in text
        assert "REDACTED" in text

    def test_redacts_env_assignment(self):
        assert "secret" not in redact_api_key("OPENAI_API_KEY=secret")

    def test_plain_text_unchanged(self):
        assert redact_api_key("Job failed with status: failed") == "Job failed with status: failed"
