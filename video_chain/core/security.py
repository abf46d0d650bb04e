"""
Security Utilities
==================

Input sanitization and secret scrubbing for prompts, filenames and log text.
"""

import re
import logging
from pathlib import Path

logger = logging.getLogger(__name__)


# Patterns that would let a prompt smuggle chat-template control tokens into
# the planner or the video model
_TEMPLATE_TOKENS = [
    r"\[INST\]",
    r"\[/INST\]",
    r"<\|im_start\|>",
    r"<\|im_end\|>",
]


def sanitize_filename(filename: str, max_length: int = 255) -> str:
    """
    Sanitize a filename by removing dangerous characters.

    Args:
        filename: Original filename
        max_length: Maximum allowed length

    Returns:
        Sanitized filename safe for filesystem operations
    """
    if not filename:
        return "unnamed"

    # Keep: alphanumeric, underscore, hyphen, dot, space
    sanitized = re.sub(r"[^\w\-. ]", "_", filename)
    sanitized = re.sub(r"[_\s]+", "_", sanitized)
    sanitized = sanitized.strip("._- ")

    if len(sanitized) > max_length:
        name = Path(sanitized).stem
        ext = Path(sanitized).suffix
        sanitized = name[:max_length - len(ext)] + ext

    if not sanitized or sanitized in (".", ".."):
        sanitized = "unnamed"

    return sanitized


def sanitize_prompt(prompt: str, max_length: int = 4000) -> str:
    """
    Sanitize a prompt string before it is sent to a model.

    Control characters (other than newlines and tabs) and chat-template
    tokens are removed; the result is truncated to ``max_length``.

    Args:
        prompt: User- or planner-provided prompt
        max_length: Maximum allowed length

    Returns:
        Sanitized prompt string
    """
    if not prompt:
        return ""

    sanitized = "".join(char for char in prompt if char.isprintable() or char in "\n\t")

    for pattern in _TEMPLATE_TOKENS:
        sanitized = re.sub(pattern, "", sanitized, flags=re.IGNORECASE)

    if len(sanitized) > max_length:
        sanitized = sanitized[:max_length]
        logger.warning(f"Prompt truncated from {len(prompt)} to {max_length} characters")

    return sanitized.strip()


def redact_api_key(text: str) -> str:
    """
    Redact API keys and sensitive tokens from text.

    Args:
        text: Text that might contain API keys

    Returns:
        Text with API keys redacted
    """
    if not text:
        return text

    patterns = [
        # Generic Bearer tokens
        (r"Bearer\s+[A-Za-z0-9_\-\.]+", "Bearer ***REDACTED***"),
        # OpenAI keys (sk-..., sk-proj-...)
        (r"sk-[A-Za-z0-9_\-]{8,}", "sk-***REDACTED***"),
        # Generic API key patterns
        (r"api[_-]?key['\"]?\s*[:=]\s*['\"]?[A-Za-z0-9_\-]+", "api_key: ***REDACTED***"),
        # Environment variable patterns
        (r"(OPENAI_API_KEY)=[^\s]+", r"\1=***REDACTED***"),
    ]

    result = text
    for pattern, replacement in patterns:
        result = re.sub(pattern, replacement, result, flags=re.IGNORECASE)

    return result
