"""Sanitization of correction input and model output."""

import logging
import re
from typing import Optional

from ..speech_to_text.config import (
    ANGLE_TAG_PATTERN,
    CONTROL_PROSE_PATTERN,
    REMINDER_BLOCK_PATTERN,
    REMINDER_TAG_PATTERN,
)
from .config import (
    BLOCKED_OUTPUT_MARKERS,
    PERSONA_LEAK_MARKERS,
    PROMPT_TEXT_PLACEHOLDER,
    RESPONSE_PREFIXES,
)
from .drift_guard import drift_rejection_reason

logger = logging.getLogger(__name__)

_REMINDER_BLOCK_RE = re.compile(REMINDER_BLOCK_PATTERN)
_REMINDER_TAG_RE = re.compile(REMINDER_TAG_PATTERN)
_ANGLE_TAG_RE = re.compile(ANGLE_TAG_PATTERN)
_CONTROL_PROSE_RE = re.compile(CONTROL_PROSE_PATTERN)


def sanitize_input(text: str) -> str:
    """Strip reminder blocks, control prose and tags from candidate text."""
    cleaned = text.strip()
    cleaned = _REMINDER_BLOCK_RE.sub("", cleaned)
    cleaned = _CONTROL_PROSE_RE.sub("", cleaned)
    cleaned = _REMINDER_TAG_RE.sub("", cleaned)
    cleaned = _ANGLE_TAG_RE.sub("", cleaned)
    return cleaned.strip()


def contains_blocked_marker(text: str) -> bool:
    lowered = text.lower()
    return any(marker.lower() in lowered for marker in BLOCKED_OUTPUT_MARKERS)


def contains_persona_leak(text: str) -> bool:
    return any(marker in text for marker in PERSONA_LEAK_MARKERS)


def strip_response_prefix(text: str) -> str:
    """Remove one leading label such as 修正後： from model output."""
    for prefix in RESPONSE_PREFIXES:
        if text.startswith(prefix):
            return text[len(prefix) :]
    return text


def build_user_prompt(template: str, text: str) -> str:
    """Substitute text into a prompt template's {text} placeholder."""
    return template.replace(PROMPT_TEXT_PLACEHOLDER, text)


def sanitize_output(
    output: str, fallback: str, quality_scale: float = 1.0
) -> tuple[str, Optional[str]]:
    """
    Validate raw model output against the text it was asked to correct.

    Args:
        output: Accumulated model output
        fallback: Sanitized source text, published when output is rejected
        quality_scale: Edit budget scale of the recognizer model

    Returns:
        Tuple of (text to publish, rejection reason or None if accepted)
    """
    cleaned = _REMINDER_BLOCK_RE.sub("", output.strip())

    if "<" in cleaned or ">" in cleaned:
        reason = "contains angle brackets"
    elif contains_blocked_marker(cleaned):
        reason = "blocked marker detected"
    elif contains_persona_leak(cleaned):
        reason = "persona leak detected"
    else:
        cleaned = strip_response_prefix(cleaned).strip()
        if not cleaned:
            reason = "empty after sanitization"
        else:
            reason = drift_rejection_reason(fallback, cleaned, quality_scale)

    if reason is not None:
        logger.debug(f"LLM output rejected: {reason}: {output!r}")
        return fallback, reason
    return cleaned, None
