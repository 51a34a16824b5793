"""Filtering of recognizer hallucinations and prompt-injection text."""

import re
from typing import Iterable, Optional

from .config import (
    ANGLE_TAG_PATTERN,
    CONTROL_PROSE_PATTERN,
    HALLUCINATION_BRACKET_CHARS,
    HALLUCINATION_CONTROL_PHRASES,
    REMINDER_BLOCK_PATTERN,
    REMINDER_TAG_PATTERN,
)
from .logging_utils import get_logger
from .model_registry import ModelRegistry, default_registry

logger = get_logger(__name__)

_REMINDER_BLOCK_RE = re.compile(REMINDER_BLOCK_PATTERN)
_REMINDER_TAG_RE = re.compile(REMINDER_TAG_PATTERN)
_ANGLE_TAG_RE = re.compile(ANGLE_TAG_PATTERN)
_CONTROL_PROSE_RE = re.compile(CONTROL_PROSE_PATTERN)


class HallucinationFilter:
    """Cleans recognizer text and rejects strings that are not real speech.

    Whisper models emit bracketed meta-commentary ("[inaudible]", "(music)")
    and subtitle phrases on silence. Text that looks like an agent control
    block is rejected too, since the output is pasted into other apps.
    """

    def __init__(
        self,
        phantom_phrases: Iterable[str] = (),
        noise_marker: Optional[str] = None,
    ) -> None:
        self.noise_marker = noise_marker
        self._phantoms = frozenset(phrase.lower() for phrase in phantom_phrases)

    @classmethod
    def for_model(
        cls, model_id: str, registry: Optional[ModelRegistry] = None
    ) -> "HallucinationFilter":
        """Build the filter for one registered recognition model."""
        if registry is None:
            registry = default_registry()
        spec = registry.get(model_id)
        return cls(phantom_phrases=spec.phantom_phrases, noise_marker=spec.noise_marker)

    def sanitize(self, text: str) -> str:
        """Strip noise markers, injected tags and control prose, then trim."""
        cleaned = text
        if self.noise_marker:
            cleaned = cleaned.replace(self.noise_marker, "")
        cleaned = _REMINDER_BLOCK_RE.sub("", cleaned)
        cleaned = _REMINDER_TAG_RE.sub("", cleaned)
        cleaned = _ANGLE_TAG_RE.sub("", cleaned)
        cleaned = _CONTROL_PROSE_RE.sub("", cleaned)
        return cleaned.strip()

    def is_valid(self, text: str) -> bool:
        """Whether text, once sanitized, is plausible dictated speech."""
        cleaned = self.sanitize(text)
        if not cleaned:
            return False

        if any(char in cleaned for char in HALLUCINATION_BRACKET_CHARS):
            logger.trace(f"Rejected bracketed text: {cleaned!r}")
            return False

        lowered = cleaned.lower()
        if any(phrase in lowered for phrase in HALLUCINATION_CONTROL_PHRASES):
            logger.warning(f"Rejected control text from recognizer: {cleaned[:40]!r}")
            return False

        if lowered in self._phantoms:
            logger.debug(f"Rejected phantom phrase: {cleaned!r}")
            return False

        return True
