"""Data models for LLM correction."""

from dataclasses import dataclass


@dataclass(frozen=True)
class CorrectionRequest:
    """One debounced candidate text submitted for correction."""

    request_id: int
    text: str
    quality_scale: float = 1.0


@dataclass
class CorrectionResult:
    """Text published for a correction request.

    text is the model output when accepted, otherwise the sanitized source.
    """

    request_id: int
    text: str
    source_text: str
    accepted: bool
    rejection_reason: str | None = None

    @property
    def changed(self) -> bool:
        return self.text != self.source_text
