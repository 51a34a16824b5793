"""Debounced on-device LLM correction of dictated text."""

from .drift_guard import is_reasonable_correction, levenshtein_distance
from .exceptions import CorrectionError, CorrectionModelNotFoundError, LLMConnectionError
from .llm_engine import CorrectionEngine, OllamaCorrectionEngine
from .models import CorrectionRequest, CorrectionResult
from .pipeline import CorrectionPipeline

__all__ = [
    "CorrectionEngine",
    "CorrectionError",
    "CorrectionModelNotFoundError",
    "CorrectionPipeline",
    "CorrectionRequest",
    "CorrectionResult",
    "LLMConnectionError",
    "OllamaCorrectionEngine",
    "is_reasonable_correction",
    "levenshtein_distance",
]
