"""Streaming speech-to-text for live dictation."""

from .exceptions import (
    AudioCaptureError,
    ConfigurationError,
    DictationError,
    MicrophoneNotFoundError,
    ModelLoadError,
    TranscriptionError,
)
from .hallucination_filter import HallucinationFilter
from .model_registry import ASRModelSpec, LanguageStyle, ModelRegistry, default_registry
from .models import (
    AggregatorPhase,
    DisplayUpdate,
    LoadState,
    LoadStatus,
    Segment,
    SegmentUpdate,
)
from .transcript_aggregator import TranscriptAggregator

__all__ = [
    "ASRModelSpec",
    "AggregatorPhase",
    "AudioCaptureError",
    "ConfigurationError",
    "DictationError",
    "DisplayUpdate",
    "HallucinationFilter",
    "LanguageStyle",
    "LoadState",
    "LoadStatus",
    "MicrophoneNotFoundError",
    "ModelLoadError",
    "ModelRegistry",
    "Segment",
    "SegmentUpdate",
    "TranscriptAggregator",
    "TranscriptionError",
    "default_registry",
]
