"""Audio filtering for live dictation: noise suppression and spectrum analysis."""

from .interfaces import AudioFilterInterface, SpectrumAnalyzerInterface
from .models import FilterState, NoiseProfile
from .noise_suppressor import SpectralNoiseSuppressor, design_high_pass
from .spectrum_analyzer import EnergySpectrumAnalyzer

__all__ = [
    "AudioFilterInterface",
    "SpectrumAnalyzerInterface",
    "FilterState",
    "NoiseProfile",
    "SpectralNoiseSuppressor",
    "design_high_pass",
    "EnergySpectrumAnalyzer",
]
