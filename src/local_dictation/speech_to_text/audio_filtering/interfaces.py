"""Abstract interfaces for audio filtering components."""

from abc import ABC, abstractmethod

import numpy as np


class AudioFilterInterface(ABC):
    """Base interface for per-buffer filters running on the capture callback."""

    @abstractmethod
    def process(self, buffer: np.ndarray) -> np.ndarray:
        """
        Filter one captured buffer.

        Called once per captured chunk, in order, never concurrently for the
        same stream. Must not block.

        Args:
            buffer: Mono float32 samples at the stream sample rate

        Returns:
            Filtered samples with the same length as the input
        """
        pass

    @abstractmethod
    def reset(self) -> None:
        """Reset all per-stream state before a new recording session."""
        pass


class SpectrumAnalyzerInterface(ABC):
    """Interface for band-energy extraction used by level visualizers."""

    @abstractmethod
    def analyze(self, samples: np.ndarray) -> np.ndarray:
        """
        Compute normalized band energies for the trailing samples.

        Args:
            samples: Recent mono samples, newest last

        Returns:
            Band energies clamped to [0, 1]
        """
        pass
