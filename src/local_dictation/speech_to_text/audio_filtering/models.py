"""Data models for audio filtering state."""

from dataclasses import dataclass

import numpy as np


@dataclass(frozen=True)
class NoiseProfile:
    """Per-bin noise magnitudes averaged over the first frames of a session."""

    magnitudes: np.ndarray
    frame_count: int

    @classmethod
    def from_accumulator(cls, accumulator: np.ndarray, frame_count: int) -> "NoiseProfile":
        magnitudes = accumulator / float(frame_count)
        magnitudes.setflags(write=False)
        return cls(magnitudes=magnitudes, frame_count=frame_count)


@dataclass
class FilterState:
    """Mutable per-stream state of the noise suppressor.

    biquad_history holds (x[n-1], x[n-2], y[n-1], y[n-2]) of the high-pass
    section. overlap holds the second half of the previous inverse transform.
    """

    biquad_history: tuple[float, float, float, float]
    overlap: np.ndarray
    profile_accumulator: np.ndarray | None = None
    learned_frames: int = 0
    noise_profile: NoiseProfile | None = None

    @classmethod
    def fresh(cls, fft_length: int) -> "FilterState":
        return cls(
            biquad_history=(0.0, 0.0, 0.0, 0.0),
            overlap=np.zeros(fft_length // 2, dtype=np.float64),
        )
