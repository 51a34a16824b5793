"""Streaming noise suppressor: high-pass biquad followed by a spectral gate."""

from typing import Optional

import numpy as np
from scipy import signal

from ..config import (
    DEFAULT_SAMPLE_RATE,
    GATE_FLOOR_BASE,
    GATE_FLOOR_MIN,
    GATE_FLOOR_SCALE,
    GATE_THRESHOLD_BASE,
    GATE_THRESHOLD_SCALE,
    HIGH_PASS_CUTOFF_HZ,
    NOISE_PROFILE_LEARN_FRAMES,
    NOISE_REDUCTION_ENABLED,
    NOISE_REDUCTION_STRENGTH,
    SPECTRAL_GATE_FFT_LENGTH,
)
from ..logging_utils import get_logger
from .interfaces import AudioFilterInterface
from .models import FilterState, NoiseProfile

logger = get_logger(__name__)


def design_high_pass(
    sample_rate: int, cutoff_hz: float = HIGH_PASS_CUTOFF_HZ
) -> tuple[np.ndarray, np.ndarray]:
    """Design the second-order high-pass section.

    A second-order Butterworth designed through the prewarped bilinear
    transform is the RBJ cookbook high-pass with Q = sqrt(2)/2.

    Args:
        sample_rate: Stream sample rate in Hz
        cutoff_hz: -3 dB corner frequency

    Returns:
        Normalized (b, a) coefficients with a[0] == 1
    """
    nyquist = sample_rate / 2.0
    cutoff_hz = max(1.0, min(cutoff_hz, nyquist * 0.9))
    b, a = signal.butter(2, cutoff_hz, btype="highpass", fs=sample_rate)
    return np.asarray(b, dtype=np.float64), np.asarray(a, dtype=np.float64)


class SpectralNoiseSuppressor(AudioFilterInterface):
    """Per-stream noise suppressor for live microphone buffers.

    Every non-empty buffer first passes through a stateful high-pass biquad.
    Buffers of at least fft_length samples then go through a spectral gate
    over their trailing fft_length samples: the first learn_frames frames of
    a session build an averaged noise profile and are passed through ungated,
    later frames attenuate every bin whose magnitude stays below
    threshold * profile. Shorter buffers only contribute to learning.

    One instance serves exactly one stream. State carries across calls until
    reset() and is never shared between instances.
    """

    def __init__(
        self,
        sample_rate: int = DEFAULT_SAMPLE_RATE,
        enabled: bool = NOISE_REDUCTION_ENABLED,
        strength: float = NOISE_REDUCTION_STRENGTH,
        fft_length: int = SPECTRAL_GATE_FFT_LENGTH,
        learn_frames: int = NOISE_PROFILE_LEARN_FRAMES,
        cutoff_hz: float = HIGH_PASS_CUTOFF_HZ,
    ) -> None:
        """Initialize the suppressor.

        Args:
            sample_rate: Stream sample rate in Hz
            enabled: When False, process() returns an unmodified copy
            strength: Gate strength (0.0 to 1.0)
            fft_length: Spectral gate transform length, must be even
            learn_frames: Frames averaged into the noise profile
            cutoff_hz: High-pass corner frequency
        """
        if fft_length < 2 or fft_length % 2:
            raise ValueError(f"fft_length must be a positive even number, got {fft_length}")
        if learn_frames < 1:
            raise ValueError(f"learn_frames must be at least 1, got {learn_frames}")

        self.sample_rate = sample_rate
        self.enabled = enabled
        self.strength = max(0.0, min(1.0, strength))
        self.fft_length = fft_length
        self.half_length = fft_length // 2
        self.learn_frames = learn_frames

        # Gate parameters derived from strength
        self.threshold = GATE_THRESHOLD_BASE + self.strength * GATE_THRESHOLD_SCALE
        self.attenuation = max(
            GATE_FLOOR_MIN, GATE_FLOOR_BASE - self.strength * GATE_FLOOR_SCALE
        )

        # Coefficients and analysis window are computed once
        self._b, self._a = design_high_pass(sample_rate, cutoff_hz)
        self._window = np.hanning(fft_length)

        self._state = FilterState.fresh(fft_length)

    @property
    def state(self) -> FilterState:
        return self._state

    @property
    def noise_profile(self) -> Optional[NoiseProfile]:
        return self._state.noise_profile

    @property
    def learned_frames(self) -> int:
        return self._state.learned_frames

    def reset(self) -> None:
        """Drop biquad history, overlap and the learned noise profile."""
        self._state = FilterState.fresh(self.fft_length)
        logger.debug("Noise suppressor state reset")

    def process(self, buffer: np.ndarray) -> np.ndarray:
        """Filter one buffer.

        Args:
            buffer: Mono samples, any length

        Returns:
            New float32 array with the same length as the input
        """
        samples = np.array(buffer, dtype=np.float64).reshape(-1)

        if not self.enabled or samples.size == 0:
            return samples.astype(np.float32)

        samples = self._apply_high_pass(samples)

        if samples.size >= self.fft_length:
            self._apply_spectral_gate(samples)
        elif self._state.learned_frames < self.learn_frames:
            padded = np.zeros(self.fft_length, dtype=np.float64)
            padded[: samples.size] = samples
            self._accumulate_noise_profile(self._magnitudes(padded))

        return samples.astype(np.float32)

    def _apply_high_pass(self, samples: np.ndarray) -> np.ndarray:
        x1, x2, y1, y2 = self._state.biquad_history
        zi = signal.lfiltic(self._b, self._a, y=[y1, y2], x=[x1, x2])
        filtered, _ = signal.lfilter(self._b, self._a, samples, zi=zi)

        # History is (x[n-1], x[n-2], y[n-1], y[n-2]) of the last two samples
        inputs = np.concatenate(([x2, x1], samples))
        outputs = np.concatenate(([y2, y1], filtered))
        self._state.biquad_history = (
            float(inputs[-1]),
            float(inputs[-2]),
            float(outputs[-1]),
            float(outputs[-2]),
        )
        return filtered

    def _magnitudes(self, frame: np.ndarray) -> np.ndarray:
        spectrum = np.fft.rfft(frame * self._window)
        return np.abs(spectrum[: self.half_length])

    def _accumulate_noise_profile(self, magnitudes: np.ndarray) -> None:
        state = self._state
        if state.profile_accumulator is None:
            state.profile_accumulator = np.zeros(self.half_length, dtype=np.float64)

        state.profile_accumulator += magnitudes
        state.learned_frames += 1
        logger.trace(f"Noise profile frame {state.learned_frames}/{self.learn_frames}")

        if state.learned_frames >= self.learn_frames:
            state.noise_profile = NoiseProfile.from_accumulator(
                state.profile_accumulator, state.learned_frames
            )
            state.profile_accumulator = None
            logger.debug(
                f"🔇 Noise profile learned from {state.learned_frames} frames "
                f"(strength={self.strength:.2f})"
            )

    def _apply_spectral_gate(self, samples: np.ndarray) -> None:
        """Gate the trailing fft_length samples in place."""
        state = self._state
        half = self.half_length
        start = samples.size - self.fft_length

        spectrum = np.fft.rfft(samples[start:] * self._window)
        magnitudes = np.abs(spectrum[:half])

        if state.learned_frames < self.learn_frames:
            self._accumulate_noise_profile(magnitudes)
            return

        profile = state.noise_profile
        if profile is None:
            return

        gated = magnitudes < profile.magnitudes * self.threshold
        # The real inverse transform mirrors bins 1..half-1, so scaling the
        # lower half attenuates both halves of the full spectrum. Bin `half`
        # is left untouched.
        spectrum[:half][gated] *= self.attenuation

        # irfft already applies the 1/L normalization
        restored = np.fft.irfft(spectrum, n=self.fft_length)

        restored[:half] += state.overlap
        state.overlap = restored[half:].copy()

        segment_length = samples.size - start
        count = min(segment_length, half)
        samples[start : start + count] = restored[:count]
