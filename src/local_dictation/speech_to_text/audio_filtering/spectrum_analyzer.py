"""Band-energy spectrum analyzer for level visualization."""

import numpy as np

from ..config import (
    DEFAULT_SAMPLE_RATE,
    SPECTRUM_BAND_COUNT,
    SPECTRUM_FFT_LENGTH,
    SPECTRUM_HIGH_HZ,
    SPECTRUM_LOW_HZ,
    SPECTRUM_MIN_MAGNITUDE,
    SPECTRUM_NOISE_FLOOR_DB,
    SPECTRUM_RANGE_DB,
)
from .interfaces import SpectrumAnalyzerInterface


class EnergySpectrumAnalyzer(SpectrumAnalyzerInterface):
    """Maps the trailing fft_length samples onto band_count normalized energies.

    Bands span low_hz..high_hz with squared-fraction edges, so low
    frequencies get narrower bands. Band value is the mean bin magnitude in
    dB relative to a -30 dB floor over a 60 dB range, clamped to [0, 1].
    """

    def __init__(
        self,
        sample_rate: int = DEFAULT_SAMPLE_RATE,
        band_count: int = SPECTRUM_BAND_COUNT,
        fft_length: int = SPECTRUM_FFT_LENGTH,
        low_hz: float = SPECTRUM_LOW_HZ,
        high_hz: float = SPECTRUM_HIGH_HZ,
    ) -> None:
        self.sample_rate = sample_rate
        self.band_count = band_count
        self.fft_length = fft_length

        half = fft_length // 2
        bin_hz = sample_rate / fft_length
        self.min_bin = int(low_hz / bin_hz)
        self.max_bin = min(int(high_hz / bin_hz), half)

        self._window = np.hanning(fft_length)
        self._band_edges = self._compute_band_edges()

    def _compute_band_edges(self) -> list[tuple[int, int]]:
        span = self.max_bin - self.min_bin
        edges = []
        for band in range(self.band_count):
            low = self.min_bin + int((band / self.band_count) ** 2 * span)
            high = self.min_bin + int(((band + 1) / self.band_count) ** 2 * span)
            high = min(max(high, low + 1), self.max_bin)
            edges.append((low, high))
        return edges

    @property
    def band_edges(self) -> list[tuple[int, int]]:
        return list(self._band_edges)

    def analyze(self, samples: np.ndarray) -> np.ndarray:
        samples = np.asarray(samples, dtype=np.float64).reshape(-1)
        if samples.size < self.fft_length:
            return np.zeros(self.band_count, dtype=np.float32)

        frame = samples[-self.fft_length :] * self._window
        magnitudes = np.abs(np.fft.rfft(frame)[: self.fft_length // 2])

        bands = np.zeros(self.band_count, dtype=np.float64)
        for index, (low, high) in enumerate(self._band_edges):
            if high > low:
                bands[index] = magnitudes[low:high].mean()

        db = 20.0 * np.log10(np.maximum(bands, SPECTRUM_MIN_MAGNITUDE))
        normalized = (db - SPECTRUM_NOISE_FLOOR_DB) / SPECTRUM_RANGE_DB
        return np.clip(normalized, 0.0, 1.0).astype(np.float32)
