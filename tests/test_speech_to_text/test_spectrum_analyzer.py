"""Tests for EnergySpectrumAnalyzer."""

import numpy as np
import pytest

from local_dictation.speech_to_text.audio_filtering.spectrum_analyzer import (
    EnergySpectrumAnalyzer,
)


def sine(frequency: float, count: int = 4096, amplitude: float = 0.5) -> np.ndarray:
    t = np.arange(count) / 16000
    return (amplitude * np.sin(2 * np.pi * frequency * t)).astype(np.float32)


@pytest.mark.unit
class TestEnergySpectrumAnalyzer:
    """Test cases for EnergySpectrumAnalyzer."""

    @pytest.fixture
    def analyzer(self) -> EnergySpectrumAnalyzer:
        return EnergySpectrumAnalyzer()

    def test_speech_band_bins(self, analyzer: EnergySpectrumAnalyzer) -> None:
        """Test 85-4000 Hz maps onto bins 10..512 at 16 kHz / 2048."""
        assert analyzer.min_bin == 10
        assert analyzer.max_bin == 512

    def test_band_edges_are_ordered_and_bounded(
        self, analyzer: EnergySpectrumAnalyzer
    ) -> None:
        edges = analyzer.band_edges

        assert len(edges) == 40
        for low, high in edges:
            assert analyzer.min_bin <= low < high <= analyzer.max_bin
        lows = [low for low, _ in edges]
        assert lows == sorted(lows)

    def test_low_bands_are_narrower(self, analyzer: EnergySpectrumAnalyzer) -> None:
        first_low, first_high = analyzer.band_edges[0]
        last_low, last_high = analyzer.band_edges[-1]

        assert first_high - first_low < last_high - last_low

    def test_short_input_returns_zeros(self, analyzer: EnergySpectrumAnalyzer) -> None:
        bands = analyzer.analyze(np.ones(2047, dtype=np.float32))

        assert bands.shape == (40,)
        assert bands.dtype == np.float32
        assert not np.any(bands)

    def test_silence_is_zero(self, analyzer: EnergySpectrumAnalyzer) -> None:
        bands = analyzer.analyze(np.zeros(2048, dtype=np.float32))

        np.testing.assert_array_equal(bands, np.zeros(40, dtype=np.float32))

    def test_values_are_clamped(self, analyzer: EnergySpectrumAnalyzer) -> None:
        rng = np.random.default_rng(3)
        bands = analyzer.analyze(rng.standard_normal(4096) * 10.0)

        assert np.all(bands >= 0.0)
        assert np.all(bands <= 1.0)

    def test_tone_peaks_in_its_band(self, analyzer: EnergySpectrumAnalyzer) -> None:
        """Test a 1 kHz tone lands in the band containing bin 128."""
        bands = analyzer.analyze(sine(1000.0))
        expected = next(
            index
            for index, (low, high) in enumerate(analyzer.band_edges)
            if low <= 128 < high
        )

        assert int(np.argmax(bands)) == expected
        assert bands[expected] > 0.0

    def test_only_trailing_window_is_analyzed(
        self, analyzer: EnergySpectrumAnalyzer
    ) -> None:
        tone = sine(1000.0, count=2048)
        padded = np.concatenate([np.ones(5000, dtype=np.float32), tone])

        np.testing.assert_array_equal(analyzer.analyze(padded), analyzer.analyze(tone))

    def test_custom_band_count(self) -> None:
        analyzer = EnergySpectrumAnalyzer(band_count=16)

        assert analyzer.analyze(sine(500.0)).shape == (16,)
