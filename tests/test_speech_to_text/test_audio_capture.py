"""Tests for audio capture functionality."""

from unittest.mock import MagicMock, patch

import numpy as np
import pyaudio
import pytest

from local_dictation.speech_to_text.audio_buffer import AudioSampleBuffer
from local_dictation.speech_to_text.audio_capture import AudioCapture
from local_dictation.speech_to_text.exceptions import (
    AudioCaptureError,
    MicrophoneNotFoundError,
)


@pytest.fixture
def buffer() -> AudioSampleBuffer:
    return AudioSampleBuffer()


@pytest.mark.unit
class TestAudioCapture:
    """Test cases for AudioCapture class."""

    def test_audio_capture_initialization(self, buffer: AudioSampleBuffer) -> None:
        """Test AudioCapture can be initialized with default parameters."""
        capture = AudioCapture(buffer)

        assert capture.sample_rate == 16000
        assert capture.chunk_size == 1600
        assert not capture.is_capturing()

    def test_invalid_parameters(self, buffer: AudioSampleBuffer) -> None:
        with pytest.raises(ValueError, match="Sample rate must be positive"):
            AudioCapture(buffer, sample_rate=0)
        with pytest.raises(ValueError, match="Chunk size must be positive"):
            AudioCapture(buffer, chunk_size=-1)

    @patch("pyaudio.PyAudio")
    def test_start_capture_opens_float_callback_stream(
        self, mock_pyaudio: MagicMock, buffer: AudioSampleBuffer
    ) -> None:
        """Test starting audio capture opens a float32 callback-mode stream."""
        mock_audio = MagicMock()
        mock_stream = MagicMock()
        mock_pyaudio.return_value = mock_audio
        mock_audio.open.return_value = mock_stream
        mock_audio.get_default_input_device_info.return_value = {"name": "Mic"}

        capture = AudioCapture(buffer)
        capture.start_capture()

        assert capture.is_capturing()
        kwargs = mock_audio.open.call_args.kwargs
        assert kwargs["format"] == pyaudio.paFloat32
        assert kwargs["channels"] == 1
        assert kwargs["rate"] == 16000
        assert kwargs["frames_per_buffer"] == 1600
        assert kwargs["stream_callback"] == capture._on_audio
        mock_stream.start_stream.assert_called_once()

    @patch("pyaudio.PyAudio")
    def test_start_capture_twice_raises(
        self, mock_pyaudio: MagicMock, buffer: AudioSampleBuffer
    ) -> None:
        mock_pyaudio.return_value.get_default_input_device_info.return_value = {}
        capture = AudioCapture(buffer)
        capture.start_capture()

        with pytest.raises(AudioCaptureError, match="Already capturing"):
            capture.start_capture()

    @patch("pyaudio.PyAudio")
    def test_no_microphone_available(
        self, mock_pyaudio: MagicMock, buffer: AudioSampleBuffer
    ) -> None:
        """Test handling when no microphone is available."""
        mock_audio = MagicMock()
        mock_pyaudio.return_value = mock_audio
        mock_audio.get_default_input_device_info.side_effect = OSError("No device")

        capture = AudioCapture(buffer)

        with pytest.raises(MicrophoneNotFoundError, match="No microphone found"):
            capture.start_capture()
        assert not capture.is_capturing()
        mock_audio.terminate.assert_called_once()

    @patch("pyaudio.PyAudio")
    def test_permission_denied(self, mock_pyaudio: MagicMock, buffer: AudioSampleBuffer) -> None:
        """Test handling when microphone permission is denied."""
        mock_audio = MagicMock()
        mock_pyaudio.return_value = mock_audio
        mock_audio.get_default_input_device_info.return_value = {}
        mock_audio.open.side_effect = OSError("Permission denied")

        capture = AudioCapture(buffer)

        with pytest.raises(AudioCaptureError, match="Permission denied"):
            capture.start_capture()
        mock_audio.terminate.assert_called_once()

    @patch("pyaudio.PyAudio")
    def test_stream_open_failure(self, mock_pyaudio: MagicMock, buffer: AudioSampleBuffer) -> None:
        mock_audio = MagicMock()
        mock_pyaudio.return_value = mock_audio
        mock_audio.get_default_input_device_info.return_value = {}
        mock_audio.open.side_effect = OSError("Invalid sample rate")

        capture = AudioCapture(buffer)

        with pytest.raises(AudioCaptureError, match="Failed to open audio stream"):
            capture.start_capture()

    @patch("pyaudio.PyAudio")
    def test_stop_capture(self, mock_pyaudio: MagicMock, buffer: AudioSampleBuffer) -> None:
        """Test stopping audio capture releases the stream."""
        mock_audio = MagicMock()
        mock_stream = MagicMock()
        mock_pyaudio.return_value = mock_audio
        mock_audio.open.return_value = mock_stream
        mock_audio.get_default_input_device_info.return_value = {}

        capture = AudioCapture(buffer)
        capture.start_capture()
        capture.stop_capture()

        assert not capture.is_capturing()
        mock_stream.stop_stream.assert_called_once()
        mock_stream.close.assert_called_once()
        mock_audio.terminate.assert_called_once()

    def test_stop_when_not_capturing(self, buffer: AudioSampleBuffer) -> None:
        AudioCapture(buffer).stop_capture()


@pytest.mark.unit
class TestAudioProcessing:
    """Test cases for the capture callback path."""

    def test_process_samples_runs_filter(self, buffer: AudioSampleBuffer) -> None:
        audio_filter = MagicMock()
        audio_filter.process.side_effect = lambda samples: samples * 0.5
        capture = AudioCapture(buffer, audio_filter=audio_filter)

        capture.process_samples(np.full(1600, 0.4, dtype=np.float32))

        audio_filter.process.assert_called_once()
        np.testing.assert_allclose(buffer.samples_from(0), 0.2)

    def test_level_callback(self, buffer: AudioSampleBuffer) -> None:
        levels = []
        capture = AudioCapture(buffer)
        capture.set_level_callback(levels.append)

        capture.process_samples(np.array([0.1, -0.6, 0.3], dtype=np.float32))
        capture.process_samples(np.array([2.0], dtype=np.float32))

        assert levels == pytest.approx([0.6, 1.0])

    def test_level_callback_error_is_contained(self, buffer: AudioSampleBuffer) -> None:
        capture = AudioCapture(buffer)
        capture.set_level_callback(MagicMock(side_effect=RuntimeError("meter gone")))

        result = capture._on_audio(np.full(160, 0.1, dtype=np.float32).tobytes(), 160, {}, 0)

        assert result == (None, pyaudio.paContinue)
        assert len(buffer) == 160

    def test_on_audio_continues(self, buffer: AudioSampleBuffer) -> None:
        capture = AudioCapture(buffer)
        data = np.full(1600, 0.1, dtype=np.float32).tobytes()

        result = capture._on_audio(data, 1600, {}, 0)

        assert result == (None, pyaudio.paContinue)
        assert len(buffer) == 1600
        assert capture.get_debug_stats()["chunks_received"] == 1

    def test_on_audio_aborts_on_filter_error(self, buffer: AudioSampleBuffer) -> None:
        audio_filter = MagicMock()
        audio_filter.process.side_effect = RuntimeError("boom")
        capture = AudioCapture(buffer, audio_filter=audio_filter)
        data = np.zeros(1600, dtype=np.float32).tobytes()

        result = capture._on_audio(data, 1600, {}, 0)

        assert result == (None, pyaudio.paAbort)
        assert isinstance(capture.last_error, AudioCaptureError)
        assert isinstance(capture.last_error.__cause__, RuntimeError)
        assert len(buffer) == 0
        assert capture.get_debug_stats()["last_error"] == "Audio callback failed: boom"

    def test_on_audio_error_reaches_error_callback(self, buffer: AudioSampleBuffer) -> None:
        audio_filter = MagicMock()
        audio_filter.process.side_effect = ValueError("bad frame")
        capture = AudioCapture(buffer, audio_filter=audio_filter)
        errors = []
        capture.set_error_callback(errors.append)

        result = capture._on_audio(np.zeros(160, dtype=np.float32).tobytes(), 160, {}, 0)

        assert result == (None, pyaudio.paAbort)
        assert len(errors) == 1
        assert isinstance(errors[0], AudioCaptureError)
        assert "bad frame" in str(errors[0])

    def test_error_callback_failure_still_aborts(self, buffer: AudioSampleBuffer) -> None:
        audio_filter = MagicMock()
        audio_filter.process.side_effect = RuntimeError("boom")
        capture = AudioCapture(buffer, audio_filter=audio_filter)
        capture.set_error_callback(MagicMock(side_effect=RuntimeError("handler gone")))

        result = capture._on_audio(np.zeros(160, dtype=np.float32).tobytes(), 160, {}, 0)

        assert result == (None, pyaudio.paAbort)

    def test_debug_stats(self, buffer: AudioSampleBuffer) -> None:
        stats = AudioCapture(buffer, audio_filter=MagicMock()).get_debug_stats()

        assert stats["capturing"] is False
        assert stats["stream_active"] is False
        assert stats["filtering_enabled"] is True
