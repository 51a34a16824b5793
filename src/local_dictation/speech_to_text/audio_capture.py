"""Microphone capture feeding the noise suppressor and the sample buffer."""

import time
from typing import Any, Callable, Optional

import numpy as np
import pyaudio

from .audio_buffer import AudioSampleBuffer
from .audio_filtering.interfaces import AudioFilterInterface
from .config import AUDIO_CHANNELS_MONO, DEFAULT_CHUNK_SIZE, DEFAULT_SAMPLE_RATE
from .exceptions import AudioCaptureError, MicrophoneNotFoundError
from .logging_utils import get_logger

logger = get_logger(__name__)


class AudioCapture:
    """Manages microphone input in PortAudio callback mode.

    Each callback converts the float32 buffer, runs the audio filter and
    appends the result to the shared sample buffer. Nothing in the callback
    blocks on the event loop.
    """

    def __init__(
        self,
        buffer: AudioSampleBuffer,
        audio_filter: Optional[AudioFilterInterface] = None,
        sample_rate: int = None,
        chunk_size: int = None,
    ) -> None:
        """
        Initialize audio capture with specified parameters.

        Args:
            buffer: Destination for filtered samples
            audio_filter: Filter applied to every buffer before it is stored
            sample_rate: Audio sample rate in Hz
            chunk_size: Number of samples per callback
        """
        self.sample_rate = sample_rate if sample_rate is not None else DEFAULT_SAMPLE_RATE
        self.chunk_size = chunk_size if chunk_size is not None else DEFAULT_CHUNK_SIZE

        if self.sample_rate <= 0:
            raise ValueError("Sample rate must be positive")
        if self.chunk_size <= 0:
            raise ValueError("Chunk size must be positive")

        self._buffer = buffer
        self._audio_filter = audio_filter
        self._level_callback: Optional[Callable[[float], None]] = None
        self._error_callback: Optional[Callable[[Exception], None]] = None

        self._capturing = False
        self._pyaudio = None
        self._stream = None
        self._last_error: Optional[Exception] = None

        # Debug tracking
        self._chunks_received = 0
        self._last_level_log = 0.0
        self._level_log_interval = 5.0

    def set_level_callback(self, callback: Optional[Callable[[float], None]]) -> None:
        """
        Set a callback receiving the peak level of every filtered buffer.

        The callback runs on the PortAudio thread.

        Args:
            callback: Function called with a level between 0.0 and 1.0
        """
        self._level_callback = callback

    def set_error_callback(self, callback: Optional[Callable[[Exception], None]]) -> None:
        """
        Set a callback for failures that abort the stream.

        The callback runs on the PortAudio thread, just before the stream
        aborts.

        Args:
            callback: Function called with the AudioCaptureError
        """
        self._error_callback = callback

    @property
    def last_error(self) -> Optional[Exception]:
        """Error that aborted the stream from inside the callback, if any."""
        return self._last_error

    def start_capture(self) -> None:
        """Start capturing audio from the default microphone."""
        if self._capturing:
            raise AudioCaptureError("Already capturing")

        try:
            self._pyaudio = pyaudio.PyAudio()
            logger.debug("PyAudio initialized successfully")

            try:
                device_info = self._pyaudio.get_default_input_device_info()
                logger.debug(f"🎤 Default input device found: {device_info.get('name', 'Unknown')}")
            except OSError as e:
                logger.error("❌ No default input device found")
                raise MicrophoneNotFoundError("No microphone found") from e

            try:
                self._stream = self._pyaudio.open(
                    format=pyaudio.paFloat32,
                    channels=AUDIO_CHANNELS_MONO,
                    rate=self.sample_rate,
                    input=True,
                    frames_per_buffer=self.chunk_size,
                    stream_callback=self._on_audio,
                )
                self._chunks_received = 0
                self._last_error = None
                self._last_level_log = time.time()
                self._stream.start_stream()
                self._capturing = True
                logger.debug(
                    f"✅ Audio stream started (sample_rate: {self.sample_rate}, "
                    f"chunk_size: {self.chunk_size})"
                )
            except OSError as e:
                if "Permission denied" in str(e):
                    logger.error("❌ Microphone permission denied")
                    raise AudioCaptureError("Permission denied") from e
                logger.error(f"❌ Failed to open audio stream: {e}")
                raise AudioCaptureError(f"Failed to open audio stream: {e}") from e

        except Exception:
            # Clean up on error
            if self._stream:
                self._stream.close()
                self._stream = None
            if self._pyaudio:
                self._pyaudio.terminate()
                self._pyaudio = None
            raise

    def stop_capture(self) -> None:
        """Stop capturing audio. No callback runs after this returns."""
        if not self._capturing:
            return

        self._capturing = False

        if self._stream:
            self._stream.stop_stream()
            self._stream.close()
            self._stream = None

        if self._pyaudio:
            self._pyaudio.terminate()
            self._pyaudio = None

        logger.debug(f"Audio stream stopped after {self._chunks_received} buffers")

    def is_capturing(self) -> bool:
        return self._capturing

    def _on_audio(
        self, in_data: bytes, frame_count: int, time_info: Any, status_flags: int
    ) -> tuple[None, int]:
        """PortAudio stream callback."""
        try:
            samples = np.frombuffer(in_data, dtype=np.float32)
            self.process_samples(samples)
        except Exception as e:
            logger.error(f"❌ Audio callback failed, aborting stream: {e}")
            error = AudioCaptureError(f"Audio callback failed: {e}")
            error.__cause__ = e
            self._last_error = error
            if self._error_callback:
                try:
                    self._error_callback(error)
                except Exception as callback_error:
                    logger.error(f"Error in capture error callback: {callback_error}")
            return None, pyaudio.paAbort
        return None, pyaudio.paContinue

    def process_samples(self, samples: np.ndarray) -> np.ndarray:
        """
        Filter one captured buffer and store it.

        Args:
            samples: Raw float32 microphone samples

        Returns:
            The filtered samples that were stored
        """
        if self._audio_filter is not None:
            samples = self._audio_filter.process(samples)
        self._buffer.append(samples)
        self._chunks_received += 1

        level = float(np.max(np.abs(samples))) if samples.size else 0.0
        level = min(level, 1.0)

        now = time.time()
        if now - self._last_level_log >= self._level_log_interval:
            logger.trace(f"🔊 Buffers: {self._chunks_received}, current level: {level:.3f}")
            self._last_level_log = now

        if self._level_callback:
            try:
                self._level_callback(level)
            except Exception as e:
                logger.error(f"Error in level callback: {e}")
        return samples

    def get_debug_stats(self) -> dict[str, Any]:
        """
        Get debug statistics about audio capture.

        Returns:
            Dictionary with debug information
        """
        return {
            "capturing": self._capturing,
            "sample_rate": self.sample_rate,
            "chunk_size": self.chunk_size,
            "chunks_received": self._chunks_received,
            "stream_active": self._stream.is_active() if self._stream else False,
            "filtering_enabled": self._audio_filter is not None,
            "last_error": str(self._last_error) if self._last_error else None,
        }
