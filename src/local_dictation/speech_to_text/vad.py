"""Voice activity detection over float sample windows."""

import numpy as np
import webrtcvad

from .config import (
    AUDIO_SAMPLE_MAX_VALUE,
    DEFAULT_SAMPLE_RATE,
    VAD_AGGRESSIVENESS,
    VAD_FRAME_DURATION,
    VAD_SPEECH_RATIO_THRESHOLD,
    VAD_SUPPORTED_FRAME_DURATIONS,
    VAD_SUPPORTED_SAMPLE_RATES,
)
from .logging_utils import get_logger

logger = get_logger(__name__)


class VoiceActivityDetector:
    """Detects speech and trailing silence with WebRTC VAD."""

    def __init__(
        self,
        sample_rate: int = None,
        frame_duration: int = None,
        aggressiveness: int = VAD_AGGRESSIVENESS,
    ) -> None:
        """
        Initialize voice activity detector.

        Args:
            sample_rate: Audio sample rate in Hz
            frame_duration: Frame duration in milliseconds
            aggressiveness: WebRTC VAD mode (0-3)

        Raises:
            ValueError: If sample_rate or frame_duration is not supported by webrtcvad
        """
        self.sample_rate = sample_rate or DEFAULT_SAMPLE_RATE
        self.frame_duration = frame_duration or VAD_FRAME_DURATION

        if self.sample_rate not in VAD_SUPPORTED_SAMPLE_RATES:
            raise ValueError(
                f"Unsupported sample rate: {self.sample_rate}. "
                f"WebRTC VAD supports {VAD_SUPPORTED_SAMPLE_RATES} Hz"
            )
        if self.frame_duration not in VAD_SUPPORTED_FRAME_DURATIONS:
            raise ValueError(
                f"Unsupported frame duration: {self.frame_duration}. "
                f"WebRTC VAD supports {VAD_SUPPORTED_FRAME_DURATIONS} ms"
            )

        self.frame_size = int(self.sample_rate * self.frame_duration / 1000)

        self.vad = webrtcvad.Vad()
        self.vad.set_mode(aggressiveness)

        logger.debug(
            f"🔊 VAD initialized: sample_rate={self.sample_rate}Hz, "
            f"frame_duration={self.frame_duration}ms, aggressiveness={aggressiveness}"
        )

    def _frames(self, samples: np.ndarray) -> list[bytes]:
        """Split float samples into whole 16-bit PCM frames."""
        clipped = np.clip(np.asarray(samples, dtype=np.float32), -1.0, 1.0)
        pcm = (clipped * AUDIO_SAMPLE_MAX_VALUE).astype(np.int16)
        count = pcm.size // self.frame_size
        return [
            pcm[i * self.frame_size : (i + 1) * self.frame_size].tobytes()
            for i in range(count)
        ]

    def is_speech(self, frame: bytes) -> bool:
        """
        Classify one PCM frame.

        Args:
            frame: Exactly frame_size 16-bit samples

        Returns:
            True if speech detected, False otherwise
        """
        if len(frame) != self.frame_size * 2:
            logger.trace(f"VAD frame has {len(frame)} bytes, expected {self.frame_size * 2}")
            return False
        return self.vad.is_speech(frame, self.sample_rate)

    def speech_ratio(self, samples: np.ndarray) -> float:
        """Fraction of whole frames in samples classified as speech."""
        frames = self._frames(samples)
        if not frames:
            return 0.0
        voiced = sum(1 for frame in frames if self.is_speech(frame))
        return voiced / len(frames)

    def contains_speech(self, samples: np.ndarray) -> bool:
        return self.speech_ratio(samples) >= VAD_SPEECH_RATIO_THRESHOLD

    def trailing_silence_seconds(self, samples: np.ndarray) -> float:
        """Duration of the unvoiced run at the end of samples."""
        silent_frames = 0
        for frame in reversed(self._frames(samples)):
            if self.is_speech(frame):
                break
            silent_frames += 1
        return silent_frames * self.frame_duration / 1000.0
