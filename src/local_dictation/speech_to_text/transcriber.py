"""Streaming speech recognition over the shared sample buffer."""

from __future__ import annotations

import asyncio
import functools
from abc import ABC, abstractmethod
from collections.abc import Callable
from pathlib import Path
from typing import Any

import faster_whisper
import numpy as np

from .audio_buffer import AudioSampleBuffer
from .config import (
    DECODE_COMPRESSION_RATIO_THRESHOLD,
    DECODE_LOG_PROB_THRESHOLD,
    DECODE_NO_SPEECH_THRESHOLD,
    DECODE_TEMPERATURE,
    DEFAULT_COMPUTE_TYPE,
    DEFAULT_DEVICE,
    DEFAULT_LANGUAGE,
    MODEL_CACHE_DIR,
    REQUIRED_SEGMENTS_FOR_CONFIRMATION,
    SILENCE_RESET_SECONDS,
    STREAM_MAX_WINDOW_SECONDS,
    STREAM_MIN_NEW_AUDIO_SECONDS,
    STREAM_POLL_INTERVAL,
    WAITING_FOR_SPEECH,
)
from .exceptions import ModelLoadError, TranscriptionError
from .logging_utils import get_logger
from .model_registry import ASRModelSpec
from .models import LoadState, LoadStatus, Segment, SegmentUpdate
from .vad import VoiceActivityDetector

logger = get_logger(__name__)

UpdateCallback = Callable[[SegmentUpdate], None]
LoadStateCallback = Callable[[LoadState], None]


class StreamingTranscriber(ABC):
    """Recognizer that emits segment-update events while audio accumulates."""

    @abstractmethod
    async def load(self, progress_callback: LoadStateCallback | None = None) -> None:
        """
        Download (if needed) and load the model.

        Raises:
            ModelLoadError: If the model cannot be loaded
        """
        pass

    @abstractmethod
    async def start(self, on_update: UpdateCallback) -> None:
        """Begin emitting updates for the shared buffer on the running loop."""
        pass

    @abstractmethod
    async def stop(self) -> None:
        """Stop emitting updates. No update is delivered after this returns."""
        pass

    @abstractmethod
    def is_loaded(self) -> bool:
        pass

    def set_error_callback(self, callback: Callable[[Exception], None]) -> None:
        """Set callback for failures that end the stream."""
        self._error_callback = callback


class WhisperStreamingTranscriber(StreamingTranscriber):
    """Re-decodes the unconfirmed tail of the buffer with faster-whisper.

    Each pass decodes the audio after the last confirmed segment. All but the
    trailing required_segments_for_confirmation segments become confirmed
    and the decode offset moves past them. When the VAD hears no voice for
    silence_reset_seconds, the offset jumps to the end of the buffer and an
    empty update is emitted so the aggregator sees a reset.
    """

    def __init__(
        self,
        buffer: AudioSampleBuffer,
        model_spec: ASRModelSpec,
        language: str = DEFAULT_LANGUAGE,
        device: str = DEFAULT_DEVICE,
        compute_type: str = DEFAULT_COMPUTE_TYPE,
        vad: VoiceActivityDetector | None = None,
        poll_interval: float = STREAM_POLL_INTERVAL,
        min_new_audio_seconds: float = STREAM_MIN_NEW_AUDIO_SECONDS,
        silence_reset_seconds: float = SILENCE_RESET_SECONDS,
        max_window_seconds: float = STREAM_MAX_WINDOW_SECONDS,
        required_segments_for_confirmation: int = REQUIRED_SEGMENTS_FOR_CONFIRMATION,
        cache_dir: Path = MODEL_CACHE_DIR,
    ) -> None:
        """
        Initialize the streaming transcriber.

        Args:
            buffer: Shared buffer filled by audio capture
            model_spec: Registry entry of the model to load
            language: Decoding language code
            device: "cpu", "cuda" or "auto"
            compute_type: CTranslate2 compute type ("int8", "float16", etc.)
            vad: Detector used for pause detection, created if None
            poll_interval: Seconds between decode passes
            min_new_audio_seconds: New audio needed before re-decoding
            silence_reset_seconds: Voiceless tail that triggers a reset
            max_window_seconds: Longest window handed to the decoder
            required_segments_for_confirmation: Trailing segments kept unconfirmed
            cache_dir: Download directory for hub models
        """
        self._buffer = buffer
        self.model_spec = model_spec
        self.language = language
        self.device = device
        self.compute_type = compute_type
        self._vad = vad or VoiceActivityDetector(sample_rate=buffer.sample_rate)
        self.poll_interval = poll_interval
        self.min_new_audio_seconds = min_new_audio_seconds
        self.silence_reset_seconds = silence_reset_seconds
        self.max_window_seconds = max_window_seconds
        self.required_segments_for_confirmation = required_segments_for_confirmation
        self.cache_dir = cache_dir

        self._model: Any | None = None
        self._on_update: UpdateCallback | None = None
        self._error_callback: Callable[[Exception], None] | None = None
        self._task: asyncio.Task | None = None
        self._streaming = False

        # Decode state, reset per session and per VAD reset
        self._offset = 0
        self._last_decoded_end = 0
        self._confirmed: list[Segment] = []
        self._unconfirmed: list[Segment] = []

    def is_loaded(self) -> bool:
        return self._model is not None

    @property
    def is_streaming(self) -> bool:
        return self._streaming

    def _report(self, callback: LoadStateCallback | None, state: LoadState) -> None:
        if callback:
            try:
                callback(state)
            except Exception as e:
                logger.error(f"Error in load state callback: {e}")

    async def load(self, progress_callback: LoadStateCallback | None = None) -> None:
        if self._model is not None:
            self._report(progress_callback, LoadState(LoadStatus.LOADED))
            return

        loop = asyncio.get_running_loop()
        model_source = self.model_spec.whisper_model

        try:
            if not Path(model_source).is_dir():
                logger.info(f"Downloading model: {model_source}...")
                self._report(progress_callback, LoadState.downloading(0.0))
                self.cache_dir.mkdir(parents=True, exist_ok=True)
                model_source = await loop.run_in_executor(
                    None,
                    functools.partial(
                        faster_whisper.download_model,
                        model_source,
                        cache_dir=str(self.cache_dir),
                    ),
                )
                self._report(progress_callback, LoadState.downloading(1.0))

            logger.debug(
                f"Loading Whisper '{self.model_spec.model_id}' on {self.device} "
                f"({self.compute_type})"
            )
            self._report(progress_callback, LoadState(LoadStatus.LOADING))
            self._model = await loop.run_in_executor(
                None,
                functools.partial(
                    faster_whisper.WhisperModel,
                    model_source,
                    device=self.device,
                    compute_type=self.compute_type,
                ),
            )
        except Exception as e:
            message = f"Failed to load Whisper model {self.model_spec.model_id}: {e}"
            logger.error(message)
            self._report(progress_callback, LoadState.error(message))
            raise ModelLoadError(message) from e

        self._report(progress_callback, LoadState(LoadStatus.LOADED))
        logger.info(f"Model loaded successfully: {self.model_spec.model_id}")

    async def start(self, on_update: UpdateCallback) -> None:
        if self._model is None:
            raise TranscriptionError("Cannot start streaming: model not loaded")
        if self._streaming:
            logger.warning("Transcriber is already streaming")
            return

        self._on_update = on_update
        self._offset = self._buffer.total_samples
        self._last_decoded_end = self._offset
        self._confirmed = []
        self._unconfirmed = []
        self._streaming = True
        self._task = asyncio.create_task(self._stream_loop())
        logger.debug("Streaming transcription started")

    async def stop(self) -> None:
        if not self._streaming and self._task is None:
            return

        self._streaming = False
        if self._task and not self._task.done():
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        self._task = None
        self._on_update = None
        logger.debug("Streaming transcription stopped")

    async def _stream_loop(self) -> None:
        try:
            while self._streaming:
                await asyncio.sleep(self.poll_interval)
                await self.decode_step()
        except TranscriptionError as e:
            logger.error(f"Streaming transcription error: {e}")
            self._streaming = False
            if self._error_callback:
                self._error_callback(e)

    async def decode_step(self) -> SegmentUpdate | None:
        """
        Run one pass over the buffer.

        Returns:
            The emitted update, or None if nothing was emitted
        """
        sample_rate = self._buffer.sample_rate
        total = self._buffer.total_samples
        window = self._buffer.samples_from(self._offset)
        has_text = bool(self._confirmed or self._unconfirmed)

        if has_text and self._is_paused(window):
            return self._reset_after_pause(total)

        new_audio = total - self._last_decoded_end
        if new_audio < int(self.min_new_audio_seconds * sample_rate):
            return None

        if not has_text and not self._vad.contains_speech(window):
            # Nothing said yet; decoding silence only yields phantom phrases
            self._last_decoded_end = total
            return None

        max_window = int(self.max_window_seconds * sample_rate)
        if window.size > max_window:
            # Oldest audio beyond the context limit is dropped unconfirmed
            dropped = window.size - max_window
            logger.warning(f"Decode window over {self.max_window_seconds}s, dropping oldest audio")
            self._offset += dropped
            window = window[dropped:]

        segments = await self._transcribe(window)
        self._last_decoded_end = total
        return self._apply_segments(segments)

    def _is_paused(self, window: np.ndarray) -> bool:
        tail_size = int(self.silence_reset_seconds * self._buffer.sample_rate)
        if window.size < tail_size:
            return False
        silence = self._vad.trailing_silence_seconds(window[-tail_size:])
        return silence >= self.silence_reset_seconds

    def _reset_after_pause(self, total: int) -> SegmentUpdate:
        logger.debug("VAD pause detected, resetting decode window")
        self._offset = total
        self._last_decoded_end = total
        self._confirmed = []
        self._unconfirmed = []
        return self._emit(SegmentUpdate())

    async def _transcribe(self, window: np.ndarray) -> list[Any]:
        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(None, self._transcribe_sync, window)
        except Exception as e:
            raise TranscriptionError(f"Whisper decoding failed: {e}") from e

    def _transcribe_sync(self, window: np.ndarray) -> list[Any]:
        segments, _info = self._model.transcribe(
            window.astype(np.float32),
            language=self.language,
            temperature=DECODE_TEMPERATURE,
            compression_ratio_threshold=DECODE_COMPRESSION_RATIO_THRESHOLD,
            log_prob_threshold=DECODE_LOG_PROB_THRESHOLD,
            no_speech_threshold=DECODE_NO_SPEECH_THRESHOLD,
            condition_on_previous_text=False,
            vad_filter=True,
        )
        # segments is a lazy generator; decoding happens while iterating
        return list(segments)

    def _apply_segments(self, raw_segments: list[Any]) -> SegmentUpdate:
        sample_rate = self._buffer.sample_rate
        base_seconds = self._offset / sample_rate
        decoded = [
            (seg.text.strip(), float(seg.start), float(seg.end))
            for seg in raw_segments
            if seg.text and seg.text.strip()
        ]

        keep = self.required_segments_for_confirmation
        if len(decoded) > keep:
            newly_confirmed = decoded[: len(decoded) - keep]
            decoded = decoded[len(decoded) - keep :]
            for text, start, end in newly_confirmed:
                self._confirmed.append(
                    Segment(text, confirmed=True, start=base_seconds + start, end=base_seconds + end)
                )
            advance = int(newly_confirmed[-1][2] * sample_rate)
            self._offset += advance
            base_seconds = self._offset / sample_rate
            logger.trace(f"Confirmed {len(newly_confirmed)} segments, offset={self._offset}")
            # Unconfirmed timestamps are relative to the old window start
            decoded = [
                (text, start - advance / sample_rate, end - advance / sample_rate)
                for text, start, end in decoded
            ]

        self._unconfirmed = [
            Segment(text, confirmed=False, start=base_seconds + start, end=base_seconds + end)
            for text, start, end in decoded
        ]
        current_text = "".join(segment.text for segment in self._unconfirmed)
        return self._emit(
            SegmentUpdate(
                confirmed_segments=tuple(self._confirmed),
                unconfirmed_segments=tuple(self._unconfirmed),
                current_text=current_text or WAITING_FOR_SPEECH,
            )
        )

    def _emit(self, update: SegmentUpdate) -> SegmentUpdate:
        logger.trace(f"Segment update: {update.segment_text!r}")
        if self._on_update:
            self._on_update(update)
        return update
