"""Dictation session orchestrator."""

import asyncio
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

import numpy as np

from ..correction.exceptions import CorrectionError
from ..correction.llm_engine import CorrectionEngine, OllamaCorrectionEngine
from ..correction.models import CorrectionResult
from ..correction.pipeline import CorrectionPipeline
from .audio_buffer import AudioSampleBuffer
from .audio_capture import AudioCapture
from .audio_filtering import EnergySpectrumAnalyzer, SpectralNoiseSuppressor
from .config import DEFAULT_SAMPLE_RATE
from .exceptions import DictationError
from .hallucination_filter import HallucinationFilter
from .logging_utils import get_logger
from .model_registry import ModelRegistry, default_registry
from .models import AggregatorPhase, DisplayUpdate, LoadState, SegmentUpdate
from .transcriber import StreamingTranscriber, WhisperStreamingTranscriber
from .transcript_aggregator import TranscriptAggregator

if TYPE_CHECKING:
    from ..settings import DictationSettings

logger = get_logger(__name__)

ASR_ENGINE = "asr"
LLM_ENGINE = "llm"


class DictationSession:
    """Coordinates capture, recognition, aggregation and correction.

    One session owns one settings snapshot and its own instance of every
    component, so nothing is shared between sessions.
    """

    def __init__(
        self,
        settings: "DictationSettings",
        registry: ModelRegistry | None = None,
        transcriber: StreamingTranscriber | None = None,
        correction_engine: CorrectionEngine | None = None,
        capture: AudioCapture | None = None,
    ) -> None:
        """
        Initialize the session and its components.

        Args:
            settings: Frozen configuration snapshot
            registry: Model registry, the bundled table if None
            transcriber: Recognizer, a WhisperStreamingTranscriber if None
            correction_engine: LLM engine, Ollama if None and correction is enabled
            capture: Microphone capture, PyAudio-backed if None
        """
        self.settings = settings
        self._registry = registry if registry is not None else default_registry()
        self.model_spec = self._registry.get(settings.asr_model)

        noise = settings.noise_reduction
        self.suppressor = SpectralNoiseSuppressor(
            sample_rate=DEFAULT_SAMPLE_RATE,
            enabled=noise.enabled,
            strength=noise.strength,
        )
        self.analyzer = EnergySpectrumAnalyzer(sample_rate=DEFAULT_SAMPLE_RATE)
        self.buffer = AudioSampleBuffer(sample_rate=DEFAULT_SAMPLE_RATE)
        self.capture = capture or AudioCapture(self.buffer, audio_filter=self.suppressor)
        self.transcriber = transcriber or WhisperStreamingTranscriber(
            self.buffer,
            self.model_spec,
            language=settings.language,
            device=settings.device,
            compute_type=settings.compute_type,
        )
        self.transcriber.set_error_callback(self._on_engine_error)
        self.capture.set_error_callback(self._on_capture_error)

        self.correction_engine: CorrectionEngine | None = None
        self.pipeline: CorrectionPipeline | None = None
        correction = settings.correction
        if correction.enabled:
            self.correction_engine = correction_engine or OllamaCorrectionEngine(
                model=correction.model,
                base_url=correction.base_url,
                temperature=correction.temperature,
                top_p=correction.top_p,
                repetition_penalty=correction.repetition_penalty,
            )
            self.pipeline = CorrectionPipeline.from_settings(
                self.correction_engine, correction, quality_scale=self.model_spec.quality_scale
            )
            self.pipeline.set_result_callback(self._on_correction)
            self.pipeline.set_error_callback(self._on_engine_error)

        self.aggregator = TranscriptAggregator(
            HallucinationFilter.for_model(self.model_spec.model_id, self._registry),
            correction_pipeline=self.pipeline,
            flush_delay=settings.flush_delay_seconds,
        )

        self._listening = False
        self._stopping = False
        self._abort_task: asyncio.Task | None = None
        self._loop: asyncio.AbstractEventLoop | None = None
        self._load_state_callback: Callable[[str, LoadState], None] | None = None
        self._spectrum_callback: Callable[[np.ndarray], None] | None = None
        self._correction_callback: Callable[[CorrectionResult], None] | None = None

    def set_load_state_callback(self, callback: Callable[[str, LoadState], None]) -> None:
        """
        Set callback for model load states.

        Args:
            callback: Called with the engine kind ("asr" or "llm") and its LoadState
        """
        self._load_state_callback = callback

    def set_display_callback(self, callback: Callable[[DisplayUpdate], None]) -> None:
        self.aggregator.set_display_callback(callback)

    def set_finalized_callback(self, callback: Callable[[str], None]) -> None:
        """Set the text-injection callback, called once per finalized string."""
        self.aggregator.set_finalized_callback(callback)

    def set_phase_callback(self, callback: Callable[[AggregatorPhase], None]) -> None:
        self.aggregator.set_phase_callback(callback)

    def set_spectrum_callback(self, callback: Callable[[np.ndarray], None]) -> None:
        """Set callback for visualizer band energies, called per segment update."""
        self._spectrum_callback = callback

    def set_correction_callback(self, callback: Callable[[CorrectionResult], None]) -> None:
        self._correction_callback = callback

    def set_level_callback(self, callback: Callable[[float], None]) -> None:
        """Set callback for the peak input level, called on the capture thread."""
        self.capture.set_level_callback(callback)

    def is_listening(self) -> bool:
        return self._listening

    def _report_load_state(self, kind: str, state: LoadState) -> None:
        if self._load_state_callback:
            try:
                self._load_state_callback(kind, state)
            except Exception as e:
                logger.error(f"Error in load state callback: {e}")

    async def load_models(self) -> None:
        """
        Load the recognizer and, when enabled, the correction model.

        Raises:
            ModelLoadError: If the recognizer cannot be loaded
            CorrectionError: If the correction model cannot be loaded
        """
        await self.transcriber.load(lambda state: self._report_load_state(ASR_ENGINE, state))
        if self.correction_engine is not None:
            await self.correction_engine.load(
                lambda state: self._report_load_state(LLM_ENGINE, state)
            )

    async def start_listening(self) -> None:
        """Start capture and streaming recognition for a new recording."""
        if self._listening:
            logger.warning("Session is already listening")
            return

        self._loop = asyncio.get_running_loop()
        self.suppressor.reset()
        self.aggregator.start()

        try:
            self.capture.start_capture()
            await self.transcriber.start(self._on_segment_update)
        except DictationError:
            self.capture.stop_capture()
            self.aggregator.reset()
            raise

        self._listening = True
        logger.info("🎤 Listening...")

    async def stop_listening(self) -> str:
        """
        Stop recording and finalize pending text.

        Returns:
            The finalized text, empty if nothing valid was pending
        """
        if not self._listening or self._stopping:
            return ""

        self._stopping = True
        try:
            self.aggregator.cancel_flush_timer()
            self.capture.stop_capture()
            await self.transcriber.stop()
            final_text = await self.aggregator.stop()
            recorded = self.buffer.duration_seconds()
            # The recognizer no longer reads from the buffer
            self.buffer.purge(keep_last=0)
        finally:
            self._listening = False
            self._stopping = False
            self._loop = None

        logger.debug(f"Session stopped listening after {recorded:.1f}s of retained audio")
        return final_text

    def _on_segment_update(self, update: SegmentUpdate) -> None:
        if self._spectrum_callback:
            bands = self.analyzer.analyze(self.buffer.tail(self.analyzer.fft_length))
            try:
                self._spectrum_callback(bands)
            except Exception as e:
                logger.error(f"Error in spectrum callback: {e}")
        self.aggregator.handle_update(update)

    def _on_correction(self, result: CorrectionResult) -> None:
        self.aggregator.apply_correction(result.text)
        if self._correction_callback:
            try:
                self._correction_callback(result)
            except Exception as e:
                logger.error(f"Error in correction callback: {e}")

    def _on_engine_error(self, error: Exception) -> None:
        kind = LLM_ENGINE if isinstance(error, CorrectionError) else ASR_ENGINE
        logger.error(f"❌ {kind.upper()} engine failed, aborting session: {error}")
        self._report_load_state(kind, LoadState.error(str(error)))
        if self._listening and (self._abort_task is None or self._abort_task.done()):
            self._abort_task = asyncio.get_running_loop().create_task(self.stop_listening())

    def _on_capture_error(self, error: Exception) -> None:
        # Runs on the PortAudio thread
        loop = self._loop
        if loop is None or loop.is_closed():
            logger.error(f"❌ Capture failed outside a session: {error}")
            return
        loop.call_soon_threadsafe(self._on_engine_error, error)

    async def wait_aborted(self) -> None:
        """Wait for an abort triggered by an engine failure to finish."""
        if self._abort_task is not None:
            await self._abort_task

    def get_component_status(self) -> dict[str, Any]:
        return {
            "listening": self._listening,
            "asr_model": self.model_spec.model_id,
            "asr_loaded": self.transcriber.is_loaded(),
            "correction_enabled": self.pipeline is not None,
            "correction_loaded": (
                self.correction_engine.is_loaded() if self.correction_engine else False
            ),
            "noise_reduction": self.suppressor.enabled,
            "noise_profile_learned": self.suppressor.noise_profile is not None,
        }
