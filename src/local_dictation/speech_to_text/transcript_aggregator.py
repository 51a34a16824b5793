"""Pause-aware aggregation of streaming recognizer output into finalized text."""

import asyncio
from collections.abc import Callable
from typing import TYPE_CHECKING

from .config import FLUSH_DELAY_SECONDS
from .hallucination_filter import HallucinationFilter
from .logging_utils import get_logger
from .models import AggregatorPhase, DisplayUpdate, SegmentUpdate

if TYPE_CHECKING:
    from ..correction.pipeline import CorrectionPipeline

logger = get_logger(__name__)


class TranscriptAggregator:
    """Turns segment-update events into live display text and finalized strings.

    The recognizer clears its segments when its VAD detects a pause. The text
    that was pending at that moment is kept as deferred text and a flush
    timer is armed; if no new speech arrives before it fires, deferred plus
    pending text is finalized. New non-empty text cancels the timer.

    All methods must be called from the session's event loop.
    """

    def __init__(
        self,
        hallucination_filter: HallucinationFilter,
        correction_pipeline: "CorrectionPipeline | None" = None,
        flush_delay: float = FLUSH_DELAY_SECONDS,
    ) -> None:
        """
        Initialize the aggregator.

        Args:
            hallucination_filter: Filter for the recognizer's model
            correction_pipeline: Receives candidate text; None disables correction
            flush_delay: Seconds of silence after a VAD reset before finalizing
        """
        self._filter = hallucination_filter
        self._pipeline = correction_pipeline
        self.flush_delay = flush_delay

        self.injected_length = 0
        self.full_text = ""
        self.previous_full_text = ""
        self.deferred_text = ""
        self.corrected_text = ""
        self.phase = AggregatorPhase.IDLE

        self._flush_task: asyncio.Task | None = None
        self._last_candidate: str | None = None

        self._display_callback: Callable[[DisplayUpdate], None] | None = None
        self._finalized_callback: Callable[[str], None] | None = None
        self._phase_callback: Callable[[AggregatorPhase], None] | None = None

    def set_display_callback(self, callback: Callable[[DisplayUpdate], None]) -> None:
        """Set callback for live overlay text, invoked after every event."""
        self._display_callback = callback

    def set_finalized_callback(self, callback: Callable[[str], None]) -> None:
        """Set callback receiving one finalized string per flush or stop."""
        self._finalized_callback = callback

    def set_phase_callback(self, callback: Callable[[AggregatorPhase], None]) -> None:
        """Set callback invoked once per phase transition."""
        self._phase_callback = callback

    @property
    def flush_pending(self) -> bool:
        return self._flush_task is not None and not self._flush_task.done()

    @property
    def pending_text(self) -> str:
        """Recognized text not yet finalized in this decode cycle."""
        if len(self.full_text) <= self.injected_length:
            return ""
        return self.full_text[self.injected_length :].strip()

    @property
    def display_text(self) -> str:
        """Deferred text plus pending text, sanitized."""
        return self._filter.sanitize(self._combined_text())

    def start(self) -> None:
        """Begin a new recording session."""
        self.reset()
        self._set_phase(AggregatorPhase.LISTENING)

    def reset(self) -> None:
        """Drop all session state without emitting anything."""
        self.cancel_flush_timer()
        self.injected_length = 0
        self.full_text = ""
        self.previous_full_text = ""
        self.deferred_text = ""
        self.corrected_text = ""
        self._last_candidate = None
        self._set_phase(AggregatorPhase.IDLE)

    def cancel_flush_timer(self) -> None:
        if self._flush_task is not None:
            self._flush_task.cancel()
            self._flush_task = None

    def apply_correction(self, text: str) -> None:
        """Record the latest published correction for the pending text."""
        if self.phase == AggregatorPhase.IDLE:
            logger.trace("Ignoring correction outside a session")
            return
        self.corrected_text = text

    def handle_update(self, update: SegmentUpdate) -> DisplayUpdate:
        """
        React to one recognizer state change.

        Args:
            update: Confirmed and unconfirmed segments plus the raw hypothesis

        Returns:
            The display text emitted for this event
        """
        if self.phase == AggregatorPhase.IDLE:
            logger.trace("Ignoring segment update outside a session")
            return DisplayUpdate(hypothesis_text="", phase=self.phase)

        current_full_text = update.segment_text
        if not current_full_text and update.has_hypothesis:
            current_full_text = update.current_text

        text_changed = current_full_text != self.previous_full_text
        prior_full_text = self.full_text
        had_pending = len(prior_full_text) > self.injected_length
        self.previous_full_text = current_full_text
        self.full_text = current_full_text

        if text_changed and not current_full_text and had_pending:
            return self._handle_vad_reset(prior_full_text)

        if text_changed and current_full_text:
            # A new decode cycle re-derives the deferred audio
            self.cancel_flush_timer()
            self.deferred_text = ""
            self._set_phase(AggregatorPhase.ACCUMULATING)

        display = self._valid_display()
        if text_changed and display:
            self._request_correction(display)
        return self._emit_display(display)

    def _handle_vad_reset(self, prior_full_text: str) -> DisplayUpdate:
        start = min(self.injected_length, len(prior_full_text))
        remaining = prior_full_text[start:].strip()

        self.injected_length = 0
        self.full_text = ""
        self.previous_full_text = ""

        if remaining and self._filter.is_valid(remaining):
            self.deferred_text += remaining
            logger.debug(f"VAD pause, deferred: {remaining!r} (total: {self.deferred_text!r})")
        elif remaining:
            logger.info(f"Filtered hallucination: {remaining!r}")

        self._arm_flush_timer()
        self._set_phase(AggregatorPhase.DEFERRED_PAUSE)

        display = self._valid_display()
        if display:
            self._request_correction(display)
        return self._emit_display(display)

    def _arm_flush_timer(self) -> None:
        self.cancel_flush_timer()
        loop = asyncio.get_running_loop()
        self._flush_task = loop.create_task(self._flush_after_delay())

    async def _flush_after_delay(self) -> None:
        await asyncio.sleep(self.flush_delay)
        self._flush_task = None
        self._flush_deferred()

    def _flush_deferred(self) -> None:
        raw_text = self.display_text
        if not raw_text or not self._filter.is_valid(raw_text):
            self.deferred_text = ""
            self._set_phase(AggregatorPhase.LISTENING)
            return

        logger.info(f"Silence flush: {raw_text}")
        self.deferred_text = ""
        self.injected_length = len(self.full_text)

        final_text = self.corrected_text or raw_text
        self.corrected_text = ""
        self._last_candidate = None

        self._set_phase(AggregatorPhase.FLUSHED)
        self._emit_finalized(final_text)
        if self._pipeline is not None:
            self._pipeline.cancel_all()

        self._set_phase(AggregatorPhase.LISTENING)
        self._emit_display("")

    async def stop(self) -> str:
        """
        Finalize everything still pending and end the session.

        The recognizer must already be stopped so no further updates arrive.

        Returns:
            The finalized text, or an empty string if nothing valid was pending
        """
        self.cancel_flush_timer()

        final_text = self.corrected_text or self._filter.sanitize(self._combined_text())
        emitted = ""
        if final_text and self._filter.is_valid(final_text):
            emitted = final_text
            self._emit_finalized(final_text)

        if self._pipeline is not None:
            self._pipeline.cancel_all()
            await self._pipeline.wait_idle()

        self.reset()
        self._emit_display("")
        return emitted

    def _combined_text(self) -> str:
        result = self.deferred_text
        pending = self.pending_text
        if pending:
            if result:
                result += " "
            result += pending
        return result

    def _valid_display(self) -> str:
        display = self.display_text
        return display if self._filter.is_valid(display) else ""

    def _request_correction(self, text: str) -> None:
        if self._pipeline is None or text == self._last_candidate:
            return
        self._last_candidate = text
        self._pipeline.submit(text)

    def _set_phase(self, phase: AggregatorPhase) -> None:
        if phase == self.phase:
            return
        logger.debug(f"Aggregator phase: {self.phase.value} -> {phase.value}")
        self.phase = phase
        if self._phase_callback:
            try:
                self._phase_callback(phase)
            except Exception as e:
                logger.error(f"Error in phase callback: {e}")

    def _emit_display(self, text: str) -> DisplayUpdate:
        update = DisplayUpdate(hypothesis_text=text, phase=self.phase)
        if self._display_callback:
            try:
                self._display_callback(update)
            except Exception as e:
                logger.error(f"Error in display callback: {e}")
        return update

    def _emit_finalized(self, text: str) -> None:
        logger.info(f"Finalized: {text}")
        if self._finalized_callback:
            try:
                self._finalized_callback(text)
            except Exception as e:
                logger.error(f"Error in finalized callback: {e}")
