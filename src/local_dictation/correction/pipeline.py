"""Debounced, cancellable LLM correction of live transcript text."""

import asyncio
import logging
from collections.abc import Callable
from typing import TYPE_CHECKING, Optional

from .config import (
    DEFAULT_DEBOUNCE_MS,
    DEFAULT_MAX_TOKENS_BUFFER,
    DEFAULT_MAX_TOKENS_CAP,
    DEFAULT_SYSTEM_PROMPT,
    DEFAULT_USER_PROMPT_TEMPLATE,
    MIN_ESTIMATED_INPUT_TOKENS,
)
from .exceptions import CorrectionError
from .llm_engine import CorrectionEngine
from .models import CorrectionRequest, CorrectionResult
from .sanitizer import build_user_prompt, contains_blocked_marker, sanitize_input, sanitize_output

if TYPE_CHECKING:
    from ..settings import CorrectionSettings

logger = logging.getLogger(__name__)


class CorrectionPipeline:
    """Corrects homophones in candidate text without queueing work.

    Every submit() cancels the pending debounce wait and the in-flight
    generation before starting a new debounce wait, so at most one of each
    exists at a time. Only the latest request may publish a result, and a
    cancelled request never publishes.
    """

    def __init__(
        self,
        engine: CorrectionEngine,
        quality_scale: float = 1.0,
        debounce_ms: int = DEFAULT_DEBOUNCE_MS,
        max_tokens_cap: int = DEFAULT_MAX_TOKENS_CAP,
        max_tokens_buffer: int = DEFAULT_MAX_TOKENS_BUFFER,
        system_prompt: str = DEFAULT_SYSTEM_PROMPT,
        user_prompt_template: str = DEFAULT_USER_PROMPT_TEMPLATE,
    ) -> None:
        """
        Initialize the correction pipeline.

        Args:
            engine: Streaming chat engine
            quality_scale: Drift budget scale of the recognizer model
            debounce_ms: Quiet period before generation starts
            max_tokens_cap: Hard token cap per generation
            max_tokens_buffer: Tokens allowed beyond the input length
            system_prompt: System instruction
            user_prompt_template: User message template with a {text} placeholder
        """
        self._engine = engine
        self.quality_scale = quality_scale
        self.debounce_ms = debounce_ms
        self.max_tokens_cap = max_tokens_cap
        self.max_tokens_buffer = max_tokens_buffer
        self.system_prompt = system_prompt
        self.user_prompt_template = user_prompt_template

        self._next_request_id = 0
        self._latest_request_id: Optional[int] = None
        self._debounce_task: Optional[asyncio.Task] = None
        self._generation_task: Optional[asyncio.Task] = None
        self.generation_count = 0

        self._result_callback: Optional[Callable[[CorrectionResult], None]] = None
        self._error_callback: Optional[Callable[[Exception], None]] = None

    @classmethod
    def from_settings(
        cls,
        engine: CorrectionEngine,
        settings: "CorrectionSettings",
        quality_scale: float = 1.0,
    ) -> "CorrectionPipeline":
        return cls(
            engine,
            quality_scale=quality_scale,
            debounce_ms=settings.debounce_ms,
            max_tokens_cap=settings.max_tokens_cap,
            max_tokens_buffer=settings.max_tokens_buffer,
            system_prompt=settings.system_prompt,
            user_prompt_template=settings.user_prompt_template,
        )

    def set_result_callback(self, callback: Callable[[CorrectionResult], None]) -> None:
        """
        Set callback for published corrections.

        Args:
            callback: Function called with each CorrectionResult
        """
        self._result_callback = callback

    def set_error_callback(self, callback: Callable[[Exception], None]) -> None:
        """
        Set callback for engine failures during generation.

        Args:
            callback: Function called with the CorrectionError
        """
        self._error_callback = callback

    @property
    def is_busy(self) -> bool:
        return any(task is not None and not task.done() for task in self._tasks())

    def token_cap(self, text: str) -> int:
        estimated_input_tokens = max(MIN_ESTIMATED_INPUT_TOKENS, len(text))
        return min(self.max_tokens_cap, estimated_input_tokens + self.max_tokens_buffer)

    def submit(self, text: str) -> None:
        """
        Schedule correction of candidate text on the running loop.

        Args:
            text: Latest display text from the aggregator
        """
        self._cancel_tasks()
        self._next_request_id += 1
        request = CorrectionRequest(self._next_request_id, text, self.quality_scale)
        self._latest_request_id = request.request_id

        loop = asyncio.get_running_loop()
        self._debounce_task = loop.create_task(self._debounce(request))
        logger.debug(f"Correction request {request.request_id} scheduled")

    def cancel_all(self) -> None:
        """Cancel pending and in-flight work; nothing publishes afterwards."""
        self._cancel_tasks()
        self._latest_request_id = None

    async def wait_idle(self) -> None:
        """Wait until no debounce wait or generation is running."""
        while True:
            pending = [task for task in self._tasks() if task is not None and not task.done()]
            if not pending:
                return
            await asyncio.wait(pending)

    def _tasks(self) -> tuple[Optional[asyncio.Task], Optional[asyncio.Task]]:
        return self._debounce_task, self._generation_task

    def _cancel_tasks(self) -> None:
        for task in self._tasks():
            if task is not None and not task.done():
                task.cancel()
        self._debounce_task = None
        self._generation_task = None

    async def _debounce(self, request: CorrectionRequest) -> None:
        await asyncio.sleep(self.debounce_ms / 1000.0)
        if request.request_id != self._latest_request_id:
            return
        loop = asyncio.get_running_loop()
        self._generation_task = loop.create_task(self._generate(request))

    async def _generate(self, request: CorrectionRequest) -> None:
        self.generation_count += 1
        logger.debug(f"Raw text to correct by LLM: {request.text}")

        source = sanitize_input(request.text)
        if not source:
            self._publish(CorrectionResult(request.request_id, "", "", accepted=True))
            return

        if contains_blocked_marker(source):
            self._publish(
                CorrectionResult(
                    request.request_id,
                    source,
                    source,
                    accepted=False,
                    rejection_reason="blocked marker in input",
                )
            )
            return

        user_prompt = build_user_prompt(self.user_prompt_template, source)
        chunks: list[str] = []
        try:
            async for chunk in self._engine.stream_correction(
                self.system_prompt, user_prompt, self.token_cap(source)
            ):
                chunks.append(chunk)
        except CorrectionError as e:
            self._report_error(request, e)
            return
        except Exception as e:
            # Failure outside the CorrectionError hierarchy
            error = CorrectionError(f"Generation failed: {e}")
            error.__cause__ = e
            self._report_error(request, error)
            return

        text, reason = sanitize_output("".join(chunks), source, request.quality_scale)
        if reason is not None:
            logger.warning(f"Correction rejected ({reason}), keeping: {source}")
        self._publish(
            CorrectionResult(
                request.request_id,
                text,
                source,
                accepted=reason is None,
                rejection_reason=reason,
            )
        )

    def _report_error(self, request: CorrectionRequest, error: CorrectionError) -> None:
        logger.error(f"LLM correction error: {error}")
        if request.request_id == self._latest_request_id and self._error_callback:
            try:
                self._error_callback(error)
            except Exception as callback_error:
                logger.error(f"Error in correction error callback: {callback_error}")

    def _publish(self, result: CorrectionResult) -> None:
        if result.request_id != self._latest_request_id:
            logger.debug(f"Dropping stale correction {result.request_id}")
            return
        if result.changed:
            logger.info(f"Corrected: {result.source_text} -> {result.text}")
        if self._result_callback:
            try:
                self._result_callback(result)
            except Exception as e:
                logger.error(f"Error in correction result callback: {e}")
