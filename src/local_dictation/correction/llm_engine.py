"""Language-model engines that stream homophone corrections."""

import asyncio
import logging
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator, Callable
from typing import Optional

import ollama

from ..speech_to_text.models import LoadState, LoadStatus
from .config import (
    DEFAULT_OLLAMA_BASE_URL,
    DEFAULT_OLLAMA_MODEL,
    DEFAULT_OLLAMA_TIMEOUT,
    DEFAULT_REPETITION_PENALTY,
    DEFAULT_TEMPERATURE,
    DEFAULT_TOP_P,
)
from .exceptions import CorrectionError, CorrectionModelNotFoundError, LLMConnectionError

logger = logging.getLogger(__name__)

LoadStateCallback = Callable[[LoadState], None]


class CorrectionEngine(ABC):
    """Chat-completion engine used by the correction pipeline."""

    @abstractmethod
    async def load(self, progress_callback: Optional[LoadStateCallback] = None) -> None:
        """
        Make the model ready for generation.

        Args:
            progress_callback: Receives load state changes, download progress
                fractions are passed through unmodified

        Raises:
            CorrectionError: If the model cannot be made available
        """
        pass

    @abstractmethod
    def stream_correction(
        self, system_prompt: str, user_prompt: str, max_tokens: int
    ) -> AsyncIterator[str]:
        """
        Stream the model's answer as text chunks.

        Args:
            system_prompt: System instruction
            user_prompt: User message holding the text to correct
            max_tokens: Generation token cap

        Raises:
            CorrectionError: If generation fails
        """
        pass

    @abstractmethod
    def is_loaded(self) -> bool:
        pass


class OllamaCorrectionEngine(CorrectionEngine):
    """Correction engine backed by a local Ollama server."""

    def __init__(
        self,
        model: str = DEFAULT_OLLAMA_MODEL,
        base_url: str = DEFAULT_OLLAMA_BASE_URL,
        temperature: float = DEFAULT_TEMPERATURE,
        top_p: float = DEFAULT_TOP_P,
        repetition_penalty: float = DEFAULT_REPETITION_PENALTY,
        timeout: float = DEFAULT_OLLAMA_TIMEOUT,
    ) -> None:
        """
        Initialize the Ollama engine.

        Args:
            model: Ollama model name
            base_url: Ollama service URL
            temperature: Sampling temperature
            top_p: Nucleus sampling cutoff
            repetition_penalty: Ollama repeat_penalty option
            timeout: Timeout in seconds for model checks and warm-up
        """
        self.model = model
        self.base_url = base_url
        self.temperature = temperature
        self.top_p = top_p
        self.repetition_penalty = repetition_penalty
        self.timeout = timeout
        self._client = ollama.AsyncClient(host=base_url)
        self._loaded = False

    def is_loaded(self) -> bool:
        return self._loaded

    def _report(self, callback: Optional[LoadStateCallback], state: LoadState) -> None:
        if callback:
            try:
                callback(state)
            except Exception as e:
                logger.error(f"Error in load state callback: {e}")

    async def load(self, progress_callback: Optional[LoadStateCallback] = None) -> None:
        try:
            if not await self._model_available():
                await self._pull(progress_callback)

            self._report(progress_callback, LoadState(LoadStatus.LOADING))
            # An empty prompt loads the model into memory without generating
            await asyncio.wait_for(
                self._client.generate(model=self.model, prompt=""), timeout=self.timeout
            )
        except CorrectionError as e:
            self._report(progress_callback, LoadState.error(str(e)))
            raise
        except TimeoutError as e:
            message = f"Timed out loading {self.model}"
            self._report(progress_callback, LoadState.error(message))
            raise CorrectionError(message) from e
        except ConnectionError as e:
            message = f"Cannot reach Ollama at {self.base_url}: {e}"
            self._report(progress_callback, LoadState.error(message))
            raise LLMConnectionError(message) from e
        except ollama.ResponseError as e:
            message = f"Failed to load {self.model}: {e.error}"
            self._report(progress_callback, LoadState.error(message))
            raise CorrectionError(message) from e

        self._loaded = True
        self._report(progress_callback, LoadState(LoadStatus.LOADED))
        logger.info(f"LLM loaded: {self.model}")

    async def _model_available(self) -> bool:
        try:
            await asyncio.wait_for(self._client.show(self.model), timeout=self.timeout)
        except ollama.ResponseError as e:
            if e.status_code == 404:
                logger.debug(f"Model {self.model} not present locally")
                return False
            raise
        return True

    async def _pull(self, progress_callback: Optional[LoadStateCallback]) -> None:
        logger.info(f"Pulling LLM: {self.model}...")
        self._report(progress_callback, LoadState.downloading(0.0))
        try:
            async for part in await self._client.pull(self.model, stream=True):
                completed = part.get("completed")
                total = part.get("total")
                if completed is not None and total:
                    self._report(progress_callback, LoadState.downloading(completed / total))
        except ollama.ResponseError as e:
            raise CorrectionModelNotFoundError(
                f"Model {self.model} not found: {e.error}"
            ) from e

    async def stream_correction(
        self, system_prompt: str, user_prompt: str, max_tokens: int
    ) -> AsyncIterator[str]:
        options = {
            "temperature": self.temperature,
            "top_p": self.top_p,
            "repeat_penalty": self.repetition_penalty,
            "num_predict": max_tokens,
        }
        try:
            stream = await self._client.chat(
                model=self.model,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_prompt},
                ],
                stream=True,
                options=options,
            )
            async for chunk in stream:
                content = chunk["message"]["content"]
                if content:
                    yield content
        except ConnectionError as e:
            logger.error(f"Connection error: {e}")
            raise LLMConnectionError(f"Connection failed: {e}") from e
        except ollama.ResponseError as e:
            logger.error(f"LLM correction error: {e.error}")
            raise CorrectionError(f"Generation failed: {e.error}") from e
        except Exception as e:
            logger.error(f"Unexpected error during LLM correction: {e}")
            raise CorrectionError(f"Generation failed: {e}") from e
