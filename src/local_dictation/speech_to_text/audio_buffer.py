"""Thread-safe accumulation of filtered microphone samples."""

import threading

import numpy as np

from .config import DEFAULT_SAMPLE_RATE, ENERGY_EPSILON, RELATIVE_ENERGY_WINDOW
from .logging_utils import get_logger

logger = get_logger(__name__)


class AudioSampleBuffer:
    """Growing sample store shared by the capture thread and the recognizer.

    Samples are addressed by absolute index since the session started, so a
    reader can keep its offset across purges. Each appended buffer also
    records its energy relative to the quietest of the recent buffers.
    """

    def __init__(
        self,
        sample_rate: int = DEFAULT_SAMPLE_RATE,
        energy_window: int = RELATIVE_ENERGY_WINDOW,
    ) -> None:
        self.sample_rate = sample_rate
        self.energy_window = energy_window

        self._lock = threading.Lock()
        self._chunks: list[np.ndarray] = []
        self._retained = 0
        self._base_offset = 0  # absolute index of the first retained sample
        self._energies: list[float] = []
        self._relative_energy: list[float] = []

    def append(self, samples: np.ndarray) -> None:
        """Store one filtered buffer. Called from the capture thread."""
        chunk = np.asarray(samples, dtype=np.float32).reshape(-1)
        if chunk.size == 0:
            return

        energy = float(np.mean(np.abs(chunk)))
        with self._lock:
            self._chunks.append(chunk.copy())
            self._retained += chunk.size
            self._energies.append(energy)
            floor = min(self._energies[-self.energy_window :])
            self._relative_energy.append(energy / max(floor, ENERGY_EPSILON))

    @property
    def total_samples(self) -> int:
        """Absolute index one past the newest sample."""
        with self._lock:
            return self._base_offset + self._retained

    @property
    def relative_energy(self) -> list[float]:
        with self._lock:
            return list(self._relative_energy)

    def __len__(self) -> int:
        with self._lock:
            return self._retained

    def duration_seconds(self) -> float:
        return len(self) / float(self.sample_rate)

    def samples_from(self, start: int) -> np.ndarray:
        """Snapshot of retained samples from absolute index start onward."""
        with self._lock:
            data = self._concatenate()
            local = max(0, start - self._base_offset)
            return data[local:]

    def tail(self, count: int) -> np.ndarray:
        """The newest count samples, fewer if not enough were captured."""
        if count <= 0:
            return np.zeros(0, dtype=np.float32)
        with self._lock:
            return self._concatenate()[-count:]

    def purge(self, keep_last: int = 0) -> None:
        """
        Drop retained samples and the energy history.

        Args:
            keep_last: Number of newest samples to keep
        """
        with self._lock:
            data = self._concatenate()
            keep = max(0, min(keep_last, data.size))
            dropped = data.size - keep
            self._chunks = [data[dropped:].copy()] if keep else []
            self._retained = keep
            self._base_offset += dropped
            self._energies.clear()
            self._relative_energy.clear()
        logger.debug(f"Purged {dropped} samples, kept {keep}")

    def _concatenate(self) -> np.ndarray:
        if not self._chunks:
            return np.zeros(0, dtype=np.float32)
        if len(self._chunks) > 1:
            # Compact so later snapshots stay cheap
            self._chunks = [np.concatenate(self._chunks)]
        return self._chunks[0].copy()
