"""Data models for the dictation pipeline."""

from dataclasses import dataclass
from enum import Enum

from .config import WAITING_FOR_SPEECH


@dataclass(frozen=True)
class Segment:
    """A unit of recognizer output.

    Confirmed segments are never revised; unconfirmed segments may be replaced
    wholesale by the next update.
    """

    text: str
    confirmed: bool = False
    start: float = 0.0
    end: float = 0.0


@dataclass(frozen=True)
class SegmentUpdate:
    """One state-change event emitted by the streaming recognizer."""

    confirmed_segments: tuple[Segment, ...] = ()
    unconfirmed_segments: tuple[Segment, ...] = ()
    current_text: str = WAITING_FOR_SPEECH

    @property
    def segment_text(self) -> str:
        """Concatenated text of confirmed then unconfirmed segments."""
        segments = self.confirmed_segments + self.unconfirmed_segments
        return "".join(segment.text for segment in segments)

    @property
    def has_hypothesis(self) -> bool:
        """Whether current_text carries real speech rather than the placeholder."""
        return bool(self.current_text) and self.current_text != WAITING_FOR_SPEECH


class AggregatorPhase(str, Enum):
    """Lifecycle of one recording session in the transcript aggregator."""

    IDLE = "idle"
    LISTENING = "listening"
    ACCUMULATING = "accumulating"
    DEFERRED_PAUSE = "deferred_pause"
    FLUSHED = "flushed"


@dataclass(frozen=True)
class DisplayUpdate:
    """Live text for the overlay, emitted after every recognizer event."""

    hypothesis_text: str
    phase: AggregatorPhase
    confirmed_text: str = ""


class LoadStatus(str, Enum):
    """Load status of a recognition or correction model."""

    NOT_LOADED = "not_loaded"
    DOWNLOADING = "downloading"
    LOADING = "loading"
    LOADED = "loaded"
    ERROR = "error"


@dataclass(frozen=True)
class LoadState:
    """Model load state reported to the UI layer."""

    status: LoadStatus
    progress: float = 0.0
    message: str | None = None

    @property
    def is_in_progress(self) -> bool:
        return self.status in (LoadStatus.DOWNLOADING, LoadStatus.LOADING)

    @classmethod
    def downloading(cls, progress: float) -> "LoadState":
        return cls(LoadStatus.DOWNLOADING, progress=progress)

    @classmethod
    def error(cls, message: str) -> "LoadState":
        return cls(LoadStatus.ERROR, message=message)

