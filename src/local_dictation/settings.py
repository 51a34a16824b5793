"""Session configuration snapshot and TOML settings loader."""

import tomllib
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any

from .correction.config import (
    CORRECTION_ENABLED,
    DEFAULT_DEBOUNCE_MS,
    DEFAULT_MAX_TOKENS_BUFFER,
    DEFAULT_MAX_TOKENS_CAP,
    DEFAULT_OLLAMA_BASE_URL,
    DEFAULT_OLLAMA_MODEL,
    DEFAULT_REPETITION_PENALTY,
    DEFAULT_SYSTEM_PROMPT,
    DEFAULT_TEMPERATURE,
    DEFAULT_TOP_P,
    DEFAULT_USER_PROMPT_TEMPLATE,
    PROMPT_TEXT_PLACEHOLDER,
)
from .speech_to_text.config import (
    DEFAULT_ASR_MODEL,
    DEFAULT_COMPUTE_TYPE,
    DEFAULT_DEVICE,
    DEFAULT_LANGUAGE,
    FLUSH_DELAY_SECONDS,
    NOISE_REDUCTION_ENABLED,
    NOISE_REDUCTION_STRENGTH,
)
from .speech_to_text.exceptions import ConfigurationError
from .speech_to_text.logging_utils import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class NoiseReductionSettings:
    """Noise suppressor options."""

    enabled: bool = NOISE_REDUCTION_ENABLED
    strength: float = NOISE_REDUCTION_STRENGTH


@dataclass(frozen=True)
class CorrectionSettings:
    """LLM correction options."""

    enabled: bool = CORRECTION_ENABLED
    model: str = DEFAULT_OLLAMA_MODEL
    base_url: str = DEFAULT_OLLAMA_BASE_URL
    debounce_ms: int = DEFAULT_DEBOUNCE_MS
    max_tokens_cap: int = DEFAULT_MAX_TOKENS_CAP
    max_tokens_buffer: int = DEFAULT_MAX_TOKENS_BUFFER
    temperature: float = DEFAULT_TEMPERATURE
    top_p: float = DEFAULT_TOP_P
    repetition_penalty: float = DEFAULT_REPETITION_PENALTY
    system_prompt: str = DEFAULT_SYSTEM_PROMPT
    user_prompt_template: str = DEFAULT_USER_PROMPT_TEMPLATE

    def __post_init__(self) -> None:
        if PROMPT_TEXT_PLACEHOLDER not in self.user_prompt_template:
            raise ConfigurationError(
                f"user_prompt_template must contain {PROMPT_TEXT_PLACEHOLDER}"
            )
        if self.max_tokens_cap <= 0:
            raise ConfigurationError("max_tokens_cap must be positive")
        if self.max_tokens_buffer < 0 or self.debounce_ms < 0:
            raise ConfigurationError("max_tokens_buffer and debounce_ms must not be negative")


@dataclass(frozen=True)
class DictationSettings:
    """Immutable configuration consumed by one dictation session."""

    noise_reduction: NoiseReductionSettings = field(default_factory=NoiseReductionSettings)
    correction: CorrectionSettings = field(default_factory=CorrectionSettings)
    asr_model: str = DEFAULT_ASR_MODEL
    flush_delay_seconds: float = FLUSH_DELAY_SECONDS
    language: str = DEFAULT_LANGUAGE
    device: str = DEFAULT_DEVICE
    compute_type: str = DEFAULT_COMPUTE_TYPE

    def with_overrides(self, **changes: Any) -> "DictationSettings":
        """Copy with top-level fields replaced; None values are ignored."""
        return replace(self, **{k: v for k, v in changes.items() if v is not None})


# [transcription] keys mapped onto DictationSettings fields
_TRANSCRIPTION_KEYS = {
    "model": "asr_model",
    "flush_delay_seconds": "flush_delay_seconds",
    "language": "language",
    "device": "device",
    "compute_type": "compute_type",
}


def _clamp(value: float, low: float, high: float, name: str) -> float:
    clamped = max(low, min(high, value))
    if clamped != value:
        logger.warning(f"{name}={value} out of range, using {clamped}")
    return clamped


def _known_values(table: dict[str, Any], known: set[str], section: str) -> dict[str, Any]:
    values = {}
    for key, value in table.items():
        if key not in known:
            logger.warning(f"Ignoring unknown setting [{section}] {key}")
            continue
        values[key] = value
    return values


def _check_type(section: str, key: str, value: Any, default: Any) -> Any:
    expected = type(default)
    if expected is float and isinstance(value, int) and not isinstance(value, bool):
        return float(value)
    if not isinstance(value, expected) or (expected is int and isinstance(value, bool)):
        raise ConfigurationError(
            f"[{section}] {key} must be {expected.__name__}, got {type(value).__name__}"
        )
    return value


def _build_section(cls: type, table: Any, section: str) -> Any:
    if not isinstance(table, dict):
        raise ConfigurationError(f"[{section}] must be a table")
    defaults = cls()
    names = {f.name for f in fields(cls)}
    values = {
        key: _check_type(section, key, value, getattr(defaults, key))
        for key, value in _known_values(table, names, section).items()
    }
    return cls(**values)


def settings_from_dict(data: dict[str, Any]) -> DictationSettings:
    """
    Build settings from parsed TOML tables.

    Args:
        data: Mapping with optional noise_reduction, correction and
            transcription tables

    Returns:
        Settings with defaults for every missing key

    Raises:
        ConfigurationError: If a value has the wrong type or is invalid
    """
    for section in data:
        if section not in ("noise_reduction", "correction", "transcription"):
            logger.warning(f"Ignoring unknown settings table [{section}]")

    noise = _build_section(NoiseReductionSettings, data.get("noise_reduction", {}), "noise_reduction")
    noise = replace(
        noise, strength=_clamp(noise.strength, 0.0, 1.0, "noise_reduction.strength")
    )
    correction = _build_section(CorrectionSettings, data.get("correction", {}), "correction")

    transcription = data.get("transcription", {})
    if not isinstance(transcription, dict):
        raise ConfigurationError("[transcription] must be a table")
    defaults = DictationSettings()
    top_level = {}
    for key, value in _known_values(transcription, set(_TRANSCRIPTION_KEYS), "transcription").items():
        name = _TRANSCRIPTION_KEYS[key]
        top_level[name] = _check_type("transcription", key, value, getattr(defaults, name))
    if "flush_delay_seconds" in top_level:
        top_level["flush_delay_seconds"] = _clamp(
            top_level["flush_delay_seconds"], 0.0, float("inf"), "transcription.flush_delay_seconds"
        )

    return DictationSettings(noise_reduction=noise, correction=correction, **top_level)


def load_settings(path: str | Path | None = None) -> DictationSettings:
    """
    Load settings from a TOML file.

    Args:
        path: Settings file; None returns the defaults

    Returns:
        Loaded settings snapshot

    Raises:
        ConfigurationError: If the file is missing, malformed or invalid
    """
    if path is None:
        return DictationSettings()

    settings_path = Path(path).expanduser()
    try:
        with settings_path.open("rb") as f:
            data = tomllib.load(f)
    except FileNotFoundError as e:
        raise ConfigurationError(f"Settings file not found: {settings_path}") from e
    except tomllib.TOMLDecodeError as e:
        raise ConfigurationError(f"Invalid TOML in {settings_path}: {e}") from e

    logger.debug(f"Loaded settings from {settings_path}")
    return settings_from_dict(data)
