"""Logging utilities with custom trace level."""

import logging
from typing import Any

# Custom TRACE level (lower than DEBUG) for per-buffer and per-event chatter
TRACE_LEVEL = 5

LOG_FORMAT_DETAILED = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
LOG_FORMAT_SIMPLE = "%(asctime)s - %(levelname)s - %(message)s"

# Third-party loggers that are noisy at INFO
_NOISY_LOGGERS = ("faster_whisper", "httpx", "httpcore")


def add_trace_level() -> None:
    """Add a custom TRACE logging level."""
    logging.addLevelName(TRACE_LEVEL, "TRACE")

    def trace(self: logging.Logger, message: str, *args: Any, **kwargs: Any) -> None:
        """Log a message with severity 'TRACE'."""
        if self.isEnabledFor(TRACE_LEVEL):
            self._log(TRACE_LEVEL, message, args, **kwargs)

    logging.Logger.trace = trace  # type: ignore[attr-defined]


def get_logger(name: str) -> logging.Logger:
    """Get a logger with trace support."""
    if not hasattr(logging.Logger, "trace"):
        add_trace_level()

    return logging.getLogger(name)


def configure_logging(verbose: bool = False, trace: bool = False) -> int:
    """
    Configure root logging for the CLI.

    Args:
        verbose: Enable DEBUG output
        trace: Enable TRACE output (implies verbose)

    Returns:
        The effective root log level
    """
    add_trace_level()

    if trace:
        level = TRACE_LEVEL
        log_format = LOG_FORMAT_DETAILED
    elif verbose:
        level = logging.DEBUG
        log_format = LOG_FORMAT_DETAILED
    else:
        level = logging.INFO
        log_format = LOG_FORMAT_SIMPLE

    logging.basicConfig(level=level, format=log_format)

    # Engine libraries only speak up in verbose modes
    third_party_level = logging.INFO if (trace or verbose) else logging.WARNING
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(third_party_level)

    return level
