"""Custom exceptions for LLM correction."""


class CorrectionError(Exception):
    """Base exception for correction errors."""

    pass


class LLMConnectionError(CorrectionError):
    """Exception raised when the Ollama service cannot be reached."""

    pass


class CorrectionModelNotFoundError(CorrectionError):
    """Exception raised when the correction model is missing and cannot be pulled."""

    pass
