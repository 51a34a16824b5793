"""Custom exceptions for the dictation pipeline."""


class DictationError(Exception):
    """Base exception for dictation errors."""

    pass


class AudioCaptureError(DictationError):
    """Exception raised for audio capture related errors."""

    pass


class MicrophoneNotFoundError(AudioCaptureError):
    """Exception raised when no microphone is found."""

    pass


class TranscriptionError(DictationError):
    """Exception raised when the streaming recognizer fails mid-session."""

    pass


class ModelLoadError(DictationError):
    """Exception raised when a recognition or correction model cannot be loaded."""

    pass


class ConfigurationError(DictationError):
    """Exception raised for invalid settings values."""

    pass
