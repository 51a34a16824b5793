"""Local dictation: noise-suppressed streaming speech recognition with LLM correction."""

__version__ = "0.1.0"
