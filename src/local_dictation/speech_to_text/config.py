"""Configuration constants for the dictation pipeline."""

from pathlib import Path

# Audio Configuration
DEFAULT_SAMPLE_RATE = 16000  # Hz, the only rate the recognizer accepts
DEFAULT_CHUNK_SIZE = 1600  # samples per capture callback (100ms)
AUDIO_CHANNELS_MONO = 1

# Noise Suppression (high-pass biquad + spectral gate)
NOISE_REDUCTION_ENABLED = True
NOISE_REDUCTION_STRENGTH = 0.5  # 0.0 = minimal gating, 1.0 = aggressive
HIGH_PASS_CUTOFF_HZ = 85.0  # removes rumble and mains hum
SPECTRAL_GATE_FFT_LENGTH = 2048  # transform length L
NOISE_PROFILE_LEARN_FRAMES = 5  # frames K used to learn the noise profile
GATE_THRESHOLD_BASE = 1.0  # threshold = base + strength * scale
GATE_THRESHOLD_SCALE = 2.0
GATE_FLOOR_BASE = 0.15  # floor = max(min, base - strength * scale)
GATE_FLOOR_SCALE = 0.13
GATE_FLOOR_MIN = 0.02

# Spectrum Analyzer (visualizer bands)
SPECTRUM_BAND_COUNT = 40
SPECTRUM_FFT_LENGTH = 2048
SPECTRUM_LOW_HZ = 85.0  # speech band lower edge
SPECTRUM_HIGH_HZ = 4000.0  # speech band upper edge
SPECTRUM_NOISE_FLOOR_DB = -30.0
SPECTRUM_RANGE_DB = 60.0
SPECTRUM_MIN_MAGNITUDE = 1e-10

# Audio Accumulation
RELATIVE_ENERGY_WINDOW = 20  # buffers considered for the relative energy floor
ENERGY_EPSILON = 1e-10

# Transcript Aggregation
FLUSH_DELAY_SECONDS = 3.0  # silence after a VAD reset before finalizing
WAITING_FOR_SPEECH = "Waiting for speech..."  # recognizer placeholder hypothesis

# Hallucination Filtering
HALLUCINATION_BRACKET_CHARS = ("[", "]", "(", ")", "<", ">")
HALLUCINATION_CONTROL_PHRASES = (
    "system-reminder",
    "operational mode",
    "read-only mode",
)
REMINDER_BLOCK_PATTERN = r"<system-reminder>[\s\S]*?</system-reminder>"
REMINDER_TAG_PATTERN = r"</?system-reminder>"
ANGLE_TAG_PATTERN = r"<[^>]+>"
CONTROL_PROSE_PATTERN = (
    r"(?is)your operational mode has changed[\s\S]*?"
    r"utilize your arsenal of tools as needed\."
)

# Streaming Recognition (faster-whisper)
DEFAULT_ASR_MODEL = "cantonese-small"
DEFAULT_LANGUAGE = "yue"
DEFAULT_DEVICE = "auto"
DEFAULT_COMPUTE_TYPE = "int8"
STREAM_POLL_INTERVAL = 0.25  # seconds between decode passes
STREAM_MIN_NEW_AUDIO_SECONDS = 0.5  # new audio required before re-decoding
STREAM_MAX_WINDOW_SECONDS = 30.0  # whisper context limit
REQUIRED_SEGMENTS_FOR_CONFIRMATION = 2  # trailing segments kept unconfirmed
SILENCE_RESET_SECONDS = 0.8  # voiceless tail that triggers a VAD reset
DECODE_TEMPERATURE = 0.0
DECODE_COMPRESSION_RATIO_THRESHOLD = 2.2
DECODE_LOG_PROB_THRESHOLD = -0.8
DECODE_NO_SPEECH_THRESHOLD = 0.5

# Voice Activity Detection (webrtcvad)
VAD_AGGRESSIVENESS = 2  # 0-3, higher = more aggressive filtering
VAD_FRAME_DURATION = 30  # milliseconds
VAD_SUPPORTED_SAMPLE_RATES = [8000, 16000, 32000, 48000]  # Hz
VAD_SUPPORTED_FRAME_DURATIONS = [10, 20, 30]  # milliseconds
VAD_SPEECH_RATIO_THRESHOLD = 0.2  # fraction of voiced frames to call a window speech
AUDIO_SAMPLE_MAX_VALUE = 32767.0  # float -> int16 scaling for webrtcvad

# Model Storage
BYTES_PER_GB = 1024**3
RECOMMENDED_LARGE_MODEL_RAM_GB = 16
MODEL_CACHE_DIR = Path.home() / ".cache" / "local_dictation" / "models"
