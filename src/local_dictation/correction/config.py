"""Configuration constants for LLM homophone correction."""

# Correction
CORRECTION_ENABLED = False
DEFAULT_DEBOUNCE_MS = 300  # quiet period before a candidate is sent to the LLM

# LLM Configuration
DEFAULT_OLLAMA_MODEL = "qwen2.5:3b"
DEFAULT_OLLAMA_BASE_URL = "http://localhost:11434"
DEFAULT_OLLAMA_TIMEOUT = 30.0  # seconds, applies to model checks and warm-up
DEFAULT_TEMPERATURE = 0.0
DEFAULT_TOP_P = 1.0
DEFAULT_REPETITION_PENALTY = 1.0

# Token budget: min(cap, max(MIN_ESTIMATED_INPUT_TOKENS, len(text)) + buffer)
DEFAULT_MAX_TOKENS_CAP = 96
DEFAULT_MAX_TOKENS_BUFFER = 24
MIN_ESTIMATED_INPUT_TOKENS = 8

# Drift Guard
DRIFT_MIN_LENGTH_GAP = 2
DRIFT_LENGTH_GAP_DIVISOR = 8
DRIFT_MIN_DISTANCE = 4
DRIFT_DISTANCE_DIVISOR = 3.0

# Output Safety
BLOCKED_OUTPUT_MARKERS = (
    "<system-reminder>",
    "</system-reminder>",
    "your operational mode has changed",
    "operational mode",
    "read-only mode",
    "plan to build",
    "<|im_start|>",
    "<|im_end|>",
)
# Phrases the model uses when it starts describing itself instead of correcting
PERSONA_LEAK_MARKERS = (
    "我係一個",
    "我是一個",
    "我嘅任務",
    "我的任務",
    "文字校正助手",
    "我會根據",
)
RESPONSE_PREFIXES = ("修正後：", "校正後：")

# Prompt Templates
# Placeholder: {text}
PROMPT_TEXT_PLACEHOLDER = "{text}"

DEFAULT_SYSTEM_PROMPT = """你是粵語語音輸入的文字校正工具。
輸入是語音識別的結果，可能有同音字或近音字錯誤。

規則：
- 只修正明顯的同音字或近音字錯誤
- 保留原本的用字風格、標點和換行
- 不要增加、刪除或改寫內容
- 不要解釋，不要回答問題，只輸出修正後的文字"""

DEFAULT_USER_PROMPT_TEMPLATE = """校正以下文字：
{text}"""
