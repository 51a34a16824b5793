"""Registry of speech recognition models and their per-model tuning data."""

from dataclasses import dataclass
from enum import Enum
from typing import Iterator, Optional

from .config import BYTES_PER_GB, RECOMMENDED_LARGE_MODEL_RAM_GB
from .logging_utils import get_logger

logger = get_logger(__name__)


class LanguageStyle(str, Enum):
    """Which written form of Chinese a model tends to produce."""

    WRITTEN_CHINESE = "written_chinese"  # 那個, 他們, 不是
    SPOKEN_CANTONESE = "spoken_cantonese"  # 嗰個, 佢哋, 唔係


@dataclass(frozen=True)
class ASRModelSpec:
    """Static description of one recognition model.

    whisper_model is what faster-whisper loads: a size name, a CTranslate2
    repo on the Hugging Face hub, or a local directory. quality_scale scales
    the edit budget of the correction drift guard; better models get a
    smaller budget.
    """

    model_id: str
    display_name: str
    whisper_model: str
    source_repo: Optional[str] = None
    quality_scale: float = 1.0
    phantom_phrases: tuple[str, ...] = ()
    noise_marker: Optional[str] = None
    minimum_ram_gb: int = 8
    language_style: LanguageStyle = LanguageStyle.WRITTEN_CHINESE

    @property
    def is_custom(self) -> bool:
        """Community fine-tunes rather than OpenAI checkpoints."""
        return self.source_repo is not None and not self.source_repo.startswith("openai/")

    @property
    def huggingface_url(self) -> Optional[str]:
        if not self.source_repo:
            return None
        return f"https://huggingface.co/{self.source_repo}"


class ModelRegistry:
    """Lookup table of recognition models keyed by model_id."""

    def __init__(self, specs: Optional[list[ASRModelSpec]] = None) -> None:
        self._models: dict[str, ASRModelSpec] = {}
        for spec in specs or []:
            self.register(spec)

    def register(self, spec: ASRModelSpec) -> None:
        if spec.model_id in self._models:
            logger.debug(f"Replacing registered model {spec.model_id}")
        self._models[spec.model_id] = spec

    def __contains__(self, model_id: object) -> bool:
        return model_id in self._models

    def __iter__(self) -> Iterator[ASRModelSpec]:
        return iter(self._models.values())

    def __len__(self) -> int:
        return len(self._models)

    def models(self, language_style: Optional[LanguageStyle] = None) -> list[ASRModelSpec]:
        """List registered models, optionally only those of one language style."""
        return [
            spec
            for spec in self._models.values()
            if language_style is None or spec.language_style == language_style
        ]

    def get(self, model_id: str) -> ASRModelSpec:
        """
        Look up a model by id.

        Unknown ids (for example a local CTranslate2 directory) resolve to a
        neutral spec: quality scale 1.0 and no phantom phrases.

        Args:
            model_id: Registry id, faster-whisper size name or model path

        Returns:
            The registered spec or a neutral spec for the id
        """
        spec = self._models.get(model_id)
        if spec is not None:
            return spec
        logger.debug(f"Model {model_id} not registered, using neutral settings")
        return ASRModelSpec(model_id=model_id, display_name=model_id, whisper_model=model_id)

    def recommended(self, ram_gb: float) -> ASRModelSpec:
        """Pick the Cantonese model that fits the given amount of RAM."""
        if ram_gb < RECOMMENDED_LARGE_MODEL_RAM_GB:
            return self.get("cantonese-small")
        return self.get("cantonese-large-v3-turbo")


# Phrases these models emit on silence, learned from subtitle training data
_CANTONESE_SMALL_PHANTOMS = ("I'm going to make a hole in the middle of the box.",)
_CANTONESE_TURBO_PHANTOMS = (
    "这种",
    "优优独播剧场——YoYo Television Series Exclusive",
    "这些",
    "这些人",
    "在这",
    "在北",
)

DEFAULT_MODELS = [
    ASRModelSpec(
        model_id="small",
        display_name="Small (~500 MB)",
        whisper_model="small",
        source_repo="openai/whisper-small",
        quality_scale=1.0,
        minimum_ram_gb=8,
    ),
    ASRModelSpec(
        model_id="medium",
        display_name="Medium (~1.5 GB)",
        whisper_model="medium",
        source_repo="openai/whisper-medium",
        quality_scale=0.85,
        minimum_ram_gb=16,
    ),
    ASRModelSpec(
        model_id="large-v3",
        display_name="Large V3 (~3 GB)",
        whisper_model="large-v3",
        source_repo="openai/whisper-large-v3",
        quality_scale=0.7,
        minimum_ram_gb=16,
    ),
    # Community Cantonese fine-tunes; faster-whisper needs a CTranslate2
    # conversion of these repos (ct2-transformers-converter)
    ASRModelSpec(
        model_id="cantonese-small",
        display_name="Cantonese Small (~500 MB)",
        whisper_model="alvanlii/distil-whisper-small-cantonese",
        source_repo="alvanlii/distil-whisper-small-cantonese",
        quality_scale=1.0,
        phantom_phrases=_CANTONESE_SMALL_PHANTOMS,
        minimum_ram_gb=8,
        language_style=LanguageStyle.SPOKEN_CANTONESE,
    ),
    ASRModelSpec(
        model_id="cantonese-large-v3-turbo",
        display_name="Cantonese Large V3 Turbo (~1.5 GB)",
        whisper_model="JackyHoCL/whisper-large-v3-turbo-cantonese-yue-english",
        source_repo="JackyHoCL/whisper-large-v3-turbo-cantonese-yue-english",
        quality_scale=0.7,
        phantom_phrases=_CANTONESE_TURBO_PHANTOMS,
        minimum_ram_gb=16,
        language_style=LanguageStyle.SPOKEN_CANTONESE,
    ),
]


def default_registry() -> ModelRegistry:
    """Build a fresh registry holding the bundled model table."""
    return ModelRegistry(DEFAULT_MODELS)


def detect_ram_gb() -> float:
    """Total physical memory in GB, 0.0 if it cannot be determined."""
    import psutil

    try:
        return psutil.virtual_memory().total / BYTES_PER_GB
    except (OSError, RuntimeError) as e:
        logger.debug(f"Could not read system memory: {e}")
        return 0.0


def recommended_model(
    registry: Optional[ModelRegistry] = None, ram_gb: Optional[float] = None
) -> ASRModelSpec:
    """Recommend a model for this machine's RAM, detected when ram_gb is None."""
    if registry is None:
        registry = default_registry()
    if ram_gb is None:
        ram_gb = detect_ram_gb()
    spec = registry.recommended(ram_gb)
    logger.debug(f"Detected {ram_gb:.1f}GB RAM, recommending {spec.model_id}")
    return spec
