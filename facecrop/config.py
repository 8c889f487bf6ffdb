import math
import os
from dataclasses import dataclass
from typing import Union

from facecrop.post_processing import PostProcessParams

STRATEGIES = ("absolute", "relative")
ERROR_POLICIES = ("abort", "skip")


class ConfigError(ValueError):
    pass


@dataclass(frozen=True)
class AbsoluteCrop:
    height: int
    width: int


@dataclass(frozen=True)
class RelativeCrop:
    aspect_ratio: float
    proportion_of_face: float


@dataclass(frozen=True)
class CropParams:
    top_padding: float
    kind: Union[AbsoluteCrop, RelativeCrop]


@dataclass
class FaceCropConfig:
    strategy: str = "relative"
    aspect_ratio: float = 1.0
    top_padding: float = 0.1
    proportion_of_face: float = 0.3
    height: int = 1024
    width: int = 1024
    resize: bool = False
    filter_by_size: bool = False
    on_error: str = "abort"
    face_model: str = "buffalo_l"
    det_size: int = 640
    det_thresh: float = 0.5
    max_det_side: int = 1600
    allow_cpu_fallback: bool = False
    jpeg_quality: int = 95


def _env_float(name: str, default: str) -> float:
    value = os.getenv(name, default)
    try:
        return float(value)
    except ValueError:
        raise ConfigError(f"{name} must be a number, got {value!r}") from None


def _env_int(name: str, default: str) -> int:
    value = os.getenv(name, default)
    try:
        return int(value)
    except ValueError:
        raise ConfigError(f"{name} must be an integer, got {value!r}") from None


def load_config() -> FaceCropConfig:
    return FaceCropConfig(
        strategy=os.getenv("FACECROP_STRATEGY", "relative"),
        aspect_ratio=_env_float("FACECROP_ASPECT_RATIO", "1.0"),
        top_padding=_env_float("FACECROP_TOP_PADDING", "0.1"),
        proportion_of_face=_env_float("FACECROP_PROPORTION_OF_FACE", "0.3"),
        height=_env_int("FACECROP_HEIGHT", "1024"),
        width=_env_int("FACECROP_WIDTH", "1024"),
        resize=os.getenv("FACECROP_RESIZE", "0") == "1",
        filter_by_size=os.getenv("FACECROP_FILTER_BY_SIZE", "0") == "1",
        on_error=os.getenv("FACECROP_ON_ERROR", "abort"),
        face_model=os.getenv("FACE_MODEL", "buffalo_l"),
        det_size=_env_int("DET_SIZE", "640"),
        det_thresh=_env_float("DET_THRESH", "0.5"),
        max_det_side=_env_int("MAX_DET_SIDE", "1600"),
        allow_cpu_fallback=os.getenv("ALLOW_CPU_FALLBACK", "0") == "1",
        jpeg_quality=_env_int("JPEG_QUALITY", "95"),
    )


def validate_config(config: FaceCropConfig) -> None:
    """Raise ConfigError on the first out-of-range setting."""
    if config.strategy not in STRATEGIES:
        raise ConfigError(f"Strategy must be one of {', '.join(STRATEGIES)}, got {config.strategy!r}")
    if config.on_error not in ERROR_POLICIES:
        raise ConfigError(f"On-error policy must be one of {', '.join(ERROR_POLICIES)}, got {config.on_error!r}")
    if not 0.0 <= config.top_padding <= 1.0:
        raise ConfigError("Top padding must be between 0.0 and 1.0")
    if config.strategy == "relative":
        if not (math.isfinite(config.aspect_ratio) and config.aspect_ratio > 0.0):
            raise ConfigError("Aspect ratio must be a finite number greater than 0")
        if not 0.0 < config.proportion_of_face <= 1.0:
            raise ConfigError("Proportion of face must be greater than 0.0 and at most 1.0")
    needs_size = config.strategy == "absolute" or config.resize or config.filter_by_size
    if needs_size and (config.height <= 0 or config.width <= 0):
        raise ConfigError("Height and width must be positive")
    if not 1 <= config.jpeg_quality <= 100:
        raise ConfigError("JPEG quality must be between 1 and 100")


def build_crop_params(config: FaceCropConfig) -> CropParams:
    validate_config(config)
    if config.strategy == "absolute":
        kind: Union[AbsoluteCrop, RelativeCrop] = AbsoluteCrop(height=config.height, width=config.width)
    else:
        kind = RelativeCrop(
            aspect_ratio=config.aspect_ratio,
            proportion_of_face=config.proportion_of_face,
        )
    return CropParams(top_padding=config.top_padding, kind=kind)


def build_post_process_params(config: FaceCropConfig) -> PostProcessParams:
    validate_config(config)
    return PostProcessParams(
        resize=config.resize,
        filter_by_size=config.filter_by_size,
        height=config.height,
        width=config.width,
    )
