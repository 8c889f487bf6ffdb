from dataclasses import dataclass
from typing import Optional

from PIL import Image


@dataclass(frozen=True)
class PostProcessParams:
    resize: bool = False
    filter_by_size: bool = False
    height: int = 1024
    width: int = 1024


def is_too_small(image: Image.Image, params: PostProcessParams) -> bool:
    return image.width < params.width or image.height < params.height


def post_process(image: Image.Image, params: PostProcessParams) -> Optional[Image.Image]:
    """Drop crops below the target size, then optionally resize to it.

    The size filter looks at the crop as extracted, so a crop that resizing
    would have upscaled to the target is still dropped.
    """
    if params.filter_by_size and is_too_small(image, params):
        return None
    if params.resize:
        return image.resize((params.width, params.height), Image.Resampling.LANCZOS)
    return image.copy()
