from dataclasses import dataclass
from typing import Tuple

from facecrop.config import AbsoluteCrop, CropParams


@dataclass(frozen=True)
class Rect:
    x: float
    y: float
    width: float
    height: float

    @property
    def right(self) -> float:
        return self.x + self.width

    @property
    def bottom(self) -> float:
        return self.y + self.height

    @property
    def is_empty(self) -> bool:
        return self.width <= 0 or self.height <= 0

    def intersection(self, other: "Rect") -> "Rect":
        left = max(self.x, other.x)
        top = max(self.y, other.y)
        right = min(self.right, other.right)
        bottom = min(self.bottom, other.bottom)
        if right <= left or bottom <= top:
            # no overlap: zero-area rect pinned inside other
            left = min(max(left, other.x), other.right)
            top = min(max(top, other.y), other.bottom)
            return Rect(left, top, 0.0, 0.0)
        return Rect(left, top, right - left, bottom - top)

    def to_box(self) -> Tuple[int, int, int, int]:
        """Pillow (left, top, right, bottom) box, each component truncated toward zero."""
        left, top = int(self.x), int(self.y)
        return left, top, left + int(self.width), top + int(self.height)


def crop_dimensions(face: Rect, params: CropParams) -> Tuple[float, float]:
    """Return (crop_height, crop_width) before clamping."""
    kind = params.kind
    if isinstance(kind, AbsoluteCrop):
        return float(kind.height), float(kind.width)
    crop_height = face.height / kind.proportion_of_face
    crop_width = crop_height * kind.aspect_ratio
    return crop_height, crop_width


def crop_position(
    face: Rect,
    crop_height: float,
    crop_width: float,
    top_padding: float,
) -> Tuple[float, float]:
    crop_x = face.x + face.width / 2.0 - crop_width / 2.0
    crop_y = face.y - crop_height * top_padding
    return crop_x, crop_y


def compute_crop(face: Rect, image_bounds: Rect, params: CropParams) -> Rect:
    crop_height, crop_width = crop_dimensions(face, params)
    crop_x, crop_y = crop_position(face, crop_height, crop_width, params.top_padding)
    return Rect(crop_x, crop_y, crop_width, crop_height).intersection(image_bounds)


def image_rect(image_size: Tuple[int, int]) -> Rect:
    width, height = image_size
    return Rect(0.0, 0.0, float(width), float(height))
