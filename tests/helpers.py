from pathlib import Path
from typing import Dict, List, Optional

from PIL import Image

from facecrop.crop_math import Rect
from facecrop.detector import Face


class FakeDetector:
    """Returns canned faces keyed by image size."""

    def __init__(self, faces: Optional[List[Face]] = None, by_size: Optional[Dict[tuple, List[Face]]] = None):
        self.faces = faces or []
        self.by_size = by_size or {}
        self.calls = 0

    def detect(self, image: Image.Image) -> List[Face]:
        self.calls += 1
        return list(self.by_size.get(image.size, self.faces))


def face(x: float, y: float, width: float, height: float, confidence: float = 0.9) -> Face:
    return Face(rect=Rect(x, y, width, height), confidence=confidence)


def write_image(path: Path, size=(400, 300), color=(200, 150, 100)) -> Path:
    Image.new("RGB", size, color).save(path)
    return path
