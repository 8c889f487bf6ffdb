"""Face detection backends.

The cropping core only needs ``detect(image) -> List[Face]``; anything that
provides it can be passed to the pipeline. ``InsightFaceDetector`` is the
default backend used by the CLI and the HTTP service.
"""

import logging
from dataclasses import dataclass
from typing import List, Protocol, Tuple

import numpy as np
from PIL import Image

from facecrop.config import FaceCropConfig
from facecrop.crop_math import Rect

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Face:
    rect: Rect
    confidence: float


class FaceDetector(Protocol):
    def detect(self, image: Image.Image) -> List[Face]:
        """Detect faces in an RGB image, boxes in source pixels."""
        ...


def _available_providers() -> List[str]:
    import onnxruntime as ort

    return ort.get_available_providers()


def _select_providers(allow_cpu_fallback: bool) -> List[str]:
    available = _available_providers()
    providers = [p for p in ["CUDAExecutionProvider", "CPUExecutionProvider"] if p in available]
    if "CUDAExecutionProvider" not in providers and not allow_cpu_fallback:
        raise RuntimeError("CUDAExecutionProvider not available. Set ALLOW_CPU_FALLBACK=1 to continue on CPU.")
    return providers or ["CPUExecutionProvider"]


def _select_ctx_id(providers: List[str]) -> int:
    return 0 if "CUDAExecutionProvider" in providers else -1


def resize_for_detection(image: Image.Image, max_side: int) -> Tuple[Image.Image, float]:
    """Shrink ``image`` so its long side is at most ``max_side``.

    Returns the image to run detection on and the factor that maps its
    coordinates back to the source image.
    """
    if max_side <= 0:
        return image, 1.0
    width, height = image.size
    long_side = max(width, height)
    if long_side <= max_side:
        return image, 1.0
    scale = long_side / max_side
    new_size = (int(round(width / scale)), int(round(height / scale)))
    return image.resize(new_size, Image.Resampling.LANCZOS), scale


def image_to_bgr(image: Image.Image) -> np.ndarray:
    rgb = np.array(image.convert("RGB"))
    return rgb[:, :, ::-1].copy()


def bbox_to_face(bbox: np.ndarray, score: float, scale: float = 1.0) -> Face:
    x1, y1, x2, y2 = (float(v) * scale for v in bbox[:4])
    return Face(rect=Rect(x1, y1, x2 - x1, y2 - y1), confidence=float(score))


class InsightFaceDetector:
    """SCRFD face detection through ``insightface.app.FaceAnalysis``."""

    def __init__(self, config: FaceCropConfig):
        from insightface.app import FaceAnalysis

        providers = _select_providers(config.allow_cpu_fallback)
        self._max_det_side = config.max_det_side
        self._det_thresh = config.det_thresh
        self._app = FaceAnalysis(
            name=config.face_model,
            providers=providers,
            allowed_modules=["detection"],
        )
        self._app.prepare(
            ctx_id=_select_ctx_id(providers),
            det_size=(config.det_size, config.det_size),
            det_thresh=config.det_thresh,
        )
        logger.info("Face detector %s ready (providers=%s)", config.face_model, providers)

    def detect(self, image: Image.Image) -> List[Face]:
        det_image, scale = resize_for_detection(image, self._max_det_side)
        found = self._app.get(image_to_bgr(det_image))
        faces = [
            bbox_to_face(f.bbox, f.det_score, scale)
            for f in found
            if float(f.det_score) >= self._det_thresh
        ]
        logger.debug("Detector returned %d faces (%d above threshold)", len(found), len(faces))
        return faces


def build_face_detector(config: FaceCropConfig) -> FaceDetector:
    return InsightFaceDetector(config)
