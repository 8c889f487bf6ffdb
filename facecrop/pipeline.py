import io
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

from PIL import Image, UnidentifiedImageError

from facecrop.config import (
    CropParams,
    FaceCropConfig,
    build_crop_params,
    build_post_process_params,
)
from facecrop.crop_math import compute_crop, image_rect
from facecrop.detector import Face, FaceDetector
from facecrop.post_processing import PostProcessParams, post_process

logger = logging.getLogger(__name__)

IMAGE_EXTENSIONS = (".png", ".jpg", ".jpeg")


@dataclass
class CropOutput:
    index: int
    image: Image.Image
    confidence: float


@dataclass
class RunSummary:
    images: int = 0
    processed: int = 0
    failed: List[Path] = field(default_factory=list)
    saved: List[Path] = field(default_factory=list)


def crop_faces(
    image: Image.Image,
    faces: Sequence[Face],
    params: CropParams,
) -> Optional[List[CropOutput]]:
    """Crop every face out of ``image``.

    Returns None when there are no faces. Faces whose crop ends up with no
    pixels after clamping to the image are left out; the remaining outputs
    keep the face's index in ``faces``.
    """
    if not faces:
        return None

    bounds = image_rect(image.size)
    outputs = []
    for index, face in enumerate(faces):
        crop = compute_crop(face.rect, bounds, params)
        box = crop.to_box()
        if box[2] <= box[0] or box[3] <= box[1]:
            logger.warning("Crop for face %d lies outside the image. Skipping", index)
            continue
        logger.debug("Face %d: rect=%s crop=%s", index, face.rect, box)
        outputs.append(CropOutput(index=index, image=image.crop(box), confidence=face.confidence))
    return outputs


def output_name(stem: str, index: int, confidence: float) -> str:
    return f"{stem}-{index}-{confidence:.3f}.jpg"


def collect_image_paths(path: Path) -> List[Path]:
    if not path.exists():
        raise FileNotFoundError(f"Input path does not exist: {path}")
    if path.is_file():
        logger.info("Received file %s", path)
        return [path]
    logger.info("Received directory %s", path)
    paths = []
    for entry in sorted(path.iterdir()):
        if entry.is_file() and entry.suffix.lower() in IMAGE_EXTENSIONS:
            logger.debug("Found image %s", entry)
            paths.append(entry)
    return paths


def prepare_output_dir(path: Path) -> Path:
    if path.exists() and not path.is_dir():
        raise NotADirectoryError(f"Output path is not a directory: {path}")
    path.mkdir(parents=True, exist_ok=True)
    return path


def read_image(path: Path) -> Image.Image:
    try:
        with Image.open(path) as image:
            return image.convert("RGB")
    except UnidentifiedImageError as exc:
        raise ValueError(f"Invalid image: {path}") from exc


def post_process_crops(
    crops: Sequence[CropOutput],
    post_params: PostProcessParams,
    image_name: str,
) -> List[CropOutput]:
    kept = []
    for crop in crops:
        result = post_process(crop.image, post_params)
        if result is None:
            logger.warning(
                "Crop %d of %s is too small (%dx%d). Skipping",
                crop.index,
                image_name,
                crop.image.width,
                crop.image.height,
            )
            continue
        kept.append(CropOutput(index=crop.index, image=result, confidence=crop.confidence))
    return kept


def process_faces(
    image: Image.Image,
    faces: Sequence[Face],
    crop_params: CropParams,
    post_params: PostProcessParams,
    output_dir: Path,
    image_name: str,
    jpeg_quality: int = 95,
) -> List[Path]:
    crops = crop_faces(image, faces, crop_params)
    if crops is None:
        logger.warning("No faces found in image %s. Skipping", image_name)
        return []

    saved = []
    for crop in post_process_crops(crops, post_params, image_name):
        output_path = output_dir / output_name(image_name, crop.index, crop.confidence)
        crop.image.save(output_path, format="JPEG", quality=jpeg_quality)
        logger.info("Saved face %d in image %s to %s", crop.index, image_name, output_path)
        saved.append(output_path)
    return saved


def process_image_file(
    path: Path,
    detector: FaceDetector,
    crop_params: CropParams,
    post_params: PostProcessParams,
    output_dir: Path,
    jpeg_quality: int = 95,
) -> List[Path]:
    image = read_image(path)
    faces = detector.detect(image)
    logger.debug("Detected %d faces in %s", len(faces), path)
    return process_faces(image, faces, crop_params, post_params, output_dir, path.stem, jpeg_quality)


def run(
    paths: Sequence[Path],
    output_dir: Path,
    detector: FaceDetector,
    config: FaceCropConfig,
) -> RunSummary:
    """Process ``paths`` one after another.

    With ``on_error="abort"`` the first failing image stops the run and its
    exception propagates. With ``"skip"`` the failure is logged and recorded
    in the summary.
    """
    crop_params = build_crop_params(config)
    post_params = build_post_process_params(config)
    summary = RunSummary(images=len(paths))
    for path in paths:
        try:
            saved = process_image_file(
                path, detector, crop_params, post_params, output_dir, config.jpeg_quality
            )
        except Exception:
            if config.on_error == "abort":
                raise
            logger.exception("Failed to process %s. Skipping", path)
            summary.failed.append(path)
            continue
        summary.processed += 1
        summary.saved.extend(saved)
    return summary


def process_bytes(
    image_bytes: bytes,
    detector: FaceDetector,
    config: FaceCropConfig,
    image_name: str = "image",
) -> List[Tuple[str, bytes]]:
    """In-memory variant of ``process_image_file``; returns (file name, JPEG bytes) pairs."""
    crop_params = build_crop_params(config)
    post_params = build_post_process_params(config)
    try:
        image = Image.open(io.BytesIO(image_bytes)).convert("RGB")
    except UnidentifiedImageError as exc:
        raise ValueError("Invalid image") from exc

    crops = crop_faces(image, detector.detect(image), crop_params)
    if crops is None:
        raise ValueError("No face detected")

    results = []
    for crop in post_process_crops(crops, post_params, image_name):
        output = io.BytesIO()
        crop.image.save(output, format="JPEG", quality=config.jpeg_quality)
        results.append((output_name(image_name, crop.index, crop.confidence), output.getvalue()))
    return results
