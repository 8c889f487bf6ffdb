import asyncio
import io
import os
import zipfile
from pathlib import Path
from typing import List, Tuple

from fastapi import FastAPI, File, HTTPException, UploadFile
from fastapi.responses import Response

from facecrop.config import FaceCropConfig, load_config, validate_config
from facecrop.detector import FaceDetector, build_face_detector
from facecrop.pipeline import process_bytes

app = FastAPI()

_config: FaceCropConfig | None = None
_detector: FaceDetector | None = None
_semaphore: asyncio.Semaphore | None = None


@app.on_event("startup")
def startup() -> None:
    global _config, _detector, _semaphore
    os.environ.setdefault("CUDA_VISIBLE_DEVICES", "0")
    _config = load_config()
    validate_config(_config)
    _detector = build_face_detector(_config)
    max_concurrent = int(os.getenv("MAX_CONCURRENT", "4"))
    if max_concurrent < 1:
        max_concurrent = 1
    _semaphore = asyncio.Semaphore(max_concurrent)


def _zip_crops(crops: List[Tuple[str, bytes]]) -> bytes:
    output = io.BytesIO()
    with zipfile.ZipFile(output, "w") as archive:
        for name, data in crops:
            archive.writestr(name, data)
    return output.getvalue()


@app.get("/health")
def health() -> dict:
    return {"status": "ok"}


@app.post("/crop")
async def crop_image(file: UploadFile = File(...)) -> Response:
    if _config is None or _detector is None or _semaphore is None:
        raise HTTPException(status_code=500, detail="Service not initialized")
    stem = Path(file.filename or "image").stem
    try:
        async with _semaphore:
            content = await file.read()
            crops = process_bytes(content, _detector, _config, image_name=stem)
        if not crops:
            raise ValueError("No crops produced")
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except Exception as exc:
        raise HTTPException(status_code=500, detail="Processing failed") from exc
    return Response(content=_zip_crops(crops), media_type="application/zip")
