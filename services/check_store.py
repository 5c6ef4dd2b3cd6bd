# User value: This file finds each check's image and recorded ground truth so runs can be pointed at any checks directory.
import json
import logging
import os
from pathlib import Path
from typing import Any, Dict

from schemas.recognition import ImageFormat
from services.errors import GroundTruthError

logger = logging.getLogger("check.store")

# Probed in this order; the first existing file wins.
IMAGE_EXTENSIONS = ("tiff", "tif", "png", "jpg", "jpeg", "gif", "bmp")

_FORMAT_BY_EXTENSION = {
    "tif": ImageFormat.TIF,
    "tiff": ImageFormat.TIF,
    "jpg": ImageFormat.JPG,
    "jpeg": ImageFormat.JPG,
    "png": ImageFormat.PNG,
    "gif": ImageFormat.GIF,
    "bmp": ImageFormat.BMP,
}


def image_format(ext: str) -> ImageFormat:
    key = ext.lower().lstrip(".")
    if key not in _FORMAT_BY_EXTENSION:
        raise ValueError(f"Unsupported image extension: {ext}")
    return _FORMAT_BY_EXTENSION[key]


def check_file(checks_dir: str | os.PathLike, check_id: int) -> Path:
    base = Path(checks_dir)
    for ext in IMAGE_EXTENSIONS:
        candidate = base / f"check-{check_id}.{ext}"
        if candidate.exists():
            return candidate
    raise FileNotFoundError(f"No image file found for check ID {check_id} in supported formats.")


def ground_truth_file(image_path: str | os.PathLike) -> Path:
    return Path(image_path).with_suffix(".json")


# User value: fails loudly on a check with no usable X9 record instead of scoring it against nothing.
def load_ground_truth(check_id: int, image_path: str | os.PathLike) -> Dict[str, Any]:
    json_file = ground_truth_file(image_path)
    if not json_file.exists():
        logger.error("ground_truth_missing check_id=%s file=%s", check_id, json_file)
        raise GroundTruthError(check_id, f"file {json_file} does not exist")

    try:
        data = json.loads(json_file.read_text(encoding="utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise GroundTruthError(check_id, f"file {json_file} is not valid JSON: {exc}") from exc

    if not isinstance(data, dict):
        raise GroundTruthError(check_id, f"file {json_file} must hold a JSON object")
    return data
