"""Image decoding and quality utilities.

Shared by vendor adapters (to estimate capture conditions when a vendor
does not report them) and by the API layer (to reject uploads that are
not images before any vendor quota is spent).
"""
import io
from pathlib import Path
from typing import Literal

import cv2
import numpy as np
import structlog
from PIL import Image, UnidentifiedImageError

from ..providers.base import DetectionConditions

logger = structlog.get_logger()

# Canonical list of supported upload formats - use this everywhere
SUPPORTED_FORMATS = {".jpg", ".jpeg", ".png", ".webp", ".gif", ".bmp", ".tiff", ".tif"}

# PIL format name -> extension
PIL_FORMAT_EXTENSIONS = {
    "JPEG": ".jpg",
    "PNG": ".png",
    "WEBP": ".webp",
    "GIF": ".gif",
    "BMP": ".bmp",
    "TIFF": ".tiff",
}

# Laplacian variance below this is blurry - tuned empirically, lower = more blur
DEFAULT_BLUR_THRESHOLD = 100.0

# Mean grayscale brightness bounds for "good" lighting
DARK_BRIGHTNESS = 60.0
BRIGHT_BRIGHTNESS = 200.0


def is_supported_format(filename: str) -> bool:
    """Check if file extension is supported."""
    return Path(filename).suffix.lower() in SUPPORTED_FORMATS


def sniff_image_format(data: bytes) -> str:
    """Identify image bytes with Pillow.

    Returns:
        Extension for the detected format (e.g. ".jpg").

    Raises:
        ValueError: If the bytes are not a supported image.
    """
    if not data:
        raise ValueError("Image payload is empty")
    try:
        with Image.open(io.BytesIO(data)) as img:
            img.verify()
            fmt = img.format
    except (UnidentifiedImageError, OSError) as e:
        raise ValueError(f"Not a readable image: {e}") from e

    ext = PIL_FORMAT_EXTENSIONS.get(fmt or "")
    if ext is None:
        raise ValueError(f"Unsupported format: {fmt}")
    return ext


def decode_image(
    data: bytes,
    mode: Literal["color", "grayscale"] = "color",
) -> np.ndarray | None:
    """Decode image bytes with OpenCV.

    Returns:
        numpy array of image data, or None if decoding failed.
    """
    buffer = np.frombuffer(data, dtype=np.uint8)
    if buffer.size == 0:
        return None
    flag = cv2.IMREAD_COLOR if mode == "color" else cv2.IMREAD_GRAYSCALE
    return cv2.imdecode(buffer, flag)


def compute_laplacian_variance(gray: np.ndarray) -> float:
    """Laplacian variance of a grayscale image (higher = sharper)."""
    laplacian = cv2.Laplacian(gray, cv2.CV_64F)
    return float(laplacian.var())


def assess_image_quality(
    data: bytes,
    blur_threshold: float = DEFAULT_BLUR_THRESHOLD,
) -> DetectionConditions:
    """Estimate capture conditions from the raw image.

    Quality comes from sharpness (Laplacian variance): below the blur
    threshold is "poor", below twice the threshold is "medium". Lighting
    comes from mean brightness. Angle cannot be judged without a face
    model and is reported as "unknown".
    """
    gray = decode_image(data, mode="grayscale")
    if gray is None:
        logger.warning("image_quality_decode_failed", size=len(data))
        return DetectionConditions(lighting="unknown", angle="unknown", quality="poor")

    variance = compute_laplacian_variance(gray)
    if variance < blur_threshold:
        quality = "poor"
    elif variance < blur_threshold * 2:
        quality = "medium"
    else:
        quality = "high"

    brightness = float(gray.mean())
    if brightness < DARK_BRIGHTNESS:
        lighting = "dim"
    elif brightness > BRIGHT_BRIGHTNESS:
        lighting = "overexposed"
    else:
        lighting = "good"

    logger.debug(
        "image_quality_assessed",
        variance=variance,
        brightness=brightness,
        quality=quality,
    )
    return DetectionConditions(lighting=lighting, angle="unknown", quality=quality)
