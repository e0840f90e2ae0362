from __future__ import annotations
import logging
from dataclasses import dataclass
from io import BytesIO

import cv2
import numpy as np
from PIL import Image

from .. import config

logger = logging.getLogger(__name__)

# Rec. 709 luma weights
LUMA_WEIGHTS = np.array([0.2126, 0.7152, 0.0722], dtype=np.float32)

SHARPEN_KERNEL = np.array(
    [[0, -1, 0],
     [-1, 5, -1],
     [0, -1, 0]],
    dtype=np.float32,
)


@dataclass
class EnhancedImage:
    data: bytes
    width: int
    height: int
    media_type: str = "image/png"


def bounded_size(width: int, height: int, max_dim: int) -> tuple[int, int]:
    """Scale (width, height) down so the larger side fits max_dim. Never upscales."""
    scale = min(1.0, max_dim / max(width, height))
    return max(1, round(width * scale)), max(1, round(height * scale))


def to_grayscale(rgb: np.ndarray) -> np.ndarray:
    lum = rgb[..., :3].astype(np.float32) @ LUMA_WEIGHTS
    return np.rint(lum)


def sharpen(gray: np.ndarray) -> np.ndarray:
    """Apply the 3x3 sharpening kernel to interior pixels, leaving the border as is."""
    out = gray.copy()
    if gray.shape[0] < 3 or gray.shape[1] < 3:
        return out
    filtered = cv2.filter2D(gray.astype(np.float32), -1, SHARPEN_KERNEL, borderType=cv2.BORDER_REPLICATE)
    out[1:-1, 1:-1] = np.clip(np.rint(filtered[1:-1, 1:-1]), 0, 255)
    return out


def adjust_contrast(values: np.ndarray, contrast: float, brightness: float) -> np.ndarray:
    """v' = clamp(round((v - 128) * contrast + 128 + brightness), 0, 255)"""
    adjusted = (np.asarray(values, dtype=np.float32) - 128.0) * contrast + 128.0 + brightness
    return np.clip(np.rint(adjusted), 0, 255).astype(np.uint8)


def enhance_image(
    image_bytes: bytes,
    max_dim: int = config.ENHANCE_MAX_DIM,
    contrast: float = config.ENHANCE_CONTRAST,
    brightness: float = config.ENHANCE_BRIGHTNESS,
    final_contrast: float = config.ENHANCE_FINAL_CONTRAST,
    apply_sharpen: bool = config.ENHANCE_SHARPEN,
) -> EnhancedImage:
    """
    Make a user photo more legible for OCR.
    Resize to max_dim, grayscale, sharpen, contrast/brightness, re-encode as PNG.
    Decoding errors propagate; a failing sharpen step degrades to the plain grayscale.
    """
    img = Image.open(BytesIO(image_bytes))
    img.load()
    img = img.convert("RGB")

    size = bounded_size(img.width, img.height, max_dim)
    if size != img.size:
        img = img.resize(size, Image.Resampling.LANCZOS)

    gray = to_grayscale(np.asarray(img))

    if apply_sharpen:
        try:
            gray = sharpen(gray)
        except Exception as e:
            logger.warning("Sharpen step failed, keeping grayscale image: %s", e)

    adjusted = adjust_contrast(gray, contrast, brightness)
    if final_contrast and final_contrast != 1.0:
        # second pass pivots at mid-gray like the first, with no brightness shift
        adjusted = adjust_contrast(adjusted, final_contrast, 0.0)
    out = Image.fromarray(adjusted)

    buf = BytesIO()
    out.save(buf, format="PNG")
    return EnhancedImage(data=buf.getvalue(), width=out.width, height=out.height)
