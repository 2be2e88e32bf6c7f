"""Image processing utilities for satwatch.

Shared image decoding and OCR preprocessing used by the capture and OCR
modules. Screenshots travel through the pipeline as PNG bytes.
"""

from __future__ import annotations

import logging

import cv2
import numpy as np
from PIL import Image

logger = logging.getLogger(__name__)


def decode_png(data: bytes) -> np.ndarray:
    """Decode PNG (or any OpenCV-readable) bytes to a BGR numpy array."""
    buffer = np.frombuffer(data, dtype=np.uint8)
    image = cv2.imdecode(buffer, cv2.IMREAD_COLOR)
    if image is None:
        raise ValueError("Failed to decode image data")
    return image


def encode_png(image: np.ndarray) -> bytes:
    """Encode a numpy image array to PNG bytes."""
    success, buffer = cv2.imencode(".png", image)
    if not success:
        raise ValueError("Failed to encode image to PNG")
    return buffer.tobytes()


def numpy_to_pil(image: np.ndarray) -> Image.Image:
    """Convert a numpy image array (BGR or grayscale) to a PIL Image."""
    if image.ndim == 2:
        return Image.fromarray(image)
    rgb = cv2.cvtColor(image, cv2.COLOR_BGR2RGB)
    return Image.fromarray(rgb)


def enhance_for_ocr(image: np.ndarray) -> np.ndarray:
    """Binarize a screenshot into black text on a white background.

    Works for both light and dark UI themes: the result is inverted when
    most pixels come out dark.
    """
    gray = cv2.cvtColor(image, cv2.COLOR_BGR2GRAY) if image.ndim == 3 else image

    # CLAHE for local contrast, then Otsu for the text mask
    clahe = cv2.createCLAHE(clipLimit=3.0, tileGridSize=(8, 8))
    enhanced = clahe.apply(gray)
    _, binary = cv2.threshold(enhanced, 0, 255, cv2.THRESH_BINARY + cv2.THRESH_OTSU)

    white_ratio = np.mean(binary) / 255.0
    if white_ratio < 0.5:
        binary = cv2.bitwise_not(binary)
    return binary


def resize_for_ocr(image: np.ndarray, min_width: int = 1600) -> np.ndarray:
    """Upscale narrow captures so glyphs are large enough for tesseract."""
    h, w = image.shape[:2]
    if w >= min_width:
        return image
    scale = min_width / w
    new_w = int(w * scale)
    new_h = int(h * scale)
    return cv2.resize(image, (new_w, new_h), interpolation=cv2.INTER_CUBIC)


def prepare_for_ocr(data: bytes, enhance: bool = True) -> Image.Image:
    """Decode screenshot bytes into a PIL image ready for recognition."""
    image = decode_png(data)
    if enhance:
        image = enhance_for_ocr(resize_for_ocr(image))
    return numpy_to_pil(image)
