from __future__ import annotations

import io
import logging
from pathlib import Path

from PIL import Image

PNG_SIGNATURE = b"\x89PNG\r\n\x1a\n"
JPEG_SIGNATURE = b"\xff\xd8\xff"

_logger = logging.getLogger(__name__)


def compress_image(path: Path, max_width: int = 1920, quality: int = 80, enabled: bool = True) -> bytes:
    """Return upload bytes for a screenshot.

    Images wider than ``max_width`` are scaled down to exactly that width with
    the aspect ratio kept; narrower ones are only re-encoded. Output is JPEG at
    ``quality``. Any failure falls back to the original file bytes.
    """
    if not enabled:
        return path.read_bytes()

    try:
        with Image.open(path) as image:
            width, height = image.size
            if width > max_width:
                new_height = max(1, round(height * max_width / width))
                image = image.resize((max_width, new_height), Image.Resampling.LANCZOS)
            if image.mode != "RGB":
                image = image.convert("RGB")
            buffer = io.BytesIO()
            image.save(buffer, format="JPEG", quality=quality, optimize=True)
            return buffer.getvalue()
    except Exception as exc:
        _logger.warning("Image compression failed for %s, sending original: %s", path, exc)
        return path.read_bytes()


def sniff_mime(data: bytes) -> str:
    if data.startswith(JPEG_SIGNATURE):
        return "image/jpeg"
    if data.startswith(PNG_SIGNATURE):
        return "image/png"
    # Captures are saved as PNG.
    return "image/png"
