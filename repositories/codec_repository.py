from io import BytesIO
from typing import Tuple
import logging

import numpy as np
from PIL import Image as PILImage

from models.errors import EncodeFailure

logger = logging.getLogger(__name__)

_PIL_FORMATS = {
    "image/jpeg": "JPEG",
    "image/jpg": "JPEG",
    "image/png": "PNG",
    "image/webp": "WEBP",
}


def pil_format_for(mime_type: str) -> str:
    try:
        return _PIL_FORMATS[mime_type.lower()]
    except KeyError:
        raise EncodeFailure(f"Unsupported output format: {mime_type}") from None


def quality_to_int(quality: float) -> int:
    """(0, 1] quality → Pillow's 1..100 scale."""
    return max(1, min(100, int(round(quality * 100))))


class ImageCodec:
    """
    Encodes RGB pixel buffers with Pillow. Quality is ignored for PNG.
    """

    def encode(self, pixels: np.ndarray, mime_type: str, quality: float) -> bytes:
        fmt = pil_format_for(mime_type)
        try:
            pil_image = PILImage.fromarray(np.ascontiguousarray(pixels))
            buffer = BytesIO()
            if fmt == "PNG":
                pil_image.save(buffer, format=fmt, optimize=True)
            else:
                pil_image.save(buffer, format=fmt, quality=quality_to_int(quality))
        except (OSError, ValueError, TypeError) as err:
            raise EncodeFailure(f"{fmt} encode failed: {err}") from err

        data = buffer.getvalue()
        if not data:
            raise EncodeFailure(f"{fmt} encoder produced no data")
        return data

    @staticmethod
    def dimensions(data: bytes) -> Tuple[int, int]:
        """(width, height) of an encoded image."""
        with PILImage.open(BytesIO(data)) as pil_image:
            return pil_image.size
