from pathlib import Path
from typing import Union, Tuple
from io import BytesIO
import logging
import os

import numpy as np
import cv2
from PIL import Image as PILImage, ImageOps, UnidentifiedImageError
from dotenv import load_dotenv

from models.image import Image

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)


class ImageRepository:
    """
    Turns encoded bytes / files into Image entities.
    OpenCV is the primary decoder; Pillow is the fallback for formats or
    files OpenCV refuses (and for EXIF-rotated JPEGs).
    """

    @staticmethod
    def create_image(pixels: np.ndarray, path: Union[str, Path] = None,
                     mime_type: str = "image/jpeg", byte_size: int = 0) -> Image:
        return Image(
            pixels=pixels,
            path=Path(path) if path is not None else None,
            mime_type=mime_type,
            byte_size=byte_size,
        )

    @staticmethod
    def retrieve_image_dimensions(img: Image) -> Tuple[int, int]:
        return img.pixels.shape[:2]

    def decode(self, data: bytes, mime_type: str = "image/jpeg",
               path: Union[str, Path] = None) -> Image:
        """Decode raw bytes to an RGB Image, trying OpenCV then Pillow."""
        if not data:
            raise ValueError("Cannot decode an empty image payload")

        pixels = self._decode_cv2(data)
        if pixels is None:
            logger.info("OpenCV could not decode %s, falling back to Pillow", path or mime_type)
            pixels = self._decode_pil(data)

        return self.create_image(pixels, path, mime_type=mime_type, byte_size=len(data))

    def load(self, path: Union[str, Path]) -> Image:
        path = Path(path)
        if not path.is_file():
            raise FileNotFoundError(f"Image not found or unreadable: {path}")
        data = path.read_bytes()
        return self.decode(data, mime_type=guess_mime_type(path), path=path)

    @staticmethod
    def _decode_cv2(data: bytes) -> np.ndarray | None:
        buf = np.frombuffer(data, dtype=np.uint8)
        arr_bgr = cv2.imdecode(buf, cv2.IMREAD_COLOR)
        if arr_bgr is None:
            return None
        return np.ascontiguousarray(arr_bgr[:, :, ::-1])

    @staticmethod
    def _decode_pil(data: bytes) -> np.ndarray:
        try:
            with PILImage.open(BytesIO(data)) as pil_img:
                pil_img = ImageOps.exif_transpose(pil_img)
                return np.asarray(pil_img.convert("RGB")).copy()
        except (UnidentifiedImageError, OSError) as err:
            raise ValueError(f"Unreadable image data: {err}") from err


_MIME_BY_EXT = {
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".webp": "image/webp",
    ".gif": "image/gif",
    ".bmp": "image/bmp",
    ".mp4": "video/mp4",
    ".webm": "video/webm",
    ".mov": "video/quicktime",
}


def guess_mime_type(path: Union[str, Path]) -> str:
    return _MIME_BY_EXT.get(Path(path).suffix.lower(), "application/octet-stream")


def extension_for(mime_type: str) -> str:
    for ext, mime in _MIME_BY_EXT.items():
        if mime == mime_type and ext != ".jpeg":
            return ext
    return os.getenv("OUTPUT_IMG_EXT", ".jpg")
