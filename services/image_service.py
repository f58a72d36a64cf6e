from pathlib import Path
from typing import List, Tuple, Union
import logging
import os

import numpy as np
from dotenv import load_dotenv

from models.crop_region import CropRegion
from models.errors import InvalidCropRegion, MediaTooLarge, UnsupportedMediaType
from models.image import Image
from models.pending_media import MediaKind
from repositories.image_repository import ImageRepository

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)


class ImageService:
    """Boundary validation and decoding.  No drawing logic here."""

    def __init__(self):
        self.MAX_UPLOAD_BYTES = int(float(os.getenv("MAX_UPLOAD_SIZE_MB", "10")) * 1024 * 1024)
        self.MIN_WIDTH = int(os.getenv("MIN_IMAGE_WIDTH", "500"))
        self.MIN_HEIGHT = int(os.getenv("MIN_IMAGE_HEIGHT", "600"))
        self.image_repository = ImageRepository()

    def validate_upload(self, byte_size: int, mime_type: str) -> MediaKind:
        """
        Enforce the accepted mime prefixes and the maximum input size.

        Returns:
            MediaKind: IMAGE for image/*, VIDEO for video/*.
        """
        mime_type = (mime_type or "").lower()
        if not (mime_type.startswith("image/") or mime_type.startswith("video/")):
            raise UnsupportedMediaType(
                f"Only image or video files are allowed, got '{mime_type or 'unknown'}'"
            )
        if byte_size > self.MAX_UPLOAD_BYTES:
            raise MediaTooLarge(
                f"File is too large ({byte_size} bytes). "
                f"Maximum is {self.MAX_UPLOAD_BYTES // (1024 * 1024)}MB."
            )
        return MediaKind.from_mime_type(mime_type)

    def decode(self, data: bytes, mime_type: str = "image/jpeg",
               path: Union[str, Path] = None) -> Image:
        return self.image_repository.decode(data, mime_type=mime_type, path=path)

    def load(self, path: str | Path) -> Image:
        """Load a single image from disk into an Image object."""
        return self.image_repository.load(path)

    def get_image_dimensions(self, img: Image):
        return self.image_repository.retrieve_image_dimensions(img)

    @staticmethod
    def validate_crop(img: Image, crop: CropRegion) -> None:
        """
        Raise InvalidCropRegion unless the crop lies fully inside the image.
        Out-of-bounds crops are a caller error; they are never clipped.
        """
        if crop.width <= 0 or crop.height <= 0:
            raise InvalidCropRegion(
                f"Crop size must be positive, got {crop.width}x{crop.height}"
            )
        if not crop.contained_in(img.width, img.height):
            raise InvalidCropRegion(
                f"Crop ({crop.x},{crop.y},{crop.width}x{crop.height}) exceeds "
                f"source bounds {img.width}x{img.height}"
            )

    def crop_pixels(self, img: Image, crop: CropRegion) -> np.ndarray:
        self.validate_crop(img, crop)
        return img.pixels[crop.y:crop.bottom, crop.x:crop.right].copy()

    def validate_image_dimensions(self, width: int, height: int,
                                  min_width: int = None,
                                  min_height: int = None) -> Tuple[bool, List[str]]:
        """
        Advisory check against the recommended minimum size.

        Returns:
            (is_valid, warnings) – one warning per dimension below the minimum.
        """
        min_width = min_width or self.MIN_WIDTH
        min_height = min_height or self.MIN_HEIGHT
        warnings: List[str] = []

        if width < min_width:
            warnings.append(f"Width ({width}px) is below the recommended {min_width}px")
        if height < min_height:
            warnings.append(f"Height ({height}px) is below the recommended {min_height}px")

        return not warnings, warnings
