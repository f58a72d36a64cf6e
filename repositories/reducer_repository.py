from io import BytesIO
import logging
import os

from PIL import Image as PILImage
from dotenv import load_dotenv

from repositories.codec_repository import pil_format_for, quality_to_int

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)


class ImageReducer:
    """
    General purpose size/quality reducer for already-encoded images.

    Downscales so the longer side fits `max_dimension`, then re-encodes with
    decreasing quality (and, at the quality floor, decreasing size) until the
    byte budget is met or the iteration cap is hit. Always returns the
    smallest candidate it produced.
    """

    def __init__(self, min_quality: float = None, max_iterations: int = None,
                 step: float = 0.9):
        self.min_quality = min_quality or float(os.getenv("MIN_REDUCER_QUALITY", "0.3"))
        self.max_iterations = max_iterations or int(os.getenv("REDUCER_MAX_ITERATIONS", "10"))
        self.step = step

    def reduce(self, data: bytes, max_bytes: int, max_dimension: int,
               quality: float, mime_type: str = "image/jpeg") -> bytes:
        fmt = pil_format_for(mime_type)
        with PILImage.open(BytesIO(data)) as opened:
            img = opened.convert("RGB")

        if max(img.size) > max_dimension:
            img.thumbnail((max_dimension, max_dimension), PILImage.Resampling.LANCZOS)

        best = self._encode(img, fmt, quality)
        iteration = 1
        while len(best) > max_bytes and iteration < self.max_iterations:
            # Quality is ignored by the PNG encoder, so only the size can shrink.
            if fmt != "PNG" and quality * self.step >= self.min_quality:
                quality *= self.step
            else:
                new_size = (max(1, int(img.width * self.step)), max(1, int(img.height * self.step)))
                img = img.resize(new_size, PILImage.Resampling.LANCZOS)
            candidate = self._encode(img, fmt, quality)
            if len(candidate) < len(best):
                best = candidate
            iteration += 1

        logger.debug("Reducer finished after %d iteration(s): %d bytes (budget %d)",
                     iteration, len(best), max_bytes)
        return best

    @staticmethod
    def _encode(img: PILImage.Image, fmt: str, quality: float) -> bytes:
        buffer = BytesIO()
        if fmt == "PNG":
            img.save(buffer, format=fmt, optimize=True)
        else:
            img.save(buffer, format=fmt, quality=quality_to_int(quality))
        return buffer.getvalue()
