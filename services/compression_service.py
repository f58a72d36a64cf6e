from __future__ import annotations

from dataclasses import dataclass
import logging
import warnings

import numpy as np

from models.cancellation import CancellationToken
from models.drawing_context import DrawingContext
from models.errors import CompressionBudgetExceeded, EncodeFailure
from models.processing_options import ProcessingOptions
from repositories.codec_repository import ImageCodec
from repositories.reducer_repository import ImageReducer

logger = logging.getLogger(__name__)

SECONDARY_QUALITY_FACTOR = 0.9


@dataclass(frozen=True)
class CompressionResult:
    data: bytes
    width: int
    height: int
    quality: float
    secondary_pass: bool = False
    budget_exceeded: bool = False


class CompressionService:
    """
    Encodes a buffer once at the tier quality and, only when that overshoots
    the byte budget, runs a single reducer pass with ~10% lower quality and
    the dimension clamp. The result is never larger than the first encode.

    Codec and reducer are injected once at construction.
    """

    def __init__(self, codec: ImageCodec = None, reducer: ImageReducer = None):
        self.codec = codec or ImageCodec()
        self.reducer = reducer or ImageReducer()

    @staticmethod
    def select_options(width: int, height: int, source_long_side: int | None = None,
                       **overrides) -> ProcessingOptions:
        """Tier selection from the crop's pixel count (see ProcessingOptions.for_crop)."""
        return ProcessingOptions.for_crop(width, height, source_long_side, **overrides)

    def compress(self, buffer, options: ProcessingOptions,
                 cancel_token: CancellationToken | None = None) -> CompressionResult:
        pixels = buffer.pixels if isinstance(buffer, DrawingContext) else buffer
        height, width = pixels.shape[:2]

        try:
            primary = self.codec.encode(pixels, options.output_format, options.initial_quality)
        except EncodeFailure:
            raise
        except Exception as err:
            raise EncodeFailure(f"Primary encode failed: {err}") from err

        if len(primary) <= options.max_output_bytes:
            return CompressionResult(primary, width, height, options.initial_quality)

        if cancel_token is not None:
            cancel_token.raise_if_cancelled("compression")

        secondary_quality = options.initial_quality * SECONDARY_QUALITY_FACTOR
        logger.info(
            "Primary encode %d bytes > budget %d, reducing (quality %.2f, max %dpx)",
            len(primary), options.max_output_bytes, secondary_quality, options.max_dimension_px,
        )
        try:
            reduced = self.reducer.reduce(
                primary,
                options.max_output_bytes,
                options.max_dimension_px,
                secondary_quality,
                options.output_format,
            )
        except (OSError, ValueError) as err:
            logger.error("Secondary compression failed, keeping primary encode: %s", err)
            reduced = primary

        if len(reduced) < len(primary):
            data, quality = reduced, secondary_quality
            width, height = self.codec.dimensions(reduced)
        else:
            data, quality = primary, options.initial_quality

        budget_exceeded = len(data) > options.max_output_bytes
        if budget_exceeded:
            message = (f"Compressed size {len(data)} bytes still above budget "
                       f"{options.max_output_bytes} bytes")
            logger.warning(message)
            warnings.warn(message, CompressionBudgetExceeded, stacklevel=2)

        return CompressionResult(data, width, height, quality,
                                 secondary_pass=True, budget_exceeded=budget_exceeded)

    def encode_crop_only(self, pixels: np.ndarray, mime_type: str, quality: float) -> bytes:
        """Minimal encoder used by the degraded fallback path."""
        return self.codec.encode(pixels, mime_type, quality)
