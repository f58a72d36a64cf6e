import logging
import math

import numpy as np

from models.crop_region import CropRegion
from models.drawing_context import DrawingContext
from models.image import Image
from services.image_service import ImageService

logger = logging.getLogger(__name__)


class TransformService:
    """
    Crops and rotates a source image into a buffer sized exactly to the crop.

    The crop rectangle is the visible result: rotation turns the cropped
    content around the buffer centre instead of rotating the whole source
    and cropping afterwards, so the selected content never shifts.
    """

    def __init__(self, image_service: ImageService = None):
        self.image_service = image_service or ImageService()

    def transform(self, source: Image, crop: CropRegion, rotation_deg: float = 0) -> np.ndarray:
        return self.transform_to_context(source, crop, rotation_deg).pixels

    def transform_to_context(self, source: Image, crop: CropRegion,
                             rotation_deg: float = 0) -> DrawingContext:
        """
        Same as `transform` but hands back the drawing context so later stages
        keep drawing on the same surface.
        """
        if not -180 <= rotation_deg <= 180:
            raise ValueError(f"Rotation must be within [-180, 180], got {rotation_deg}")
        self.image_service.validate_crop(source, crop)

        ctx = DrawingContext(crop.width, crop.height)
        src_rect = (crop.x, crop.y, crop.width, crop.height)

        if rotation_deg == 0:
            ctx.draw_image(source.pixels, src_rect, (0, 0, ctx.width, ctx.height))
            return ctx

        ctx.save()
        ctx.translate(ctx.width / 2, ctx.height / 2)
        ctx.rotate(math.radians(rotation_deg))
        ctx.draw_image(
            source.pixels,
            src_rect,
            (-ctx.width / 2, -ctx.height / 2, ctx.width, ctx.height),
        )
        ctx.restore()

        logger.debug("Transformed crop %s with rotation %.1f°", crop, rotation_deg)
        return ctx
