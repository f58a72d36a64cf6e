from __future__ import annotations

from typing import List, Tuple
import logging
import math
import os

import numpy as np
from PIL import Image as PILImage
from dotenv import load_dotenv

from models.drawing_context import DrawingContext, Point
from models.watermark_style import WatermarkStyle

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)


class WatermarkService:
    """
    Overlays a repeating diagonal text pattern (or a centred logo) on a
    pixel buffer.

    *   Tiles sit on a brick-offset grid in a frame rotated by
        `style.angle_deg` around the buffer origin.
    *   The grid spans ±diagonal on both axes so the rotated pattern still
        reaches every corner of the buffer.
    *   Drawing always starts from the identity transform and the previous
        transform is restored afterwards.
    """

    def __init__(self, default_text: str = None, brand: str = None):
        self.default_text = default_text or os.getenv("DEFAULT_WATERMARK_TEXT", "© ScortWeb")
        self.brand = brand or os.getenv("WATERMARK_BRAND", "ScortWeb")

    @staticmethod
    def default_style() -> WatermarkStyle:
        return WatermarkStyle(
            font_size=int(os.getenv("WATERMARK_FONT_SIZE", "26")),
            font_path=os.getenv("WATERMARK_FONT_PATH") or None,
            logo_path=os.getenv("WATERMARK_LOGO_PATH") or None,
        )

    # ─── Public API ────────────────────────────────────────────────
    @staticmethod
    def needs_watermark(mime_type: str) -> bool:
        return (mime_type or "").startswith("image/")

    def watermark_text_for(self, profile_name: str | None = None) -> str:
        if profile_name:
            return f"© {profile_name} - {self.brand}"
        return self.default_text

    @staticmethod
    def tile_anchors(width: int, height: int, style: WatermarkStyle) -> List[Tuple[float, float]]:
        """
        Anchor points of every tile, in the rotated drawing frame.

        Rows are `row_spacing` apart, columns `column_spacing` apart, and
        every odd row is shifted right by half a column.
        """
        diagonal = math.sqrt(width * width + height * height)
        row_spacing, column_spacing = style.row_spacing, style.column_spacing

        anchors = []
        row = 0
        y = -diagonal
        while y < diagonal:
            x = -diagonal + (row % 2) * style.brick_offset
            while x < diagonal:
                anchors.append((x, y))
                x += column_spacing
            y += row_spacing
            row += 1
        return anchors

    def apply_watermark(self, buffer, text: str = None,
                        style: WatermarkStyle | None = None) -> np.ndarray:
        """
        Stamp the tiled text onto `buffer` (ndarray or DrawingContext) in place.

        Returns:
            np.ndarray: the watermarked pixels (same array as the input buffer).
        """
        ctx = buffer if isinstance(buffer, DrawingContext) else DrawingContext.from_pixels(buffer)
        self.draw_tiles(ctx, text or self.default_text, style or self.default_style())
        return ctx.pixels

    def draw_tiles(self, ctx: DrawingContext, text: str, style: WatermarkStyle) -> List[Point]:
        """Draw the tiling and return the canvas positions actually stamped."""
        ctx.save()
        try:
            ctx.reset_transform()
            ctx.rotate(math.radians(style.angle_deg))
            anchors = self.tile_anchors(ctx.width, ctx.height, style)
            stamps = ctx.fill_text_tiled(text, anchors, style.font_size, style.color, style.font_path)
        finally:
            ctx.restore()

        logger.debug("Watermark: %d anchors, %d stamps on %dx%d buffer",
                     len(anchors), len(stamps), ctx.width, ctx.height)
        return stamps

    def apply_logo_watermark(self, ctx: DrawingContext, style: WatermarkStyle,
                             fallback_text: str = None) -> bool:
        """
        Centre a logo image on the buffer. When the logo cannot be loaded the
        tiled text watermark is drawn instead.

        Returns:
            bool: True if the logo was drawn, False if the text fallback ran.
        """
        try:
            if not style.logo_path:
                raise FileNotFoundError("no logo configured")
            with PILImage.open(style.logo_path) as logo_file:
                logo = np.asarray(logo_file.convert("RGBA"))
        except OSError as err:
            logger.error("Error loading watermark logo: %s", err)
            self.draw_tiles(ctx, fallback_text or self.default_text, style)
            return False

        x, y, target_w, target_h = self.logo_placement(ctx.width, ctx.height,
                                                       logo.shape[1], logo.shape[0], style)
        ctx.save()
        try:
            ctx.reset_transform()
            ctx.draw_overlay(logo, x, y, target_w, target_h, opacity=style.logo_opacity)
        finally:
            ctx.restore()
        return True

    @staticmethod
    def logo_placement(width: int, height: int, logo_w: int, logo_h: int,
                       style: WatermarkStyle) -> Tuple[int, int, int, int]:
        """
        (x, y, w, h) of the centred logo: `logo_scale` of the buffer width,
        at least `logo_min_width` when it fits, never above 90% of either side.
        """
        aspect = logo_w / logo_h
        target_w = width * style.logo_scale
        if target_w < style.logo_min_width < width:
            target_w = style.logo_min_width
        if target_w > width * 0.9:
            target_w = width * 0.9

        target_h = target_w / aspect
        if target_h > height * 0.9:
            target_h = height * 0.9
            target_w = target_h * aspect

        x = (width - target_w) / 2
        y = (height - target_h) / 2
        return int(round(x)), int(round(y)), int(round(target_w)), int(round(target_h))
