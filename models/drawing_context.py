from __future__ import annotations
from typing import Iterable, List, Sequence, Tuple
import math

import numpy as np
import cv2
from PIL import Image as PILImage, ImageDraw, ImageFont

from models.errors import SurfaceAllocationError

Rect = Tuple[float, float, float, float]  # (x, y, width, height)
Point = Tuple[float, float]

# Same ceilings browsers apply to a 2D canvas.
MAX_SURFACE_SIDE = 32767
MAX_SURFACE_AREA = 268_435_456


class DrawingContext:
    """
    RGB pixel buffer plus a 2D drawing state (current affine transform and a
    save/restore stack), bound to OpenCV for image warps and Pillow for text.

    Transforms compose the same way as a canvas context: `translate` and
    `rotate` post-multiply the current matrix, so later calls act in the
    already-transformed coordinate space. Angles are radians, positive is
    clockwise on screen (y axis points down).
    """

    def __init__(self, width: int, height: int, background: Tuple[int, int, int] = (0, 0, 0)):
        self.width = int(width)
        self.height = int(height)
        self.pixels = self._allocate(self.width, self.height, background)
        self._matrix = np.eye(3, dtype=np.float64)
        self._stack: List[np.ndarray] = []

    @classmethod
    def from_pixels(cls, pixels: np.ndarray) -> DrawingContext:
        """Wrap an existing (H, W, 3) uint8 buffer without copying it."""
        ctx = cls.__new__(cls)
        ctx.height, ctx.width = pixels.shape[:2]
        ctx.pixels = np.ascontiguousarray(pixels)
        ctx._matrix = np.eye(3, dtype=np.float64)
        ctx._stack = []
        return ctx

    @staticmethod
    def _allocate(width: int, height: int, background) -> np.ndarray:
        if width <= 0 or height <= 0:
            raise SurfaceAllocationError(f"Cannot allocate a {width}x{height} surface")
        if max(width, height) > MAX_SURFACE_SIDE or width * height > MAX_SURFACE_AREA:
            raise SurfaceAllocationError(
                f"Surface {width}x{height} exceeds the maximum drawable size"
            )
        try:
            buf = np.empty((height, width, 3), dtype=np.uint8)
        except MemoryError as err:
            raise SurfaceAllocationError(f"Out of memory allocating {width}x{height} surface") from err
        buf[:] = background
        return buf

    # ─── Transform state ────────────────────────────────────────────
    @property
    def current_transform(self) -> np.ndarray:
        return self._matrix.copy()

    @property
    def is_identity(self) -> bool:
        return bool(np.allclose(self._matrix, np.eye(3)))

    def save(self) -> None:
        self._stack.append(self._matrix.copy())

    def restore(self) -> None:
        # Unbalanced restore is ignored, as on a canvas.
        if self._stack:
            self._matrix = self._stack.pop()

    def reset_transform(self) -> None:
        self._matrix = np.eye(3, dtype=np.float64)

    def translate(self, tx: float, ty: float) -> None:
        self._matrix = self._matrix @ np.array(
            [[1.0, 0.0, tx], [0.0, 1.0, ty], [0.0, 0.0, 1.0]]
        )

    def rotate(self, radians: float) -> None:
        c, s = math.cos(radians), math.sin(radians)
        self._matrix = self._matrix @ np.array(
            [[c, -s, 0.0], [s, c, 0.0], [0.0, 0.0, 1.0]]
        )

    def map_point(self, x: float, y: float) -> Point:
        """User-space point → canvas pixel coordinates."""
        px, py, _ = self._matrix @ np.array([x, y, 1.0])
        return float(px), float(py)

    # ─── Drawing ────────────────────────────────────────────────────
    def draw_image(self, src: np.ndarray, src_rect: Rect, dst_rect: Rect) -> None:
        """
        Draw the `src_rect` region of `src` into `dst_rect` (user space),
        honouring the current transform. Pixels outside the mapped region are
        left untouched.
        """
        sx, sy, sw, sh = (int(round(v)) for v in src_rect)
        dx, dy, dw, dh = dst_rect
        region = src[sy:sy + sh, sx:sx + sw]
        if region.size == 0:
            return

        scale_x, scale_y = dw / sw, dh / sh

        # Pure integer blit: no resampling at all.
        if (self.is_identity and scale_x == 1 and scale_y == 1
                and float(dx).is_integer() and float(dy).is_integer()):
            self._blit(region, int(dx), int(dy))
            return

        place = np.array([[scale_x, 0.0, dx], [0.0, scale_y, dy], [0.0, 0.0, 1.0]])
        # Pixel-centre correction: continuous coords are index + 0.5.
        to_continuous = np.array([[1.0, 0.0, 0.5], [0.0, 1.0, 0.5], [0.0, 0.0, 1.0]])
        to_index = np.array([[1.0, 0.0, -0.5], [0.0, 1.0, -0.5], [0.0, 0.0, 1.0]])
        full = to_index @ self._matrix @ place @ to_continuous

        cv2.warpAffine(
            np.ascontiguousarray(region),
            full[:2],
            (self.width, self.height),
            dst=self.pixels,
            flags=cv2.INTER_LINEAR,
            borderMode=cv2.BORDER_TRANSPARENT,
        )

    def _blit(self, region: np.ndarray, x: int, y: int) -> None:
        h, w = region.shape[:2]
        x0, y0 = max(x, 0), max(y, 0)
        x1, y1 = min(x + w, self.width), min(y + h, self.height)
        if x0 >= x1 or y0 >= y1:
            return
        self.pixels[y0:y1, x0:x1] = region[y0 - y:y1 - y, x0 - x:x1 - x]

    def fill_text(self, text: str, x: float, y: float, font_size: int,
                  color: Sequence[int], font_path: str | None = None) -> bool:
        """Draw `text` centred on (x, y) in user space."""
        return bool(self.fill_text_tiled(text, [(x, y)], font_size, color, font_path))

    def fill_text_tiled(self, text: str, anchors: Iterable[Point], font_size: int,
                        color: Sequence[int], font_path: str | None = None) -> List[Point]:
        """
        Stamp `text` centred on every user-space anchor.

        The glyph sprite is rendered and rotated once to match the current
        transform, then alpha-blended at each anchor's canvas position.
        Returns the canvas positions of the stamps that touched the buffer.
        """
        sprite = self._render_text_sprite(text, font_size, color, font_path)
        sprite_h, sprite_w = sprite.shape[:2]

        drawn: List[Point] = []
        for ax, ay in anchors:
            cx, cy = self.map_point(ax, ay)
            left = int(round(cx - sprite_w / 2))
            top = int(round(cy - sprite_h / 2))
            if self._blend_rgba(sprite, left, top):
                drawn.append((cx, cy))
        return drawn

    def draw_overlay(self, rgba: np.ndarray, x: float, y: float, width: int, height: int,
                     opacity: float = 1.0) -> None:
        """
        Alpha-blend an RGBA image resized to width×height with its top-left
        corner at user-space (x, y). Only the translation part of the current
        transform is applied.
        """
        if width <= 0 or height <= 0:
            return
        resized = cv2.resize(rgba, (int(width), int(height)), interpolation=cv2.INTER_AREA)
        resized = resized.astype(np.float32)
        resized[..., 3] *= opacity
        cx, cy = self.map_point(x, y)
        self._blend_rgba(resized, int(round(cx)), int(round(cy)))

    def _blend_rgba(self, rgba: np.ndarray, left: int, top: int) -> bool:
        h, w = rgba.shape[:2]
        x0, y0 = max(left, 0), max(top, 0)
        x1, y1 = min(left + w, self.width), min(top + h, self.height)
        if x0 >= x1 or y0 >= y1:
            return False

        patch = rgba[y0 - top:y1 - top, x0 - left:x1 - left].astype(np.float32)
        alpha = patch[..., 3:4] / 255.0
        base = self.pixels[y0:y1, x0:x1].astype(np.float32)
        blended = base * (1.0 - alpha) + patch[..., :3] * alpha
        self.pixels[y0:y1, x0:x1] = np.clip(blended + 0.5, 0, 255).astype(np.uint8)
        return True

    def _render_text_sprite(self, text: str, font_size: int, color: Sequence[int],
                            font_path: str | None) -> np.ndarray:
        font = load_font(font_size, font_path)
        left, top, right, bottom = ImageDraw.Draw(PILImage.new("RGBA", (1, 1))).textbbox(
            (0, 0), text, font=font
        )
        pad = 2
        sprite = PILImage.new("RGBA", (right - left + 2 * pad, bottom - top + 2 * pad), (0, 0, 0, 0))
        ImageDraw.Draw(sprite).text((pad - left, pad - top), text, font=font, fill=tuple(color))

        angle = math.degrees(math.atan2(self._matrix[1, 0], self._matrix[0, 0]))
        if abs(angle) > 1e-6:
            # Pillow rotates counter-clockwise for positive angles.
            sprite = sprite.rotate(-angle, resample=PILImage.BICUBIC, expand=True)
        return np.asarray(sprite)

    # ─── Output ─────────────────────────────────────────────────────
    def encode_to_bytes(self, codec, mime_type: str, quality: float) -> bytes:
        """Encode the buffer with an injected codec capability."""
        return codec.encode(self.pixels, mime_type, quality)


_FONT_CACHE: dict = {}


def load_font(font_size: int, font_path: str | None = None):
    """TrueType font at `font_path`, or Pillow's bundled font at that size."""
    key = (font_path, font_size)
    if key not in _FONT_CACHE:
        if font_path:
            _FONT_CACHE[key] = ImageFont.truetype(font_path, size=font_size)
        else:
            _FONT_CACHE[key] = ImageFont.load_default(size=font_size)
    return _FONT_CACHE[key]
