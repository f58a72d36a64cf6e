from __future__ import annotations
from dataclasses import dataclass
from typing import Tuple


@dataclass(frozen=True)
class WatermarkStyle:
    """
    Value-object describing how the repeated watermark is drawn.
    Passed explicitly into the watermark engine, never read from globals.
    """
    font_size: int = 26
    font_path: str | None = None # TrueType file; Pillow's default font when None.
    color: Tuple[int, int, int, int] = (255, 255, 255, 51) # RGBA, ~0.2 alpha
    angle_deg: float = -45.0
    row_factor: int = 4
    column_factor: int = 8

    # ── Centered logo mode ──────────────────────────────────────────
    logo_path: str | None = None
    logo_opacity: float = 0.8
    logo_scale: float = 0.3      # fraction of the buffer width
    logo_min_width: int = 100    # px

    @property
    def row_spacing(self) -> int:
        return self.font_size * self.row_factor

    @property
    def column_spacing(self) -> int:
        return self.font_size * self.column_factor

    @property
    def brick_offset(self) -> float:
        return self.column_spacing / 2
