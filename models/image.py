from __future__ import annotations
from dataclasses import dataclass
from pathlib import Path
import numpy as np


@dataclass(frozen=True)
class Image:
    """
    Decoded source bitmap: RGB pixels plus what we know about the encoded file.
    Read-only input of the processing pipeline; stages allocate new buffers.
    """
    pixels: np.ndarray # Shape (H, W, 3), dtype uint8, RGB order.
    path: Path | None = None # Source of the image.
    mime_type: str = "image/jpeg"
    byte_size: int = 0 # Size of the encoded source, 0 when unknown.

    @property
    def width(self) -> int:
        return int(self.pixels.shape[1])

    @property
    def height(self) -> int:
        return int(self.pixels.shape[0])
