from __future__ import annotations
from dataclasses import dataclass


@dataclass(frozen=True)
class CropRegion:
    """
    Rectangle in source pixel space selected for extraction.
    Must lie fully inside the source image, width/height strictly positive.
    """
    x: int
    y: int
    width: int
    height: int

    @classmethod
    def from_mapping(cls, data) -> CropRegion:
        """Build from a dict-like with x/y/width/height (form fields or JSON)."""
        return cls(
            x=int(round(float(data["x"]))),
            y=int(round(float(data["y"]))),
            width=int(round(float(data["width"]))),
            height=int(round(float(data["height"]))),
        )

    @property
    def pixel_count(self) -> int:
        return self.width * self.height

    @property
    def right(self) -> int:
        return self.x + self.width

    @property
    def bottom(self) -> int:
        return self.y + self.height

    def contained_in(self, width: int, height: int) -> bool:
        return (
            self.width > 0 and self.height > 0
            and self.x >= 0 and self.y >= 0
            and self.right <= width and self.bottom <= height
        )
