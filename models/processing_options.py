from __future__ import annotations
from dataclasses import dataclass, replace
import os

from dotenv import load_dotenv

# Load environment variables
load_dotenv()

MB = 1024 * 1024

# (min pixel count, initial quality, budget in MB), largest tier first
_QUALITY_TIERS = (
    (2_000_000, 0.80, 0.5),
    (1_000_000, 0.85, 0.55),
)
_BASE_QUALITY = 0.90
_BASE_BUDGET_MB = 0.6

_DEFAULT_MAX_DIMENSION = 1024
_LARGE_SOURCE_MAX_DIMENSION = 1200
_LARGE_SOURCE_LONG_SIDE = 2048


@dataclass(frozen=True)
class ProcessingOptions:
    """
    Per-call configuration of the crop → watermark → compress pipeline.
    """
    max_output_bytes: int = int(_BASE_BUDGET_MB * MB)
    max_dimension_px: int = _DEFAULT_MAX_DIMENSION
    initial_quality: float = _BASE_QUALITY  # (0, 1]
    apply_watermark: bool = True
    watermark_text: str = os.getenv("DEFAULT_WATERMARK_TEXT", "© ScortWeb")
    output_format: str = os.getenv("OUTPUT_FORMAT", "image/jpeg")

    def __post_init__(self):
        if not 0 < self.initial_quality <= 1:
            raise ValueError(f"initial_quality must be in (0, 1], got {self.initial_quality}")
        if self.max_output_bytes <= 0:
            raise ValueError(f"max_output_bytes must be positive, got {self.max_output_bytes}")
        if self.max_dimension_px <= 0:
            raise ValueError(f"max_dimension_px must be positive, got {self.max_dimension_px}")

    @classmethod
    def for_crop(
        cls,
        width: int,
        height: int,
        source_long_side: int | None = None,
        **overrides,
    ) -> ProcessingOptions:
        """
        Pick quality and byte budget from the crop's pixel count.

        Args:
            width, height: Crop region size (not the source size).
            source_long_side: Longer side of the source before cropping; above
                2048px the dimension clamp is relaxed to 1200px.
            overrides: Any explicit field wins over the computed tier.
        """
        total_pixels = width * height

        quality, budget_mb = _BASE_QUALITY, _BASE_BUDGET_MB
        for min_pixels, tier_quality, tier_budget in _QUALITY_TIERS:
            if total_pixels > min_pixels:
                quality, budget_mb = tier_quality, tier_budget
                break

        long_side = source_long_side if source_long_side is not None else max(width, height)
        max_dimension = (
            _LARGE_SOURCE_MAX_DIMENSION
            if long_side > _LARGE_SOURCE_LONG_SIDE
            else _DEFAULT_MAX_DIMENSION
        )

        computed = dict(
            max_output_bytes=int(budget_mb * MB),
            max_dimension_px=max_dimension,
            initial_quality=quality,
        )
        computed.update(overrides)
        return cls(**computed)

    def merged(self, **overrides) -> ProcessingOptions:
        return replace(self, **overrides)
