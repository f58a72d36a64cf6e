from __future__ import annotations
from dataclasses import dataclass


@dataclass(frozen=True)
class ProcessedAsset:
    """
    Output of the processing pipeline: encoded bytes plus bookkeeping.

    `degraded` marks the crop-only fallback path (no rotation, no watermark).
    `budget_exceeded` marks bytes that stayed above max_output_bytes after the
    secondary compression pass.
    """
    data: bytes
    final_width: int
    final_height: int
    original_byte_size: int
    mime_type: str = "image/jpeg"
    quality: float | None = None
    degraded: bool = False
    budget_exceeded: bool = False

    @property
    def compressed_byte_size(self) -> int:
        return len(self.data)

    @property
    def compression_ratio(self) -> float:
        """Percentage saved relative to the source file, 0 when unknown."""
        if self.original_byte_size <= 0:
            return 0.0
        return (self.original_byte_size - self.compressed_byte_size) / self.original_byte_size * 100
