from __future__ import annotations
from typing import Iterable


class MediaPipelineError(Exception):
    """Base class for every failure raised by the media pipeline."""


class InvalidCropRegion(MediaPipelineError, ValueError):
    """Crop rectangle is empty or not fully inside the source image."""


class SurfaceAllocationError(MediaPipelineError):
    """The output pixel buffer could not be allocated."""


class EncodeFailure(MediaPipelineError):
    """The primary codec could not encode the buffer."""


class UnsupportedMediaType(MediaPipelineError, ValueError):
    """Mime type outside the accepted image/* and video/* prefixes."""


class MediaTooLarge(MediaPipelineError, ValueError):
    """Input exceeds the maximum accepted byte size."""


class OperationCancelled(MediaPipelineError):
    """A cancellation token was triggered while a stage was pending."""


class UploadFailure(MediaPipelineError):
    """
    A single entry of a bulk upload failed; the remainder of the batch
    is aborted.
    """

    def __init__(self, pending_id: str | None, file_name: str | None, reason: str):
        self.pending_id = pending_id
        self.file_name = file_name
        self.reason = reason
        label = file_name or pending_id or "asset"
        super().__init__(f"Failed to upload {label}: {reason}")


class UnresolvedReferenceError(MediaPipelineError):
    """Document still references pending ids that have no uploaded URL."""

    def __init__(self, pending_ids: Iterable[str]):
        self.pending_ids = list(pending_ids)
        super().__init__(
            "Unresolved pending media references: " + ", ".join(self.pending_ids)
        )


class CompressionBudgetExceeded(UserWarning):
    """Secondary compression pass could not reach the byte budget."""


class UnresolvedReferenceWarning(UserWarning):
    """A block's pendingId had no matching entry in the upload result map."""
