"""
Crop Processing Pipeline
Turns a user selection (source image + crop rectangle + rotation) into a
staged asset: transform → watermark → compress → pending media registry.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List, Mapping
import logging
import os

import cv2
from dotenv import load_dotenv

from models.cancellation import CancellationToken
from models.crop_region import CropRegion
from models.errors import (EncodeFailure, InvalidCropRegion, MediaPipelineError,
                           OperationCancelled)
from models.image import Image
from models.pending_media import MediaKind
from models.processed_asset import ProcessedAsset
from models.processing_options import ProcessingOptions
from models.watermark_style import WatermarkStyle
from services.compression_service import CompressionService
from services.image_service import ImageService
from services.pending_media_service import PendingMediaService
from services.transform_service import TransformService
from services.watermark_service import WatermarkService

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)

FALLBACK_QUALITY = float(os.getenv("FALLBACK_QUALITY", "0.9"))
FALLBACK_FORMAT = "image/jpeg"


@dataclass(frozen=True)
class StagedMedia:
    pending_id: str
    preview_handle: str
    media_kind: MediaKind
    asset: ProcessedAsset | None = None  # None for media staged as-is (video)


def process_crop(
    source: Image,
    crop: CropRegion,
    rotation_deg: float = 0,
    options: ProcessingOptions | None = None,
    *,
    style: WatermarkStyle | None = None,
    image_service: ImageService = ImageService(),
    transform_service: TransformService = TransformService(),
    watermark_service: WatermarkService = WatermarkService(),
    compression_service: CompressionService = CompressionService(),
    cancel_token: CancellationToken | None = None,
) -> ProcessedAsset:
    """
    Run the three drawing stages strictly in order on one surface.

    When any stage after validation fails, the crop alone is encoded at a
    fixed quality and the asset comes back with `degraded=True`.
    InvalidCropRegion and cancellation are never turned into a fallback.

    Args:
        source: Decoded source image.
        crop: Region in source pixels, must be fully inside the source.
        rotation_deg: [-180, 180].
        options: Defaults to the tier computed from the crop size.
        style: Watermark style; the service default when None.

    Returns:
        ProcessedAsset
    """
    if options is None:
        options = compression_service.select_options(
            crop.width, crop.height, max(source.width, source.height)
        )
    image_service.validate_crop(source, crop)

    try:
        ctx = transform_service.transform_to_context(source, crop, rotation_deg)

        if options.apply_watermark:
            style = style or watermark_service.default_style()
            if style.logo_path:
                watermark_service.apply_logo_watermark(ctx, style, options.watermark_text)
            else:
                watermark_service.draw_tiles(ctx, options.watermark_text, style)

        result = compression_service.compress(ctx, options, cancel_token)
    except (InvalidCropRegion, OperationCancelled):
        raise
    except (MediaPipelineError, cv2.error, OSError) as err:
        logger.error("Full processing failed (%s), using crop-only fallback", err)
        return _crop_only_fallback(source, crop, image_service, compression_service, err)

    asset = ProcessedAsset(
        data=result.data,
        final_width=result.width,
        final_height=result.height,
        original_byte_size=source.byte_size,
        mime_type=options.output_format,
        quality=result.quality,
        budget_exceeded=result.budget_exceeded,
    )
    logger.info("Processed crop %dx%d → %dx%d, %d bytes (%.1f%% saved)",
                crop.width, crop.height, asset.final_width, asset.final_height,
                asset.compressed_byte_size, asset.compression_ratio)
    return asset


def _crop_only_fallback(source: Image, crop: CropRegion, image_service: ImageService,
                        compression_service: CompressionService,
                        cause: Exception) -> ProcessedAsset:
    pixels = image_service.crop_pixels(source, crop)
    try:
        data = compression_service.encode_crop_only(pixels, FALLBACK_FORMAT, FALLBACK_QUALITY)
    except MediaPipelineError as err:
        raise EncodeFailure(f"Fallback crop failed after: {cause}") from err

    return ProcessedAsset(
        data=data,
        final_width=crop.width,
        final_height=crop.height,
        original_byte_size=source.byte_size,
        mime_type=FALLBACK_FORMAT,
        quality=FALLBACK_QUALITY,
        degraded=True,
    )


def stage_selection(
    registry: PendingMediaService,
    data: bytes,
    mime_type: str,
    *,
    file_name: str | None = None,
    crop: CropRegion | None = None,
    rotation_deg: float = 0,
    options: ProcessingOptions | None = None,
    option_overrides: dict | None = None,
    style: WatermarkStyle | None = None,
    image_service: ImageService = ImageService(),
    compression_service: CompressionService = CompressionService(),
    cancel_token: CancellationToken | None = None,
    **services,
) -> StagedMedia:
    """
    Validate an uploaded selection, process it and add it to `registry`.

    Videos skip every drawing stage and are staged byte-for-byte. Images
    without a crop use the full frame. When `options` is None the tier is
    computed from the crop and `option_overrides` are applied on top.
    """
    media_kind = image_service.validate_upload(len(data), mime_type)

    if media_kind == MediaKind.VIDEO:
        pending_id, preview = registry.add(data, media_kind, file_name=file_name, mime_type=mime_type)
        return StagedMedia(pending_id, preview, media_kind)

    source = image_service.decode(data, mime_type=mime_type)
    crop = crop or CropRegion(0, 0, source.width, source.height)

    is_valid, warnings = image_service.validate_image_dimensions(crop.width, crop.height)
    if not is_valid:
        for warning in warnings:
            logger.warning("%s: %s", file_name or "selection", warning)

    if options is None:
        options = compression_service.select_options(
            crop.width, crop.height, max(source.width, source.height), **(option_overrides or {})
        )

    asset = process_crop(source, crop, rotation_deg, options, style=style,
                         image_service=image_service, compression_service=compression_service,
                         cancel_token=cancel_token, **services)
    pending_id, preview = registry.add(asset.data, MediaKind.IMAGE,
                                       file_name=file_name, mime_type=asset.mime_type)
    return StagedMedia(pending_id, preview, MediaKind.IMAGE, asset)


def stage_selections(
    registry: PendingMediaService,
    selections: Iterable[Mapping],
    **kwargs,
) -> List[StagedMedia]:
    """
    Stage several selections in order, stopping at the first failure.

    Each selection is a mapping with `data` and `mime_type` plus any keyword
    accepted by `stage_selection` (file_name, crop, rotation_deg, ...);
    `kwargs` are shared by every selection. When one fails, the selections
    staged earlier in the batch are removed again before the error propagates.
    """
    staged: List[StagedMedia] = []
    for selection in selections:
        selection = dict(selection)
        data = selection.pop("data")
        mime_type = selection.pop("mime_type")
        try:
            staged.append(stage_selection(registry, data, mime_type, **{**kwargs, **selection}))
        except (MediaPipelineError, ValueError) as err:
            logger.error("Error processing %s: %s", selection.get("file_name") or "selection", err)
            for item in staged:
                registry.remove(item.pending_id)
            raise

    logger.info("Staged %d selection(s)", len(staged))
    return staged
