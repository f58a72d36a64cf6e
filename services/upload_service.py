from __future__ import annotations

from typing import Dict
import logging
import os

from tqdm import tqdm
from dotenv import load_dotenv

from models.cancellation import CancellationToken
from models.errors import MediaPipelineError, OperationCancelled, UploadFailure
from models.pending_media import PendingMediaEntry
from repositories.upload_repository import UploadRepository, build_upload_repository
from services.image_service import ImageService
from services.pending_media_service import PendingMediaService

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)


class UploadService:
    """
    Uploads every staged entry, one after another, and returns
    pending id → permanent URL.

    No rollback: when entry k fails the URLs of entries 1..k-1 are thrown
    away with the exception and the registry keeps every entry, so a retried
    save uploads them again. Nothing is retried automatically.
    """

    def __init__(self, upload_repository: UploadRepository = None,
                 image_service: ImageService = None):
        self.upload_repository = upload_repository or build_upload_repository()
        self.image_service = image_service or ImageService()
        self.default_folder = os.getenv("DEFAULT_UPLOAD_FOLDER", "blog-images")
        self.show_progress = os.getenv("UPLOAD_PROGRESS", "1") == "1"

    def upload_all(self, registry: PendingMediaService, destination: str | None = None,
                   cancel_token: CancellationToken | None = None) -> Dict[str, str]:
        entries = registry.drain()
        if not entries:
            return {}

        folder = destination or self.default_folder
        logger.info("Uploading %d pending file(s) to '%s'", len(entries), folder)

        uploaded: Dict[str, str] = {}
        try:
            for entry in tqdm(entries, desc="upload", ncols=70, disable=not self.show_progress):
                if cancel_token is not None:
                    cancel_token.raise_if_cancelled("upload batch")
                uploaded[entry.id] = self.upload_one(entry, folder)
        except (UploadFailure, OperationCancelled) as err:
            registry.restore(entries)
            logger.error("Upload batch aborted after %d of %d file(s): %s",
                         len(uploaded), len(entries), err)
            raise

        logger.info("%d file(s) uploaded successfully", len(uploaded))
        return uploaded

    def upload_one(self, entry: PendingMediaEntry, folder: str) -> str:
        """Validate and upload a single entry; failures name the asset."""
        file_name = entry.file_name or f"{entry.id}"
        try:
            self.image_service.validate_upload(entry.byte_size, entry.mime_type)
            return self.upload_repository.upload(
                entry.data, file_name=file_name, mime_type=entry.mime_type, folder=folder
            )
        except UploadFailure as err:
            raise UploadFailure(entry.id, entry.label, err.reason) from err
        except MediaPipelineError as err:
            raise UploadFailure(entry.id, entry.label, str(err)) from err
        except Exception as err:
            # Third-party upload callables may raise anything.
            raise UploadFailure(entry.id, entry.label, str(err) or type(err).__name__) from err
