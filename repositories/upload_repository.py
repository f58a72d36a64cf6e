from pathlib import Path
import logging
import os
import uuid

import httpx
from dotenv import load_dotenv
from werkzeug.utils import secure_filename

from models.errors import UploadFailure
from repositories.image_repository import extension_for

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)


class UploadRepository:
    """
    Upload capability: raw bytes + destination folder hint → permanent URL.
    Implementations raise UploadFailure on any error.
    """

    def upload(self, data: bytes, *, file_name: str, mime_type: str, folder: str) -> str:
        raise NotImplementedError

    def close(self) -> None:
        """Release held connections. Backends without any keep this no-op."""


class CloudinaryUploadRepository(UploadRepository):
    """Unsigned-preset uploads to Cloudinary's REST endpoint."""

    _BASE_URL = "https://api.cloudinary.com/v1_1"

    def __init__(self, cloud_name: str = None, upload_preset: str = None,
                 timeout: float = None, client: httpx.Client | None = None):
        self.cloud_name = cloud_name or os.getenv("CLOUDINARY_NAME", "")
        self.upload_preset = upload_preset or os.getenv("CLOUDINARY_UPLOAD_PRESET", "")
        timeout = timeout or float(os.getenv("UPLOAD_TIMEOUT", "30"))
        self._client = client or httpx.Client(timeout=timeout)

    def _endpoint(self, mime_type: str) -> str:
        resource = "video" if mime_type.startswith("video/") else "image"
        return f"{self._BASE_URL}/{self.cloud_name}/{resource}/upload"

    def upload(self, data: bytes, *, file_name: str, mime_type: str, folder: str) -> str:
        if not self.cloud_name or not self.upload_preset:
            raise UploadFailure(None, file_name, "Cloudinary configuration not found")

        try:
            response = self._client.post(
                self._endpoint(mime_type),
                data={"upload_preset": self.upload_preset, "folder": folder},
                files={"file": (file_name, data, mime_type)},
            )
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPStatusError as err:
            raise UploadFailure(
                None, file_name, f"Cloudinary answered {err.response.status_code}"
            ) from err
        except httpx.HTTPError as err:
            raise UploadFailure(None, file_name, f"network error: {err}") from err
        except ValueError as err:
            raise UploadFailure(None, file_name, "Cloudinary returned invalid JSON") from err

        url = payload.get("secure_url")
        if not url:
            raise UploadFailure(None, file_name, "Cloudinary response has no secure_url")
        return url

    def close(self) -> None:
        self._client.close()


class LocalUploadRepository(UploadRepository):
    """
    Stores uploads under RESULTS_FOLDER and returns URLs served by the API.
    """

    def __init__(self, root: str | Path = None, public_base_url: str = None):
        self.root = Path(root or os.getenv("RESULTS_FOLDER", "data/uploads"))
        self.public_base_url = (public_base_url if public_base_url is not None
                                else os.getenv("PUBLIC_BASE_URL", "")).rstrip("/")

    def upload(self, data: bytes, *, file_name: str, mime_type: str, folder: str) -> str:
        safe_folder = secure_filename(folder) or "uploads"
        stem = Path(secure_filename(file_name) or "media").stem
        name = f"{stem}_{uuid.uuid4().hex[:12]}{extension_for(mime_type)}"
        target_dir = self.root / safe_folder
        try:
            target_dir.mkdir(parents=True, exist_ok=True)
            (target_dir / name).write_bytes(data)
        except OSError as err:
            raise UploadFailure(None, file_name, f"could not write file: {err}") from err

        logger.info("Stored %s (%d bytes) in %s", name, len(data), target_dir)
        return f"{self.public_base_url}/api/media/files/{safe_folder}/{name}"


def build_upload_repository(backend: str = None) -> UploadRepository:
    """Pick the upload backend named by UPLOAD_BACKEND (local | cloudinary)."""
    backend = (backend or os.getenv("UPLOAD_BACKEND", "local")).lower()
    if backend == "cloudinary":
        return CloudinaryUploadRepository()
    if backend == "local":
        return LocalUploadRepository()
    raise ValueError(f"Unknown UPLOAD_BACKEND: {backend}")
