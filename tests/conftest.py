"""
Pytest configuration and global fixtures.
"""
import os
import sys
from io import BytesIO
from pathlib import Path
from typing import List

import numpy as np
import pytest

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

os.environ.setdefault("UPLOAD_PROGRESS", "0")

from models.errors import UploadFailure
from models.image import Image
from repositories.upload_repository import UploadRepository
from services.pending_media_service import PendingMediaService


def make_gradient_pixels(width: int, height: int) -> np.ndarray:
    """Deterministic RGB pattern where every pixel is distinguishable."""
    ys, xs = np.mgrid[0:height, 0:width]
    pixels = np.zeros((height, width, 3), dtype=np.uint8)
    pixels[..., 0] = (xs * 255 // max(width - 1, 1)).astype(np.uint8)
    pixels[..., 1] = (ys * 255 // max(height - 1, 1)).astype(np.uint8)
    pixels[..., 2] = ((xs + ys) % 256).astype(np.uint8)
    return pixels


def encode_png(pixels: np.ndarray) -> bytes:
    from PIL import Image as PILImage

    buf = BytesIO()
    PILImage.fromarray(pixels).save(buf, format="PNG")
    return buf.getvalue()


class FakeUploadRepository(UploadRepository):
    """Records every call; fails on the configured 1-based call numbers."""

    def __init__(self, fail_on: tuple = ()):
        self.fail_on = set(fail_on)
        self.calls: List[dict] = []

    def upload(self, data, *, file_name, mime_type, folder):
        self.calls.append({"data": data, "file_name": file_name,
                           "mime_type": mime_type, "folder": folder})
        if len(self.calls) in self.fail_on:
            raise UploadFailure(None, file_name, "remote storage rejected the file")
        return f"https://cdn.example.com/{folder}/{len(self.calls)}-{file_name}"


@pytest.fixture
def gradient_image():
    """800x600 source image."""
    pixels = make_gradient_pixels(800, 600)
    return Image(pixels=pixels, mime_type="image/png", byte_size=len(encode_png(pixels)))


@pytest.fixture
def noise_image():
    """1200x1000 random noise: compresses badly on purpose."""
    rng = np.random.default_rng(42)
    pixels = rng.integers(0, 256, size=(1000, 1200, 3), dtype=np.uint8)
    return Image(pixels=pixels, mime_type="image/png", byte_size=pixels.nbytes)


@pytest.fixture
def registry():
    return PendingMediaService()


@pytest.fixture
def fake_uploader():
    return FakeUploadRepository()


@pytest.fixture
def sample_png_bytes():
    return encode_png(make_gradient_pixels(640, 480))
