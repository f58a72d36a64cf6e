"""
Unit tests for repositories.image_repository, codec_repository and reducer_repository.
"""
from io import BytesIO
import warnings

import numpy as np
import pytest
from PIL import Image as PILImage

from repositories.codec_repository import ImageCodec
from repositories.image_repository import ImageRepository, extension_for, guess_mime_type
from repositories.reducer_repository import ImageReducer

from conftest import encode_png, make_gradient_pixels


class TestDecode:

    def test_png_round_trip_keeps_rgb_order(self):
        pixels = make_gradient_pixels(64, 48)
        data = encode_png(pixels)

        image = ImageRepository().decode(data, mime_type="image/png")

        assert (image.width, image.height) == (64, 48)
        assert image.byte_size == len(data)
        np.testing.assert_array_equal(image.pixels, pixels)

    def test_empty_payload(self):
        with pytest.raises(ValueError):
            ImageRepository().decode(b"")

    def test_garbage_payload(self):
        with pytest.raises(ValueError):
            ImageRepository().decode(b"definitely not an image")

    def test_load_from_disk(self, tmp_path):
        path = tmp_path / "photo.png"
        path.write_bytes(encode_png(make_gradient_pixels(20, 10)))

        image = ImageRepository().load(path)

        assert image.mime_type == "image/png"
        assert image.path == path

    def test_load_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            ImageRepository().load(tmp_path / "missing.jpg")


def test_mime_helpers():
    assert guess_mime_type("a.JPEG") == "image/jpeg"
    assert guess_mime_type("clip.mp4") == "video/mp4"
    assert extension_for("image/jpeg") == ".jpg"
    assert extension_for("image/webp") == ".webp"


class TestImageReducer:

    @staticmethod
    def noisy_jpeg(width, height):
        rng = np.random.default_rng(7)
        pixels = rng.integers(0, 256, size=(height, width, 3), dtype=np.uint8)
        buf = BytesIO()
        PILImage.fromarray(pixels).save(buf, format="JPEG", quality=95)
        return buf.getvalue()

    def test_clamps_longest_side(self):
        data = self.noisy_jpeg(900, 600)

        reduced = ImageReducer().reduce(data, 10 ** 9, 300, 0.8)

        with PILImage.open(BytesIO(reduced)) as img:
            assert max(img.size) == 300

    def test_shrinks_towards_budget(self):
        data = self.noisy_jpeg(600, 400)

        reduced = ImageReducer(max_iterations=30).reduce(data, 40_000, 600, 0.8)

        assert len(reduced) < len(data)
        assert len(reduced) <= 40_000

    def test_png_budget_shrinks_dimensions(self):
        rng = np.random.default_rng(3)
        pixels = rng.integers(0, 256, size=(400, 400, 3), dtype=np.uint8)
        data = encode_png(pixels)

        reduced = ImageReducer().reduce(data, len(data) // 2, 400, 0.9, "image/png")

        assert len(reduced) < len(data)
        with PILImage.open(BytesIO(reduced)) as img:
            assert img.format == "PNG"
            assert max(img.size) < 400


class TestImageCodec:

    def test_png_encode_is_lossless_without_deprecations(self):
        pixels = make_gradient_pixels(32, 16)

        with warnings.catch_warnings():
            warnings.simplefilter("error", DeprecationWarning)
            data = ImageCodec().encode(pixels, "image/png", 0.9)

        with PILImage.open(BytesIO(data)) as img:
            assert img.mode == "RGB"
            np.testing.assert_array_equal(np.asarray(img), pixels)

    def test_dimensions(self):
        data = ImageCodec().encode(make_gradient_pixels(30, 20), "image/jpeg", 0.8)

        assert ImageCodec.dimensions(data) == (30, 20)
