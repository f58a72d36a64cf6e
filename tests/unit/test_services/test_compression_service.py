"""
Unit tests for services.compression_service module.
"""
import numpy as np
import pytest

from models.cancellation import CancellationToken
from models.errors import CompressionBudgetExceeded, EncodeFailure, OperationCancelled
from models.processing_options import ProcessingOptions
from repositories.codec_repository import ImageCodec
from services.compression_service import CompressionService


class RecordingReducer:
    """Reducer double: returns a canned payload and records its arguments."""

    def __init__(self, result=None, error=None):
        self.result = result
        self.error = error
        self.calls = []

    def reduce(self, data, max_bytes, max_dimension, quality, mime_type="image/jpeg"):
        self.calls.append(dict(size=len(data), max_bytes=max_bytes,
                               max_dimension=max_dimension, quality=quality,
                               mime_type=mime_type))
        if self.error:
            raise self.error
        return self.result if self.result is not None else data


class BrokenCodec(ImageCodec):
    def encode(self, pixels, mime_type, quality):
        raise RuntimeError("codec crashed")


@pytest.fixture
def noise_pixels(noise_image):
    return noise_image.pixels


class TestPrimaryEncode:

    def test_under_budget_skips_reducer(self):
        reducer = RecordingReducer()
        service = CompressionService(reducer=reducer)
        pixels = np.full((200, 300, 3), 128, dtype=np.uint8)

        result = service.compress(pixels, ProcessingOptions())

        assert reducer.calls == []
        assert result.secondary_pass is False
        assert result.budget_exceeded is False
        assert (result.width, result.height) == (300, 200)
        assert result.data[:2] == b"\xff\xd8"

    def test_codec_failure_becomes_encode_failure(self):
        service = CompressionService(codec=BrokenCodec(), reducer=RecordingReducer())

        with pytest.raises(EncodeFailure):
            service.compress(np.zeros((10, 10, 3), np.uint8), ProcessingOptions())

    def test_unknown_format_is_encode_failure(self):
        service = CompressionService(reducer=RecordingReducer())
        options = ProcessingOptions(output_format="image/tiff")

        with pytest.raises(EncodeFailure):
            service.compress(np.zeros((10, 10, 3), np.uint8), options)


class TestSecondaryPass:

    def test_reducer_called_with_lower_quality_and_clamp(self, noise_pixels):
        reducer = RecordingReducer(result=b"\xff\xd8small")
        service = CompressionService(reducer=reducer)
        options = ProcessingOptions(max_output_bytes=50_000, max_dimension_px=640,
                                    initial_quality=0.85)

        service.codec.dimensions = lambda data: (640, 533)
        result = service.compress(noise_pixels, options)

        assert len(reducer.calls) == 1
        call = reducer.calls[0]
        assert call["quality"] == pytest.approx(0.85 * 0.9)
        assert call["max_dimension"] == 640
        assert call["max_bytes"] == 50_000
        assert result.data == b"\xff\xd8small"
        assert result.secondary_pass is True
        assert (result.width, result.height) == (640, 533)

    def test_result_never_larger_than_primary(self, noise_pixels):
        service = CompressionService()
        options = ProcessingOptions(max_output_bytes=60_000, max_dimension_px=800)
        primary = service.codec.encode(noise_pixels, options.output_format, options.initial_quality)

        result = service.compress(noise_pixels, options)

        assert len(primary) > options.max_output_bytes
        assert len(result.data) <= len(primary)
        assert max(result.width, result.height) <= 800

    def test_growth_from_reducer_is_discarded(self, noise_pixels):
        reducer = RecordingReducer(result=b"x" * 10_000_000)
        service = CompressionService(reducer=reducer)
        options = ProcessingOptions(max_output_bytes=1000)

        with pytest.warns(CompressionBudgetExceeded):
            result = service.compress(noise_pixels, options)

        assert len(result.data) < 10_000_000
        assert result.quality == options.initial_quality
        assert result.budget_exceeded is True

    def test_reducer_error_keeps_primary(self, noise_pixels):
        service = CompressionService(reducer=RecordingReducer(error=ValueError("bad image")))
        options = ProcessingOptions(max_output_bytes=1000)

        with pytest.warns(CompressionBudgetExceeded):
            result = service.compress(noise_pixels, options)

        assert result.data[:2] == b"\xff\xd8"
        assert result.budget_exceeded is True

    def test_cancelled_before_secondary_pass(self, noise_pixels):
        reducer = RecordingReducer()
        service = CompressionService(reducer=reducer)
        token = CancellationToken()
        token.cancel("editor closed")

        with pytest.raises(OperationCancelled):
            service.compress(noise_pixels, ProcessingOptions(max_output_bytes=1000), token)
        assert reducer.calls == []
