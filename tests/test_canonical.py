import numpy as np
import pytest

from framecompare.core.canonical import (
    as_source,
    canonicalize,
    compute_scale,
    crop_to_canvas,
    resized_size,
    to_pixel_buffer,
)
from framecompare.core.types import EncodedSource, PixelBuffer, RawSource, SurfaceSource
from framecompare.errors import EmptyImageError, UnsupportedInputError
from framecompare.presets import CompareParams
from framecompare.utils.image_ops import encode_png


def _solid(width, height, color):
    image = np.empty((height, width, 4), dtype=np.uint8)
    image[:, :] = color
    return image


class FakeSurface:
    def __init__(self, pixels):
        self._pixels = pixels
        self.height, self.width = pixels.shape[:2]

    def copy_pixels(self):
        return self._pixels.copy()


class RawImage:
    def __init__(self, width, height, data):
        self.width = width
        self.height = height
        self.data = data


def test_compute_scale_square():
    assert compute_scale(200, 200, 400) == pytest.approx(2.0)


def test_compute_scale_doubles_for_non_square():
    assert compute_scale(100, 200, 800) == pytest.approx(8.0)
    assert resized_size(100, 200, 8.0) == (800, 1600)


def test_portrait_baseline_sets_canvas_for_both_images():
    params = CompareParams(max_canvas_side=800)
    baseline = _solid(100, 200, (10, 20, 30, 255))
    candidate = _solid(50, 50, (200, 100, 50, 255))

    pair = canonicalize(baseline, candidate, params)

    assert (pair.width, pair.height) == (800, 1600)
    assert (pair.baseline.width, pair.baseline.height) == (800, 1600)
    assert (pair.candidate.width, pair.candidate.height) == (800, 1600)
    assert pair.scale == pytest.approx(8.0)
    # candidate is resized to 400x400 and padded with the background
    assert tuple(pair.candidate.pixels[10, 10]) == (200, 100, 50, 255)
    assert tuple(pair.candidate.pixels[1000, 500]) == params.background_color


def test_larger_candidate_is_clipped():
    params = CompareParams(max_canvas_side=10)
    pair = canonicalize(_solid(10, 10, (0, 0, 0, 255)), _solid(20, 20, (9, 9, 9, 255)), params)
    assert pair.candidate.pixels.shape == (10, 10, 4)
    assert np.all(pair.candidate.pixels == (9, 9, 9, 255))


def test_transparent_pixels_show_background():
    params = CompareParams(max_canvas_side=4, background_color=(240, 240, 240, 255))
    image = _solid(4, 4, (0, 0, 0, 0))
    pair = canonicalize(image, image, params)
    assert np.all(pair.baseline.pixels == (240, 240, 240, 255))


def test_canonicalize_is_deterministic():
    rng = np.random.default_rng(1)
    baseline = rng.integers(0, 256, size=(30, 45, 4), dtype=np.uint8)
    candidate = rng.integers(0, 256, size=(33, 41, 4), dtype=np.uint8)
    params = CompareParams(max_canvas_side=64)
    first = canonicalize(baseline, candidate, params)
    second = canonicalize(baseline, candidate, params)
    assert np.array_equal(first.baseline.pixels, second.baseline.pixels)
    assert np.array_equal(first.candidate.pixels, second.candidate.pixels)


def test_as_source_variants():
    pixels = _solid(3, 2, (1, 2, 3, 255))
    assert isinstance(as_source(pixels), RawSource)
    assert isinstance(as_source(PixelBuffer(pixels)), RawSource)
    assert isinstance(as_source(b"\x89PNG"), EncodedSource)
    assert isinstance(as_source(FakeSurface(pixels)), SurfaceSource)
    assert isinstance(as_source(RawImage(3, 2, pixels.tobytes())), RawSource)


def test_unsupported_input_raises():
    with pytest.raises(UnsupportedInputError):
        as_source(object())
    with pytest.raises(UnsupportedInputError):
        to_pixel_buffer(RawImage(3, 2, b"\x00" * 5))
    with pytest.raises(UnsupportedInputError):
        to_pixel_buffer(b"not an image")


def test_empty_image_raises():
    with pytest.raises(EmptyImageError):
        to_pixel_buffer(np.zeros((0, 10, 4), dtype=np.uint8))
    with pytest.raises(EmptyImageError):
        to_pixel_buffer(RawImage(0, 5, b""))


def test_all_input_shapes_decode_to_same_pixels():
    pixels = np.zeros((6, 8, 4), dtype=np.uint8)
    pixels[..., 3] = 255
    pixels[2:4, 3:6, 0] = 255

    expected = to_pixel_buffer(pixels)
    for source in (
        encode_png(pixels),
        FakeSurface(pixels),
        RawImage(8, 6, pixels.tobytes()),
        PixelBuffer(pixels),
    ):
        assert np.array_equal(to_pixel_buffer(source).pixels, expected.pixels)


def test_grayscale_and_rgb_arrays_are_expanded():
    gray = np.full((2, 2), 77, dtype=np.uint8)
    rgb = np.zeros((2, 2, 3), dtype=np.uint8)
    assert tuple(to_pixel_buffer(gray).pixels[0, 0]) == (77, 77, 77, 255)
    assert tuple(to_pixel_buffer(rgb).pixels[0, 0]) == (0, 0, 0, 255)


def test_pixel_buffer_is_read_only_copy():
    pixels = _solid(2, 2, (5, 5, 5, 255))
    buffer = PixelBuffer(pixels)
    pixels[0, 0] = (9, 9, 9, 9)
    assert tuple(buffer.pixels[0, 0]) == (5, 5, 5, 255)
    assert len(buffer.data) == buffer.width * buffer.height * 4
    with pytest.raises(ValueError):
        buffer.pixels[0, 0] = (1, 1, 1, 1)


def test_crop_to_canvas_keeps_only_visible_source():
    pixels = np.zeros((600, 600, 4), dtype=np.uint8)
    assert crop_to_canvas(pixels, 400, 400, 100.0).shape == (5, 5, 4)
    small = np.zeros((3, 2, 4), dtype=np.uint8)
    assert crop_to_canvas(small, 400, 400, 100.0) is small


def test_small_baseline_with_huge_candidate():
    baseline = _solid(4, 4, (200, 200, 200, 255))
    candidate = _solid(600, 600, (200, 200, 200, 255))
    candidate[0, 0] = (0, 0, 0, 255)

    pair = canonicalize(baseline, candidate, CompareParams())

    assert (pair.width, pair.height) == (400, 400)
    assert pair.candidate.pixels.shape == (400, 400, 4)
    assert tuple(pair.candidate.pixels[399, 399]) == (200, 200, 200, 255)
    assert tuple(pair.candidate.pixels[0, 0]) != (200, 200, 200, 255)
