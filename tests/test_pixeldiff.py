import numpy as np
import pytest

from framecompare.core.pixeldiff import (
    AA_COLOR,
    DIFF_MARKER,
    color_delta,
    compute_diff,
    is_antialiased,
    is_diff_marker,
    pixelmatch,
)
from framecompare.core.types import PixelBuffer
from framecompare.presets import CompareParams


def _solid(width, height, color):
    image = np.empty((height, width, 4), dtype=np.uint8)
    image[:, :] = color
    return image


def test_identical_images_have_no_diff():
    img = _solid(8, 8, (120, 40, 200, 255))
    out = np.zeros_like(img)
    assert pixelmatch(img, img.copy(), out, 8, 8) == 0
    assert not is_diff_marker(out).any()


def test_solid_block_is_counted_and_marked():
    before = _solid(20, 20, (230, 230, 230, 255))
    after = before.copy()
    after[5:10, 4:12] = (0, 0, 0, 255)
    out = np.zeros_like(before)

    count = pixelmatch(before, after, out, 20, 20, threshold=0.1)

    assert count == 40
    marked = is_diff_marker(out)
    assert marked.sum() == 40
    assert marked[5:10, 4:12].all()
    assert tuple(out[7, 6]) == DIFF_MARKER


def test_small_colour_change_is_under_threshold():
    before = _solid(4, 4, (100, 100, 100, 255))
    after = _solid(4, 4, (104, 100, 100, 255))
    out = np.zeros_like(before)
    assert pixelmatch(before, after, out, 4, 4, threshold=0.1) == 0


def test_color_delta_sign_follows_brightness():
    dark = _solid(1, 1, (0, 0, 0, 255))
    light = _solid(1, 1, (255, 255, 255, 255))
    assert color_delta(light, dark)[0, 0] < 0
    assert color_delta(dark, light)[0, 0] > 0
    assert color_delta(dark, dark)[0, 0] == 0


def test_antialiased_edge_pixel_is_tolerated():
    # A hard vertical edge with one intermediate shade that moves between renders.
    before = _solid(8, 8, (255, 255, 255, 255))
    before[:, 4:] = (0, 0, 0, 255)
    before[:, 3] = (128, 128, 128, 255)
    after = before.copy()
    after[3, 3] = (255, 255, 255, 255)

    assert is_antialiased(before, 3, 3, after)

    out = np.zeros_like(before)
    assert pixelmatch(before, after, out, 8, 8, threshold=0.1) == 0
    assert tuple(out[3, 3]) == AA_COLOR

    out = np.zeros_like(before)
    assert pixelmatch(before, after, out, 8, 8, threshold=0.1, include_aa=True) == 1
    assert tuple(out[3, 3]) == DIFF_MARKER


def test_size_mismatch_raises():
    with pytest.raises(ValueError):
        pixelmatch(_solid(2, 2, (0, 0, 0, 255)), _solid(3, 2, (0, 0, 0, 255)), np.zeros((2, 2, 4), np.uint8), 2, 2)


def test_compute_diff_uses_params():
    before = PixelBuffer(_solid(6, 6, (230, 230, 230, 255)))
    changed = _solid(6, 6, (230, 230, 230, 255))
    changed[2, 2] = (0, 0, 0, 255)
    after = PixelBuffer(changed)

    diff = compute_diff(before, after, CompareParams(threshold=0.1))

    assert diff.count == 1
    assert diff.buffer.width == 6
    assert is_diff_marker(diff.buffer.pixels).sum() == 1


def test_compute_diff_backdrop_shows_candidate():
    before = PixelBuffer(_solid(4, 4, (255, 255, 255, 255)))
    after = PixelBuffer(_solid(4, 4, (205, 205, 205, 255)))

    diff = compute_diff(before, after, CompareParams(threshold=1.0))

    assert diff.count == 0
    assert tuple(diff.buffer.pixels[0, 0]) == (250, 250, 250, 255)
