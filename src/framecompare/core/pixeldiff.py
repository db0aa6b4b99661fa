"""Perceptual per-pixel diff producing a marker-coded diff buffer.

The colour metric follows pixelmatch: pixels are blended over white by their
alpha, converted to YIQ and compared with a weighted squared distance. Counted
differences are painted with :data:`DIFF_MARKER`, anti-aliased pixels that
are tolerated get :data:`AA_COLOR` and everything else becomes a faded
grayscale copy of the first image.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Tuple

import numpy as np

from ..presets import CompareParams
from .types import PixelBuffer

DIFF_MARKER: Tuple[int, int, int, int] = (255, 0, 0, 255)
AA_COLOR: Tuple[int, int, int, int] = (255, 255, 0, 255)

# Largest possible YIQ delta between two colours.
MAX_YIQ_DELTA = 35215.0


@dataclass(frozen=True)
class PixelDiff:
    count: int
    buffer: PixelBuffer


def _blend(channel: np.ndarray, alpha: np.ndarray) -> np.ndarray:
    return 255.0 + (channel - 255.0) * alpha


def _rgb2y(r, g, b):
    return r * 0.29889531 + g * 0.58662247 + b * 0.11448223


def _rgb2i(r, g, b):
    return r * 0.59597799 - g * 0.27417610 - b * 0.32180189


def _rgb2q(r, g, b):
    return r * 0.21147017 - g * 0.52261711 + b * 0.31114694


def _blended_channels(img: np.ndarray) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    data = img.astype(np.float64)
    alpha = data[..., 3] / 255.0
    return _blend(data[..., 0], alpha), _blend(data[..., 1], alpha), _blend(data[..., 2], alpha)


def _packed(img: np.ndarray) -> np.ndarray:
    """One integer per pixel so that equal integers mean equal RGBA samples."""

    return np.ascontiguousarray(img).view(np.uint32)[..., 0]


def color_delta(img1: np.ndarray, img2: np.ndarray) -> np.ndarray:
    """Signed YIQ delta per pixel; negative when ``img1`` is brighter."""

    r1, g1, b1 = _blended_channels(img1)
    r2, g2, b2 = _blended_channels(img2)
    y1 = _rgb2y(r1, g1, b1)
    y2 = _rgb2y(r2, g2, b2)
    y = y1 - y2
    i = _rgb2i(r1, g1, b1) - _rgb2i(r2, g2, b2)
    q = _rgb2q(r1, g1, b1) - _rgb2q(r2, g2, b2)
    delta = 0.5053 * y * y + 0.299 * i * i + 0.1957 * q * q
    delta = np.where(y1 > y2, -delta, delta)
    return np.where(_packed(img1) == _packed(img2), 0.0, delta)


class _AntialiasProbe:
    """Neighbourhood lookups for one image, kept as plain lists for fast indexing."""

    def __init__(self, img: np.ndarray) -> None:
        self.height, self.width = img.shape[:2]
        r, g, b = _blended_channels(img)
        self.luma: List[List[float]] = _rgb2y(r, g, b).tolist()
        self.packed: List[List[int]] = _packed(img).tolist()

    def _window(self, x1: int, y1: int) -> Tuple[int, int, int, int, int]:
        x0, y0 = max(x1 - 1, 0), max(y1 - 1, 0)
        x2, y2 = min(x1 + 1, self.width - 1), min(y1 + 1, self.height - 1)
        zeroes = 1 if x1 in (x0, x2) or y1 in (y0, y2) else 0
        return x0, y0, x2, y2, zeroes

    def has_many_siblings(self, x1: int, y1: int) -> bool:
        x0, y0, x2, y2, zeroes = self._window(x1, y1)
        center = self.packed[y1][x1]
        for x in range(x0, x2 + 1):
            for y in range(y0, y2 + 1):
                if x == x1 and y == y1:
                    continue
                if self.packed[y][x] == center:
                    zeroes += 1
                if zeroes > 2:
                    return True
        return False

    def is_antialiased(self, x1: int, y1: int, other: "_AntialiasProbe") -> bool:
        x0, y0, x2, y2, zeroes = self._window(x1, y1)
        center = self.packed[y1][x1]
        center_luma = self.luma[y1][x1]
        min_delta = max_delta = 0.0
        min_pos: Optional[Tuple[int, int]] = None
        max_pos: Optional[Tuple[int, int]] = None

        for x in range(x0, x2 + 1):
            for y in range(y0, y2 + 1):
                if x == x1 and y == y1:
                    continue
                delta = 0.0 if self.packed[y][x] == center else center_luma - self.luma[y][x]
                if delta == 0:
                    zeroes += 1
                    if zeroes > 2:
                        return False
                elif delta < min_delta:
                    min_delta, min_pos = delta, (x, y)
                elif delta > max_delta:
                    max_delta, max_pos = delta, (x, y)

        if min_pos is None or max_pos is None:
            return False
        return (self.has_many_siblings(*min_pos) and other.has_many_siblings(*min_pos)) or (
            self.has_many_siblings(*max_pos) and other.has_many_siblings(*max_pos)
        )


def is_antialiased(img: np.ndarray, x: int, y: int, other: np.ndarray) -> bool:
    """Whether the pixel at ``(x, y)`` of ``img`` looks like an anti-aliased edge."""

    return _AntialiasProbe(img).is_antialiased(x, y, _AntialiasProbe(other))


def _gray_backdrop(img: np.ndarray, alpha: float) -> np.ndarray:
    data = img.astype(np.float64)
    luma = _rgb2y(data[..., 0], data[..., 1], data[..., 2])
    value = _blend(luma, alpha * data[..., 3] / 255.0)
    gray = np.clip(np.rint(value), 0, 255).astype(np.uint8)
    out = np.empty(img.shape[:2] + (4,), dtype=np.uint8)
    out[..., 0] = gray
    out[..., 1] = gray
    out[..., 2] = gray
    out[..., 3] = 255
    return out


def pixelmatch(
    img1: np.ndarray,
    img2: np.ndarray,
    output: np.ndarray,
    width: int,
    height: int,
    *,
    threshold: float = 0.1,
    include_aa: bool = False,
    alpha: float = 0.1,
) -> int:
    """Fill ``output`` with the diff visualization and return the diff count.

    ``img1``, ``img2`` and ``output`` are ``(height, width, 4)`` ``uint8``
    arrays; ``output`` is written in place.
    """

    if img1.shape != (height, width, 4) or img2.shape != (height, width, 4):
        raise ValueError("Image sizes do not match")
    if output.shape != (height, width, 4):
        raise ValueError("Output buffer size does not match the images")

    output[...] = _gray_backdrop(img1, alpha)
    if np.array_equal(img1, img2):
        return 0

    max_delta = MAX_YIQ_DELTA * threshold * threshold
    over = np.abs(color_delta(img1, img2)) > max_delta
    if include_aa:
        output[over] = DIFF_MARKER
        return int(np.count_nonzero(over))

    probe1 = _AntialiasProbe(img1)
    probe2 = _AntialiasProbe(img2)
    count = 0
    ys, xs = np.nonzero(over)
    for y, x in zip(ys.tolist(), xs.tolist()):
        if probe1.is_antialiased(x, y, probe2) or probe2.is_antialiased(x, y, probe1):
            output[y, x] = AA_COLOR
        else:
            output[y, x] = DIFF_MARKER
            count += 1
    return count


def compute_diff(baseline: PixelBuffer, candidate: PixelBuffer, params: CompareParams) -> PixelDiff:
    """Default diff provider used by the comparison engine.

    The candidate is passed first so the faded backdrop of the diff image
    shows the new render.
    """

    output = np.zeros((baseline.height, baseline.width, 4), dtype=np.uint8)
    count = pixelmatch(
        candidate.pixels,
        baseline.pixels,
        output,
        baseline.width,
        baseline.height,
        **params.pixel_match_options(),
    )
    return PixelDiff(count=count, buffer=PixelBuffer(output))


def is_diff_marker(buffer: np.ndarray) -> np.ndarray:
    """Boolean mask of pixels painted with the diff marker."""

    return (buffer[..., 0] == DIFF_MARKER[0]) & (buffer[..., 1] == DIFF_MARKER[1]) & (
        buffer[..., 2] == DIFF_MARKER[2]
    )


def diff_mask(diff: PixelDiff) -> np.ndarray:
    return is_diff_marker(diff.buffer.pixels)
