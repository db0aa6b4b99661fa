"""Project baseline and candidate images onto a shared canonical canvas."""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Any, Tuple

import numpy as np

from ..errors import EmptyImageError, UnsupportedInputError
from ..presets import CompareParams
from ..utils.image_ops import composite_over, decode_image, resize_rgba, to_rgba
from .types import EncodedSource, ImageSource, PixelBuffer, RawSource, SurfaceSource

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CanonicalPair:
    baseline: PixelBuffer
    candidate: PixelBuffer
    width: int
    height: int
    scale: float


def as_source(image: Any) -> ImageSource:
    """Classify a caller supplied image into one of the accepted input shapes."""

    if isinstance(image, (SurfaceSource, RawSource, EncodedSource)):
        return image
    if isinstance(image, PixelBuffer):
        return RawSource(image.width, image.height, image.pixels)
    if isinstance(image, np.ndarray):
        if image.ndim < 2:
            raise UnsupportedInputError(f"Cannot interpret array of shape {image.shape} as an image")
        return RawSource(int(image.shape[1]), int(image.shape[0]), image)
    if isinstance(image, (bytes, bytearray, memoryview)):
        return EncodedSource(bytes(image))
    if _has_attrs(image, "width", "height", "data"):
        return RawSource(int(image.width), int(image.height), image.data)
    if _has_attrs(image, "width", "height") and callable(getattr(image, "copy_pixels", None)):
        return SurfaceSource(image)
    raise UnsupportedInputError(f"Unsupported image input type: {type(image).__name__}")


def _has_attrs(obj: Any, *names: str) -> bool:
    return all(hasattr(obj, name) for name in names)


def to_pixel_buffer(image: Any) -> PixelBuffer:
    source = as_source(image)
    if isinstance(source, EncodedSource):
        pixels = decode_image(source.blob)
    elif isinstance(source, RawSource):
        pixels = _raw_to_array(source)
    elif isinstance(source, SurfaceSource):
        surface = source.surface
        pixels = to_rgba(np.asarray(surface.copy_pixels()))
        expected = (int(surface.height), int(surface.width))
        if pixels.shape[:2] != expected:
            raise UnsupportedInputError(
                f"Surface reports {expected[1]}x{expected[0]} but returned pixels of shape {pixels.shape}"
            )
    else:  # pragma: no cover - ImageSource is closed
        raise UnsupportedInputError(f"Unsupported image source: {source!r}")

    height, width = pixels.shape[:2]
    if width == 0 or height == 0:
        raise EmptyImageError(f"Image has no area: {width}x{height}")
    return PixelBuffer(pixels)


def _raw_to_array(source: RawSource) -> np.ndarray:
    if source.width <= 0 or source.height <= 0:
        raise EmptyImageError(f"Image has no area: {source.width}x{source.height}")
    if isinstance(source.data, np.ndarray) and source.data.ndim >= 2:
        pixels = to_rgba(source.data)
        if pixels.shape[:2] != (source.height, source.width):
            raise UnsupportedInputError(
                f"Pixel array of shape {source.data.shape} does not match {source.width}x{source.height}"
            )
        return pixels
    try:
        flat = np.frombuffer(memoryview(source.data).cast("B"), dtype=np.uint8)
    except TypeError as exc:
        raise UnsupportedInputError(f"Raw pixel data is not a byte buffer: {type(source.data).__name__}") from exc
    expected = source.width * source.height * 4
    if flat.size != expected:
        raise UnsupportedInputError(
            f"RGBA data has {flat.size} bytes, expected {expected} for {source.width}x{source.height}"
        )
    return flat.reshape(source.height, source.width, 4)


def compute_scale(width: int, height: int, max_side: int) -> float:
    """Scale that fits the baseline into ``max_side``, doubled for non-square images."""

    if width <= 0 or height <= 0:
        raise EmptyImageError(f"Image has no area: {width}x{height}")
    scale = min(max_side / width, max_side / height)
    if width != height:
        scale *= 2
    return scale


def resized_size(width: int, height: int, scale: float) -> Tuple[int, int]:
    return max(1, math.ceil(width * scale)), max(1, math.ceil(height * scale))


def crop_to_canvas(pixels: np.ndarray, width: int, height: int, scale: float) -> np.ndarray:
    """Top-left region of ``pixels`` that still reaches a ``width`` x ``height`` canvas once scaled.

    One extra source row and column is kept for the resampling kernel.
    """

    src_h, src_w = pixels.shape[:2]
    keep_w = min(src_w, math.ceil(width / scale) + 1)
    keep_h = min(src_h, math.ceil(height / scale) + 1)
    if (keep_h, keep_w) == (src_h, src_w):
        return pixels
    return np.ascontiguousarray(pixels[:keep_h, :keep_w])


def canonicalize(baseline: Any, candidate: Any, params: CompareParams) -> CanonicalPair:
    baseline_buf = to_pixel_buffer(baseline)
    candidate_buf = to_pixel_buffer(candidate)

    scale = compute_scale(baseline_buf.width, baseline_buf.height, params.max_canvas_side)
    width, height = resized_size(baseline_buf.width, baseline_buf.height, scale)
    visible = crop_to_canvas(candidate_buf.pixels, width, height, scale)
    cand_w, cand_h = resized_size(visible.shape[1], visible.shape[0], scale)
    logger.debug(
        "Canonical canvas %dx%d (scale=%.4f, baseline %dx%d, candidate %dx%d)",
        width,
        height,
        scale,
        baseline_buf.width,
        baseline_buf.height,
        candidate_buf.width,
        candidate_buf.height,
    )

    resized_baseline = resize_rgba(baseline_buf.pixels, width, height)
    resized_candidate = resize_rgba(visible, cand_w, cand_h)

    return CanonicalPair(
        baseline=PixelBuffer(composite_over(resized_baseline, width, height, params.background_color)),
        candidate=PixelBuffer(composite_over(resized_candidate, width, height, params.background_color)),
        width=width,
        height=height,
        scale=scale,
    )
