"""Image codec and raster helpers built on OpenCV and numpy."""
from __future__ import annotations

from typing import Tuple

import cv2
import numpy as np

from ..errors import UnsupportedInputError

RGBA = Tuple[int, int, int, int]


def decode_image(blob: bytes) -> np.ndarray:
    """Decode encoded image bytes into an RGBA ``uint8`` array."""

    raw = np.frombuffer(bytes(blob), dtype=np.uint8)
    if raw.size == 0:
        raise UnsupportedInputError("Cannot decode an empty byte string")
    image = cv2.imdecode(raw, cv2.IMREAD_UNCHANGED)
    if image is None:
        raise UnsupportedInputError("Encoded image could not be decoded")
    if image.dtype == np.uint16:
        image = (image >> 8).astype(np.uint8)
    if image.ndim == 2:
        return cv2.cvtColor(image, cv2.COLOR_GRAY2RGBA)
    channels = image.shape[2]
    if channels == 3:
        return cv2.cvtColor(image, cv2.COLOR_BGR2RGBA)
    if channels == 4:
        return cv2.cvtColor(image, cv2.COLOR_BGRA2RGBA)
    raise UnsupportedInputError(f"Unsupported channel count in decoded image: {channels}")


def encode_png(pixels: np.ndarray) -> bytes:
    """Encode an RGBA array as PNG bytes."""

    ok, encoded = cv2.imencode(".png", cv2.cvtColor(np.ascontiguousarray(pixels), cv2.COLOR_RGBA2BGRA))
    if not ok:
        raise RuntimeError("PNG encoding failed")
    return encoded.tobytes()


def to_rgba(array: np.ndarray) -> np.ndarray:
    """Return ``array`` as an ``(h, w, 4)`` ``uint8`` array.

    Grayscale, single channel and RGB inputs are expanded; anything else is
    rejected with :class:`UnsupportedInputError`.
    """

    array = np.asarray(array)
    if array.dtype != np.uint8:
        if array.dtype.kind not in "uif":
            raise UnsupportedInputError(f"Unsupported pixel dtype: {array.dtype}")
        array = np.clip(array, 0, 255).astype(np.uint8)
    if array.ndim == 3 and array.shape[2] == 1:
        array = array[:, :, 0]
    if array.ndim == 2:
        return cv2.cvtColor(np.ascontiguousarray(array), cv2.COLOR_GRAY2RGBA)
    if array.ndim == 3 and array.shape[2] == 3:
        return cv2.cvtColor(np.ascontiguousarray(array), cv2.COLOR_RGB2RGBA)
    if array.ndim == 3 and array.shape[2] == 4:
        return np.ascontiguousarray(array)
    raise UnsupportedInputError(f"Cannot interpret array of shape {array.shape} as an image")


def resize_rgba(image: np.ndarray, width: int, height: int) -> np.ndarray:
    if image.shape[:2] == (height, width):
        return image
    interpolation = (
        cv2.INTER_AREA if width < image.shape[1] or height < image.shape[0] else cv2.INTER_LINEAR
    )
    return cv2.resize(image, (width, height), interpolation=interpolation)


def composite_over(image: np.ndarray, width: int, height: int, background: RGBA) -> np.ndarray:
    """Draw ``image`` at the origin of a ``width`` x ``height`` canvas.

    The canvas is filled with ``background`` first and the image is blended
    source-over; whatever falls outside the canvas is clipped.
    """

    canvas = np.empty((height, width, 4), dtype=np.uint8)
    canvas[:, :] = background
    h = min(height, image.shape[0])
    w = min(width, image.shape[1])
    if h == 0 or w == 0:
        return canvas

    src = image[:h, :w].astype(np.float64)
    dst = canvas[:h, :w].astype(np.float64)
    src_a = src[:, :, 3:4] / 255.0
    dst_a = dst[:, :, 3:4] / 255.0
    out_a = src_a + dst_a * (1.0 - src_a)
    with np.errstate(invalid="ignore", divide="ignore"):
        out_rgb = (src[:, :, :3] * src_a + dst[:, :, :3] * dst_a * (1.0 - src_a)) / out_a
    out_rgb = np.where(out_a > 0, out_rgb, 0.0)

    canvas[:h, :w, :3] = np.clip(np.rint(out_rgb), 0, 255).astype(np.uint8)
    canvas[:h, :w, 3] = np.clip(np.rint(out_a[:, :, 0] * 255.0), 0, 255).astype(np.uint8)
    return canvas
