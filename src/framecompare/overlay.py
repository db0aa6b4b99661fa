"""Outline detected clusters on the diff visualization."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional, Tuple

import cv2

from .core.significance import is_significant
from .core.types import Cluster, ComparisonResult, PixelBuffer
from .presets import ColorScheme, CompareParams
from .utils.image_ops import encode_png

RGB = Tuple[int, int, int]


@dataclass(frozen=True)
class OverlayStyle:
    significant_color: RGB
    line_shift_color: RGB
    small_color: RGB
    stroke_width: int = 1
    padding: int = 1


def _clamp(value: int, minimum: int = 0, maximum: int = 255) -> int:
    return max(minimum, min(value, maximum))


def tint_color(color: RGB, *, blend: float = 0.6) -> RGB:
    """Blend an RGB colour with white to create a softer stroke."""

    blend = max(0.0, min(blend, 1.0))
    return tuple(_clamp(round(channel + (255 - channel) * blend)) for channel in color)  # type: ignore[return-value]


def make_overlay_style(
    colors: ColorScheme,
    *,
    stroke_width: int = 1,
    padding: int = 1,
    noise_tint: float = 0.4,
) -> OverlayStyle:
    """Create an overlay style from a colour scheme.

    Clusters that do not count towards the verdict are drawn with a lightened
    version of their colour so significant ones stand out.
    """

    return OverlayStyle(
        significant_color=colors.significant,
        line_shift_color=tint_color(colors.line_shift, blend=noise_tint),
        small_color=tint_color(colors.small, blend=noise_tint),
        stroke_width=max(1, int(stroke_width)),
        padding=max(0, int(padding)),
    )


def cluster_color(cluster: Cluster, params: CompareParams, style: OverlayStyle) -> RGB:
    if cluster.is_line_shift:
        return style.line_shift_color
    if is_significant(cluster, params):
        return style.significant_color
    return style.small_color


def draw_cluster_overlay(
    buffer: PixelBuffer,
    clusters: Iterable[Cluster],
    params: CompareParams,
    style: OverlayStyle,
) -> PixelBuffer:
    """Return a copy of ``buffer`` with a rectangle around every cluster."""

    canvas = buffer.copy_pixels()
    max_x = buffer.width - 1
    max_y = buffer.height - 1
    for cluster in clusters:
        bounds = cluster.bounds
        top_left = (max(0, bounds.min_x - style.padding), max(0, bounds.min_y - style.padding))
        bottom_right = (min(max_x, bounds.max_x + style.padding), min(max_y, bounds.max_y + style.padding))
        color = cluster_color(cluster, params, style) + (255,)
        cv2.rectangle(canvas, top_left, bottom_right, color, thickness=style.stroke_width)
    return PixelBuffer(canvas)


def render_overlay_png(
    result: ComparisonResult,
    params: CompareParams,
    style: Optional[OverlayStyle] = None,
) -> bytes:
    """Encode the diff visualization of ``result`` with cluster outlines as PNG."""

    if result.diff_pixels is None:
        raise ValueError("Comparison result carries no diff pixels to annotate")
    style = style or make_overlay_style(ColorScheme())
    annotated = draw_cluster_overlay(result.diff_pixels, result.details.clusters, params, style)
    return encode_png(annotated.pixels)
