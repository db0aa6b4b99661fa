"""Connected-component analysis of a diff mask.

Differing pixels are grouped into 8-connected clusters with a breadth-first
flood fill. Each cluster is classified as a line shift when most of its pixels
have at most two differing neighbours, which is what thin anti-aliased
strokes moving by a pixel look like. Solid edits produce dense blobs instead.
"""
from __future__ import annotations

import logging
from collections import deque
from typing import List, Sequence

import numpy as np

from ..presets import CompareParams
from .pixeldiff import is_diff_marker
from .significance import is_significant
from .types import Bounds, Cluster, ClusterAnalysis, Point

logger = logging.getLogger(__name__)

# A pixel with at most this many differing neighbours is considered line-like.
LINE_NEIGHBOR_LIMIT = 2

_NEIGHBOR_OFFSETS = tuple(
    (dx, dy) for dy in (-1, 0, 1) for dx in (-1, 0, 1) if not (dx == 0 and dy == 0)
)


def as_mask(diff: np.ndarray) -> np.ndarray:
    """Return a 2-D boolean mask from a boolean mask or an RGBA marker buffer."""

    diff = np.asarray(diff)
    if diff.ndim == 3 and diff.shape[2] == 4:
        return is_diff_marker(diff)
    if diff.ndim == 2:
        return diff.astype(bool, copy=False)
    raise ValueError(f"Diff mask must be (h, w) or (h, w, 4), got shape {diff.shape}")


def neighbor_counts(mask: np.ndarray) -> np.ndarray:
    """Number of differing 8-neighbours of every pixel in ``mask``."""

    height, width = mask.shape
    padded = np.pad(mask.astype(np.uint8), 1, mode="constant", constant_values=0)
    counts = np.zeros((height, width), dtype=np.uint8)
    for dx, dy in _NEIGHBOR_OFFSETS:
        counts += padded[1 + dy : 1 + dy + height, 1 + dx : 1 + dx + width]
    return counts


def cluster_bounds(pixels: Sequence[Point]) -> Bounds:
    if not pixels:
        return Bounds(0, 0, 0, 0)
    xs = [x for x, _ in pixels]
    ys = [y for _, y in pixels]
    return Bounds(min(xs), min(ys), max(xs), max(ys))


def is_line_shift(pixels: Sequence[Point], counts: np.ndarray, ratio: float) -> bool:
    if not pixels:
        return False
    line_like = sum(1 for x, y in pixels if counts[y, x] <= LINE_NEIGHBOR_LIMIT)
    return line_like / len(pixels) > ratio


def _flood_fill(mask: np.ndarray, visited: np.ndarray, start_x: int, start_y: int) -> List[Point]:
    height, width = mask.shape
    queue = deque([(start_x, start_y)])
    pixels: List[Point] = []

    while queue:
        x, y = queue.popleft()
        # The same position may be queued by several neighbours.
        if visited[y, x] or not mask[y, x]:
            continue
        visited[y, x] = True
        pixels.append((x, y))

        for dx, dy in _NEIGHBOR_OFFSETS:
            nx, ny = x + dx, y + dy
            if 0 <= nx < width and 0 <= ny < height and not visited[ny, nx]:
                queue.append((nx, ny))

    return pixels


def find_clusters(mask: np.ndarray, line_shift_ratio: float) -> List[Cluster]:
    """All clusters of ``mask`` in row-major discovery order."""

    mask = as_mask(mask)
    visited = np.zeros(mask.shape, dtype=bool)
    counts = neighbor_counts(mask)
    clusters: List[Cluster] = []

    ys, xs = np.nonzero(mask)
    for y, x in zip(ys.tolist(), xs.tolist()):
        if visited[y, x]:
            continue
        pixels = _flood_fill(mask, visited, x, y)
        clusters.append(
            Cluster(
                pixels=tuple(pixels),
                bounds=cluster_bounds(pixels),
                is_line_shift=is_line_shift(pixels, counts, line_shift_ratio),
            )
        )
    return clusters


def analyze_clusters(mask: np.ndarray, params: CompareParams) -> ClusterAnalysis:
    clusters = find_clusters(mask, params.line_shift_ratio)
    significant = [cluster for cluster in clusters if is_significant(cluster, params)]
    significant_pixels = sum(cluster.size for cluster in significant)

    logger.debug(
        "clusters: %d total, %d line shifts, %d significant (%d px)",
        len(clusters),
        sum(1 for cluster in clusters if cluster.is_line_shift),
        len(significant),
        significant_pixels,
    )

    return ClusterAnalysis(
        clusters=tuple(clusters),
        total_clusters=len(clusters),
        significant_clusters=len(significant),
        significant_pixels=significant_pixels,
    )
