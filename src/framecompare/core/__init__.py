"""Normalization, diffing, clustering and evaluation stages."""

from .canonical import CanonicalPair, as_source, canonicalize, compute_scale, to_pixel_buffer
from .clusters import analyze_clusters, find_clusters, neighbor_counts
from .pixeldiff import DIFF_MARKER, PixelDiff, compute_diff, is_diff_marker, pixelmatch
from .significance import evaluate_significance, is_significant

__all__ = [
    "CanonicalPair",
    "as_source",
    "canonicalize",
    "compute_scale",
    "to_pixel_buffer",
    "analyze_clusters",
    "find_clusters",
    "neighbor_counts",
    "DIFF_MARKER",
    "PixelDiff",
    "compute_diff",
    "is_diff_marker",
    "pixelmatch",
    "evaluate_significance",
    "is_significant",
]
