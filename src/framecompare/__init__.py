"""Perceptual, jitter-tolerant comparison of rendered frames."""

from __future__ import annotations

from .compare import VisualComparisonEngine, compare_images, compare_images_batch
from .core.types import (
    BatchEntry,
    Bounds,
    Cluster,
    ClusterAnalysis,
    ComparisonDetails,
    ComparisonResult,
    EncodedSource,
    ImagePair,
    PixelBuffer,
    RawSource,
    SurfaceSource,
)
from .errors import (
    ComparisonError,
    EmptyImageError,
    FrameCompareError,
    UnsupportedInputError,
    ValidationError,
)
from .presets import CompareParams, get_preset, iter_presets, resolve_params

__all__ = [
    "VisualComparisonEngine",
    "compare_images",
    "compare_images_batch",
    "BatchEntry",
    "Bounds",
    "Cluster",
    "ClusterAnalysis",
    "ComparisonDetails",
    "ComparisonResult",
    "EncodedSource",
    "ImagePair",
    "PixelBuffer",
    "RawSource",
    "SurfaceSource",
    "ComparisonError",
    "EmptyImageError",
    "FrameCompareError",
    "UnsupportedInputError",
    "ValidationError",
    "CompareParams",
    "get_preset",
    "iter_presets",
    "resolve_params",
]

__version__ = "0.1.0"
