"""Value types shared by the comparison pipeline."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple, Union

import numpy as np

Point = Tuple[int, int]


@dataclass(frozen=True)
class PixelBuffer:
    """Immutable RGBA raster of shape ``(height, width, 4)``."""

    pixels: np.ndarray

    def __post_init__(self) -> None:
        array = np.ascontiguousarray(self.pixels, dtype=np.uint8)
        if array.ndim != 3 or array.shape[2] != 4:
            raise ValueError(f"PixelBuffer expects an (h, w, 4) array, got shape {array.shape}")
        if array is self.pixels:
            array = array.copy()
        array.setflags(write=False)
        object.__setattr__(self, "pixels", array)

    @property
    def width(self) -> int:
        return int(self.pixels.shape[1])

    @property
    def height(self) -> int:
        return int(self.pixels.shape[0])

    @property
    def data(self) -> bytes:
        return self.pixels.tobytes()

    @classmethod
    def from_bytes(cls, width: int, height: int, data: Union[bytes, bytearray, memoryview]) -> "PixelBuffer":
        raw = np.frombuffer(bytes(data), dtype=np.uint8)
        if raw.size != width * height * 4:
            raise ValueError(
                f"RGBA data has {raw.size} bytes, expected {width * height * 4} for {width}x{height}"
            )
        return cls(raw.reshape(height, width, 4))

    @classmethod
    def filled(cls, width: int, height: int, color: Tuple[int, int, int, int]) -> "PixelBuffer":
        array = np.empty((height, width, 4), dtype=np.uint8)
        array[:, :] = color
        return cls(array)

    def copy_pixels(self) -> np.ndarray:
        return self.pixels.copy()


# ---------------------------------------------------------------------------
# Accepted image inputs
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SurfaceSource:
    """Canvas-like handle exposing ``width``, ``height`` and ``copy_pixels()``."""

    surface: Any


@dataclass(frozen=True)
class RawSource:
    """Contiguous RGBA samples with explicit dimensions."""

    width: int
    height: int
    data: Any


@dataclass(frozen=True)
class EncodedSource:
    """Encoded image bytes (PNG, JPEG, ...) to be decoded by the codec."""

    blob: bytes


ImageSource = Union[SurfaceSource, RawSource, EncodedSource]


# ---------------------------------------------------------------------------
# Cluster analysis
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Bounds:
    min_x: int
    min_y: int
    max_x: int
    max_y: int

    @property
    def width(self) -> int:
        return self.max_x - self.min_x + 1

    @property
    def height(self) -> int:
        return self.max_y - self.min_y + 1

    def to_dict(self) -> Dict[str, int]:
        return {
            "min_x": self.min_x,
            "min_y": self.min_y,
            "max_x": self.max_x,
            "max_y": self.max_y,
            "width": self.width,
            "height": self.height,
        }


@dataclass(frozen=True)
class Cluster:
    """8-connected group of differing pixels."""

    pixels: Tuple[Point, ...]
    bounds: Bounds
    is_line_shift: bool

    @property
    def size(self) -> int:
        return len(self.pixels)

    def to_dict(self, include_pixels: bool = False) -> Dict[str, object]:
        data: Dict[str, object] = {
            "size": self.size,
            "is_line_shift": self.is_line_shift,
            "bounds": self.bounds.to_dict(),
        }
        if include_pixels:
            data["pixels"] = [[x, y] for x, y in self.pixels]
        return data


@dataclass(frozen=True)
class ClusterAnalysis:
    clusters: Tuple[Cluster, ...]
    total_clusters: int
    significant_clusters: int
    significant_pixels: int

    def to_dict(self) -> Dict[str, int]:
        return {
            "total_clusters": self.total_clusters,
            "significant_clusters": self.significant_clusters,
            "significant_pixels": self.significant_pixels,
        }


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ComparisonDetails:
    total_diff_pixels: int
    significant_diff_pixels: int
    clusters: Tuple[Cluster, ...] = ()
    analysis: Optional[ClusterAnalysis] = None

    def to_dict(self, include_pixels: bool = False) -> Dict[str, object]:
        return {
            "total_diff_pixels": self.total_diff_pixels,
            "significant_diff_pixels": self.significant_diff_pixels,
            "clusters": [cluster.to_dict(include_pixels) for cluster in self.clusters],
            "analysis": self.analysis.to_dict() if self.analysis is not None else None,
        }


@dataclass(frozen=True)
class ComparisonResult:
    ok: bool
    diff_count: int
    width: int
    height: int
    details: ComparisonDetails
    diff_pixels: Optional[PixelBuffer] = field(default=None, repr=False)
    diff_image: Optional[bytes] = field(default=None, repr=False)

    @property
    def total_pixels(self) -> int:
        return self.width * self.height

    @property
    def diff_percentage(self) -> float:
        if self.total_pixels == 0:
            return 0.0
        return self.diff_count / self.total_pixels * 100.0


@dataclass(frozen=True)
class ImagePair:
    name: str
    baseline: Any
    candidate: Any


@dataclass(frozen=True)
class BatchEntry:
    """Outcome of one pair in a batch; either ``result`` or ``error`` is set."""

    name: str
    result: Optional[ComparisonResult] = None
    error: Optional[str] = None
    error_type: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.result is not None and self.result.ok


__all__: List[str] = [
    "Point",
    "PixelBuffer",
    "SurfaceSource",
    "RawSource",
    "EncodedSource",
    "ImageSource",
    "Bounds",
    "Cluster",
    "ClusterAnalysis",
    "ComparisonDetails",
    "ComparisonResult",
    "ImagePair",
    "BatchEntry",
]
