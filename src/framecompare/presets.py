"""Comparison parameter presets, configuration merging and color helpers."""
from __future__ import annotations

from dataclasses import dataclass, fields, replace
from typing import Any, Dict, Iterable, Mapping, Optional, Tuple

from .errors import ValidationError

Color = Tuple[int, int, int]
RGBA = Tuple[int, int, int, int]

# Keys of the nested ``pixel_match`` option group and the fields they map to.
PIXEL_MATCH_KEYS: Mapping[str, str] = {
    "threshold": "threshold",
    "include_aa": "include_anti_aliasing",
    "include_anti_aliasing": "include_anti_aliasing",
    "alpha": "alpha_threshold",
    "alpha_threshold": "alpha_threshold",
}


@dataclass(frozen=True)
class ColorScheme:
    """RGB palette used when outlining clusters on the diff image."""

    significant: Color = (214, 0, 0)
    line_shift: Color = (0, 160, 220)
    small: Color = (237, 160, 0)


@dataclass(frozen=True)
class CompareParams:
    """Parameters driving canonicalization, pixel diffing and cluster filtering."""

    threshold: float = 0.5
    include_anti_aliasing: bool = False
    alpha_threshold: float = 0.1
    max_canvas_side: int = 400
    background_color: RGBA = (240, 240, 240, 255)
    min_cluster_size: int = 4
    max_significant_clusters: int = 2
    max_total_diff_pixels: int = 40
    line_shift_ratio: float = 0.8
    include_diff_image: bool = True

    def __post_init__(self) -> None:
        _check_fraction("threshold", self.threshold)
        _check_fraction("alpha_threshold", self.alpha_threshold)
        _check_fraction("line_shift_ratio", self.line_shift_ratio)
        _check_int("max_canvas_side", self.max_canvas_side, minimum=1)
        _check_int("min_cluster_size", self.min_cluster_size, minimum=1)
        _check_int("max_significant_clusters", self.max_significant_clusters, minimum=0)
        _check_int("max_total_diff_pixels", self.max_total_diff_pixels, minimum=0)
        object.__setattr__(self, "background_color", _normalize_rgba(self.background_color))
        object.__setattr__(self, "include_anti_aliasing", bool(self.include_anti_aliasing))
        object.__setattr__(self, "include_diff_image", bool(self.include_diff_image))

    def pixel_match_options(self) -> Dict[str, Any]:
        return {
            "threshold": self.threshold,
            "include_aa": self.include_anti_aliasing,
            "alpha": self.alpha_threshold,
        }

    def copy(self, **overrides: Any) -> "CompareParams":
        return resolve_params(self, overrides)


def _check_fraction(name: str, value: Any) -> None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValidationError(f"{name} must be a number, got {value!r}")
    if not 0.0 <= float(value) <= 1.0:
        raise ValidationError(f"{name} must be between 0 and 1, got {value}")


def _check_int(name: str, value: Any, *, minimum: int) -> None:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{name} must be an integer, got {value!r}")
    if value < minimum:
        raise ValidationError(f"{name} must be >= {minimum}, got {value}")


def _normalize_rgba(value: Any) -> RGBA:
    try:
        channels = tuple(int(channel) for channel in value)
    except (TypeError, ValueError) as exc:
        raise ValidationError(f"background_color must be a sequence of integers, got {value!r}") from exc
    if len(channels) == 3:
        channels = channels + (255,)
    if len(channels) != 4:
        raise ValidationError("background_color must have 3 or 4 channels")
    if any(channel < 0 or channel > 255 for channel in channels):
        raise ValidationError("background_color channels must be between 0 and 255")
    return channels  # type: ignore[return-value]


_FIELD_NAMES = frozenset(field.name for field in fields(CompareParams))


def resolve_params(
    base: Optional[CompareParams] = None,
    overrides: Optional[Mapping[str, Any]] = None,
) -> CompareParams:
    """Merge ``overrides`` over ``base`` key by key.

    Keys absent from ``overrides`` (or set to ``None``) keep the value from
    ``base``. The nested ``pixel_match`` group is merged the same way inside
    the group, so a partial group only replaces the keys it names.
    """

    base = base or CompareParams()
    if not overrides:
        return base

    changes: Dict[str, Any] = {}
    for key, value in overrides.items():
        if key == "pixel_match":
            changes.update(_flatten_pixel_match(value))
            continue
        if key not in _FIELD_NAMES:
            raise ValidationError(f"Unknown configuration key '{key}'")
        if value is not None:
            changes[key] = value
    if not changes:
        return base
    return replace(base, **changes)


def _flatten_pixel_match(group: Any) -> Dict[str, Any]:
    if group is None:
        return {}
    if not isinstance(group, Mapping):
        raise ValidationError("pixel_match overrides must be a mapping")
    flattened: Dict[str, Any] = {}
    for key, value in group.items():
        if key not in PIXEL_MATCH_KEYS:
            raise ValidationError(f"Unknown pixel_match option '{key}'")
        if value is not None:
            flattened[PIXEL_MATCH_KEYS[key]] = value
    return flattened


@dataclass(frozen=True)
class Preset:
    """Bundle of parameters, overlay styling and metadata."""

    name: str
    description: str
    params: CompareParams
    colors: ColorScheme
    stroke_width: int = 1


_DEFAULT_COLORS = ColorScheme()

PRESETS: Mapping[str, Preset] = {
    "strict": Preset(
        name="strict",
        description="Small tolerance; any sizeable blob fails the comparison.",
        params=CompareParams(
            threshold=0.1,
            min_cluster_size=2,
            max_significant_clusters=0,
            max_total_diff_pixels=10,
            line_shift_ratio=0.9,
        ),
        colors=_DEFAULT_COLORS,
        stroke_width=1,
    ),
    "balanced": Preset(
        name="balanced",
        description="Default mix of sensitivity and rendering-jitter rejection.",
        params=CompareParams(),
        colors=_DEFAULT_COLORS,
        stroke_width=1,
    ),
    "loose": Preset(
        name="loose",
        description="Tolerates thin strokes and a few small blobs.",
        params=CompareParams(
            threshold=0.6,
            min_cluster_size=8,
            max_significant_clusters=4,
            max_total_diff_pixels=150,
            line_shift_ratio=0.6,
        ),
        colors=_DEFAULT_COLORS,
        stroke_width=2,
    ),
}


def get_preset(name: str) -> Preset:
    key = name.lower()
    if key not in PRESETS:
        raise KeyError(f"Unknown preset '{name}'. Available: {', '.join(sorted(PRESETS))}")
    return PRESETS[key]


def iter_presets() -> Iterable[Preset]:
    return PRESETS.values()


def parse_color(value: Optional[str]) -> Optional[RGBA]:
    """Parse ``#RRGGBB``, ``#RRGGBBAA`` or ``r,g,b[,a]`` into an RGBA tuple."""

    if value is None:
        return None
    value = value.strip()
    if not value:
        return None
    if value.startswith("#"):
        hex_value = value[1:]
        if len(hex_value) not in (6, 8):
            raise ValueError("Hex colors must be #RRGGBB or #RRGGBBAA")
        channels = tuple(int(hex_value[i : i + 2], 16) for i in range(0, len(hex_value), 2))
    else:
        parts = value.replace(";", ",").split(",")
        if len(parts) not in (3, 4):
            raise ValueError("RGB colors must provide three or four comma separated numbers")
        channels = tuple(int(p.strip()) for p in parts)
    if len(channels) == 3:
        channels = channels + (255,)
    if any(channel < 0 or channel > 255 for channel in channels):
        raise ValueError("Color channels must be between 0 and 255")
    return channels  # type: ignore[return-value]
