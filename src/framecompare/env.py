"""Environment based configuration.

Every :class:`~framecompare.presets.CompareParams` field can be set through a
``FRAMECOMPARE_<FIELD>`` variable, e.g. ``FRAMECOMPARE_MAX_CANVAS_SIDE=800``.
The command line loads a ``.env`` file first, so the same keys may live there.
"""
from __future__ import annotations

import logging
import os
from typing import Any, Callable, Dict, Mapping, Optional

from dotenv import load_dotenv

from .errors import ValidationError
from .presets import parse_color

logger = logging.getLogger(__name__)

ENV_PREFIX = "FRAMECOMPARE_"
PRESET_VAR = ENV_PREFIX + "PRESET"
LOG_LEVEL_VAR = ENV_PREFIX + "LOG_LEVEL"
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off"}


def _parse_bool(value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in _TRUE:
        return True
    if lowered in _FALSE:
        return False
    raise ValueError(f"expected a boolean, got '{value}'")


_PARSERS: Dict[str, Callable[[str], Any]] = {
    "threshold": float,
    "include_anti_aliasing": _parse_bool,
    "alpha_threshold": float,
    "max_canvas_side": int,
    "background_color": parse_color,
    "min_cluster_size": int,
    "max_significant_clusters": int,
    "max_total_diff_pixels": int,
    "line_shift_ratio": float,
    "include_diff_image": _parse_bool,
}


def load_env_file(path: Optional[str] = None) -> bool:
    """Load a ``.env`` file into ``os.environ`` without overriding set variables."""

    loaded = load_dotenv(dotenv_path=path, override=False)
    if loaded:
        logger.debug("Loaded environment file %s", path or ".env")
    return loaded


def load_env_overrides(environ: Optional[Mapping[str, str]] = None) -> Dict[str, Any]:
    """Return typed overrides for every ``FRAMECOMPARE_<FIELD>`` variable that is set."""

    environ = os.environ if environ is None else environ
    overrides: Dict[str, Any] = {}
    for name, parser in _PARSERS.items():
        raw = environ.get(ENV_PREFIX + name.upper())
        if raw is None or not raw.strip():
            continue
        try:
            overrides[name] = parser(raw.strip())
        except ValueError as exc:
            raise ValidationError(f"Invalid value for {ENV_PREFIX + name.upper()}: {exc}") from exc
    return overrides


def env_preset_name(environ: Optional[Mapping[str, str]] = None) -> Optional[str]:
    environ = os.environ if environ is None else environ
    value = environ.get(PRESET_VAR, "").strip()
    return value or None


def env_log_level(environ: Optional[Mapping[str, str]] = None) -> Optional[str]:
    environ = os.environ if environ is None else environ
    value = environ.get(LOG_LEVEL_VAR, "").strip().upper()
    if not value:
        return None
    if value not in LOG_LEVELS:
        raise ValidationError(
            f"Invalid value for {LOG_LEVEL_VAR}: expected one of {', '.join(LOG_LEVELS)}, got '{value}'"
        )
    return value
