"""Comparison engine: canonicalize, diff, cluster and evaluate image pairs."""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Iterable, List, Mapping, Optional, Sequence

import numpy as np

from .core.canonical import canonicalize
from .core.clusters import analyze_clusters
from .core.pixeldiff import PixelDiff, compute_diff, diff_mask
from .core.significance import evaluate_significance
from .core.types import (
    BatchEntry,
    ComparisonDetails,
    ComparisonResult,
    ImagePair,
    PixelBuffer,
)
from .errors import ComparisonError, ValidationError
from .presets import CompareParams, resolve_params
from .utils.image_ops import encode_png

logger = logging.getLogger(__name__)

DiffProvider = Callable[[PixelBuffer, PixelBuffer, CompareParams], PixelDiff]
Encoder = Callable[[np.ndarray], bytes]


class VisualComparisonEngine:
    """Compare rendered frames while tolerating rendering jitter.

    Configuration is resolved in three tiers: the global defaults of
    :class:`CompareParams`, the ``params``/``overrides`` given here, and the
    overrides passed to each :meth:`compare` or :meth:`batch_compare` call.
    Later tiers win key by key.
    """

    def __init__(
        self,
        params: Optional[CompareParams] = None,
        *,
        diff_provider: Optional[DiffProvider] = None,
        encoder: Optional[Encoder] = None,
        **overrides: Any,
    ) -> None:
        self.params = resolve_params(params, overrides)
        self._diff_provider = diff_provider or compute_diff
        self._encoder = encoder or encode_png

    def resolve(self, overrides: Optional[Mapping[str, Any]] = None) -> CompareParams:
        return resolve_params(self.params, overrides)

    def compare(
        self,
        baseline: Any,
        candidate: Any,
        overrides: Optional[Mapping[str, Any]] = None,
    ) -> ComparisonResult:
        """Compare ``candidate`` against ``baseline``.

        Raises :class:`ValidationError` for missing images or bad overrides
        before any pixel work, and :class:`ComparisonError` wrapping the cause
        for every other failure.
        """

        _validate_inputs(baseline, candidate)
        params = self.resolve(overrides)
        try:
            return self._run(baseline, candidate, params)
        except Exception as exc:
            raise ComparisonError(f"Comparison failed: {exc}", cause=exc) from exc

    def batch_compare(
        self,
        pairs: Iterable[Any],
        overrides: Optional[Mapping[str, Any]] = None,
    ) -> List[BatchEntry]:
        """Compare each pair in order; a failing pair is recorded, not raised."""

        params = self.resolve(overrides)
        entries: List[BatchEntry] = []
        for index, raw_pair in enumerate(pairs):
            name = _pair_name(raw_pair, index)
            try:
                pair = _as_pair(raw_pair, index)
                _validate_inputs(pair.baseline, pair.candidate)
                result = self._run(pair.baseline, pair.candidate, params)
            except Exception as exc:
                logger.warning("Comparison of '%s' failed: %s", name, exc, exc_info=True)
                entries.append(BatchEntry(name=name, error=str(exc), error_type=type(exc).__name__))
                continue
            entries.append(BatchEntry(name=name, result=result))

        failed = sum(1 for entry in entries if not entry.ok)
        logger.info("Batch finished: %d pair(s), %d failed", len(entries), failed)
        return entries

    async def compare_async(
        self,
        baseline: Any,
        candidate: Any,
        overrides: Optional[Mapping[str, Any]] = None,
    ) -> ComparisonResult:
        return await asyncio.to_thread(self.compare, baseline, candidate, overrides)

    async def batch_compare_async(
        self,
        pairs: Iterable[Any],
        overrides: Optional[Mapping[str, Any]] = None,
    ) -> List[BatchEntry]:
        return await asyncio.to_thread(self.batch_compare, list(pairs), overrides)

    def _run(self, baseline: Any, candidate: Any, params: CompareParams) -> ComparisonResult:
        canonical = canonicalize(baseline, candidate, params)
        diff = self._diff_provider(canonical.baseline, canonical.candidate, params)
        diff_image = self._encoder(diff.buffer.pixels) if params.include_diff_image else None

        if diff.count == 0:
            logger.info("Comparison passed: no differing pixels")
            return ComparisonResult(
                ok=True,
                diff_count=0,
                width=canonical.width,
                height=canonical.height,
                details=ComparisonDetails(total_diff_pixels=0, significant_diff_pixels=0),
                diff_pixels=diff.buffer,
                diff_image=diff_image,
            )

        analysis = analyze_clusters(diff_mask(diff), params)
        ok = evaluate_significance(analysis, params)
        logger.info(
            "Comparison %s: %d differing px, %d significant px in %d of %d cluster(s)",
            "passed" if ok else "failed",
            diff.count,
            analysis.significant_pixels,
            analysis.significant_clusters,
            analysis.total_clusters,
        )
        return ComparisonResult(
            ok=ok,
            diff_count=diff.count,
            width=canonical.width,
            height=canonical.height,
            details=ComparisonDetails(
                total_diff_pixels=diff.count,
                significant_diff_pixels=analysis.significant_pixels,
                clusters=analysis.clusters,
                analysis=analysis,
            ),
            diff_pixels=diff.buffer,
            diff_image=diff_image,
        )


def _validate_inputs(baseline: Any, candidate: Any) -> None:
    if baseline is None or candidate is None:
        raise ValidationError("Both baseline and candidate images are required")


def _pair_name(raw: Any, index: int) -> str:
    if isinstance(raw, ImagePair):
        return raw.name
    if isinstance(raw, Mapping) and raw.get("name"):
        return str(raw["name"])
    if isinstance(raw, Sequence) and not isinstance(raw, (str, bytes)) and len(raw) == 3:
        return str(raw[0])
    return f"pair_{index + 1}"


def _as_pair(raw: Any, index: int) -> ImagePair:
    name = _pair_name(raw, index)
    if isinstance(raw, ImagePair):
        return raw
    if isinstance(raw, Mapping):
        return ImagePair(name=name, baseline=raw.get("baseline"), candidate=raw.get("candidate"))
    if isinstance(raw, Sequence) and not isinstance(raw, (str, bytes)):
        if len(raw) == 3:
            return ImagePair(name=name, baseline=raw[1], candidate=raw[2])
        if len(raw) == 2:
            return ImagePair(name=name, baseline=raw[0], candidate=raw[1])
    raise ValidationError(f"Pair {index + 1} must be an ImagePair, a mapping or a (name, baseline, candidate) tuple")


def compare_images(baseline: Any, candidate: Any, **overrides: Any) -> ComparisonResult:
    return VisualComparisonEngine().compare(baseline, candidate, overrides)


def compare_images_batch(pairs: Sequence[Any], **overrides: Any) -> List[BatchEntry]:
    return VisualComparisonEngine().batch_compare(pairs, overrides)
