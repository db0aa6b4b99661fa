import asyncio

import numpy as np
import pytest

import framecompare.compare as compare_module
from framecompare import (
    ComparisonError,
    CompareParams,
    ImagePair,
    UnsupportedInputError,
    ValidationError,
    VisualComparisonEngine,
    compare_images,
    compare_images_batch,
)
from framecompare.core.pixeldiff import PixelDiff
from framecompare.core.types import PixelBuffer

SIDE = 20
BACKGROUND = (230, 230, 230, 255)


def _canvas():
    image = np.empty((SIDE, SIDE, 4), dtype=np.uint8)
    image[:, :] = BACKGROUND
    return image


def _with_block(x0, y0, x1, y1):
    image = _canvas()
    image[y0:y1, x0:x1] = (0, 0, 0, 255)
    return image


def _with_line(length):
    image = _canvas()
    image[10, 2 : 2 + length] = (0, 0, 0, 255)
    return image


def _engine(**overrides):
    params = dict(max_canvas_side=SIDE, threshold=0.1)
    params.update(overrides)
    return VisualComparisonEngine(**params)


def test_identical_images_short_circuit(monkeypatch):
    def fail(*args, **kwargs):
        raise AssertionError("cluster analysis should not run")

    monkeypatch.setattr(compare_module, "analyze_clusters", fail)
    result = _engine().compare(_canvas(), _canvas())

    assert result.ok is True
    assert result.diff_count == 0
    assert result.details.clusters == ()
    assert result.details.analysis is None
    assert result.details.significant_diff_pixels == 0
    assert result.diff_image is not None
    assert result.diff_image.startswith(b"\x89PNG")


def test_large_solid_block_fails():
    engine = _engine(max_total_diff_pixels=20, line_shift_ratio=0.8)
    result = engine.compare(_canvas(), _with_block(4, 4, 10, 10))

    assert result.ok is False
    assert result.diff_count == 36
    assert result.details.significant_diff_pixels == 36
    assert result.details.analysis.significant_clusters == 1
    assert result.details.clusters[0].is_line_shift is False


def test_small_block_within_tolerance_passes():
    result = _engine().compare(_canvas(), _with_block(4, 4, 10, 10))
    assert result.ok is True
    assert result.details.significant_diff_pixels == 36


def test_thin_line_is_ignored_as_line_shift():
    engine = _engine(max_total_diff_pixels=0, max_significant_clusters=0)
    result = engine.compare(_canvas(), _with_line(12))

    assert result.diff_count == 12
    assert result.ok is True
    assert result.details.significant_diff_pixels == 0
    assert result.details.clusters[0].is_line_shift is True


def test_too_many_clusters_fails():
    image = _canvas()
    for x0 in (1, 7, 13):
        image[2:5, x0 : x0 + 3] = (0, 0, 0, 255)
    result = _engine(max_significant_clusters=2).compare(_canvas(), image)

    assert result.details.analysis.significant_clusters == 3
    assert result.details.significant_diff_pixels == 27
    assert result.ok is False


def test_significant_pixels_never_exceed_diff_count():
    rng = np.random.default_rng(11)
    noisy = _canvas()
    noisy[rng.random((SIDE, SIDE)) < 0.2] = (0, 0, 0, 255)
    result = _engine().compare(_canvas(), noisy)
    assert result.details.significant_diff_pixels <= result.diff_count
    assert sum(c.size for c in result.details.clusters) == result.diff_count


def test_missing_image_is_validation_error():
    with pytest.raises(ValidationError):
        _engine().compare(None, _canvas())
    with pytest.raises(ValidationError):
        _engine().compare(_canvas(), None)


def test_invalid_override_is_validation_error():
    with pytest.raises(ValidationError):
        _engine().compare(_canvas(), _canvas(), {"threshold": 3})
    with pytest.raises(ValidationError):
        _engine().compare(_canvas(), _canvas(), {"unknown": 1})


def test_pipeline_failures_are_wrapped():
    with pytest.raises(ComparisonError) as excinfo:
        _engine().compare(_canvas(), object())
    assert isinstance(excinfo.value.cause, UnsupportedInputError)
    assert isinstance(excinfo.value.__cause__, UnsupportedInputError)
    assert str(excinfo.value).startswith("Comparison failed:")


def test_configuration_cascade():
    engine = VisualComparisonEngine(CompareParams(min_cluster_size=9), max_canvas_side=SIDE)
    assert engine.params.min_cluster_size == 9
    assert engine.params.max_canvas_side == SIDE
    assert engine.params.threshold == CompareParams().threshold

    per_call = engine.resolve({"threshold": 0.2})
    assert per_call.threshold == 0.2
    assert per_call.min_cluster_size == 9
    assert engine.params.threshold == CompareParams().threshold


def test_per_call_override_changes_verdict():
    engine = _engine()
    image = _with_block(4, 4, 10, 10)
    assert engine.compare(_canvas(), image).ok is True
    assert engine.compare(_canvas(), image, {"max_total_diff_pixels": 10}).ok is False


def test_custom_diff_provider_and_encoder():
    calls = []

    def provider(baseline, candidate, params):
        calls.append(params)
        buffer = np.zeros((baseline.height, baseline.width, 4), dtype=np.uint8)
        buffer[0:3, 0:3] = (255, 0, 0, 255)
        return PixelDiff(count=9, buffer=PixelBuffer(buffer))

    engine = _engine(min_cluster_size=4, diff_provider=provider, encoder=lambda pixels: b"diff")
    result = engine.compare(_canvas(), _canvas())

    assert len(calls) == 1
    assert result.diff_count == 9
    assert result.details.significant_diff_pixels == 9
    assert result.diff_image == b"diff"


def test_diff_image_can_be_disabled():
    result = _engine(include_diff_image=False).compare(_canvas(), _with_line(5))
    assert result.diff_image is None
    assert result.diff_pixels is not None


def test_batch_degrades_failing_pair():
    pairs = [
        ImagePair("first", _canvas(), _canvas()),
        ImagePair("second", _canvas(), object()),
        ImagePair("third", _canvas(), _with_block(4, 4, 10, 10)),
    ]
    entries = _engine(max_total_diff_pixels=20).batch_compare(pairs)

    assert len(entries) == 3
    assert [entry.name for entry in entries] == ["first", "second", "third"]
    assert entries[0].ok is True
    assert entries[0].result.diff_count == 0
    assert entries[1].ok is False
    assert entries[1].result is None
    assert "Unsupported image input type" in entries[1].error
    assert entries[1].error_type == "UnsupportedInputError"
    assert entries[2].ok is False
    assert entries[2].result.diff_count == 36


def test_batch_accepts_mappings_and_tuples():
    entries = _engine().batch_compare(
        [
            {"name": "mapped", "baseline": _canvas(), "candidate": _canvas()},
            ("tupled", _canvas(), _canvas()),
            (_canvas(), _canvas()),
            {"name": "missing", "baseline": _canvas()},
        ]
    )
    assert [entry.name for entry in entries] == ["mapped", "tupled", "pair_3", "missing"]
    assert [entry.ok for entry in entries] == [True, True, True, False]
    assert entries[3].error_type == "ValidationError"


def test_batch_rejects_bad_override_before_work():
    with pytest.raises(ValidationError):
        _engine().batch_compare([ImagePair("a", _canvas(), _canvas())], {"line_shift_ratio": -1})


def test_module_shortcuts():
    result = compare_images(_canvas(), _canvas(), max_canvas_side=SIDE)
    assert result.ok is True
    entries = compare_images_batch([("only", _canvas(), _canvas())], max_canvas_side=SIDE)
    assert entries[0].ok is True


def test_async_wrappers():
    engine = _engine()
    result = asyncio.run(engine.compare_async(_canvas(), _with_line(4)))
    assert result.ok is True
    entries = asyncio.run(engine.batch_compare_async([ImagePair("a", _canvas(), _canvas())]))
    assert entries[0].ok is True


def test_small_baseline_against_much_larger_candidate():
    baseline = np.full((4, 4, 4), 200, dtype=np.uint8)
    candidate = np.full((600, 600, 4), 200, dtype=np.uint8)

    result = VisualComparisonEngine().compare(baseline, candidate)

    assert result.ok is True
    assert result.diff_count == 0
    assert (result.width, result.height) == (400, 400)
