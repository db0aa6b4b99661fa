"""Command line interface for framecompare."""
from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from .compare import VisualComparisonEngine
from .core.types import BatchEntry, ComparisonResult, ImagePair
from .env import LOG_LEVELS, env_log_level, env_preset_name, load_env_file, load_env_overrides
from .errors import FrameCompareError, ValidationError
from .overlay import make_overlay_style, render_overlay_png
from .presets import CompareParams, Preset, get_preset, parse_color, resolve_params
from .report import (
    batch_to_dict,
    format_batch_text,
    format_result_text,
    result_to_dict,
    to_json,
    write_json_report,
)
from .utils.file_io import PathPair, load_manifest, pair_image_files, read_image_bytes, write_bytes
from .utils.image_ops import encode_png

logger = logging.getLogger("framecompare")


def _add_tuning_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--format", choices=("json", "text"), default="json", help="Output format")
    parser.add_argument("--json", dest="json_report", help="Also write the JSON report to this path")
    parser.add_argument("--preset", help="Preset name (strict|balanced|loose)")
    parser.add_argument("--threshold", type=float, help="Per-pixel colour sensitivity (0-1)")
    parser.add_argument("--alpha", type=float, help="Opacity of unchanged pixels in the diff image (0-1)")
    parser.add_argument("--include-aa", action="store_true", default=None, help="Count anti-aliased pixels as differences")
    parser.add_argument("--max-side", type=int, help="Longest side of the canonical canvas")
    parser.add_argument("--background", help="Canvas background as #RRGGBB[AA] or r,g,b[,a]")
    parser.add_argument("--min-cluster-size", type=int, help="Smallest cluster that counts as significant")
    parser.add_argument("--max-diff-pixels", type=int, help="Significant pixels tolerated before failing")
    parser.add_argument("--max-clusters", type=int, help="Significant clusters tolerated before failing")
    parser.add_argument("--line-shift-ratio", type=float, help="Fraction of line-like pixels marking a line shift")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="framecompare",
        description="Perceptual comparison of rendered frames that ignores rendering jitter.",
    )
    parser.add_argument("--version", action="store_true", help="Print version and exit")
    parser.add_argument("--log-level", choices=LOG_LEVELS, help="Logging verbosity (stderr)")
    parser.add_argument("--env-file", help="Load configuration variables from this .env file")
    subparsers = parser.add_subparsers(dest="command")

    compare = subparsers.add_parser("compare", help="Compare a single pair of images")
    compare.add_argument("--baseline", required=True, help="Path to the baseline image")
    compare.add_argument("--candidate", required=True, help="Path to the candidate image")
    compare.add_argument("--output", help="Write the diff image (PNG) to this path")
    compare.add_argument("--overlay", help="Write the diff image with cluster outlines (PNG) to this path")
    _add_tuning_arguments(compare)

    batch = subparsers.add_parser("batch", help="Compare same-named images of two directories")
    batch.add_argument("--reference", help="Directory holding the baseline images")
    batch.add_argument("--actual", help="Directory holding the candidate images")
    batch.add_argument("--manifest", help="JSON list of {name, baseline, candidate} entries")
    batch.add_argument("--diff-dir", help="Directory receiving diff images of failing pairs")
    _add_tuning_arguments(batch)
    return parser


def configure_logging(level: str) -> None:
    """Send package log records to stderr so stdout stays machine readable."""

    logger.setLevel(level)
    if not any(isinstance(handler, logging.StreamHandler) for handler in logger.handlers):
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter("%(asctime)s - %(levelname)s - %(message)s"))
        logger.addHandler(handler)
    logger.propagate = False


def main(argv: Optional[Iterable[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.version:
        from . import __version__

        print(__version__)
        return 0
    if not args.command:
        parser.print_help()
        return 2

    load_env_file(args.env_file)
    try:
        log_level = args.log_level or env_log_level() or "WARNING"
    except ValidationError as exc:
        parser.error(str(exc))
        return 2
    configure_logging(log_level)

    try:
        preset = get_preset(args.preset or env_preset_name() or "balanced")
    except KeyError as exc:
        parser.error(str(exc))
        return 2

    try:
        params = resolve_params(preset.params, load_env_overrides())
        params = _override_params(params, args)
    except (ValidationError, ValueError) as exc:
        parser.error(str(exc))
        return 2

    engine = VisualComparisonEngine(params)
    if args.command == "compare":
        return _run_compare(engine, preset, args)
    if not args.manifest and not (args.reference and args.actual):
        parser.error("batch needs --manifest or both --reference and --actual")
        return 2
    return _run_batch(engine, args)


def _override_params(params: CompareParams, args: argparse.Namespace) -> CompareParams:
    overrides: Dict[str, Any] = {}
    for field_name, arg_name in (
        ("threshold", "threshold"),
        ("alpha_threshold", "alpha"),
        ("include_anti_aliasing", "include_aa"),
        ("max_canvas_side", "max_side"),
        ("min_cluster_size", "min_cluster_size"),
        ("max_total_diff_pixels", "max_diff_pixels"),
        ("max_significant_clusters", "max_clusters"),
        ("line_shift_ratio", "line_shift_ratio"),
    ):
        value = getattr(args, arg_name)
        if value is not None:
            overrides[field_name] = value
    if args.background:
        overrides["background_color"] = parse_color(args.background)
    return params.copy(**overrides)


def _report_error(exc: BaseException, output_format: str) -> None:
    if output_format == "json":
        print(json.dumps({"error": str(exc)}), file=sys.stderr)
    else:
        print(f"Error: {exc}", file=sys.stderr)


def _diff_png(result: ComparisonResult) -> Optional[bytes]:
    if result.diff_image is not None:
        return result.diff_image
    if result.diff_pixels is not None:
        return encode_png(result.diff_pixels.pixels)
    return None


def _run_compare(engine: VisualComparisonEngine, preset: Preset, args: argparse.Namespace) -> int:
    try:
        baseline = read_image_bytes(args.baseline)
        candidate = read_image_bytes(args.candidate)
        result = engine.compare(baseline, candidate)
        if args.output:
            diff_png = _diff_png(result)
            if diff_png is not None:
                write_bytes(args.output, diff_png)
        if args.overlay:
            style = make_overlay_style(preset.colors, stroke_width=preset.stroke_width)
            write_bytes(args.overlay, render_overlay_png(result, engine.params, style))
    except (FrameCompareError, OSError) as exc:
        logger.debug("compare failed", exc_info=True)
        _report_error(exc, args.format)
        return 1

    data = result_to_dict(result)
    if args.json_report:
        write_json_report(data, args.json_report)
    print(to_json(data) if args.format == "json" else format_result_text(result))
    return 0 if result.ok else 1


def _load_pairs(args: argparse.Namespace) -> List[PathPair]:
    if args.manifest:
        return load_manifest(args.manifest)
    return pair_image_files(args.reference, args.actual)


def _run_batch(engine: VisualComparisonEngine, args: argparse.Namespace) -> int:
    try:
        path_pairs = _load_pairs(args)
    except (OSError, ValueError) as exc:
        _report_error(exc, args.format)
        return 1
    if not path_pairs:
        logger.warning("No image files found to compare")

    # Pairs that cannot be loaded are reported in place, the rest go to the engine.
    slots: List[Optional[BatchEntry]] = []
    loaded: List[ImagePair] = []
    for path_pair in path_pairs:
        if path_pair.candidate is None:
            slots.append(
                BatchEntry(
                    name=path_pair.name,
                    error=f"Corresponding file not found for {path_pair.baseline.name}",
                    error_type="FileNotFoundError",
                )
            )
            continue
        try:
            loaded.append(
                ImagePair(
                    name=path_pair.name,
                    baseline=read_image_bytes(path_pair.baseline),
                    candidate=read_image_bytes(path_pair.candidate),
                )
            )
        except OSError as exc:
            slots.append(BatchEntry(name=path_pair.name, error=str(exc), error_type=type(exc).__name__))
            continue
        slots.append(None)

    compared = iter(engine.batch_compare(loaded))
    entries = [slot if slot is not None else next(compared) for slot in slots]

    if args.diff_dir:
        _write_failed_diffs(entries, Path(args.diff_dir))

    data = batch_to_dict(entries)
    if args.json_report:
        write_json_report(data, args.json_report)
    print(to_json(data) if args.format == "json" else format_batch_text(entries))
    return 0 if all(entry.ok for entry in entries) else 1


def _write_failed_diffs(entries: Iterable[BatchEntry], diff_dir: Path) -> None:
    for entry in entries:
        if entry.result is None or entry.ok:
            continue
        diff_png = _diff_png(entry.result)
        if diff_png is None:
            continue
        path = write_bytes(diff_dir / f"diff-{Path(entry.name).stem}.png", diff_png)
        logger.info("Diff image for %s saved to %s", entry.name, path)


if __name__ == "__main__":
    sys.exit(main())
