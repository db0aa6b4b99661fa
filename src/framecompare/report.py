"""JSON and plain-text report helpers."""
from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, List, Sequence

from .core.types import BatchEntry, ComparisonResult


def result_to_dict(result: ComparisonResult, include_pixels: bool = False) -> Dict[str, Any]:
    return {
        "ok": result.ok,
        "diff_count": result.diff_count,
        "diff_percentage": round(result.diff_percentage, 4),
        "width": result.width,
        "height": result.height,
        "details": result.details.to_dict(include_pixels),
    }


def entry_to_dict(entry: BatchEntry, include_pixels: bool = False) -> Dict[str, Any]:
    if entry.result is None:
        return {
            "name": entry.name,
            "ok": False,
            "error": entry.error,
            "error_type": entry.error_type,
        }
    data: Dict[str, Any] = {"name": entry.name}
    data.update(result_to_dict(entry.result, include_pixels))
    return data


def batch_summary(entries: Sequence[BatchEntry]) -> Dict[str, int]:
    passed = sum(1 for entry in entries if entry.ok)
    errored = sum(1 for entry in entries if entry.error is not None)
    return {
        "total": len(entries),
        "passed": passed,
        "failed": len(entries) - passed,
        "errored": errored,
    }


def batch_to_dict(entries: Sequence[BatchEntry], include_pixels: bool = False) -> Dict[str, Any]:
    return {
        "results": [entry_to_dict(entry, include_pixels) for entry in entries],
        "summary": batch_summary(entries),
    }


def to_json(data: Any) -> str:
    return json.dumps(data, ensure_ascii=False, indent=2)


def write_json_report(data: Any, path: str | Path) -> None:
    out_path = Path(path)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    with out_path.open("w", encoding="utf-8") as handle:
        json.dump(data, handle, ensure_ascii=False, indent=2)


def format_result_text(result: ComparisonResult) -> str:
    lines: List[str] = [
        f"Comparison {'PASSED' if result.ok else 'FAILED'}",
        f"Difference: {result.diff_percentage:.2f}%",
        f"Different pixels: {result.diff_count}",
        f"Significant pixels: {result.details.significant_diff_pixels}",
    ]
    analysis = result.details.analysis
    if analysis is not None:
        lines.append(
            f"Clusters: {analysis.total_clusters} total, {analysis.significant_clusters} significant"
        )
    return "\n".join(lines)


def format_batch_text(entries: Sequence[BatchEntry]) -> str:
    lines: List[str] = []
    for entry in entries:
        if entry.result is None:
            lines.append(f"- {entry.name}: ERROR {entry.error}")
        elif entry.ok:
            lines.append(f"- {entry.name}: PASSED")
        else:
            lines.append(
                f"- {entry.name}: FAILED ({entry.result.diff_count} different pixels, "
                f"{entry.result.details.significant_diff_pixels} significant)"
            )
    summary = batch_summary(entries)
    lines.extend(
        [
            "",
            "--- Comparison Summary ---",
            f"Total compared: {summary['total']}",
            f"Passed: {summary['passed']}",
            f"Failed: {summary['failed']}",
        ]
    )
    return "\n".join(lines)
