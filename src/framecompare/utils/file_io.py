"""Helper utilities for file input/output."""
from __future__ import annotations

import json
from pathlib import Path
from typing import Any, List, NamedTuple, Optional, Sequence

IMAGE_EXTENSIONS = (".png", ".jpg", ".jpeg")


class PathPair(NamedTuple):
    name: str
    baseline: Path
    candidate: Optional[Path]


def read_json(path: Path) -> Any:
    """Read a JSON file and return its data."""

    with path.open("r", encoding="utf-8") as fh:
        return json.load(fh)


def read_image_bytes(path: str | Path) -> bytes:
    return Path(path).read_bytes()


def write_bytes(path: str | Path, data: bytes) -> Path:
    out_path = Path(path)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    out_path.write_bytes(data)
    return out_path


def pair_image_files(
    reference_dir: str | Path,
    actual_dir: str | Path,
    extensions: Sequence[str] = IMAGE_EXTENSIONS,
) -> List[PathPair]:
    """Match reference images to same-named files in ``actual_dir``.

    Pairs are sorted by file name; ``candidate`` is ``None`` when the actual
    directory has no counterpart.
    """

    reference = Path(reference_dir)
    actual = Path(actual_dir)
    if not reference.is_dir():
        raise FileNotFoundError(f"Reference directory not found: {reference}")
    allowed = {ext.lower() for ext in extensions}
    pairs: List[PathPair] = []
    for path in sorted(reference.iterdir(), key=lambda p: p.name):
        if not path.is_file() or path.suffix.lower() not in allowed:
            continue
        counterpart = actual / path.name
        pairs.append(PathPair(path.name, path, counterpart if counterpart.is_file() else None))
    return pairs


def load_manifest(path: str | Path) -> List[PathPair]:
    """Read a JSON list of ``{"name", "baseline", "candidate"}`` entries.

    Relative paths are resolved against the manifest's directory.
    """

    manifest_path = Path(path)
    data = read_json(manifest_path)
    items = data.get("pairs") if isinstance(data, dict) else data
    if not isinstance(items, list):
        raise ValueError(f"Manifest {manifest_path} must contain a list of pairs")
    root = manifest_path.parent
    pairs: List[PathPair] = []
    for index, item in enumerate(items):
        if not isinstance(item, dict) or "baseline" not in item or "candidate" not in item:
            raise ValueError(f"Manifest entry {index + 1} needs 'baseline' and 'candidate' paths")
        baseline = root / item["baseline"]
        candidate = root / item["candidate"]
        name = str(item.get("name") or baseline.name)
        pairs.append(PathPair(name, baseline, candidate if candidate.is_file() else None))
    return pairs
