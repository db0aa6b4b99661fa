"""Utility functions used across the project."""

from .file_io import PathPair, load_manifest, pair_image_files, read_image_bytes
from .image_ops import composite_over, decode_image, encode_png, resize_rgba, to_rgba

__all__ = [
    "PathPair",
    "load_manifest",
    "pair_image_files",
    "read_image_bytes",
    "composite_over",
    "decode_image",
    "encode_png",
    "resize_rgba",
    "to_rgba",
]
