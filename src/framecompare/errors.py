"""Custom exceptions used across framecompare."""

from __future__ import annotations

from typing import Optional

__all__ = [
    "FrameCompareError",
    "ValidationError",
    "UnsupportedInputError",
    "EmptyImageError",
    "ComparisonError",
]


class FrameCompareError(Exception):
    """Base class for every error raised by the package."""

    pass


class ValidationError(FrameCompareError):
    """Raised when required inputs or configuration values are malformed."""

    pass


class UnsupportedInputError(FrameCompareError):
    """Raised when an image input cannot be normalized to a pixel buffer."""

    pass


class EmptyImageError(FrameCompareError):
    """Raised when an image has zero width or height."""

    pass


class ComparisonError(FrameCompareError):
    """Wraps any failure raised while running the comparison pipeline."""

    def __init__(self, message: str, cause: Optional[BaseException] = None) -> None:
        super().__init__(message)
        self.cause = cause
