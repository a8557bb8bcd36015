"""Exceptions raised while reading an odometer photo.

Only fatal conditions are exceptions.  A failed recognition pass is
recorded on its :class:`~ocr.ocr_engine.RecognitionPass` and a photo
without any plausible reading is a normal result.
"""

from __future__ import annotations


class OdometerReadError(RuntimeError):
    """Base class for failures that abort the whole read."""

    status_code = 500


class InputError(OdometerReadError):
    """Raised when the payload is missing, empty or not an image."""

    status_code = 400


class ImageDecodeError(InputError):
    """Raised when the image bytes cannot be decoded."""


class DependencyError(OdometerReadError):
    """Raised when OpenCV or the Tesseract binary is unavailable."""


class ReadCancelled(OdometerReadError):
    """Raised when the caller abandoned the request before it completed."""

    status_code = 499


__all__ = [
    "DependencyError",
    "ImageDecodeError",
    "InputError",
    "OdometerReadError",
    "ReadCancelled",
]
