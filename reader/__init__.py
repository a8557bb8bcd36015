"""High level odometer reading API."""

from .pipeline import (
    DebugTrace,
    OdometerReader,
    PassTrace,
    ReadResult,
    error_payload,
    read_odometer,
)
from .settings import PipelineSettings, load_settings, minimal_settings, thorough_settings

__all__ = [
    "DebugTrace",
    "OdometerReader",
    "PassTrace",
    "PipelineSettings",
    "ReadResult",
    "error_payload",
    "load_settings",
    "minimal_settings",
    "read_odometer",
    "thorough_settings",
]
