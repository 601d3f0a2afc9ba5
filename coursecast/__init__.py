"""
CourseCast - narrated slide video generation core

Recovers slide JSON from language-model output, turns narration into
speech audio, captions and reveal timelines, and drives progressive
reveals from a playback clock.

Usage:
    config = CourseCastConfig.from_env()
    config.apply_logging()
"""

from .config import CourseCastConfig
from .exceptions import (
    ChapterGenerationError,
    CourseCastError,
    FormatMismatchError,
    InvalidAudioError,
    PermanentServiceError,
    RecordValidationError,
    TransientServiceError,
    UnrecoverableFormatError,
)
from .logging_config import configure_logging

__version__ = "0.1.0"

__all__ = [
    "CourseCastConfig",
    "CourseCastError",
    "UnrecoverableFormatError",
    "TransientServiceError",
    "PermanentServiceError",
    "FormatMismatchError",
    "InvalidAudioError",
    "RecordValidationError",
    "ChapterGenerationError",
    "configure_logging",
]
