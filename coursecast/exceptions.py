"""
CourseCast error taxonomy

Every failure raised by the core derives from CourseCastError so callers
can isolate one generation unit (a slide, a chunk) without catching
unrelated exceptions.
"""

from typing import List, Optional


class CourseCastError(Exception):
    """Base class for all coursecast errors."""


class UnrecoverableFormatError(CourseCastError):
    """Raised when every JSON recovery strategy failed."""

    def __init__(self, message: str, original_content: str, attempts: Optional[List[str]] = None):
        super().__init__(message)
        self.original_content = original_content
        self.attempts = attempts or []


class TransientServiceError(CourseCastError):
    """Timeout, connection reset or 5xx from an external service. Safe to retry."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class PermanentServiceError(CourseCastError):
    """4xx-style failure from an external service. Never retried."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class FormatMismatchError(CourseCastError):
    """Audio segments do not share sample rate, channel count and bit depth."""

    def __init__(self, message: str, segment_index: int):
        super().__init__(message)
        self.segment_index = segment_index


class InvalidAudioError(CourseCastError):
    """An audio buffer is not a readable PCM WAV file."""


class RecordValidationError(CourseCastError):
    """A recovered record is missing required fields. The record is dropped."""

    def __init__(self, message: str, record_index: int, errors: Optional[List[str]] = None):
        super().__init__(message)
        self.record_index = record_index
        self.errors = errors or []


class ChapterGenerationError(CourseCastError):
    """Batch-level failure: no usable slide could be produced for a chapter."""
