"""CourseCast Models Package"""
from .data_models import (
    Narration, SlideRecord, WordTiming, TranscriptionResult,
    CaptionChunk, CaptionMetadata, CaptionTrack, TimelineEntry,
    Chapter, CourseLayout,
    SlideStatus, ProcessedSlide, SlideOutcome, ChapterReport,
)

__all__ = [
    'Narration', 'SlideRecord', 'WordTiming', 'TranscriptionResult',
    'CaptionChunk', 'CaptionMetadata', 'CaptionTrack', 'TimelineEntry',
    'Chapter', 'CourseLayout',
    'SlideStatus', 'ProcessedSlide', 'SlideOutcome', 'ChapterReport',
]
