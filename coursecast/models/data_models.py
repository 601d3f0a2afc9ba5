"""
CourseCast Data Models

Pydantic models shared by the parser, the caption/timeline algorithms and
the media pipeline. Field names are snake_case in Python and camelCase on
the wire (the shape produced by the slide model and consumed by the player).
"""

from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class WireModel(BaseModel):
    """Base model accepting both field names and camelCase aliases"""
    model_config = ConfigDict(populate_by_name=True)

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json")


# =============================================================================
# Slides
# =============================================================================

class Narration(WireModel):
    """Spoken narration attached to a slide"""
    full_text: str = Field(..., alias="fullText", description="Text sent to speech synthesis")

    @field_validator("full_text")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("narration text is empty")
        return value


class SlideRecord(WireModel):
    """One slide as produced by the slide generation model"""
    slide_id: str = Field(..., alias="slideId", min_length=1, description="Unique within the chapter")
    slide_index: int = Field(..., alias="slideIndex", ge=1, description="1-based position in the chapter")
    html: str = Field(..., description="Self-contained slide document")
    narration: Narration
    reveal_data: List[str] = Field(default_factory=list, alias="revealData",
                                   description="Reveal ids in activation order")


# =============================================================================
# Transcription & captions
# =============================================================================

class WordTiming(WireModel):
    """Word-level timestamp from speech-to-text"""
    text: str
    start: float = Field(..., ge=0)   # seconds
    end: float = Field(..., ge=0)     # seconds

    @model_validator(mode="after")
    def _end_after_start(self) -> "WordTiming":
        if self.end < self.start:
            raise ValueError(f"word '{self.text}' ends before it starts")
        return self


class TranscriptionResult(WireModel):
    """Normalised output of a transcription service"""
    text: str = ""
    language_code: Optional[str] = None
    words: List[WordTiming] = Field(default_factory=list)
    synthetic_timings: bool = False   # True when word times were estimated


class CaptionChunk(WireModel):
    """A short span of transcript sized for on-screen reading"""
    timestamp: Tuple[float, float]
    text: str
    word_count: int = Field(..., alias="wordCount", ge=1)

    @property
    def start(self) -> float:
        return self.timestamp[0]

    @property
    def end(self) -> float:
        return self.timestamp[1]


class CaptionMetadata(WireModel):
    total_words: int = Field(0, alias="totalWords")
    total_chunks: int = Field(0, alias="totalChunks")
    avg_words_per_chunk: float = Field(0.0, alias="avgWordsPerChunk")
    duration: float = 0.0


class CaptionTrack(WireModel):
    """Caption metadata stored alongside a slide"""
    text: str = ""
    language_code: Optional[str] = None
    chunks: List[CaptionChunk] = Field(default_factory=list)
    metadata: CaptionMetadata = Field(default_factory=CaptionMetadata)


# =============================================================================
# Reveal timeline
# =============================================================================

class TimelineEntry(WireModel):
    """When a reveal id becomes visible, relative to the slide start"""
    reveal_id: str = Field(..., alias="revealId")
    activation_time: float = Field(..., alias="activationTime", ge=0)


# =============================================================================
# Course layout
# =============================================================================

class Chapter(WireModel):
    chapter_id: str = Field(..., alias="chapterId")
    chapter_title: str = Field(..., alias="chapterTitle")
    sub_content: List[str] = Field(default_factory=list, alias="subContent")


class CourseLayout(WireModel):
    """Course outline returned by the layout model"""
    course_name: str = Field(..., alias="courseName")
    course_description: str = Field("", alias="courseDescription")
    course_id: Optional[str] = Field(None, alias="courseId")
    level: str = "beginner"
    total_chapters: Optional[int] = Field(None, alias="totalChapters")
    chapters: List[Chapter] = Field(default_factory=list)

    @model_validator(mode="after")
    def _count_chapters(self) -> "CourseLayout":
        if self.total_chapters is None:
            self.total_chapters = len(self.chapters)
        return self


# =============================================================================
# Pipeline results
# =============================================================================

class SlideStatus(str, Enum):
    SUCCEEDED = "succeeded"
    SKIPPED = "skipped"
    FAILED = "failed"


class ProcessedSlide(WireModel):
    """A slide whose whole media chain succeeded"""
    slide: SlideRecord
    audio_url: str = Field(..., alias="audioUrl")
    captions: CaptionTrack
    timeline: List[TimelineEntry] = Field(default_factory=list)


class SlideOutcome(WireModel):
    slide_id: str = Field(..., alias="slideId")
    position: int
    status: SlideStatus
    result: Optional[ProcessedSlide] = None
    error: Optional[str] = None


class ChapterReport(WireModel):
    """Partial-success report for one chapter"""
    course_id: str = Field(..., alias="courseId")
    chapter_id: str = Field(..., alias="chapterId")
    outcomes: List[SlideOutcome] = Field(default_factory=list)
    dropped_records: int = Field(0, alias="droppedRecords")

    def _count(self, status: SlideStatus) -> int:
        return sum(1 for o in self.outcomes if o.status == status)

    @property
    def succeeded(self) -> int:
        return self._count(SlideStatus.SUCCEEDED)

    @property
    def skipped(self) -> int:
        return self._count(SlideStatus.SKIPPED)

    @property
    def failed(self) -> int:
        return self._count(SlideStatus.FAILED)

    @property
    def processed_slides(self) -> List[ProcessedSlide]:
        return [o.result for o in self.outcomes if o.result is not None]

    def summary(self) -> Dict[str, int]:
        return {
            "succeeded": self.succeeded,
            "skipped": self.skipped,
            "failed": self.failed,
            "dropped_records": self.dropped_records,
        }
