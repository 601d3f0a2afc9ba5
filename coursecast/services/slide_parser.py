"""
Slide and course-layout parsing on top of JSONRecoveryParser.

Models wrap their slide arrays in different envelopes ({"slides": [...]},
{"data": [...]}, a lone slide object). parse_slides() unwraps them and
validates each record, dropping the ones that fail.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from ..exceptions import RecordValidationError
from ..models import CourseLayout, SlideRecord
from .json_parser import JSONRecoveryParser

logger = logging.getLogger(__name__)


@dataclass
class SlideParseResult:
    """Slides recovered from one model response"""
    slides: List[SlideRecord]
    strategy: str
    dropped: List[RecordValidationError] = field(default_factory=list)

    @property
    def dropped_count(self) -> int:
        return len(self.dropped)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "slides": [s.to_wire() for s in self.slides],
            "strategy": self.strategy,
            "dropped": [
                {"record_index": e.record_index, "errors": e.errors} for e in self.dropped
            ],
        }


def unwrap_records(value: Any) -> Optional[List[Any]]:
    """Find the list of records inside a parsed model response."""
    if isinstance(value, list):
        return value
    if not isinstance(value, dict):
        return None
    if "slideId" in value:
        return [value]
    for key in ("slides", "data"):
        if isinstance(value.get(key), list):
            return value[key]
    for item in value.values():
        if isinstance(item, list):
            return item
    return [value]


REQUIRED_SLIDE_FIELDS = ("slideId", "slideIndex", "html", "narration")


def looks_like_slides(value: Any) -> bool:
    """Structural check: an empty record list, or one holding at least one slide-shaped object."""
    records = unwrap_records(value)
    if records is None:
        return False
    if not records:
        return True
    return any(
        isinstance(record, dict) and all(key in record for key in REQUIRED_SLIDE_FIELDS)
        for record in records
    )


def _format_errors(error: ValidationError) -> List[str]:
    return [
        f"{'.'.join(str(part) for part in e['loc'])}: {e['msg']}"
        for e in error.errors()
    ]


def parse_slides(raw: str, parser: Optional[JSONRecoveryParser] = None) -> SlideParseResult:
    """
    Recover and validate slide records from raw model text.

    Raises:
        UnrecoverableFormatError: No slide-shaped JSON value could be recovered
    """
    parser = parser or JSONRecoveryParser()
    outcome = parser.parse_with_outcome(raw, validator=looks_like_slides)
    records = unwrap_records(outcome.value) or []

    slides: List[SlideRecord] = []
    dropped: List[RecordValidationError] = []
    seen_ids = set()

    for index, record in enumerate(records):
        try:
            if not isinstance(record, dict):
                raise RecordValidationError(
                    f"Record {index} is {type(record).__name__}, not an object",
                    record_index=index,
                )
            try:
                slide = SlideRecord.model_validate(record)
            except ValidationError as e:
                raise RecordValidationError(
                    f"Record {index} failed validation",
                    record_index=index,
                    errors=_format_errors(e),
                ) from e
            if slide.slide_id in seen_ids:
                raise RecordValidationError(
                    f"Record {index} repeats slideId {slide.slide_id}",
                    record_index=index,
                )
        except RecordValidationError as e:
            logger.warning(f"Dropping slide record {index}: {e} {e.errors}")
            dropped.append(e)
            continue

        seen_ids.add(slide.slide_id)
        slides.append(slide)

    logger.info(
        f"Parsed {len(slides)} slides via {outcome.strategy}"
        + (f", dropped {len(dropped)}" if dropped else "")
    )
    return SlideParseResult(slides=slides, strategy=outcome.strategy, dropped=dropped)


def parse_course_layout(raw: str, parser: Optional[JSONRecoveryParser] = None) -> CourseLayout:
    """
    Recover a course outline from raw model text.

    Raises:
        UnrecoverableFormatError: No object with a chapters list was found
        pydantic.ValidationError: The object does not match CourseLayout
    """
    parser = parser or JSONRecoveryParser(record_extractor=None)

    def has_chapters(value: Any) -> bool:
        if isinstance(value, dict) and isinstance(value.get("course"), dict):
            value = value["course"]
        return isinstance(value, dict) and isinstance(value.get("chapters"), list)

    value = parser.parse(raw, validator=has_chapters)
    if "chapters" not in value:
        value = value["course"]
    return CourseLayout.model_validate(value)

