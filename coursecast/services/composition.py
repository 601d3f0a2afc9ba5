"""
Composition planner - place slides on the video frame timeline

Consecutive slides overlap by a short transition so the next slide fades
in while the previous one is still on screen.
"""

import math
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Sequence

from ..models import SlideRecord

TRANSITION_FRAMES = 15
DEFAULT_SLIDE_SECONDS = 6.0


@dataclass
class SlideSequence:
    """Where one slide sits in the composition"""
    slide_id: str
    from_frame: int
    duration_frames: int
    is_first: bool

    @property
    def end_frame(self) -> int:
        return self.from_frame + self.duration_frames

    def to_dict(self) -> Dict[str, Any]:
        return {
            "slide_id": self.slide_id,
            "from": self.from_frame,
            "duration_in_frames": self.duration_frames,
            "is_first": self.is_first,
        }


def plan_composition(
    slides: Sequence[SlideRecord],
    durations: Optional[Mapping[str, float]] = None,
    fps: int = 30,
    transition_frames: int = TRANSITION_FRAMES,
    default_seconds: float = DEFAULT_SLIDE_SECONDS,
) -> List[SlideSequence]:
    """
    Args:
        slides: Slides in playback order
        durations: Seconds of narration per slide id; missing slides get
            default_seconds
        fps: Frames per second of the composition
        transition_frames: Overlap between consecutive slides

    Returns:
        One SlideSequence per slide
    """
    durations = durations or {}
    sequences: List[SlideSequence] = []
    cursor = 0

    for index, slide in enumerate(slides):
        seconds = durations.get(slide.slide_id, default_seconds)
        frames = max(1, math.ceil(seconds * fps))
        sequences.append(SlideSequence(
            slide_id=slide.slide_id,
            from_frame=cursor,
            duration_frames=frames,
            is_first=index == 0,
        ))
        if index < len(slides) - 1:
            cursor += max(0, frames - transition_frames)

    return sequences


def total_frames(sequences: Sequence[SlideSequence]) -> int:
    return max((s.end_frame for s in sequences), default=0)
