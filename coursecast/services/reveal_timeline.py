"""
Reveal Timeline Planner

Schedules when each reveal id of a slide becomes visible. With captions,
the i-th id appears just before the i-th caption chunk is spoken; without
them, ids are spread evenly over an estimated duration.
"""

import logging
from typing import List, Optional, Sequence

from ..config.settings import TimelineSettings
from ..models import CaptionChunk, TimelineEntry

logger = logging.getLogger(__name__)


class RevealTimelinePlanner:
    """
    Builds (reveal id, activation time) pairs for one slide.

    Output order always matches the input reveal id order, and activation
    times never decrease along it.
    """

    def __init__(self, settings: Optional[TimelineSettings] = None):
        self.settings = settings or TimelineSettings()

    def plan(
        self,
        reveal_ids: Sequence[str],
        caption_chunks: Optional[Sequence[CaptionChunk]] = None,
    ) -> List[TimelineEntry]:
        if not reveal_ids:
            return []

        if caption_chunks:
            times = self._caption_times(len(reveal_ids), caption_chunks)
        else:
            times = self._fallback_times(len(reveal_ids))

        entries: List[TimelineEntry] = []
        floor = 0.0
        for reveal_id, time in zip(reveal_ids, times):
            if time < floor:
                logger.debug(f"Clamping {reveal_id} from {time:.3f}s to {floor:.3f}s")
                time = floor
            floor = time
            entries.append(TimelineEntry(reveal_id=reveal_id, activation_time=round(time, 3)))
        return entries

    def _caption_times(self, count: int, chunks: Sequence[CaptionChunk]) -> List[float]:
        s = self.settings
        times: List[float] = []
        for i in range(count):
            if i < len(chunks):
                times.append(max(0.0, chunks[i].start - s.lead_time))
            else:
                surplus = i - len(chunks) + 1
                times.append(chunks[-1].end + surplus * s.surplus_spacing)
        return times

    def _fallback_times(self, count: int) -> List[float]:
        s = self.settings
        duration = max(s.fallback_min_duration, count * s.fallback_seconds_per_reveal)
        step = duration / count
        logger.info(f"No captions, spreading {count} reveals over {duration:.1f}s")
        return [i * step for i in range(count)]
