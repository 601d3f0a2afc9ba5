"""
Caption Segmenter - Word timestamps to readable caption chunks

Groups transcription words into short on-screen spans. A chunk closes at
sentence ends, at clause breaks followed by a pause, at long pauses, or at
the hard size cap, but never below the minimum size except for the last
chunk of the input.
"""

import logging
from typing import List, Optional, Sequence

from ..config.settings import CaptionSettings
from ..models import CaptionChunk, CaptionMetadata, CaptionTrack, TranscriptionResult, WordTiming

logger = logging.getLogger(__name__)

SENTENCE_ENDERS = ('.', '!', '?')
CLAUSE_BREAKERS = (',', ';', ':', '--')

# Closing quotes and brackets after the punctuation ("done." or end.)
_TRAILING_WRAPPERS = '"\')]}\u201d\u2019'


def _bare(text: str) -> str:
    return text.rstrip().rstrip(_TRAILING_WRAPPERS)


def ends_sentence(text: str) -> bool:
    return _bare(text).endswith(SENTENCE_ENDERS)


def ends_clause(text: str) -> bool:
    return _bare(text).endswith(CLAUSE_BREAKERS)


class CaptionSegmenter:
    """
    Converts word timings into caption chunks.

    Usage:
        segmenter = CaptionSegmenter()
        chunks = segmenter.segment(transcription.words)
    """

    def __init__(self, settings: Optional[CaptionSettings] = None):
        self.settings = settings or CaptionSettings()
        if not 1 <= self.settings.min_words <= self.settings.target_words <= self.settings.max_words:
            raise ValueError(
                f"Caption sizes must satisfy 1 <= min <= target <= max, got "
                f"{self.settings.min_words}/{self.settings.target_words}/{self.settings.max_words}"
            )

    def _should_close(self, size: int, word: WordTiming, gap: Optional[float]) -> bool:
        s = self.settings
        if gap is None:
            return True
        if size < s.min_words:
            return False
        if ends_sentence(word.text) and (gap > s.short_pause or size >= s.target_words):
            return True
        if ends_clause(word.text) and size >= s.target_words and gap > s.short_pause:
            return True
        if gap > s.long_pause and size >= s.target_words:
            return True
        return size >= s.max_words

    def segment(self, words: Sequence[WordTiming]) -> List[CaptionChunk]:
        """
        Split words into chunks.

        Every input word lands in exactly one chunk, in order. Empty input
        gives an empty list.
        """
        chunks: List[CaptionChunk] = []
        pending: List[WordTiming] = []

        for i, word in enumerate(words):
            pending.append(word)
            gap = words[i + 1].start - word.end if i + 1 < len(words) else None

            if self._should_close(len(pending), word, gap):
                chunks.append(CaptionChunk(
                    timestamp=(pending[0].start, max(pending[-1].end, pending[0].start)),
                    text=' '.join(w.text for w in pending),
                    word_count=len(pending),
                ))
                pending = []

        if words:
            logger.debug(f"Segmented {len(words)} words into {len(chunks)} caption chunks")
        return chunks


def build_caption_track(
    transcription: TranscriptionResult,
    segmenter: Optional[CaptionSegmenter] = None,
) -> CaptionTrack:
    """Caption metadata stored with a slide: transcript, chunks and summary counts."""
    segmenter = segmenter or CaptionSegmenter()
    words = transcription.words
    chunks = segmenter.segment(words)

    duration = round(words[-1].end - words[0].start, 2) if words else 0.0
    average = round(len(words) / len(chunks), 1) if chunks else 0.0

    return CaptionTrack(
        text=transcription.text,
        language_code=transcription.language_code,
        chunks=chunks,
        metadata=CaptionMetadata(
            total_words=len(words),
            total_chunks=len(chunks),
            avg_words_per_chunk=average,
            duration=max(0.0, duration),
        ),
    )
