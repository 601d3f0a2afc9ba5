"""
Normalise transcription payloads into WordTiming lists.

Speech-to-text services disagree on the response shape. Accepted:
  - {"words": [...]}
  - {"segments": [{"words": [...]}, ...]}
  - {"results": [{"alternatives": [{"words": [...]}]}, ...]}
Each word may use word/text for its text and start/start_time,
end/end_time for its times (seconds, numbers or numeric strings).
When no word-level data is present, uniform timings are synthesized from
the transcript text.
"""

import logging
from typing import Any, Dict, Iterable, List, Optional

from ..models import TranscriptionResult, WordTiming

logger = logging.getLogger(__name__)

DEFAULT_WORD_DURATION = 0.5


def _seconds(value: Any) -> Optional[float]:
    if value is None:
        return None
    if isinstance(value, str):
        value = value.strip().rstrip('s')
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _raw_words(payload: Dict[str, Any]) -> List[Dict[str, Any]]:
    if isinstance(payload.get("words"), list) and payload["words"]:
        return payload["words"]

    collected: List[Dict[str, Any]] = []
    for segment in payload.get("segments") or []:
        if isinstance(segment, dict):
            collected.extend(segment.get("words") or [])
    if collected:
        return collected

    for result in payload.get("results") or []:
        if not isinstance(result, dict):
            continue
        alternatives = result.get("alternatives") or []
        if alternatives and isinstance(alternatives[0], dict):
            collected.extend(alternatives[0].get("words") or [])
    return collected


def _normalise(raw: Iterable[Any]) -> List[WordTiming]:
    words: List[WordTiming] = []
    for item in raw:
        if not isinstance(item, dict):
            continue
        # ElevenLabs interleaves whitespace and audio-event tokens with words
        if item.get("type") not in (None, "word"):
            continue
        text = item.get("word", item.get("text"))
        if not isinstance(text, str) or not text.strip():
            continue
        start = _seconds(item.get("start", item.get("start_time")))
        end = _seconds(item.get("end", item.get("end_time")))
        if start is None:
            continue
        start = max(0.0, start)
        if end is None or end < start:
            end = start
        words.append(WordTiming(text=text.strip(), start=start, end=end))
    return words


def synthesize_word_timings(text: str, word_duration: float = DEFAULT_WORD_DURATION) -> List[WordTiming]:
    """Uniform timings: one fixed duration per whitespace-separated word."""
    return [
        WordTiming(text=token, start=i * word_duration, end=(i + 1) * word_duration)
        for i, token in enumerate(text.split())
    ]


def extract_transcription(
    payload: Dict[str, Any],
    fallback_word_duration: float = DEFAULT_WORD_DURATION,
) -> TranscriptionResult:
    """Build a TranscriptionResult from any supported response shape."""
    words = _normalise(_raw_words(payload))
    text = payload.get("text") or ""
    if not text:
        text = payload.get("transcript") or ' '.join(w.text for w in words)

    synthetic = False
    if not words and text.strip():
        logger.warning("Transcription has no word-level timings, synthesizing uniform timings")
        words = synthesize_word_timings(text, fallback_word_duration)
        synthetic = True

    return TranscriptionResult(
        text=text,
        language_code=payload.get("language_code"),
        words=words,
        synthetic_timings=synthetic,
    )
