"""
Narration text preparation for speech synthesis.

sanitize_text_for_tts() strips markup and normalises punctuation so the
TTS provider reads the narration cleanly; chunk_text_for_tts() splits long
narration into provider-safe pieces at sentence boundaries.
"""

import logging
import re
from typing import List

logger = logging.getLogger(__name__)


_SANITIZE_RULES = [
    (re.compile(r'<[^>]*>'), ' '),                               # HTML tags
    (re.compile(r'\s+'), ' '),
    (re.compile('[\u200B-\u200D\uFEFF]'), ''),                 # Zero-width characters
    (re.compile('[\u2018\u2019]'), "'"),
    (re.compile('[\u201C\u201D]'), '"'),
    (re.compile('[\u2022\u25E6\u25AA\u25AB]'), '-'),           # Bullets
    (re.compile('\u2026'), '...'),
    (re.compile(r'[\x00-\x08\x0B\x0C\x0E-\x1F\x7F]'), ''),       # Control characters
    (re.compile(r'\.{4,}'), '...'),
    (re.compile(r'!{2,}'), '!'),
    (re.compile(r'\?{2,}'), '?'),
    (re.compile(r'([.!?])([A-Z])'), r'\1 \2'),
]

_SENTENCE_RE = re.compile(r'[^.!?]+[.!?]+(?:\s|$)|[^.!?]+$')
_CLAUSE_SPLIT_RE = re.compile(r'[,;]\s+')


def sanitize_text_for_tts(text: str) -> str:
    """Normalize narration text before sending it to speech synthesis."""
    sanitized = text
    for pattern, replacement in _SANITIZE_RULES:
        sanitized = pattern.sub(replacement, sanitized)
    sanitized = sanitized.strip()

    removed = len(text) - len(sanitized)
    if removed:
        logger.debug(f"Sanitized narration: {len(sanitized)} chars (removed {removed})")
    return sanitized


def _hard_split(text: str, max_length: int) -> List[str]:
    """Split on whitespace, and mid-word only when a single word is too long."""
    pieces: List[str] = []
    current = ''
    for word in text.split():
        while len(word) > max_length:
            if current:
                pieces.append(current)
                current = ''
            pieces.append(word[:max_length])
            word = word[max_length:]
        if current and len(current) + len(word) + 1 > max_length:
            pieces.append(current)
            current = word
        else:
            current = f"{current} {word}" if current else word
    if current:
        pieces.append(current)
    return pieces


def _split_long_sentence(sentence: str, max_length: int) -> List[str]:
    pieces: List[str] = []
    current = ''
    for clause in _CLAUSE_SPLIT_RE.split(sentence):
        if len(clause) > max_length:
            if current:
                pieces.append(current)
                current = ''
            pieces.extend(_hard_split(clause, max_length))
            continue
        if current and len(current) + len(clause) + 2 > max_length:
            pieces.append(current)
            current = clause
        else:
            current = f"{current}, {clause}" if current else clause
    if current:
        pieces.append(current)
    return pieces


def chunk_text_for_tts(text: str, max_length: int = 2400) -> List[str]:
    """
    Split text into chunks of at most max_length characters.

    Sentences are kept whole where possible; a sentence longer than the
    limit is split on commas and semicolons, then on whitespace.

    Args:
        text: Sanitized narration
        max_length: Per-call character limit of the synthesis provider

    Returns:
        Ordered non-empty chunks
    """
    text = text.strip()
    if not text:
        return []
    if len(text) <= max_length:
        return [text]

    chunks: List[str] = []
    current = ''

    for sentence in _SENTENCE_RE.findall(text):
        trimmed = sentence.strip()
        if not trimmed:
            continue

        if len(trimmed) > max_length:
            if current:
                chunks.append(current)
                current = ''
            pieces = _split_long_sentence(trimmed, max_length)
            chunks.extend(pieces[:-1])
            current = pieces[-1] if pieces else ''
        elif current and len(current) + len(trimmed) + 1 > max_length:
            chunks.append(current)
            current = trimmed
        else:
            current = f"{current} {trimmed}" if current else trimmed

    if current:
        chunks.append(current)

    logger.info(f"Split narration into {len(chunks)} chunks: {[len(c) for c in chunks]}")
    return chunks
