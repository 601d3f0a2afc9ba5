"""
Audio Merger - Join PCM WAV segments into one file

Speech synthesis returns one WAV file per narration chunk. The segments
are joined by concatenating their sample data under a single new header
built from the first segment's format.
"""

import logging
import struct
from dataclasses import dataclass, field
from typing import Any, Dict, List, Sequence, Tuple

from ..exceptions import FormatMismatchError, InvalidAudioError

logger = logging.getLogger(__name__)

WAV_HEADER_SIZE = 44
PCM_FORMAT = 1


@dataclass(frozen=True)
class WavFormat:
    """Format fields that must match for a byte-correct merge"""
    audio_format: int
    channels: int
    sample_rate: int
    bits_per_sample: int

    @property
    def block_align(self) -> int:
        return self.channels * (self.bits_per_sample // 8)

    @property
    def byte_rate(self) -> int:
        return self.sample_rate * self.block_align

    def describe(self) -> str:
        return f"{self.sample_rate}Hz/{self.channels}ch/{self.bits_per_sample}bit"


@dataclass
class MergedAudio:
    """Result of merging WAV segments"""
    data: bytes
    format: WavFormat
    segment_count: int
    warnings: List[str] = field(default_factory=list)

    @property
    def duration(self) -> float:
        payload = len(self.data) - WAV_HEADER_SIZE
        if self.format.byte_rate <= 0 or payload <= 0:
            return 0.0
        return payload / self.format.byte_rate

    def to_dict(self) -> Dict[str, Any]:
        return {
            "bytes": len(self.data),
            "format": self.format.describe(),
            "segment_count": self.segment_count,
            "duration": round(self.duration, 3),
            "warnings": self.warnings,
        }


def parse_wav(buffer: bytes) -> Tuple[WavFormat, bytes]:
    """
    Read the format and the sample data of a RIFF/WAVE buffer.

    Walks the chunk list so files with extra chunks (LIST, fact) before
    the data chunk are read correctly.

    Raises:
        InvalidAudioError: If the buffer is not a readable WAV file
    """
    if len(buffer) < WAV_HEADER_SIZE:
        raise InvalidAudioError(f"Buffer too short for a WAV header ({len(buffer)} bytes)")
    if buffer[0:4] != b'RIFF' or buffer[8:12] != b'WAVE':
        raise InvalidAudioError("Missing RIFF/WAVE signature")

    wav_format = None
    offset = 12
    while offset + 8 <= len(buffer):
        chunk_id = buffer[offset:offset + 4]
        (chunk_size,) = struct.unpack_from('<I', buffer, offset + 4)
        body_start = offset + 8

        if chunk_id == b'fmt ':
            audio_format, channels, sample_rate, _, _, bits = struct.unpack_from('<HHIIHH', buffer, body_start)
            wav_format = WavFormat(audio_format, channels, sample_rate, bits)
        elif chunk_id == b'data':
            if wav_format is None:
                raise InvalidAudioError("data chunk found before fmt chunk")
            # Streamed WAVs may carry a placeholder size; clamp to what is present
            body_end = min(body_start + chunk_size, len(buffer))
            return wav_format, buffer[body_start:body_end]

        offset = body_start + chunk_size + (chunk_size % 2)

    raise InvalidAudioError("No data chunk found")


def build_wav_header(wav_format: WavFormat, data_size: int) -> bytes:
    """Canonical 44-byte PCM header"""
    return struct.pack(
        '<4sI4s4sIHHIIHH4sI',
        b'RIFF', data_size + 36, b'WAVE',
        b'fmt ', 16, PCM_FORMAT, wav_format.channels, wav_format.sample_rate,
        wav_format.byte_rate, wav_format.block_align, wav_format.bits_per_sample,
        b'data', data_size,
    )


def merge_wav_buffers(buffers: Sequence[bytes], strict: bool = False) -> MergedAudio:
    """
    Concatenate WAV segments under one header.

    Args:
        buffers: WAV files in playback order
        strict: Raise on a segment whose format differs from the first one
            instead of logging a warning and merging anyway

    Returns:
        MergedAudio; warnings lists every mismatched segment

    Raises:
        InvalidAudioError: No buffers, or a buffer is not a WAV file
        FormatMismatchError: A segment's format differs and strict is set
    """
    if not buffers:
        raise InvalidAudioError("No audio buffers to merge")

    first_format, _ = parse_wav(buffers[0])
    if len(buffers) == 1:
        return MergedAudio(data=bytes(buffers[0]), format=first_format, segment_count=1)

    warnings: List[str] = []
    payloads: List[bytes] = []
    for index, buffer in enumerate(buffers):
        segment_format, payload = parse_wav(buffer)
        if segment_format != first_format:
            message = (
                f"Segment {index} format {segment_format.describe()} differs from "
                f"{first_format.describe()}"
            )
            if strict:
                raise FormatMismatchError(message, segment_index=index)
            logger.warning(f"{message}; merging anyway")
            warnings.append(message)
        payloads.append(payload)

    merged_data = b''.join(payloads)
    merged = build_wav_header(first_format, len(merged_data)) + merged_data
    logger.info(f"Merged {len(buffers)} WAV segments into {len(merged)} bytes")

    return MergedAudio(
        data=merged,
        format=first_format,
        segment_count=len(buffers),
        warnings=warnings,
    )
