"""
Pytest Configuration and Shared Fixtures for CourseCast Tests
"""

import io
import json
import os
import sys
import wave
from typing import List, Tuple

import pytest

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from coursecast.config import CourseCastConfig, PipelineSettings, RetrySettings
from coursecast.models import SlideRecord, WordTiming


# ============================================
# Audio Fixtures
# ============================================

def build_wav(frames: int = 100, sample_rate: int = 22050, channels: int = 1, sample_width: int = 2,
              fill: bytes = b'\x01') -> bytes:
    """PCM WAV bytes with frames * channels * sample_width bytes of payload."""
    buffer = io.BytesIO()
    with wave.open(buffer, 'wb') as wav:
        wav.setnchannels(channels)
        wav.setsampwidth(sample_width)
        wav.setframerate(sample_rate)
        wav.writeframes(fill * (frames * channels * sample_width))
    return buffer.getvalue()


@pytest.fixture
def make_wav():
    return build_wav


# ============================================
# Word / Slide Fixtures
# ============================================

def build_words(timings: List[Tuple[str, float, float]]) -> List[WordTiming]:
    return [WordTiming(text=text, start=start, end=end) for text, start, end in timings]


@pytest.fixture
def make_words():
    return build_words


def slide_dict(index: int = 1, narration: str = "Hello there. This is a slide.",
               reveal: Tuple[str, ...] = ("r1", "r2")) -> dict:
    anchors = ''.join(f"<p class='reveal' data-reveal='{r}'>{r}</p>" for r in reveal)
    return {
        "slideId": f"intro-{index:02d}",
        "slideIndex": index,
        "html": f"<body>{anchors}</body>",
        "narration": {"fullText": narration},
        "revealData": list(reveal),
    }


@pytest.fixture
def make_slide_dict():
    return slide_dict


@pytest.fixture
def make_slide():
    def _make(**kwargs) -> SlideRecord:
        return SlideRecord.model_validate(slide_dict(**kwargs))
    return _make


@pytest.fixture
def slides_json():
    return json.dumps([slide_dict(1), slide_dict(2, reveal=("r1", "r2", "r3"))])


# ============================================
# Configuration Fixtures
# ============================================

@pytest.fixture
def fast_config():
    """Default configuration with every delay removed."""
    return CourseCastConfig(
        retry=RetrySettings(max_retries=2, initial_delay=0.0, max_delay=0.0),
        pipeline=PipelineSettings(max_concurrent_slides=2, chunk_delay_base=0.0, chunk_delay_step=0.0),
    )


@pytest.fixture
def no_sleep():
    calls = []

    async def _sleep(seconds: float) -> None:
        calls.append(seconds)

    _sleep.calls = calls
    return _sleep
