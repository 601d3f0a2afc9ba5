"""
Capabilities the media pipeline depends on.

The pipeline receives these as constructor arguments, so any object with
the right coroutine methods works: the HTTP adapters in this package, or
test doubles.
"""

from typing import Protocol, runtime_checkable

from ..models import TranscriptionResult


@runtime_checkable
class SpeechSynthesizer(Protocol):
    async def synthesize(self, text: str) -> bytes:
        """Return WAV audio for text (at most the provider's character limit)."""
        ...


@runtime_checkable
class Transcriber(Protocol):
    async def transcribe(self, audio_url: str) -> TranscriptionResult:
        """Return word-level timings for hosted audio."""
        ...


@runtime_checkable
class AudioUploader(Protocol):
    async def upload(self, key: str, data: bytes, content_type: str = "audio/wav") -> str:
        """Store data and return a URL the transcriber can fetch."""
        ...


@runtime_checkable
class SlideContentModel(Protocol):
    async def generate(self, system_prompt: str, user_input: str) -> str:
        """Return the model's raw text response."""
        ...
