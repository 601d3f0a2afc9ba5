"""
ElevenLabs speech-to-text adapter.

Audio is submitted by URL; the transcript is then polled until it carries
word-level timings or the poll limit is reached.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, Optional

import httpx

from ..config.settings import TranscriptionSettings
from ..exceptions import PermanentServiceError, TransientServiceError
from ..models import TranscriptionResult
from ..services.retry import classify_http_error
from ..services.word_extraction import extract_transcription

logger = logging.getLogger(__name__)


def _is_complete(result: Dict[str, Any]) -> bool:
    if result.get("status") in ("completed", "done"):
        return True
    return bool(result.get("text")) and bool(
        result.get("words") or result.get("segments") or result.get("results")
    )


class ElevenLabsTranscriber:
    """
    Usage:
        async with httpx.AsyncClient() as http:
            stt = ElevenLabsTranscriber(TranscriptionSettings.from_env(), http)
            result = await stt.transcribe("https://cdn.example.com/slide-1.wav")
    """

    def __init__(
        self,
        settings: TranscriptionSettings,
        http_client: Optional[httpx.AsyncClient] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.settings = settings
        self._client = http_client
        self._owns_client = http_client is None
        self._sleep = sleep

    @property
    def _headers(self) -> Dict[str, str]:
        return {"xi-api-key": self.settings.api_key}

    def _url(self, path: str) -> str:
        return f"{self.settings.base_url.rstrip('/')}{path}"

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.settings.timeout_seconds, connect=10.0),
            )
            self._owns_client = True
        return self._client

    async def close(self):
        if self._owns_client and self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def _request(self, method: str, path: str, **kwargs) -> Dict[str, Any]:
        client = await self._get_client()
        try:
            response = await client.request(
                method, self._url(path), headers=self._headers,
                timeout=self.settings.timeout_seconds, **kwargs
            )
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise classify_http_error(e) from e
        return response.json()

    async def submit(self, audio_url: str) -> Dict[str, Any]:
        """Start a transcription job for hosted audio."""
        # Multipart form fields without files
        form = {
            "model_id": (None, self.settings.model_id),
            "cloud_storage_url": (None, audio_url),
            "language_code": (None, self.settings.language_code),
            "split_on_words": (None, "true"),
        }
        return await self._request("POST", "/v1/speech-to-text", files=form)

    async def poll(self, transcription_id: str) -> Dict[str, Any]:
        for attempt in range(self.settings.max_polls):
            result = await self._request("GET", f"/v1/speech-to-text/transcripts/{transcription_id}")
            if _is_complete(result):
                return result
            if result.get("status") in ("failed", "error"):
                raise PermanentServiceError(f"Transcription {transcription_id} failed: {result.get('error')}")
            logger.debug(f"Transcription {transcription_id} pending ({attempt + 1}/{self.settings.max_polls})")
            await self._sleep(self.settings.poll_interval)

        raise TransientServiceError(
            f"Transcription {transcription_id} not ready after {self.settings.max_polls} polls"
        )

    async def transcribe(self, audio_url: str) -> TranscriptionResult:
        submitted = await self.submit(audio_url)
        if _is_complete(submitted):
            payload = submitted
        else:
            transcription_id = submitted.get("transcription_id")
            if not transcription_id:
                raise PermanentServiceError("Transcription response has neither words nor transcription_id")
            logger.info(f"Transcription submitted: {transcription_id}")
            payload = await self.poll(transcription_id)

        result = extract_transcription(payload, self.settings.fallback_word_duration)
        logger.info(f"Transcription complete: {len(result.words)} words")
        return result
