"""
Sarvam text-to-speech adapter.

One call synthesizes one narration chunk and returns WAV bytes. Retries
are not done here; the pipeline wraps each call in a RetryExecutor.
"""

import base64
import logging
from typing import Any, Dict, Optional

import httpx

from ..config.settings import TTSSettings
from ..exceptions import PermanentServiceError
from ..services.retry import classify_http_error

logger = logging.getLogger(__name__)


class SarvamSpeechClient:
    """
    Usage:
        async with httpx.AsyncClient() as http:
            tts = SarvamSpeechClient(TTSSettings.from_env(), http)
            wav = await tts.synthesize("Welcome to the course.")
    """

    def __init__(self, settings: TTSSettings, http_client: Optional[httpx.AsyncClient] = None):
        self.settings = settings
        self._client = http_client
        self._owns_client = http_client is None

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

    def _payload(self, text: str) -> Dict[str, Any]:
        s = self.settings
        return {
            "text": text,
            "target_language_code": s.language_code,
            "speaker": s.speaker,
            "pace": s.pace,
            "speech_sample_rate": s.sample_rate,
            "enable_preprocessing": True,
            "model": s.model,
            "temperature": s.temperature,
            "output_audio_codec": "wav",
        }

    async def synthesize(self, text: str) -> bytes:
        """
        Raises:
            ValueError: text exceeds the provider limit
            TransientServiceError / PermanentServiceError: the call failed
        """
        if len(text) > self.settings.max_chars:
            raise ValueError(f"Text too long: {len(text)} chars (max {self.settings.max_chars})")

        client = await self._get_client()
        try:
            response = await client.post(
                f"{self.settings.base_url.rstrip('/')}/text-to-speech",
                json=self._payload(text),
                headers={"api-subscription-key": self.settings.api_key},
                timeout=self.settings.timeout_seconds,
            )
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise classify_http_error(e) from e

        audios = response.json().get("audios") or []
        if not audios:
            raise PermanentServiceError("No audio data in synthesis response", status_code=response.status_code)

        audio = base64.b64decode(audios[0])
        logger.debug(f"Synthesized {len(text)} chars into {len(audio)} bytes")
        return audio
