"""
CourseCast Clients
Adapters for the external speech, transcription and language-model services
"""

from .base import AudioUploader, SlideContentModel, SpeechSynthesizer, Transcriber
from .llm_provider import (
    LLMProvider,
    OpenAICompatibleModel,
    PROVIDER_CONFIGS,
    create_llm_client,
    get_provider_config,
    resolve_api_key,
)
from .stt_client import ElevenLabsTranscriber
from .tts_client import SarvamSpeechClient

__all__ = [
    "AudioUploader",
    "SlideContentModel",
    "SpeechSynthesizer",
    "Transcriber",
    "LLMProvider",
    "OpenAICompatibleModel",
    "PROVIDER_CONFIGS",
    "create_llm_client",
    "get_provider_config",
    "resolve_api_key",
    "ElevenLabsTranscriber",
    "SarvamSpeechClient",
]
