"""
CourseCast Configuration Settings

Tunable constants for caption segmentation, reveal timing, narration
chunking, retries and the external speech/LLM services. Every group can be
built from environment variables with from_env().
"""

from dataclasses import dataclass, field
from typing import Tuple
import json
import os

from ..logging_config import configure_logging


def _env_float(name: str, default: float) -> float:
    return float(os.getenv(name, str(default)))


def _env_int(name: str, default: int) -> int:
    return int(os.getenv(name, str(default)))


@dataclass
class CaptionSettings:
    """Caption chunk sizing policy"""
    min_words: int = 2
    target_words: int = 3
    max_words: int = 5
    short_pause: float = 0.3    # seconds
    long_pause: float = 0.6     # seconds

    @classmethod
    def from_env(cls) -> "CaptionSettings":
        return cls(
            min_words=_env_int("CAPTION_MIN_WORDS", 2),
            target_words=_env_int("CAPTION_TARGET_WORDS", 3),
            max_words=_env_int("CAPTION_MAX_WORDS", 5),
            short_pause=_env_float("CAPTION_SHORT_PAUSE", 0.3),
            long_pause=_env_float("CAPTION_LONG_PAUSE", 0.6),
        )


@dataclass
class TimelineSettings:
    """Reveal timeline scheduling"""
    lead_time: float = 0.05              # Reveal slightly before the words are spoken
    surplus_spacing: float = 1.2         # Spacing for reveal ids beyond caption coverage
    fallback_seconds_per_reveal: float = 1.2
    fallback_min_duration: float = 8.0

    @classmethod
    def from_env(cls) -> "TimelineSettings":
        return cls(
            lead_time=_env_float("REVEAL_LEAD_TIME", 0.05),
            surplus_spacing=_env_float("REVEAL_SURPLUS_SPACING", 1.2),
            fallback_seconds_per_reveal=_env_float("REVEAL_FALLBACK_SPACING", 1.2),
            fallback_min_duration=_env_float("REVEAL_FALLBACK_MIN_DURATION", 8.0),
        )


@dataclass
class NarrationSettings:
    """Narration text preparation before speech synthesis"""
    sanitize: bool = True
    chunk_size: int = 2200       # Below the provider limit for safety

    @classmethod
    def from_env(cls) -> "NarrationSettings":
        return cls(
            sanitize=os.getenv("NARRATION_SANITIZE", "true").lower() == "true",
            chunk_size=_env_int("NARRATION_CHUNK_SIZE", 2200),
        )


@dataclass
class RetrySettings:
    """Exponential backoff for external calls"""
    max_retries: int = 3
    initial_delay: float = 2.0
    max_delay: float = 10.0
    exponential_base: float = 2.0
    retry_on_status: Tuple[int, ...] = (429, 500, 502, 503, 504)

    @classmethod
    def from_env(cls) -> "RetrySettings":
        return cls(
            max_retries=_env_int("RETRY_MAX_RETRIES", 3),
            initial_delay=_env_float("RETRY_INITIAL_DELAY", 2.0),
            max_delay=_env_float("RETRY_MAX_DELAY", 10.0),
            exponential_base=_env_float("RETRY_EXPONENTIAL_BASE", 2.0),
        )


@dataclass
class TTSSettings:
    """Speech synthesis provider"""
    base_url: str = "https://api.sarvam.ai"
    api_key: str = ""
    max_chars: int = 2500
    timeout_seconds: float = 30.0
    language_code: str = "en-IN"
    speaker: str = "kabir"
    pace: float = 1.05
    sample_rate: int = 22050
    model: str = "bulbul:v3"
    temperature: float = 0.6

    @classmethod
    def from_env(cls) -> "TTSSettings":
        return cls(
            base_url=os.getenv("TTS_BASE_URL", "https://api.sarvam.ai"),
            api_key=os.getenv("SARVAM_API_KEY", ""),
            max_chars=_env_int("TTS_MAX_CHARS", 2500),
            timeout_seconds=_env_float("TTS_TIMEOUT", 30.0),
            language_code=os.getenv("TTS_LANGUAGE_CODE", "en-IN"),
            speaker=os.getenv("TTS_SPEAKER", "kabir"),
            pace=_env_float("TTS_PACE", 1.05),
            sample_rate=_env_int("TTS_SAMPLE_RATE", 22050),
            model=os.getenv("TTS_MODEL", "bulbul:v3"),
        )


@dataclass
class TranscriptionSettings:
    """Speech-to-text provider"""
    base_url: str = "https://api.elevenlabs.io"
    api_key: str = ""
    model_id: str = "scribe_v2"
    language_code: str = "en"
    timeout_seconds: float = 30.0
    poll_interval: float = 3.0
    max_polls: int = 60
    fallback_word_duration: float = 0.5   # Used when no word-level data comes back

    @classmethod
    def from_env(cls) -> "TranscriptionSettings":
        return cls(
            base_url=os.getenv("STT_BASE_URL", "https://api.elevenlabs.io"),
            api_key=os.getenv("ELEVENLABS_API_KEY", ""),
            model_id=os.getenv("STT_MODEL_ID", "scribe_v2"),
            language_code=os.getenv("STT_LANGUAGE_CODE", "en"),
            timeout_seconds=_env_float("STT_TIMEOUT", 30.0),
            poll_interval=_env_float("STT_POLL_INTERVAL", 3.0),
            max_polls=_env_int("STT_MAX_POLLS", 60),
        )


@dataclass
class LLMSettings:
    """Slide generation model"""
    provider: str = "openrouter"
    model: str = "openrouter/aurora-alpha"
    fallback_model: str = "google/gemini-flash-1.5"
    temperature: float = 0.7
    max_tokens: int = 32000

    @classmethod
    def from_env(cls) -> "LLMSettings":
        return cls(
            provider=os.getenv("LLM_PROVIDER", "openrouter").lower(),
            model=os.getenv("SLIDE_MODEL", "openrouter/aurora-alpha"),
            fallback_model=os.getenv("SLIDE_FALLBACK_MODEL", "google/gemini-flash-1.5"),
            temperature=_env_float("SLIDE_TEMPERATURE", 0.7),
            max_tokens=_env_int("SLIDE_MAX_TOKENS", 32000),
        )


@dataclass
class PipelineSettings:
    """Per-slide media pipeline"""
    max_concurrent_slides: int = 3
    chunk_delay_base: float = 1.0     # Pause between TTS chunk calls
    chunk_delay_step: float = 0.2     # Added per chunk already sent
    strict_audio_format: bool = False  # Fail instead of warn on mismatched WAV segments

    @classmethod
    def from_env(cls) -> "PipelineSettings":
        return cls(
            max_concurrent_slides=_env_int("PIPELINE_MAX_CONCURRENT_SLIDES", 3),
            chunk_delay_base=_env_float("PIPELINE_CHUNK_DELAY_BASE", 1.0),
            chunk_delay_step=_env_float("PIPELINE_CHUNK_DELAY_STEP", 0.2),
            strict_audio_format=os.getenv("PIPELINE_STRICT_AUDIO", "false").lower() == "true",
        )


@dataclass
class CourseCastConfig:
    """Global configuration"""
    captions: CaptionSettings = field(default_factory=CaptionSettings)
    timeline: TimelineSettings = field(default_factory=TimelineSettings)
    narration: NarrationSettings = field(default_factory=NarrationSettings)
    retry: RetrySettings = field(default_factory=RetrySettings)
    tts: TTSSettings = field(default_factory=TTSSettings)
    transcription: TranscriptionSettings = field(default_factory=TranscriptionSettings)
    llm: LLMSettings = field(default_factory=LLMSettings)
    pipeline: PipelineSettings = field(default_factory=PipelineSettings)
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "CourseCastConfig":
        """Load configuration from environment variables"""
        return cls(
            captions=CaptionSettings.from_env(),
            timeline=TimelineSettings.from_env(),
            narration=NarrationSettings.from_env(),
            retry=RetrySettings.from_env(),
            tts=TTSSettings.from_env(),
            transcription=TranscriptionSettings.from_env(),
            llm=LLMSettings.from_env(),
            pipeline=PipelineSettings.from_env(),
            log_level=os.getenv("COURSECAST_LOG_LEVEL", "INFO"),
        )

    @classmethod
    def from_json(cls, path: str) -> "CourseCastConfig":
        """Load configuration from a JSON file with one object per settings group"""
        with open(path, 'r') as f:
            data = json.load(f)
        return cls(
            captions=CaptionSettings(**data.get("captions", {})),
            timeline=TimelineSettings(**data.get("timeline", {})),
            narration=NarrationSettings(**data.get("narration", {})),
            retry=RetrySettings(**data.get("retry", {})),
            tts=TTSSettings(**data.get("tts", {})),
            transcription=TranscriptionSettings(**data.get("transcription", {})),
            llm=LLMSettings(**data.get("llm", {})),
            pipeline=PipelineSettings(**data.get("pipeline", {})),
            log_level=data.get("log_level", "INFO"),
        )

    def apply_logging(self) -> None:
        """Configure the coursecast loggers at this config's log_level."""
        configure_logging(self.log_level)
