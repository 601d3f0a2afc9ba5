"""CourseCast Config Package"""
from .settings import (
    CourseCastConfig, CaptionSettings, TimelineSettings, NarrationSettings,
    RetrySettings, TTSSettings, TranscriptionSettings, LLMSettings, PipelineSettings,
)

__all__ = [
    'CourseCastConfig', 'CaptionSettings', 'TimelineSettings', 'NarrationSettings',
    'RetrySettings', 'TTSSettings', 'TranscriptionSettings', 'LLMSettings', 'PipelineSettings',
]
