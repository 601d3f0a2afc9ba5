"""
CourseCast Services
"""
from .json_parser import JSONRecoveryParser, RepairStrategy
from .slide_parser import SlideParseResult, parse_course_layout, parse_slides
from .narration_text import chunk_text_for_tts, sanitize_text_for_tts
from .retry import RetryConfig, RetryExecutor, classify_http_error
from .audio_merger import MergedAudio, WavFormat, merge_wav_buffers
from .caption_segmenter import CaptionSegmenter, build_caption_track
from .word_extraction import extract_transcription, synthesize_word_timings
from .reveal_timeline import RevealTimelinePlanner
from .playback_controller import (
    ControllerState,
    MessageRevealSink,
    PlaybackRevealController,
    RecordingRevealSink,
    RevealSink,
)
from .reveal_runtime import extract_reveal_ids, inject_reveal_runtime, reconcile_reveal_data
from .composition import SlideSequence, plan_composition
from .slide_pipeline import ChapterVideoGenerator, SlideMediaPipeline, generate_course_layout

__all__ = [
    "JSONRecoveryParser",
    "RepairStrategy",
    "SlideParseResult",
    "parse_slides",
    "parse_course_layout",
    "sanitize_text_for_tts",
    "chunk_text_for_tts",
    "RetryConfig",
    "RetryExecutor",
    "classify_http_error",
    "MergedAudio",
    "WavFormat",
    "merge_wav_buffers",
    "CaptionSegmenter",
    "build_caption_track",
    "extract_transcription",
    "synthesize_word_timings",
    "RevealTimelinePlanner",
    "ControllerState",
    "MessageRevealSink",
    "PlaybackRevealController",
    "RecordingRevealSink",
    "RevealSink",
    "extract_reveal_ids",
    "inject_reveal_runtime",
    "reconcile_reveal_data",
    "SlideSequence",
    "plan_composition",
    "ChapterVideoGenerator",
    "SlideMediaPipeline",
    "generate_course_layout",
]
