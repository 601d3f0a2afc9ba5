"""
Slide Media Pipeline - narration audio, captions and reveal timing per slide

For each slide:
    sanitize -> chunk -> synthesize chunks (retried, spaced out) -> merge WAV
    -> upload -> transcribe (retried) -> caption chunks -> reveal timeline

Slides of a chapter run concurrently under a semaphore. A slide counts as
succeeded only once its whole chain finished; a failing slide is reported
and never aborts its siblings.

Usage:
    pipeline = SlideMediaPipeline(tts, uploader, transcriber, config)
    report = await pipeline.process_chapter(course_id, chapter_id, slides)
    print(report.summary())
"""

import asyncio
import logging
from typing import Awaitable, Callable, List, Optional, Sequence

from ..clients.base import AudioUploader, SlideContentModel, SpeechSynthesizer, Transcriber
from ..config.settings import CourseCastConfig
from ..exceptions import ChapterGenerationError, UnrecoverableFormatError
from ..models import (
    Chapter,
    ChapterReport,
    CourseLayout,
    ProcessedSlide,
    SlideOutcome,
    SlideRecord,
    SlideStatus,
)
from ..prompts import COURSE_LAYOUT_PROMPT, SLIDE_SYSTEM_PROMPT, build_chapter_request
from .audio_merger import MergedAudio, merge_wav_buffers
from .caption_segmenter import CaptionSegmenter, build_caption_track
from .json_parser import JSONRecoveryParser
from .narration_text import chunk_text_for_tts, sanitize_text_for_tts
from .retry import RetryConfig, RetryExecutor
from .reveal_runtime import reconcile_reveal_data
from .reveal_timeline import RevealTimelinePlanner
from .slide_parser import parse_course_layout, parse_slides
from .word_extraction import synthesize_word_timings

logger = logging.getLogger(__name__)


class SlideMediaPipeline:
    """Runs the media chain for the slides of one chapter."""

    def __init__(
        self,
        synthesizer: SpeechSynthesizer,
        uploader: AudioUploader,
        transcriber: Transcriber,
        config: Optional[CourseCastConfig] = None,
        retry: Optional[RetryExecutor] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.synthesizer = synthesizer
        self.uploader = uploader
        self.transcriber = transcriber
        self.config = config or CourseCastConfig()
        self.retry = retry or RetryExecutor(RetryConfig.from_settings(self.config.retry), sleep=sleep)
        self.segmenter = CaptionSegmenter(self.config.captions)
        self.planner = RevealTimelinePlanner(self.config.timeline)
        self._sleep = sleep

    def prepare_narration(self, text: str) -> List[str]:
        """Sanitized narration split into synthesis-sized chunks."""
        if self.config.narration.sanitize:
            text = sanitize_text_for_tts(text)
        limit = min(self.config.narration.chunk_size, self.config.tts.max_chars)
        return chunk_text_for_tts(text, limit)

    async def synthesize_narration(self, chunks: Sequence[str], context: str) -> MergedAudio:
        """Synthesize chunks one after another and merge them into one WAV."""
        settings = self.config.pipeline
        buffers: List[bytes] = []

        for i, chunk in enumerate(chunks):
            chunk_context = f"{context} chunk {i + 1}/{len(chunks)}"
            try:
                audio = await self.retry.run(lambda c=chunk: self.synthesizer.synthesize(c), chunk_context)
            except Exception as e:
                logger.error(f"{chunk_context}: synthesis failed: {e}")
                raise
            buffers.append(audio)

            if i < len(chunks) - 1:
                await self._sleep(settings.chunk_delay_base + i * settings.chunk_delay_step)

        return merge_wav_buffers(buffers, strict=settings.strict_audio_format)

    async def process_slide(
        self,
        course_id: str,
        chapter_id: str,
        slide: SlideRecord,
        position: int,
    ) -> SlideOutcome:
        """Full media chain for one slide. Raises on failure; the caller records it."""
        context = f"Slide {position + 1} ({slide.slide_id})"
        slide = reconcile_reveal_data(slide)

        chunks = self.prepare_narration(slide.narration.full_text)
        if not chunks:
            logger.warning(f"{context}: narration is empty after sanitizing, skipping")
            return SlideOutcome(
                slide_id=slide.slide_id, position=position,
                status=SlideStatus.SKIPPED, error="empty narration",
            )

        merged = await self.synthesize_narration(chunks, context)
        for warning in merged.warnings:
            logger.warning(f"{context}: {warning}")

        key = f"audio/{course_id}/{chapter_id}/{slide.slide_id}.wav"
        audio_url = await self.retry.run(
            lambda: self.uploader.upload(key, merged.data, "audio/wav"), f"{context} upload"
        )

        transcription = await self.retry.run(
            lambda: self.transcriber.transcribe(audio_url), f"{context} transcription"
        )
        if not transcription.words:
            logger.warning(f"{context}: no words transcribed, using uniform timings from narration")
            narration = ' '.join(chunks)
            transcription = transcription.model_copy(update={
                "text": transcription.text or narration,
                "words": synthesize_word_timings(
                    narration, self.config.transcription.fallback_word_duration
                ),
                "synthetic_timings": True,
            })

        captions = build_caption_track(transcription, self.segmenter)
        timeline = self.planner.plan(slide.reveal_data, captions.chunks)

        logger.info(
            f"{context}: {merged.duration:.1f}s audio, {len(captions.chunks)} caption chunks, "
            f"{len(timeline)} reveals"
        )
        return SlideOutcome(
            slide_id=slide.slide_id,
            position=position,
            status=SlideStatus.SUCCEEDED,
            result=ProcessedSlide(
                slide=slide, audio_url=audio_url, captions=captions, timeline=timeline
            ),
        )

    async def process_chapter(
        self,
        course_id: str,
        chapter_id: str,
        slides: Sequence[SlideRecord],
        dropped_records: int = 0,
    ) -> ChapterReport:
        """Process every slide concurrently and collect per-slide outcomes."""
        logger.info(
            f"Processing {len(slides)} slides for {course_id}/{chapter_id} "
            f"(max {self.config.pipeline.max_concurrent_slides} concurrent)"
        )

        # Created per call so it binds to the loop running this chapter
        semaphore = asyncio.Semaphore(self.config.pipeline.max_concurrent_slides)

        async def process_with_semaphore(slide: SlideRecord, position: int) -> SlideOutcome:
            async with semaphore:
                return await self.process_slide(course_id, chapter_id, slide, position)

        tasks = [
            process_with_semaphore(slide, position)
            for position, slide in enumerate(slides)
        ]
        results = await asyncio.gather(*tasks, return_exceptions=True)

        outcomes: List[SlideOutcome] = []
        for position, result in enumerate(results):
            if isinstance(result, Exception):
                slide = slides[position]
                logger.error(f"Slide {position + 1} ({slide.slide_id}) failed: {type(result).__name__}: {result}")
                outcomes.append(SlideOutcome(
                    slide_id=slide.slide_id,
                    position=position,
                    status=SlideStatus.FAILED,
                    error=f"{type(result).__name__}: {result}",
                ))
            else:
                outcomes.append(result)

        report = ChapterReport(
            course_id=course_id,
            chapter_id=chapter_id,
            outcomes=outcomes,
            dropped_records=dropped_records,
        )
        logger.info(f"Chapter {chapter_id} complete: {report.summary()}")
        return report


class ChapterVideoGenerator:
    """
    Generates the slides of one chapter and runs them through the pipeline.

    Usage:
        generator = ChapterVideoGenerator(model, pipeline)
        report = await generator.generate(course_id, chapter)
    """

    def __init__(
        self,
        model: SlideContentModel,
        pipeline: SlideMediaPipeline,
        parser: Optional[JSONRecoveryParser] = None,
    ):
        self.model = model
        self.pipeline = pipeline
        self.parser = parser or JSONRecoveryParser()

    async def generate(self, course_id: str, chapter: Chapter, course_name: Optional[str] = None) -> ChapterReport:
        """
        Raises:
            ChapterGenerationError: The model call failed or no slide could be recovered
        """
        try:
            raw = await self.model.generate(SLIDE_SYSTEM_PROMPT, build_chapter_request(chapter, course_name))
        except Exception as e:
            raise ChapterGenerationError(f"Slide generation failed for {chapter.chapter_id}: {e}") from e

        try:
            parsed = parse_slides(raw, self.parser)
        except UnrecoverableFormatError as e:
            logger.error(f"Chapter {chapter.chapter_id}: unparseable model output after {e.attempts}")
            raise ChapterGenerationError(f"No slides recoverable for {chapter.chapter_id}: {e}") from e

        if not parsed.slides:
            raise ChapterGenerationError(
                f"No slides recoverable for {chapter.chapter_id} "
                f"({parsed.dropped_count} records dropped)"
            )

        slides = sorted(parsed.slides, key=lambda s: s.slide_index)
        return await self.pipeline.process_chapter(
            course_id, chapter.chapter_id, slides, dropped_records=parsed.dropped_count
        )


async def generate_course_layout(
    model: SlideContentModel,
    topic: str,
    parser: Optional[JSONRecoveryParser] = None,
) -> CourseLayout:
    """Ask the model for a course outline and recover it from its response."""
    raw = await model.generate(COURSE_LAYOUT_PROMPT, topic)
    layout = parse_course_layout(raw, parser)
    logger.info(f"Course layout '{layout.course_name}': {len(layout.chapters)} chapters")
    return layout
