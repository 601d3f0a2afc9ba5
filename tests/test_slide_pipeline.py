"""
Tests for the slide media pipeline and chapter generation
"""

import asyncio
import io
import json
import wave
from typing import Dict, List, Optional
from unittest.mock import AsyncMock

import pytest

from coursecast.config import CourseCastConfig, NarrationSettings, PipelineSettings, RetrySettings
from coursecast.exceptions import ChapterGenerationError, PermanentServiceError, TransientServiceError
from coursecast.models import Chapter, SlideStatus, TranscriptionResult, WordTiming
from coursecast.prompts import COURSE_LAYOUT_PROMPT, SLIDE_SYSTEM_PROMPT
from coursecast.services.slide_pipeline import (
    ChapterVideoGenerator,
    SlideMediaPipeline,
    generate_course_layout,
)


# ============================================
# Test doubles
# ============================================

class FakeSynthesizer:
    """Returns one WAV per chunk; frames scale with text length."""

    def __init__(self, make_wav, fail_on: Optional[str] = None, transient_failures: int = 0,
                 sample_rates: Optional[List[int]] = None, delay: float = 0.0):
        self.make_wav = make_wav
        self.fail_on = fail_on
        self.transient_failures = transient_failures
        self.sample_rates = sample_rates
        self.delay = delay
        self.calls: List[str] = []
        self.active = 0
        self.peak = 0

    async def synthesize(self, text: str) -> bytes:
        self.calls.append(text)
        self.active += 1
        self.peak = max(self.peak, self.active)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            if self.fail_on and self.fail_on in text:
                raise PermanentServiceError("HTTP 400: unsupported text", status_code=400)
            if self.transient_failures:
                self.transient_failures -= 1
                raise TransientServiceError("HTTP 503: busy", status_code=503)
            rate = 22050
            if self.sample_rates:
                rate = self.sample_rates[(len(self.calls) - 1) % len(self.sample_rates)]
            return self.make_wav(frames=len(text) * 10, sample_rate=rate)
        finally:
            self.active -= 1


class FakeUploader:
    def __init__(self):
        self.objects: Dict[str, bytes] = {}

    async def upload(self, key: str, data: bytes, content_type: str = "audio/wav") -> str:
        self.objects[key] = data
        return f"https://cdn.test/{key}"


def spoken(text: str, step: float = 0.4) -> TranscriptionResult:
    return TranscriptionResult(
        text=text,
        words=[WordTiming(text=w, start=i * step, end=(i + 1) * step) for i, w in enumerate(text.split())],
    )


class FakeTranscriber:
    def __init__(self, result: Optional[TranscriptionResult] = None, fail: bool = False):
        self.result = result if result is not None else spoken("Hello there. This is a slide.")
        self.fail = fail
        self.urls: List[str] = []

    async def transcribe(self, audio_url: str) -> TranscriptionResult:
        self.urls.append(audio_url)
        if self.fail:
            raise PermanentServiceError("HTTP 422: cannot fetch audio", status_code=422)
        return self.result


# ============================================
# Fixtures
# ============================================

@pytest.fixture
def synthesizer(make_wav):
    return FakeSynthesizer(make_wav)


@pytest.fixture
def uploader():
    return FakeUploader()


@pytest.fixture
def transcriber():
    return FakeTranscriber()


@pytest.fixture
def pipeline(synthesizer, uploader, transcriber, fast_config, no_sleep):
    return SlideMediaPipeline(synthesizer, uploader, transcriber, fast_config, sleep=no_sleep)


def config_with(chunk_size: int = 2200, **pipeline_settings) -> CourseCastConfig:
    pipeline_settings.setdefault("chunk_delay_base", 0.0)
    pipeline_settings.setdefault("chunk_delay_step", 0.0)
    return CourseCastConfig(
        retry=RetrySettings(max_retries=2, initial_delay=0.0, max_delay=0.0),
        narration=NarrationSettings(chunk_size=chunk_size),
        pipeline=PipelineSettings(**pipeline_settings),
    )


THREE_SENTENCES = "First sentence here. Second sentence here. Third one is here."


def wav_frames(data: bytes) -> int:
    with wave.open(io.BytesIO(data), 'rb') as wav:
        return wav.getnframes()


# =============================================================================
# Test Narration Preparation
# =============================================================================

class TestPrepareNarration:

    def test_sanitizes_and_chunks(self, synthesizer, uploader, transcriber):
        pipeline = SlideMediaPipeline(synthesizer, uploader, transcriber, config_with(chunk_size=25))
        assert pipeline.prepare_narration("<p>" + THREE_SENTENCES + "</p>") == [
            "First sentence here.", "Second sentence here.", "Third one is here.",
        ]

    def test_provider_limit_caps_chunk_size(self, synthesizer, uploader, transcriber):
        config = config_with(chunk_size=2200)
        config.tts.max_chars = 25
        pipeline = SlideMediaPipeline(synthesizer, uploader, transcriber, config)
        assert len(pipeline.prepare_narration(THREE_SENTENCES)) == 3

    def test_sanitizing_can_be_disabled(self, synthesizer, uploader, transcriber):
        config = config_with()
        config.narration.sanitize = False
        pipeline = SlideMediaPipeline(synthesizer, uploader, transcriber, config)
        assert pipeline.prepare_narration("<b>Hi</b>") == ["<b>Hi</b>"]


# =============================================================================
# Test Single Slide
# =============================================================================

class TestProcessSlide:

    @pytest.mark.asyncio
    async def test_full_chain(self, pipeline, make_slide, synthesizer, uploader, transcriber):
        outcome = await pipeline.process_slide("course-1", "intro", make_slide(), 0)

        assert outcome.status == SlideStatus.SUCCEEDED
        processed = outcome.result
        assert processed.audio_url == "https://cdn.test/audio/course-1/intro/intro-01.wav"
        assert transcriber.urls == [processed.audio_url]
        assert synthesizer.calls == ["Hello there. This is a slide."]
        assert list(uploader.objects) == ["audio/course-1/intro/intro-01.wav"]

        assert [c.text for c in processed.captions.chunks] == ["Hello there. This is a", "slide."]
        assert processed.captions.metadata.total_words == 6
        assert [(e.reveal_id, e.activation_time) for e in processed.timeline] == [("r1", 0.0), ("r2", 1.95)]

    @pytest.mark.asyncio
    async def test_chunks_merged_in_order_with_spacing(self, make_slide, synthesizer, uploader, transcriber,
                                                       no_sleep):
        config = config_with(chunk_size=25, chunk_delay_base=1.0, chunk_delay_step=0.5)
        pipeline = SlideMediaPipeline(synthesizer, uploader, transcriber, config, sleep=no_sleep)

        outcome = await pipeline.process_slide("c", "ch", make_slide(narration=THREE_SENTENCES), 0)

        assert outcome.status == SlideStatus.SUCCEEDED
        assert synthesizer.calls == ["First sentence here.", "Second sentence here.", "Third one is here."]
        assert no_sleep.calls == [1.0, 1.5]
        merged = uploader.objects["audio/c/ch/intro-01.wav"]
        assert wav_frames(merged) == (20 + 21 + 18) * 10

    @pytest.mark.asyncio
    async def test_transient_synthesis_failure_is_retried(self, make_wav, make_slide, uploader, transcriber,
                                                           fast_config, no_sleep):
        synthesizer = FakeSynthesizer(make_wav, transient_failures=2)
        pipeline = SlideMediaPipeline(synthesizer, uploader, transcriber, fast_config, sleep=no_sleep)

        outcome = await pipeline.process_slide("c", "ch", make_slide(), 0)

        assert outcome.status == SlideStatus.SUCCEEDED
        assert len(synthesizer.calls) == 3

    @pytest.mark.asyncio
    async def test_empty_narration_is_skipped(self, pipeline, make_slide, synthesizer, uploader):
        outcome = await pipeline.process_slide("c", "ch", make_slide(narration="<br/>"), 0)

        assert outcome.status == SlideStatus.SKIPPED
        assert synthesizer.calls == []
        assert uploader.objects == {}

    @pytest.mark.asyncio
    async def test_missing_words_use_uniform_timings(self, synthesizer, uploader, make_slide, fast_config,
                                                     no_sleep):
        transcriber = FakeTranscriber(result=TranscriptionResult(text=""))
        config = fast_config
        config.transcription.fallback_word_duration = 0.25
        pipeline = SlideMediaPipeline(synthesizer, uploader, transcriber, config, sleep=no_sleep)

        outcome = await pipeline.process_slide("c", "ch", make_slide(narration="One two three four."), 0)

        captions = outcome.result.captions
        assert captions.text == "One two three four."
        assert captions.metadata.total_words == 4
        assert captions.chunks[-1].end == 1.0

    @pytest.mark.asyncio
    async def test_reveal_data_reconciled_with_html(self, pipeline, make_slide):
        slide = make_slide(reveal=("r1", "r2", "r3"))
        slide = slide.model_copy(update={"reveal_data": ["r3", "r1"]})

        outcome = await pipeline.process_slide("c", "ch", slide, 0)

        assert outcome.result.slide.reveal_data == ["r1", "r3", "r2"]
        assert [e.reveal_id for e in outcome.result.timeline] == ["r1", "r3", "r2"]

    @pytest.mark.asyncio
    async def test_mismatched_audio_merges_with_warning(self, make_wav, make_slide, uploader, transcriber,
                                                        no_sleep):
        synthesizer = FakeSynthesizer(make_wav, sample_rates=[22050, 16000])
        pipeline = SlideMediaPipeline(synthesizer, uploader, transcriber, config_with(chunk_size=25),
                                      sleep=no_sleep)
        outcome = await pipeline.process_slide("c", "ch", make_slide(narration=THREE_SENTENCES), 0)
        assert outcome.status == SlideStatus.SUCCEEDED

    @pytest.mark.asyncio
    async def test_mismatched_audio_fails_when_strict(self, make_wav, make_slide, uploader, transcriber,
                                                      no_sleep):
        synthesizer = FakeSynthesizer(make_wav, sample_rates=[22050, 16000])
        config = config_with(chunk_size=25, strict_audio_format=True)
        pipeline = SlideMediaPipeline(synthesizer, uploader, transcriber, config, sleep=no_sleep)

        report = await pipeline.process_chapter("c", "ch", [make_slide(narration=THREE_SENTENCES)])

        assert report.failed == 1
        assert "FormatMismatchError" in report.outcomes[0].error
        assert uploader.objects == {}


# =============================================================================
# Test Chapter
# =============================================================================

class TestProcessChapter:

    @pytest.mark.asyncio
    async def test_all_slides_succeed(self, pipeline, make_slide):
        slides = [make_slide(index=i) for i in (1, 2, 3)]
        report = await pipeline.process_chapter("c", "ch", slides)

        assert report.summary() == {"succeeded": 3, "skipped": 0, "failed": 0, "dropped_records": 0}
        assert [o.slide_id for o in report.outcomes] == ["intro-01", "intro-02", "intro-03"]
        assert [o.position for o in report.outcomes] == [0, 1, 2]
        assert len(report.processed_slides) == 3

    @pytest.mark.asyncio
    async def test_failure_does_not_abort_siblings(self, make_wav, make_slide, uploader, transcriber,
                                                   fast_config, no_sleep):
        synthesizer = FakeSynthesizer(make_wav, fail_on="boom")
        pipeline = SlideMediaPipeline(synthesizer, uploader, transcriber, fast_config, sleep=no_sleep)
        slides = [
            make_slide(index=1),
            make_slide(index=2, narration="This one goes boom."),
            make_slide(index=3),
            make_slide(index=4, narration="<i></i>"),
        ]

        report = await pipeline.process_chapter("c", "ch", slides, dropped_records=2)

        assert [o.status for o in report.outcomes] == [
            SlideStatus.SUCCEEDED, SlideStatus.FAILED, SlideStatus.SUCCEEDED, SlideStatus.SKIPPED,
        ]
        assert "PermanentServiceError" in report.outcomes[1].error
        assert report.summary() == {"succeeded": 2, "skipped": 1, "failed": 1, "dropped_records": 2}
        assert sorted(uploader.objects) == ["audio/c/ch/intro-01.wav", "audio/c/ch/intro-03.wav"]

    @pytest.mark.asyncio
    async def test_transcription_failure_fails_slide(self, synthesizer, uploader, make_slide, fast_config,
                                                     no_sleep):
        pipeline = SlideMediaPipeline(synthesizer, uploader, FakeTranscriber(fail=True), fast_config,
                                      sleep=no_sleep)
        report = await pipeline.process_chapter("c", "ch", [make_slide()])
        assert report.failed == 1
        assert report.processed_slides == []

    @pytest.mark.asyncio
    async def test_concurrency_is_bounded(self, make_wav, make_slide, uploader, transcriber, no_sleep):
        synthesizer = FakeSynthesizer(make_wav, delay=0.01)
        config = config_with(max_concurrent_slides=2)
        pipeline = SlideMediaPipeline(synthesizer, uploader, transcriber, config, sleep=no_sleep)

        report = await pipeline.process_chapter("c", "ch", [make_slide(index=i) for i in range(1, 7)])

        assert report.succeeded == 6
        assert synthesizer.peak <= 2

    def test_pipeline_built_outside_event_loop(self, make_wav, make_slide, uploader, transcriber, no_sleep):
        synthesizer = FakeSynthesizer(make_wav, delay=0.01)
        config = config_with(max_concurrent_slides=1)
        pipeline = SlideMediaPipeline(synthesizer, uploader, transcriber, config, sleep=no_sleep)
        slides = [make_slide(index=i) for i in range(1, 4)]

        for _ in range(2):
            report = asyncio.run(pipeline.process_chapter("c", "ch", slides))
            assert report.succeeded == 3

        assert synthesizer.peak == 1

    @pytest.mark.asyncio
    async def test_empty_chapter(self, pipeline):
        report = await pipeline.process_chapter("c", "ch", [])
        assert report.outcomes == []

    @pytest.mark.asyncio
    async def test_report_wire_shape(self, pipeline, make_slide):
        report = await pipeline.process_chapter("c", "ch", [make_slide()])
        wire = report.to_wire()
        assert wire["chapterId"] == "ch"
        assert wire["outcomes"][0]["status"] == "succeeded"
        assert wire["outcomes"][0]["result"]["audioUrl"].endswith("intro-01.wav")


# =============================================================================
# Test Chapter Generation
# =============================================================================

CHAPTER = Chapter(chapter_id="intro", chapter_title="Introduction", sub_content=["What is Python"])


class TestChapterVideoGenerator:

    @pytest.mark.asyncio
    async def test_generates_and_processes(self, pipeline, make_slide_dict):
        raw = "Sure!\n```json\n" + json.dumps([make_slide_dict(2), make_slide_dict(1)]) + "\n```"
        model = AsyncMock()
        model.generate.return_value = raw

        report = await ChapterVideoGenerator(model, pipeline).generate("course-1", CHAPTER, "Python Basics")

        assert report.succeeded == 2
        assert [o.slide_id for o in report.outcomes] == ["intro-01", "intro-02"]
        system_prompt, user_input = model.generate.call_args.args
        assert system_prompt == SLIDE_SYSTEM_PROMPT
        assert '"chapterTitle": "Introduction"' in user_input
        assert '"courseName": "Python Basics"' in user_input

    @pytest.mark.asyncio
    async def test_dropped_records_reported(self, pipeline, make_slide_dict):
        invalid = make_slide_dict(2)
        del invalid["html"]
        model = AsyncMock()
        model.generate.return_value = json.dumps([make_slide_dict(1), invalid])

        report = await ChapterVideoGenerator(model, pipeline).generate("c", CHAPTER)

        assert report.succeeded == 1
        assert report.dropped_records == 1

    @pytest.mark.asyncio
    async def test_model_failure(self, pipeline):
        model = AsyncMock()
        model.generate.side_effect = RuntimeError("all models failed")
        with pytest.raises(ChapterGenerationError, match="all models failed"):
            await ChapterVideoGenerator(model, pipeline).generate("c", CHAPTER)

    @pytest.mark.asyncio
    async def test_unparseable_output(self, pipeline):
        model = AsyncMock()
        model.generate.return_value = "I cannot help with that."
        with pytest.raises(ChapterGenerationError):
            await ChapterVideoGenerator(model, pipeline).generate("c", CHAPTER)

    @pytest.mark.asyncio
    async def test_no_valid_records(self, pipeline, make_slide_dict):
        invalid = make_slide_dict(1)
        invalid["slideIndex"] = 0
        model = AsyncMock()
        model.generate.return_value = json.dumps([invalid])
        with pytest.raises(ChapterGenerationError, match="1 records dropped"):
            await ChapterVideoGenerator(model, pipeline).generate("c", CHAPTER)

    @pytest.mark.asyncio
    async def test_records_without_slide_fields(self, pipeline):
        model = AsyncMock()
        model.generate.return_value = '[{"slideId": "x"}]'
        with pytest.raises(ChapterGenerationError, match="No slides recoverable"):
            await ChapterVideoGenerator(model, pipeline).generate("c", CHAPTER)


class TestCourseLayout:

    @pytest.mark.asyncio
    async def test_layout_from_prose(self):
        layout = {
            "courseName": "Python Basics",
            "chapters": [{"chapterId": "intro", "chapterTitle": "Introduction", "subContent": ["a"]}],
        }
        model = AsyncMock()
        model.generate.return_value = "Here is your course:\n" + json.dumps(layout) + "\nEnjoy!"

        result = await generate_course_layout(model, "Python for beginners")

        assert result.course_name == "Python Basics"
        assert result.chapters[0].chapter_id == "intro"
        model.generate.assert_awaited_once_with(COURSE_LAYOUT_PROMPT, "Python for beginners")
