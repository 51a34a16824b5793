"""Tests for the debounced correction pipeline."""

import asyncio
from collections.abc import AsyncIterator
from typing import Optional

import pytest

from local_dictation.correction.exceptions import CorrectionError, LLMConnectionError
from local_dictation.correction.llm_engine import CorrectionEngine
from local_dictation.correction.models import CorrectionResult
from local_dictation.correction.pipeline import CorrectionPipeline


class FakeEngine(CorrectionEngine):
    """Engine that echoes the text to correct, or returns a fixed reply."""

    def __init__(
        self,
        reply: Optional[str] = None,
        delay: float = 0.0,
        error: Optional[Exception] = None,
    ) -> None:
        self.reply = reply
        self.delay = delay
        self.error = error
        self.calls: list[tuple[str, str, int]] = []

    async def load(self, progress_callback=None) -> None:
        pass

    def is_loaded(self) -> bool:
        return True

    async def stream_correction(
        self, system_prompt: str, user_prompt: str, max_tokens: int
    ) -> AsyncIterator[str]:
        self.calls.append((system_prompt, user_prompt, max_tokens))
        if self.error is not None:
            raise self.error
        reply = self.reply if self.reply is not None else user_prompt.split("\n")[-1]
        for char in reply:
            if self.delay:
                await asyncio.sleep(self.delay)
            yield char


def make_pipeline(engine: CorrectionEngine, **kwargs) -> tuple[CorrectionPipeline, list]:
    kwargs.setdefault("debounce_ms", 0)
    pipeline = CorrectionPipeline(engine, **kwargs)
    results: list[CorrectionResult] = []
    pipeline.set_result_callback(results.append)
    return pipeline, results


@pytest.mark.unit
class TestDebounce:
    """Test cases for debouncing and cancellation."""

    @pytest.mark.asyncio
    async def test_rapid_submits_generate_once(self) -> None:
        """Test two submits inside the debounce window run one generation."""
        engine = FakeEngine()
        pipeline, results = make_pipeline(engine, debounce_ms=300)

        pipeline.submit("第一")
        await asyncio.sleep(0.05)
        pipeline.submit("第二")
        await pipeline.wait_idle()

        assert pipeline.generation_count == 1
        assert len(engine.calls) == 1
        assert engine.calls[0][1].endswith("第二")
        assert [result.text for result in results] == ["第二"]

    @pytest.mark.asyncio
    async def test_separate_submits_generate_twice(self) -> None:
        engine = FakeEngine()
        pipeline, results = make_pipeline(engine)

        pipeline.submit("第一")
        await pipeline.wait_idle()
        pipeline.submit("第二")
        await pipeline.wait_idle()

        assert pipeline.generation_count == 2
        assert [result.text for result in results] == ["第一", "第二"]
        assert [result.request_id for result in results] == [1, 2]

    @pytest.mark.asyncio
    async def test_new_submit_cancels_generation(self) -> None:
        engine = FakeEngine(delay=0.05)
        pipeline, results = make_pipeline(engine)

        pipeline.submit("你好世界")
        await asyncio.sleep(0.06)
        assert pipeline.is_busy
        pipeline.submit("你好")
        await pipeline.wait_idle()

        assert len(engine.calls) == 2
        assert [result.text for result in results] == ["你好"]
        assert results[0].request_id == 2

    @pytest.mark.asyncio
    async def test_cancel_all_publishes_nothing(self) -> None:
        engine = FakeEngine(delay=0.05)
        pipeline, results = make_pipeline(engine)

        pipeline.submit("你好世界")
        await asyncio.sleep(0.06)
        pipeline.cancel_all()
        await pipeline.wait_idle()
        await asyncio.sleep(0.3)

        assert len(engine.calls) == 1
        assert results == []
        assert not pipeline.is_busy

    @pytest.mark.asyncio
    async def test_cancel_during_debounce_skips_generation(self) -> None:
        engine = FakeEngine()
        pipeline, results = make_pipeline(engine, debounce_ms=100)

        pipeline.submit("你好")
        pipeline.cancel_all()
        await asyncio.sleep(0.2)

        assert engine.calls == []
        assert results == []

    @pytest.mark.asyncio
    async def test_wait_idle_when_idle(self) -> None:
        pipeline, _ = make_pipeline(FakeEngine())

        await asyncio.wait_for(pipeline.wait_idle(), timeout=1.0)


@pytest.mark.unit
class TestGeneration:
    """Test cases for what a generation publishes."""

    @pytest.mark.asyncio
    async def test_accepted_correction(self) -> None:
        engine = FakeEngine(reply="你好世界")
        pipeline, results = make_pipeline(engine)

        pipeline.submit("你好世介")
        await pipeline.wait_idle()

        result = results[0]
        assert result.accepted
        assert result.text == "你好世界"
        assert result.source_text == "你好世介"
        assert result.changed

    @pytest.mark.asyncio
    async def test_prompts_and_token_cap(self) -> None:
        engine = FakeEngine()
        pipeline, _ = make_pipeline(
            engine, system_prompt="system", user_prompt_template="fix:\n{text}"
        )

        pipeline.submit("你好")
        await pipeline.wait_idle()

        assert engine.calls == [("system", "fix:\n你好", 32)]

    @pytest.mark.parametrize("length,expected", [(0, 32), (3, 32), (50, 74), (100, 96)])
    def test_token_cap(self, length: int, expected: int) -> None:
        pipeline = CorrectionPipeline(FakeEngine())

        assert pipeline.token_cap("字" * length) == expected

    @pytest.mark.asyncio
    async def test_drift_rejection_publishes_source(self) -> None:
        engine = FakeEngine(reply="我覺得你應該講清楚啲先")
        pipeline, results = make_pipeline(engine)

        pipeline.submit("你好世界")
        await pipeline.wait_idle()

        result = results[0]
        assert not result.accepted
        assert result.text == "你好世界"
        assert not result.changed
        assert result.rejection_reason is not None

    @pytest.mark.asyncio
    async def test_quality_scale_is_applied(self) -> None:
        source = "一二三四五六七八九十" * 3
        engine = FakeEngine(reply="甲" * 8 + source[8:])
        pipeline, results = make_pipeline(engine, quality_scale=0.7)

        pipeline.submit(source)
        await pipeline.wait_idle()

        assert not results[0].accepted

    @pytest.mark.asyncio
    async def test_blocked_input_skips_engine(self) -> None:
        engine = FakeEngine()
        pipeline, results = make_pipeline(engine)

        pipeline.submit("你好 plan to build")
        await pipeline.wait_idle()

        assert engine.calls == []
        assert results[0].text == "你好 plan to build"
        assert not results[0].accepted

    @pytest.mark.asyncio
    async def test_empty_input_publishes_empty_text(self) -> None:
        engine = FakeEngine()
        pipeline, results = make_pipeline(engine)

        pipeline.submit("<system-reminder>hi</system-reminder>")
        await pipeline.wait_idle()

        assert engine.calls == []
        assert results[0].text == ""
        assert results[0].accepted

    @pytest.mark.asyncio
    async def test_engine_error_reports_and_publishes_nothing(self) -> None:
        engine = FakeEngine(error=LLMConnectionError("Connection failed"))
        pipeline, results = make_pipeline(engine)
        errors: list[Exception] = []
        pipeline.set_error_callback(errors.append)

        pipeline.submit("你好")
        await pipeline.wait_idle()

        assert results == []
        assert len(errors) == 1
        assert isinstance(errors[0], CorrectionError)

    @pytest.mark.asyncio
    async def test_unexpected_engine_error_is_reported_as_correction_error(self) -> None:
        engine = FakeEngine(error=KeyError("message"))
        pipeline, results = make_pipeline(engine)
        errors: list[Exception] = []
        pipeline.set_error_callback(errors.append)

        pipeline.submit("你好")
        await pipeline.wait_idle()

        assert results == []
        assert len(errors) == 1
        assert isinstance(errors[0], CorrectionError)
        assert isinstance(errors[0].__cause__, KeyError)

    @pytest.mark.asyncio
    async def test_result_callback_error_is_contained(self) -> None:
        pipeline = CorrectionPipeline(FakeEngine(), debounce_ms=0)

        def broken(result: CorrectionResult) -> None:
            raise RuntimeError("ui gone")

        pipeline.set_result_callback(broken)
        pipeline.submit("你好")

        await pipeline.wait_idle()
        assert pipeline.generation_count == 1
