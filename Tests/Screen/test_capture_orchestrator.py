# test_capture_orchestrator.py
"""
Unit tests for CaptureOrchestrator.
Tests change detection, non-blocking job dispatch, result handling and stream release.
"""

import asyncio
from dataclasses import replace

import pytest
from unittest.mock import AsyncMock, Mock

from interview_capture.API_Clients import SCREEN_ANALYZER_PROMPT, VISION_FALLBACK_TEXT
from interview_capture.errors import MalformedResponseError, TransientServiceError
from interview_capture.Recognition import RecognitionEngine
from interview_capture.Screen import CaptureOrchestrator
from interview_capture.state import CaptureLogKind, CaptureStateStore
from Tests.capture_test_utils import FakeDisplayStream, FakeRecognitionBackend, wait_until


def frame(size: int, fill: bytes = b"f") -> bytes:
    return fill * size


@pytest.fixture
def store():
    return CaptureStateStore()


@pytest.fixture
def vision_client():
    client = AsyncMock()
    client.analyze.return_value = "Slide about Kubernetes deployments with Docker images"
    return client


@pytest.fixture
def engine(fake_backend):
    return RecognitionEngine(fake_backend)


def logs_of(store, kind):
    return [e for e in store.snapshot.capture_logs if e.kind == kind]


class TestChangeDetection:
    """Byte-length delta strictly greater than the threshold fires."""

    def test_threshold_is_strict(self, store, engine, vision_client):
        orchestrator = CaptureOrchestrator(store, engine, vision_client)
        assert not orchestrator.is_significant_change(5000, 5999)
        assert not orchestrator.is_significant_change(5000, 6000)
        assert orchestrator.is_significant_change(5000, 6001)
        assert orchestrator.is_significant_change(6001, 5000)

    @pytest.mark.asyncio
    async def test_delta_of_999_does_not_fire(self, store, engine, vision_client, fast_config):
        on_change = Mock()
        stream = FakeDisplayStream([frame(2000), frame(2999)])
        orchestrator = CaptureOrchestrator(store, engine, vision_client, fast_config, on_significant_change=on_change)

        orchestrator.start(stream)
        assert await wait_until(lambda: orchestrator.frames_sampled == 2)
        await orchestrator.stop()

        on_change.assert_not_called()
        vision_client.analyze.assert_not_called()

    @pytest.mark.asyncio
    async def test_delta_of_1001_fires(self, store, engine, vision_client, fast_config):
        on_change = Mock()
        stream = FakeDisplayStream([frame(2000), frame(3001)])
        orchestrator = CaptureOrchestrator(store, engine, vision_client, fast_config, on_significant_change=on_change)

        orchestrator.start(stream)
        assert await wait_until(lambda: orchestrator.frames_sampled == 2)
        await orchestrator.stop()
        await orchestrator.wait_for_pending_jobs()

        on_change.assert_called_once_with(frame(3001))
        vision_client.analyze.assert_awaited_once_with(frame(3001), SCREEN_ANALYZER_PROMPT)

    @pytest.mark.asyncio
    async def test_first_frame_never_fires(self, store, engine, vision_client, fast_config):
        on_change = Mock()
        orchestrator = CaptureOrchestrator(store, engine, vision_client, fast_config, on_significant_change=on_change)

        orchestrator.start(FakeDisplayStream([frame(50_000)]))
        assert await wait_until(lambda: orchestrator.frames_sampled == 1)
        await orchestrator.stop()

        on_change.assert_not_called()


class TestSampling:
    """Tests for the sampling loop itself."""

    @pytest.mark.asyncio
    async def test_each_sample_records_capture_and_log(self, store, engine, vision_client, fast_config):
        on_frame = Mock()
        frames = [frame(1000), frame(1000), frame(1000)]
        orchestrator = CaptureOrchestrator(store, engine, vision_client, fast_config, on_frame=on_frame)

        orchestrator.start(FakeDisplayStream(list(frames)))
        assert await wait_until(lambda: orchestrator.frames_sampled == 3)
        await orchestrator.stop()

        captures = store.snapshot.screen_captures
        assert len(captures) == 3
        assert len({c.timestamp for c in captures}) == 3
        screenshots = logs_of(store, CaptureLogKind.SCREENSHOT)
        assert [e.summary for e in screenshots] == ["Screen captured"] * 3
        assert on_frame.call_count == 3

    @pytest.mark.asyncio
    async def test_zero_dimensions_skip_until_display_reports_size(self, store, engine, vision_client, fast_config):
        stream = FakeDisplayStream([frame(1000)], width=0, height=0)
        orchestrator = CaptureOrchestrator(store, engine, vision_client, fast_config)

        orchestrator.start(stream)
        await asyncio.sleep(0.08)
        assert stream.grab_calls == 0
        assert store.snapshot.screen_captures == ()

        stream.width, stream.height = 1280, 720
        assert await wait_until(lambda: orchestrator.frames_sampled == 1)
        await orchestrator.stop()

    @pytest.mark.asyncio
    async def test_initial_delay_before_first_sample(self, store, engine, vision_client, fast_config):
        config = replace(fast_config, initial_sample_delay_ms=300)
        stream = FakeDisplayStream([frame(1000)])
        orchestrator = CaptureOrchestrator(store, engine, vision_client, config)

        orchestrator.start(stream)
        await asyncio.sleep(0.05)
        assert stream.grab_calls == 0
        await orchestrator.stop()

    @pytest.mark.asyncio
    async def test_interval_override(self, store, engine, vision_client, fast_config):
        stream = FakeDisplayStream([frame(1000)] * 10)
        orchestrator = CaptureOrchestrator(store, engine, vision_client, fast_config)

        orchestrator.start(stream, interval_ms=5000)
        await asyncio.sleep(0.1)
        await orchestrator.stop()

        assert stream.grab_calls == 1

    def test_invalid_interval(self, store, engine, vision_client):
        orchestrator = CaptureOrchestrator(store, engine, vision_client)
        with pytest.raises(ValueError):
            orchestrator.start(FakeDisplayStream(), interval_ms=0)

    @pytest.mark.asyncio
    async def test_sampling_not_blocked_by_slow_jobs(self, store, engine, vision_client, fast_config):
        gate = asyncio.Event()

        async def slow_analyze(image_bytes, prompt_text):
            await gate.wait()
            return "Terminal running pytest"

        vision_client.analyze.side_effect = slow_analyze
        frames = [frame(1000), frame(5000)] + [frame(5000)] * 4
        orchestrator = CaptureOrchestrator(store, engine, vision_client, fast_config)

        orchestrator.start(FakeDisplayStream(frames))
        assert await wait_until(lambda: orchestrator.frames_sampled == 6)
        assert orchestrator.pending_jobs >= 1
        await orchestrator.stop()

        gate.set()
        await orchestrator.wait_for_pending_jobs()
        assert store.snapshot.screen_captures[1].analysis == "Terminal running pytest"


class TestJobResults:
    """Tests for what recognition and analysis results write to the store."""

    async def _run_one_change(self, store, engine, vision_client, config):
        orchestrator = CaptureOrchestrator(store, engine, vision_client, config)
        orchestrator.start(FakeDisplayStream([frame(1000), frame(5000)]))
        assert await wait_until(lambda: orchestrator.frames_sampled == 2)
        await orchestrator.stop()
        await orchestrator.wait_for_pending_jobs()
        return orchestrator

    @pytest.mark.asyncio
    async def test_results_annotate_log_and_add_technologies(self, store, engine, vision_client, fast_config):
        await self._run_one_change(store, engine, vision_client, fast_config)

        changed = store.snapshot.screen_captures[1]
        assert changed.recognized_text == "def handler(event): return React"
        assert changed.analysis == "Slide about Kubernetes deployments with Docker images"

        recognition = logs_of(store, CaptureLogKind.RECOGNITION)
        assert len(recognition) == 1
        assert recognition[0].summary == "Text recognition: 4 words (92% conf)"
        assert recognition[0].preview == "def handler(event): return React"

        analysis = logs_of(store, CaptureLogKind.ANALYSIS)
        assert len(analysis) == 1
        assert analysis[0].summary == "AI Vision analyzed screen content"

        assert set(store.snapshot.detected_technologies) == {"React", "Kubernetes", "Docker"}

    @pytest.mark.asyncio
    async def test_preview_truncated_to_500_chars(self, store, vision_client, fast_config):
        vision_client.analyze.return_value = "Python " * 200
        engine = RecognitionEngine(FakeRecognitionBackend(text="x" * 800))

        await self._run_one_change(store, engine, vision_client, fast_config)

        for kind in (CaptureLogKind.RECOGNITION, CaptureLogKind.ANALYSIS):
            assert len(logs_of(store, kind)[0].preview) == 500

    @pytest.mark.asyncio
    async def test_malformed_analysis_uses_fallback(self, store, engine, vision_client, fast_config):
        vision_client.analyze.side_effect = MalformedResponseError("no choices", service="vision")

        await self._run_one_change(store, engine, vision_client, fast_config)

        assert store.snapshot.screen_captures[1].analysis == VISION_FALLBACK_TEXT
        assert logs_of(store, CaptureLogKind.ANALYSIS)[0].preview == VISION_FALLBACK_TEXT

    @pytest.mark.asyncio
    async def test_transient_analysis_failure_is_swallowed(self, store, engine, vision_client, fast_config):
        vision_client.analyze.side_effect = TransientServiceError("timeout", service="vision")

        await self._run_one_change(store, engine, vision_client, fast_config)

        assert store.snapshot.screen_captures[1].analysis is None
        assert logs_of(store, CaptureLogKind.ANALYSIS) == []
        # The recognition job is independent and still lands
        assert len(logs_of(store, CaptureLogKind.RECOGNITION)) == 1

    @pytest.mark.asyncio
    async def test_rejected_recognition_records_nothing(self, store, vision_client, fast_config):
        engine = AsyncMock()
        engine.extract.return_value = None

        await self._run_one_change(store, engine, vision_client, fast_config)

        engine.extract.assert_awaited_once()
        assert logs_of(store, CaptureLogKind.RECOGNITION) == []
        assert store.snapshot.screen_captures[1].recognized_text is None


class TestStreamRelease:
    """The display stream is released when sampling stops."""

    @pytest.mark.asyncio
    async def test_stop_releases_stream(self, store, engine, vision_client, fast_config):
        release = Mock(side_effect=lambda s: s.close())
        stream = FakeDisplayStream([frame(1000)])
        orchestrator = CaptureOrchestrator(store, engine, vision_client, fast_config)

        orchestrator.start(stream, release=release)
        assert orchestrator.is_running
        await orchestrator.stop()

        release.assert_called_once_with(stream)
        assert stream.closed
        assert not orchestrator.is_running

    @pytest.mark.asyncio
    async def test_cancelled_loop_releases_stream(self, store, engine, vision_client, fast_config):
        stream = FakeDisplayStream()
        orchestrator = CaptureOrchestrator(store, engine, vision_client, fast_config)
        orchestrator.start(stream)

        orchestrator._task.cancel()

        assert await wait_until(lambda: stream.closed)

    @pytest.mark.asyncio
    async def test_grab_error_does_not_stop_sampling(self, store, engine, vision_client, fast_config):
        stream = FakeDisplayStream([frame(1000)])
        original_grab = stream.grab_frame
        calls = {"n": 0}

        def flaky_grab():
            calls["n"] += 1
            if calls["n"] == 1:
                raise OSError("display went away")
            return original_grab()

        stream.grab_frame = flaky_grab
        orchestrator = CaptureOrchestrator(store, engine, vision_client, fast_config)

        orchestrator.start(stream)
        assert await wait_until(lambda: orchestrator.frames_sampled == 1)
        await orchestrator.stop()

    @pytest.mark.asyncio
    async def test_unexpected_grab_error_does_not_stop_sampling(self, store, engine, vision_client, fast_config):
        stream = FakeDisplayStream([frame(1000), frame(1000)])
        original_grab = stream.grab_frame
        calls = {"n": 0}

        def failing_first_grab():
            calls["n"] += 1
            if calls["n"] == 1:
                raise Exception("XGetImage() failed")
            return original_grab()

        stream.grab_frame = failing_first_grab
        orchestrator = CaptureOrchestrator(store, engine, vision_client, fast_config)

        orchestrator.start(stream)
        assert await wait_until(lambda: orchestrator.frames_sampled == 2)
        assert orchestrator.is_running
        assert not stream.closed
        await orchestrator.stop()
        assert stream.closed


class TestJobFailures:
    """Unexpected job errors are logged and never escape the job task."""

    @pytest.mark.asyncio
    async def test_unexpected_recognition_error_is_contained(self, store, vision_client, fast_config):
        engine = AsyncMock()
        engine.extract.side_effect = RuntimeError("tesseract crashed")
        stream = FakeDisplayStream([frame(1000), frame(5000)])
        orchestrator = CaptureOrchestrator(store, engine, vision_client, fast_config)

        orchestrator.start(stream)
        assert await wait_until(lambda: orchestrator.frames_sampled == 2)
        await orchestrator.stop()
        await orchestrator.wait_for_pending_jobs()

        assert orchestrator.pending_jobs == 0
        assert logs_of(store, CaptureLogKind.RECOGNITION) == []
        # The analysis job is independent of the failed recognition
        assert len(logs_of(store, CaptureLogKind.ANALYSIS)) == 1

    @pytest.mark.asyncio
    async def test_unexpected_analysis_error_is_contained(self, store, engine, fast_config):
        vision_client = AsyncMock()
        vision_client.analyze.side_effect = KeyError("choices")
        stream = FakeDisplayStream([frame(1000), frame(5000)])
        orchestrator = CaptureOrchestrator(store, engine, vision_client, fast_config)

        orchestrator.start(stream)
        assert await wait_until(lambda: orchestrator.frames_sampled == 2)
        await orchestrator.stop()
        await orchestrator.wait_for_pending_jobs()

        assert logs_of(store, CaptureLogKind.ANALYSIS) == []
        assert len(logs_of(store, CaptureLogKind.RECOGNITION)) == 1
