# capture_orchestrator.py
# Description: Periodic screen sampling with change detection and background recognition / analysis jobs.
#
# Imports
import asyncio
from typing import Any, Callable, Optional, Set
#
# Third-Party Imports
from loguru import logger
#
# Local Imports
from interview_capture.API_Clients.vision_client import SCREEN_ANALYZER_PROMPT, VISION_FALLBACK_TEXT
from interview_capture.config import CaptureConfig
from interview_capture.errors import CapturePipelineError, MalformedResponseError
from interview_capture.state import CaptureLogKind, CaptureStateStore, ScreenCapture, now_ms
from interview_capture.Utils.tech_keywords import extract_technologies_from_text
#
#######################################################################################################################
#
# Constants:

# Characters of recognized text / analysis kept in a log entry preview
LOG_PREVIEW_CHARS = 500

#
# Classes:

class CaptureOrchestrator:
    """
    Samples the shared screen on a fixed interval.

    Every sample becomes a ScreenCapture plus a `screenshot` log entry. When the
    encoded size of a frame differs from the previous one by more than the
    change threshold, a recognition job and a vision analysis job are started
    in the background. Sampling never waits for them.
    """

    def __init__(
        self,
        store: CaptureStateStore,
        recognition_engine: Any,
        vision_client: Any,
        config: Optional[CaptureConfig] = None,
        on_frame: Optional[Callable[[bytes], None]] = None,
        on_significant_change: Optional[Callable[[bytes], None]] = None,
        analysis_prompt: str = SCREEN_ANALYZER_PROMPT,
    ):
        self.store = store
        self.recognition_engine = recognition_engine
        self.vision_client = vision_client
        self.config = config or CaptureConfig()
        self.on_frame = on_frame
        self.on_significant_change = on_significant_change
        self.analysis_prompt = analysis_prompt

        self._stream = None
        self._release: Optional[Callable[[Any], None]] = None
        self._task: Optional[asyncio.Task] = None
        self._stopping = False
        self._interval = self.config.sample_interval
        self._previous_size: Optional[int] = None
        self._last_timestamp = 0
        self._pending: Set[asyncio.Task] = set()

        self.frames_sampled = 0
        self.changes_detected = 0

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def pending_jobs(self) -> int:
        return len(self._pending)

    def is_significant_change(self, previous_size: int, new_size: int) -> bool:
        """True when the encoded sizes differ by strictly more than the threshold."""
        return abs(new_size - previous_size) > self.config.change_threshold_bytes

    def start(self, stream, interval_ms: Optional[int] = None, release: Optional[Callable[[Any], None]] = None) -> None:
        """
        Begin sampling an acquired display stream.

        Args:
            stream: Object with width, height and grab_frame()
            interval_ms: Overrides the configured sample interval
            release: Called with the stream on stop; defaults to stream.close()
        """
        if self.is_running:
            logger.warning("Capture orchestrator already running")
            return
        if interval_ms is not None and interval_ms <= 0:
            raise ValueError(f"interval_ms must be positive, got {interval_ms}")

        self._stream = stream
        self._release = release
        self._stopping = False
        self._previous_size = None
        self._interval = interval_ms / 1000 if interval_ms is not None else self.config.sample_interval
        self._task = asyncio.get_running_loop().create_task(self._run())
        logger.info(f"Screen sampling started every {self._interval:.1f}s")

    async def stop(self) -> None:
        """Stop sampling and release the stream. Dispatched jobs run to completion."""
        if self._task is None and self._stream is None:
            return
        self._stopping = True
        task, self._task = self._task, None
        try:
            if task is not None and not task.done():
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass
        finally:
            self._teardown()
        logger.info(f"Screen sampling stopped after {self.frames_sampled} frames")

    async def wait_for_pending_jobs(self) -> None:
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def _run(self) -> None:
        try:
            await asyncio.sleep(self.config.initial_sample_delay)
            while True:
                try:
                    self._sample()
                except Exception as e:
                    # One bad tick must not end sampling
                    logger.exception(f"Screen sample failed: {e}")
                await asyncio.sleep(self._interval)
        finally:
            if not self._stopping:
                self._teardown()

    def _next_timestamp(self) -> int:
        # Captures are looked up by timestamp when jobs finish, so keep them unique
        self._last_timestamp = max(now_ms(), self._last_timestamp + 1)
        return self._last_timestamp

    def _sample(self) -> None:
        stream = self._stream
        if stream is None:
            return
        if not stream.width or not stream.height:
            logger.debug("Display reports zero dimensions, sample skipped")
            return
        try:
            frame = stream.grab_frame()
        except (OSError, RuntimeError, ValueError) as e:
            logger.error(f"Frame grab failed: {e}")
            return
        if not frame:
            logger.debug("No frame available, sample skipped")
            return

        self.frames_sampled += 1
        session_id = self.store.session_id
        timestamp = self._next_timestamp()
        self.store.push_screen_capture(ScreenCapture(timestamp, frame), session_id=session_id)
        self.store.log(CaptureLogKind.SCREENSHOT, "Screen captured", session_id=session_id)
        self._emit(self.on_frame, frame, "frame")

        previous_size, self._previous_size = self._previous_size, len(frame)
        if previous_size is None or not self.is_significant_change(previous_size, len(frame)):
            return

        self.changes_detected += 1
        logger.debug(f"Significant screen change: {previous_size} -> {len(frame)} bytes")
        self._emit(self.on_significant_change, frame, "significant change")
        self._spawn(self._run_recognition(timestamp, frame, session_id))
        self._spawn(self._run_analysis(timestamp, frame, session_id))

    def _spawn(self, coro) -> None:
        task = asyncio.get_running_loop().create_task(coro)
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _run_recognition(self, timestamp: int, frame: bytes, session_id: int) -> None:
        try:
            result = await self.recognition_engine.extract(frame)
        except Exception as e:
            logger.exception(f"Unexpected text recognition error: {e}")
            return
        if result is None:
            return
        text = result.text
        self.store.annotate_screen_capture(timestamp, recognized_text=text, session_id=session_id)
        self.store.log(
            CaptureLogKind.RECOGNITION,
            f"Text recognition: {result.word_count} words ({round(result.confidence_score)}% conf)",
            preview=text[:LOG_PREVIEW_CHARS],
            session_id=session_id,
        )
        self._record_technologies(text, session_id)

    async def _run_analysis(self, timestamp: int, frame: bytes, session_id: int) -> None:
        try:
            analysis = await self.vision_client.analyze(frame, self.analysis_prompt)
        except MalformedResponseError as e:
            logger.warning(f"Vision analysis unusable, using fallback text: {e}")
            analysis = VISION_FALLBACK_TEXT
        except CapturePipelineError as e:
            logger.error(f"Vision analysis failed: {e}")
            return
        except Exception as e:
            logger.exception(f"Unexpected vision analysis error: {e}")
            return

        self.store.annotate_screen_capture(timestamp, analysis=analysis, session_id=session_id)
        self.store.log(
            CaptureLogKind.ANALYSIS,
            "AI Vision analyzed screen content",
            preview=analysis[:LOG_PREVIEW_CHARS],
            session_id=session_id,
        )
        self._record_technologies(analysis, session_id)

    def _record_technologies(self, text: str, session_id: int) -> None:
        for name in extract_technologies_from_text(text):
            self.store.add_technology(name, session_id=session_id)

    @staticmethod
    def _emit(callback: Optional[Callable[[bytes], None]], frame: bytes, label: str) -> None:
        if callback is None:
            return
        try:
            callback(frame)
        except Exception as e:
            logger.error(f"Error in {label} callback: {e}")

    def _teardown(self) -> None:
        stream, release = self._stream, self._release
        self._stream = None
        self._release = None
        if stream is None:
            return
        try:
            if release is not None:
                release(stream)
            else:
                stream.close()
        except (OSError, RuntimeError) as e:
            logger.error(f"Failed to release display stream: {e}")

#
# End of capture_orchestrator.py
#######################################################################################################################
