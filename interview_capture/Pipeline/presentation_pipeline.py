# presentation_pipeline.py
"""
Activation control for a presentation capture session.

Turning the pipeline on acquires the screen and the microphone, opens a store
session and starts both producers. Turning it off stops sampling and rotation,
releases both devices right away and ends the session. Jobs already dispatched
keep running; whether their results still land is the store's late-write policy.
"""

import asyncio
from typing import Any, Callable, Optional

from loguru import logger

# Local imports
from interview_capture.API_Clients import create_transcription_client, create_vision_client
from interview_capture.Audio import AudioSegmentRecorder, MicrophoneSource
from interview_capture.config import (
    CaptureConfig,
    get_cli_setting,
    load_capture_config,
    load_cli_config_and_ensure_existence,
)
from interview_capture.errors import AcquisitionError
from interview_capture.Recognition import RecognitionEngine, create_recognition_backend
from interview_capture.Screen import CaptureOrchestrator, DisplaySource
from interview_capture.state import CaptureStateStore


class PresentationCapturePipeline:
    """
    Drives the recorder and the orchestrator from a single active flag.

    Usage:
        pipeline = create_default_pipeline()
        await pipeline.activate()
        ...
        await pipeline.deactivate()
    """

    def __init__(
        self,
        store: CaptureStateStore,
        display_source: Any,
        microphone_source: Any,
        recorder: AudioSegmentRecorder,
        orchestrator: CaptureOrchestrator,
        config: Optional[CaptureConfig] = None,
        clients: tuple = (),
    ):
        self.store = store
        self.display_source = display_source
        self.microphone_source = microphone_source
        self.recorder = recorder
        self.orchestrator = orchestrator
        self.config = config or CaptureConfig()
        self._clients = clients
        self._active = False
        self._lock = asyncio.Lock()

    @property
    def active(self) -> bool:
        return self._active

    async def set_active(self, flag: bool) -> None:
        """Apply the activation flag. Repeating the current value does nothing."""
        async with self._lock:
            if flag == self._active:
                return
            if flag:
                self._start()
            else:
                await self._stop()

    async def activate(self) -> None:
        await self.set_active(True)

    async def deactivate(self) -> None:
        await self.set_active(False)

    def _start(self) -> None:
        display_stream = None
        try:
            display_stream = self.display_source.acquire()
            microphone_stream = self.microphone_source.acquire()
        except AcquisitionError as e:
            logger.error(f"Could not start capture ({e.device}): {e}")
            if display_stream is not None:
                self.display_source.release(display_stream)
            raise

        session_id = self.store.begin_session()
        self.orchestrator.start(display_stream, release=self.display_source.release)
        self.recorder.start(microphone_stream, release=self.microphone_source.release)
        self._active = True
        logger.info(f"Presentation capture active (session {session_id})")

    async def _stop(self) -> None:
        self._active = False
        try:
            await asyncio.gather(self.orchestrator.stop(), self.recorder.stop())
        finally:
            self.store.end_session()
        logger.info("Presentation capture inactive")

    async def wait_for_pending_jobs(self) -> None:
        """Wait for background recognition, analysis and transcription jobs."""
        await asyncio.gather(self.orchestrator.wait_for_pending_jobs(), self.recorder.wait_for_pending_jobs())

    async def close(self) -> None:
        """Deactivate, drain background jobs and close the HTTP clients."""
        await self.deactivate()
        await self.wait_for_pending_jobs()
        for client in self._clients:
            await client.close()


def create_default_pipeline(
    overrides: Optional[dict] = None,
    on_transcript: Optional[Callable[[str], None]] = None,
    on_frame: Optional[Callable[[bytes], None]] = None,
    on_significant_change: Optional[Callable[[bytes], None]] = None,
) -> PresentationCapturePipeline:
    """Wire a pipeline to the real screen, microphone, Tesseract and the configured API."""
    config = load_capture_config(overrides)
    settings = load_cli_config_and_ensure_existence()
    store = CaptureStateStore(
        max_screen_captures=config.max_screen_captures,
        max_capture_logs=config.max_capture_logs,
        keep_late_results=config.keep_late_results,
    )

    backend = create_recognition_backend(
        get_cli_setting("recognition", "backend", "tesseract"),
        {"language": get_cli_setting("recognition", "language", "en")},
    )
    transcription_client = create_transcription_client()
    vision_client = create_vision_client()

    recorder = AudioSegmentRecorder(store, transcription_client, config, on_transcript=on_transcript)
    orchestrator = CaptureOrchestrator(
        store,
        RecognitionEngine(backend),
        vision_client,
        config,
        on_frame=on_frame,
        on_significant_change=on_significant_change,
    )
    return PresentationCapturePipeline(
        store,
        DisplaySource.from_settings(settings.get("capture", {})),
        MicrophoneSource.from_settings(settings.get("audio", {})),
        recorder,
        orchestrator,
        config,
        clients=(transcription_client, vision_client),
    )
