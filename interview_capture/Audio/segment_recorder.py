# segment_recorder.py
"""
Continuous microphone recording split into time-boxed segments.

Each segment is flushed into a single WAV blob and transcribed on its own,
so transcript text keeps arriving while the recording goes on.
"""

import asyncio
from typing import Any, Callable, List, Optional, Set

from loguru import logger

# Local imports
from interview_capture.Audio.audio_devices import compute_audio_level
from interview_capture.Audio.audio_segment import AudioSegment
from interview_capture.config import CaptureConfig
from interview_capture.errors import CapturePipelineError, UndersizedInputError
from interview_capture.state import CaptureLogKind, CaptureStateStore
from interview_capture.Utils.logging_config import truncate_preview


class RecorderState:
    """Enumeration of recorder states."""
    IDLE = "idle"
    RECORDING = "recording"


class RecordingSession:
    """Chunks collected since the last rotation."""

    def __init__(self, started_at: float):
        self.started_at = started_at
        self.chunks: List[bytes] = []

    def add(self, chunk: bytes) -> None:
        if chunk:
            self.chunks.append(chunk)

    @property
    def is_empty(self) -> bool:
        return not self.chunks

    @property
    def size(self) -> int:
        return sum(len(c) for c in self.chunks)

    def pcm(self) -> bytes:
        return b''.join(self.chunks)


class AudioSegmentRecorder:
    """
    Owns the microphone stream while recording.

    Continuous mode drains the stream every `chunk_interval` and rotates the
    session every `segment_duration`: the buffered chunks become one segment
    that is transcribed in the background while a fresh session starts on the
    same stream. Non-continuous mode keeps one session until stop().

    Segments smaller than `min_segment_bytes` are discarded before any network
    call. Transcription failures are logged; there is no retry.
    """

    def __init__(
        self,
        store: CaptureStateStore,
        transcription_client: Any,
        config: Optional[CaptureConfig] = None,
        on_transcript: Optional[Callable[[str], None]] = None,
        on_state_change: Optional[Callable[[str], None]] = None,
    ):
        self.store = store
        self.transcription_client = transcription_client
        self.config = config or CaptureConfig()
        self.on_transcript = on_transcript
        self.on_state_change = on_state_change

        self.state = RecorderState.IDLE
        self._stream = None
        self._release: Optional[Callable[[Any], None]] = None
        self._task: Optional[asyncio.Task] = None
        self._stopping = False
        self._session: Optional[RecordingSession] = None
        self._pending: Set[asyncio.Task] = set()
        self._last_chunk = b''

        # Counters, mostly for status output
        self.segments_dispatched = 0
        self.segments_skipped = 0
        self.transcription_failures = 0

    @property
    def is_recording(self) -> bool:
        return self.state == RecorderState.RECORDING

    @property
    def audio_level(self) -> float:
        """RMS level (0.0 - 1.0) of the most recent chunk."""
        return compute_audio_level(self._last_chunk)

    @property
    def pending_jobs(self) -> int:
        return len(self._pending)

    def _set_state(self, new_state: str):
        if self.state == new_state:
            return
        self.state = new_state
        if self.on_state_change:
            try:
                self.on_state_change(new_state)
            except Exception as e:
                logger.error(f"Error in state change callback: {e}")

    def start(self, stream, release: Optional[Callable[[Any], None]] = None) -> None:
        """
        Start recording from an acquired stream.

        Args:
            stream: Object with drain(), encode(pcm) and mime_type
            release: Called with the stream once recording ends; defaults to stream.close()
        """
        if self.state != RecorderState.IDLE:
            logger.warning("Recorder already running")
            return

        self._stream = stream
        self._release = release
        self._stopping = False
        self._last_chunk = b''
        loop = asyncio.get_running_loop()
        self._session = RecordingSession(loop.time())
        self._set_state(RecorderState.RECORDING)
        self._task = loop.create_task(self._run())
        mode = "continuous" if self.config.continuous else "single segment"
        logger.info(f"Audio recording started ({mode}, {self.config.segment_duration_ms}ms segments)")

    async def stop(self) -> None:
        """
        Stop recording, flush the final partial segment and release the stream.

        In-flight transcriptions keep running; see wait_for_pending_jobs().
        """
        if self.state == RecorderState.IDLE:
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
            self._drain_stream()
            self._flush_session(restart=False)
        finally:
            self._teardown()
        logger.info("Audio recording stopped")

    async def wait_for_pending_jobs(self) -> None:
        """Wait until every dispatched transcription has finished."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def _run(self) -> None:
        loop = asyncio.get_running_loop()
        try:
            while True:
                await asyncio.sleep(self.config.chunk_interval)
                self._drain_stream()
                if self.config.continuous and loop.time() - self._session.started_at >= self.config.segment_duration:
                    self._rotate(loop.time())
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.exception(f"Recording loop failed: {e}")
        finally:
            # Cancelled from outside or crashed: nobody will call stop() for us
            if not self._stopping:
                self._teardown()

    def _drain_stream(self) -> None:
        if self._stream is None or self._session is None:
            return
        for chunk in self._stream.drain():
            self._session.add(chunk)
            self._last_chunk = chunk

    def _rotate(self, now: float) -> None:
        if self._session.is_empty:
            logger.debug("Nothing recorded in this segment, rotation skipped")
            self._session.started_at = now
            return
        self._flush_session(restart=True, now=now)

    def _flush_session(self, restart: bool, now: Optional[float] = None) -> None:
        session = self._session
        if session is None:
            return
        self._session = RecordingSession(now) if restart else None
        if session.is_empty:
            return
        segment = AudioSegment(self._stream.encode(session.pcm()), self._stream.mime_type)
        self._dispatch(segment)

    def _check_segment(self, segment: AudioSegment) -> None:
        if segment.size < self.config.min_segment_bytes:
            raise UndersizedInputError(segment.size, self.config.min_segment_bytes)

    def _dispatch(self, segment: AudioSegment) -> None:
        try:
            self._check_segment(segment)
        except UndersizedInputError as e:
            self.segments_skipped += 1
            logger.debug(f"Skipping segment: {e}")
            return

        self.segments_dispatched += 1
        task = asyncio.get_running_loop().create_task(self._transcribe(segment, self.store.session_id))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _transcribe(self, segment: AudioSegment, session_id: int) -> None:
        try:
            text = await self.transcription_client.transcribe(segment)
        except CapturePipelineError as e:
            self.transcription_failures += 1
            logger.error(f"Transcription failed for {segment.size} byte segment: {e}")
            return
        except Exception as e:
            self.transcription_failures += 1
            logger.exception(f"Unexpected transcription error: {e}")
            return

        text = (text or "").strip()
        if not text:
            logger.debug("Segment transcribed to empty text")
            return

        logger.info(f"Transcribed segment: {truncate_preview(text)}")
        self.store.append_transcript(text, session_id=session_id)
        self.store.log(CaptureLogKind.SPEECH, f'Speech: "{text[:50]}..."', preview=text, session_id=session_id)
        if self.on_transcript:
            try:
                self.on_transcript(text)
            except Exception as e:
                logger.error(f"Error in transcript callback: {e}")

    def _teardown(self) -> None:
        stream, release = self._stream, self._release
        self._stream = None
        self._release = None
        self._session = None
        self._set_state(RecorderState.IDLE)
        if stream is None:
            return
        try:
            if release is not None:
                release(stream)
            else:
                stream.close()
        except (OSError, RuntimeError) as e:
            logger.error(f"Failed to release microphone stream: {e}")
