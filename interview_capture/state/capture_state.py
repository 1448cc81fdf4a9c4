"""
Capture state store.

Single source of truth for everything the presentation pipeline produces:
screen captures, capture log events, the running transcript and the set of
detected technologies. Every write builds a new immutable CaptureSnapshot and
swaps it in with no suspension point in between, so readers always see a
complete state even while several asyncio tasks are completing.
"""

import time
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Callable, List, Optional, Tuple

from loguru import logger

logger = logger.bind(module="capture_state")


DEFAULT_MAX_SCREEN_CAPTURES = 30
DEFAULT_MAX_CAPTURE_LOGS = 50


def now_ms() -> int:
    """Wall-clock timestamp in milliseconds."""
    return int(time.time() * 1000)


class CaptureLogKind(str, Enum):
    """Kinds of capture log events."""
    SCREENSHOT = "screenshot"
    RECOGNITION = "recognition"
    SPEECH = "speech"
    RESUME = "resume"
    ANALYSIS = "analysis"


@dataclass(frozen=True)
class ScreenCapture:
    """One sampled frame. analysis / recognized_text arrive later from side jobs."""
    timestamp: int
    image_bytes: bytes = field(repr=False)
    analysis: Optional[str] = None
    recognized_text: Optional[str] = None

    @property
    def size(self) -> int:
        return len(self.image_bytes)


@dataclass(frozen=True)
class CaptureLogEntry:
    """An immutable event shown in the live capture monitor."""
    timestamp: int
    kind: CaptureLogKind
    summary: str
    preview: Optional[str] = None


@dataclass(frozen=True)
class CaptureSnapshot:
    """Immutable view of the whole store."""
    screen_captures: Tuple[ScreenCapture, ...] = ()
    capture_logs: Tuple[CaptureLogEntry, ...] = ()
    transcript: str = ""
    detected_technologies: Tuple[str, ...] = ()
    session_id: int = 0
    session_active: bool = False

    @property
    def latest_capture(self) -> Optional[ScreenCapture]:
        return self.screen_captures[-1] if self.screen_captures else None

    @property
    def word_count(self) -> int:
        return len(self.transcript.split())


SnapshotListener = Callable[[CaptureSnapshot], None]


class CaptureStateStore:
    """
    Append-only, bounded aggregator shared by every producer.

    Writes may carry the session id they were started under. With
    keep_late_results=False such writes are dropped once that session has ended
    or been replaced; otherwise late results are kept.
    """

    def __init__(
        self,
        max_screen_captures: int = DEFAULT_MAX_SCREEN_CAPTURES,
        max_capture_logs: int = DEFAULT_MAX_CAPTURE_LOGS,
        keep_late_results: bool = True,
    ):
        if max_screen_captures <= 0 or max_capture_logs <= 0:
            raise ValueError("Window sizes must be positive")
        self.max_screen_captures = max_screen_captures
        self.max_capture_logs = max_capture_logs
        self.keep_late_results = keep_late_results
        self._snapshot = CaptureSnapshot()
        self._listeners: List[SnapshotListener] = []

    @property
    def snapshot(self) -> CaptureSnapshot:
        return self._snapshot

    @property
    def session_id(self) -> int:
        return self._snapshot.session_id

    # ---------------------------------------------------------------------------------------------
    # Subscription

    def subscribe(self, listener: SnapshotListener) -> Callable[[], None]:
        """Register a listener for new snapshots. Returns an unsubscribe function."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _commit(self, new_snapshot: CaptureSnapshot) -> CaptureSnapshot:
        if new_snapshot is self._snapshot:
            return new_snapshot
        self._snapshot = new_snapshot
        for listener in list(self._listeners):
            try:
                listener(new_snapshot)
            except Exception as e:
                logger.error(f"Snapshot listener error: {e}")
        return new_snapshot

    def _accepts(self, session_id: Optional[int]) -> bool:
        if session_id is None or self.keep_late_results:
            return True
        current = self._snapshot
        if current.session_active and session_id == current.session_id:
            return True
        logger.debug(f"Dropping late write from session {session_id} (current {current.session_id}, "
                     f"active={current.session_active})")
        return False

    # ---------------------------------------------------------------------------------------------
    # Session bookkeeping

    def begin_session(self, clear: bool = False) -> int:
        """
        Start a new capture session.

        Existing captures, logs, transcript and technologies are kept, so entries
        written before capture started (e.g. the resume upload) survive. Pass
        clear=True to start from an empty store instead.
        """
        new_id = self._snapshot.session_id + 1
        base = CaptureSnapshot() if clear else self._snapshot
        self._commit(replace(base, session_id=new_id, session_active=True))
        logger.info(f"Capture session {new_id} started")
        return new_id

    def end_session(self) -> None:
        """Mark the current session as finished. Its data stays readable."""
        if not self._snapshot.session_active:
            return
        self._commit(replace(self._snapshot, session_active=False))
        logger.info(f"Capture session {self._snapshot.session_id} ended")

    def reset(self) -> CaptureSnapshot:
        """Return to the initial, empty state. Session numbering continues."""
        return self._commit(CaptureSnapshot(session_id=self._snapshot.session_id))

    # ---------------------------------------------------------------------------------------------
    # Write operations

    def push_screen_capture(self, capture: ScreenCapture, session_id: Optional[int] = None) -> CaptureSnapshot:
        """Append a capture, keeping only the most recent max_screen_captures."""
        if not self._accepts(session_id):
            return self._snapshot
        current = self._snapshot
        captures = (current.screen_captures + (capture,))[-self.max_screen_captures:]
        return self._commit(replace(current, screen_captures=captures))

    def annotate_screen_capture(
        self,
        timestamp: int,
        analysis: Optional[str] = None,
        recognized_text: Optional[str] = None,
        session_id: Optional[int] = None,
    ) -> CaptureSnapshot:
        """Attach analysis / recognized text to the capture taken at `timestamp`, if still retained."""
        if not self._accepts(session_id):
            return self._snapshot
        current = self._snapshot
        updated = []
        found = False
        for capture in current.screen_captures:
            if capture.timestamp == timestamp and not found:
                found = True
                capture = replace(
                    capture,
                    analysis=analysis if analysis is not None else capture.analysis,
                    recognized_text=recognized_text if recognized_text is not None else capture.recognized_text,
                )
            updated.append(capture)
        if not found:
            logger.debug(f"Capture {timestamp} already evicted; annotation skipped")
            return current
        return self._commit(replace(current, screen_captures=tuple(updated)))

    def push_log_entry(self, entry: CaptureLogEntry, session_id: Optional[int] = None) -> CaptureSnapshot:
        """Append a log entry, keeping only the most recent max_capture_logs."""
        if not self._accepts(session_id):
            return self._snapshot
        current = self._snapshot
        logs = (current.capture_logs + (entry,))[-self.max_capture_logs:]
        return self._commit(replace(current, capture_logs=logs))

    def log(
        self,
        kind: CaptureLogKind,
        summary: str,
        preview: Optional[str] = None,
        session_id: Optional[int] = None,
    ) -> CaptureSnapshot:
        """Convenience wrapper creating a timestamped CaptureLogEntry."""
        return self.push_log_entry(CaptureLogEntry(now_ms(), kind, summary, preview), session_id=session_id)

    def clear_capture_logs(self) -> CaptureSnapshot:
        return self._commit(replace(self._snapshot, capture_logs=()))

    def append_transcript(self, text: str, session_id: Optional[int] = None) -> CaptureSnapshot:
        """Append text to the transcript, separated by a single space when not empty."""
        if not text or not self._accepts(session_id):
            return self._snapshot
        current = self._snapshot
        separator = " " if current.transcript else ""
        return self._commit(replace(current, transcript=current.transcript + separator + text))

    def add_technology(self, name: str, session_id: Optional[int] = None) -> CaptureSnapshot:
        """Add a technology name. Adding an existing member is a no-op."""
        if not name or not self._accepts(session_id):
            return self._snapshot
        current = self._snapshot
        if name in current.detected_technologies:
            return current
        return self._commit(replace(current, detected_technologies=current.detected_technologies + (name,)))
