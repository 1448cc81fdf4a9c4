# recognition_engine.py
# Description: Single-flight, non-blocking wrapper around a recognition backend.
#
# Imports
import asyncio
import time
from typing import Callable, Optional
#
# Third-Party Imports
from loguru import logger
#
# Local Imports
from .recognition_backends import (
    ImageSource,
    RecognitionBackend,
    RecognitionBackendError,
    RecognitionResult,
    decode_image_source,
)
#
#######################################################################################################################
#
# Classes:

class RecognitionEngine:
    """
    Extracts text from images without blocking the event loop.

    At most one extraction runs at a time. A call made while another is still
    unresolved returns None immediately and starts no work.

    Usage:
        engine = RecognitionEngine(TesseractRecognitionBackend())
        result = await engine.extract(frame_bytes)
    """

    def __init__(
        self,
        backend: RecognitionBackend,
        on_progress: Optional[Callable[[int], None]] = None,
        on_complete: Optional[Callable[[RecognitionResult], None]] = None,
        on_error: Optional[Callable[[Exception], None]] = None,
    ):
        self.backend = backend
        self.on_progress = on_progress
        self.on_complete = on_complete
        self.on_error = on_error

        self._processing = False
        self.progress = 0
        self.last_result: Optional[RecognitionResult] = None
        self.rejected_count = 0

    @property
    def is_processing(self) -> bool:
        return self._processing

    async def extract(self, image: ImageSource) -> Optional[RecognitionResult]:
        """
        Run recognition on an image (bytes, base64 string or data: URL).

        Returns:
            RecognitionResult, or None when another extraction is in flight or the backend failed
        """
        if self._processing:
            self.rejected_count += 1
            logger.debug("Recognition already in progress, skipping")
            return None

        # Claimed before the first await so concurrent callers see it
        self._processing = True
        self._set_progress(0)
        loop = asyncio.get_running_loop()
        started = time.monotonic()

        def report_from_worker(value: int) -> None:
            loop.call_soon_threadsafe(self._set_progress, value)

        try:
            image_bytes = decode_image_source(image)
            result = await asyncio.to_thread(self.backend.recognize, image_bytes, report_from_worker)
        except (RecognitionBackendError, OSError, RuntimeError) as e:
            logger.error(f"Recognition failed: {e}")
            self._notify_error(e)
            return None
        finally:
            self._processing = False
            self.progress = 0

        if not result.processing_time_ms:
            result = RecognitionResult(result.text, result.confidence_score, int((time.monotonic() - started) * 1000))
        self.last_result = result
        logger.info(f"Recognition completed in {result.processing_time_ms}ms, "
                    f"confidence: {result.confidence_score:.1f}%, words: {result.word_count}")
        self._notify_complete(result)
        return result

    def _set_progress(self, value: int) -> None:
        value = max(0, min(100, int(value)))
        if not self._processing:
            return
        self.progress = value
        if self.on_progress:
            try:
                self.on_progress(value)
            except Exception as e:
                logger.error(f"Progress callback error: {e}")

    def _notify_complete(self, result: RecognitionResult) -> None:
        if self.on_complete:
            try:
                self.on_complete(result)
            except Exception as e:
                logger.error(f"Completion callback error: {e}")

    def _notify_error(self, error: Exception) -> None:
        if self.on_error:
            try:
                self.on_error(error)
            except Exception as e:
                logger.error(f"Error callback error: {e}")

#
# End of recognition_engine.py
#######################################################################################################################
