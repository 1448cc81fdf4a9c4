# display_devices.py
# Description: Screen acquisition for the capture orchestrator (mss grab, Pillow JPEG encode).
#
# Imports
import io
from typing import Any, Dict, Optional
#
# Third-Party Imports
from loguru import logger

try:
    import mss
    from mss.exception import ScreenShotError
    MSS_AVAILABLE = True
except ImportError:
    MSS_AVAILABLE = False
    logger.warning("mss not available. Install with: pip install mss")

try:
    from PIL import Image
    PIL_AVAILABLE = True
except ImportError:
    PIL_AVAILABLE = False
    Image = None
#
# Local Imports
from interview_capture.errors import AcquisitionError
#
#######################################################################################################################
#
# Classes:

class DisplayStream:
    """An acquired monitor. Each grab_frame() returns one JPEG-encoded frame."""

    mime_type = "image/jpeg"

    def __init__(self, monitor_index: int = 1, jpeg_quality: int = 80):
        self.monitor_index = monitor_index
        self.jpeg_quality = jpeg_quality
        self._sct = None
        self._monitor: Optional[Dict[str, int]] = None

    @property
    def width(self) -> int:
        return int(self._monitor.get("width", 0)) if self._monitor else 0

    @property
    def height(self) -> int:
        return int(self._monitor.get("height", 0)) if self._monitor else 0

    def open(self) -> None:
        if not MSS_AVAILABLE or not PIL_AVAILABLE:
            raise AcquisitionError("mss and Pillow are required for screen capture", device="display")
        try:
            self._sct = mss.mss()
            monitors = self._sct.monitors
            if self.monitor_index >= len(monitors):
                raise AcquisitionError(
                    f"Monitor {self.monitor_index} not found ({len(monitors) - 1} available)", device="display"
                )
            self._monitor = dict(monitors[self.monitor_index])
        except ScreenShotError as e:
            self.close()
            raise AcquisitionError(f"Screen capture not permitted: {e}", device="display") from e
        except AcquisitionError:
            self.close()
            raise
        logger.info(f"Display stream opened: monitor {self.monitor_index} ({self.width}x{self.height})")

    def grab_frame(self) -> Optional[bytes]:
        """
        Grab and encode the current screen contents.

        Returns:
            JPEG bytes, or None when the display reports zero dimensions

        Raises:
            OSError: The platform grab failed for this frame
        """
        if self._sct is None:
            return None
        if self.width == 0 or self.height == 0:
            return None
        try:
            shot = self._sct.grab(self._monitor)
        except ScreenShotError as e:
            raise OSError(f"Screen grab failed: {e}") from e
        img = Image.frombytes('RGB', shot.size, shot.rgb)
        buffer = io.BytesIO()
        img.save(buffer, format="JPEG", quality=self.jpeg_quality)
        return buffer.getvalue()

    def close(self) -> None:
        if self._sct is None:
            return
        try:
            self._sct.close()
        finally:
            self._sct = None
            self._monitor = None
            logger.info("Display stream closed")


class DisplaySource:
    """Acquires and releases display streams."""

    def __init__(self, monitor_index: int = 1, jpeg_quality: int = 80):
        self.monitor_index = monitor_index
        self.jpeg_quality = jpeg_quality

    @classmethod
    def from_settings(cls, settings: Dict[str, Any]) -> "DisplaySource":
        return cls(
            monitor_index=int(settings.get("monitor_index", 1)),
            jpeg_quality=int(settings.get("jpeg_quality", 80)),
        )

    def acquire(self) -> DisplayStream:
        stream = DisplayStream(self.monitor_index, self.jpeg_quality)
        stream.open()
        return stream

    def release(self, stream: DisplayStream) -> None:
        stream.close()

#
# End of display_devices.py
#######################################################################################################################
