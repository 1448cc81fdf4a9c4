# audio_devices.py
"""
Microphone acquisition for the segment recorder.

A MicrophoneSource hands out MicrophoneStream objects. The stream's sounddevice
callback runs on a PortAudio thread and only pushes int16 PCM chunks onto a
thread-safe queue; the recorder drains that queue from the event loop.
"""

import queue
from typing import Any, Dict, List, Optional

from loguru import logger

from interview_capture.Audio.audio_segment import encode_wav
from interview_capture.errors import AcquisitionError

# Import optional dependencies
try:
    import numpy as np
    NUMPY_AVAILABLE = True
except ImportError:
    NUMPY_AVAILABLE = False

try:
    import sounddevice as sd
    SOUNDDEVICE_AVAILABLE = True
except (ImportError, OSError):  # OSError when the PortAudio library is missing
    SOUNDDEVICE_AVAILABLE = False
    logger.warning("Sounddevice not available. Install with: pip install sounddevice")


def compute_audio_level(chunk: bytes) -> float:
    """
    RMS level of a 16-bit PCM chunk, normalized to 0.0 - 1.0.
    """
    usable = len(chunk) - (len(chunk) % 2)
    if usable <= 0 or not NUMPY_AVAILABLE:
        return 0.0
    audio_data = np.frombuffer(chunk[:usable], dtype=np.int16).astype(np.float64)
    rms = float(np.sqrt(np.mean(audio_data ** 2)))
    # Normalize (16-bit max is 32767)
    return min(1.0, rms / 32767.0)


class MicrophoneStream:
    """An open input stream. Chunks accumulate until drained."""

    mime_type = "audio/wav"

    def __init__(self, sample_rate: int = 16000, channels: int = 1, device_id: Optional[int] = None,
                 blocksize: int = 1024):
        self.sample_rate = sample_rate
        self.channels = channels
        self.device_id = device_id
        self.blocksize = blocksize
        self._chunks: "queue.Queue[bytes]" = queue.Queue()
        self._stream = None

    @property
    def active(self) -> bool:
        return self._stream is not None

    def _audio_callback(self, indata, frames, time_info, status):
        if status:
            logger.warning(f"Sounddevice status: {status}")
        # Convert float32 to int16
        self._chunks.put((np.clip(indata, -1.0, 1.0) * 32767).astype(np.int16).tobytes())

    def open(self) -> None:
        if not SOUNDDEVICE_AVAILABLE or not NUMPY_AVAILABLE:
            raise AcquisitionError("sounddevice and numpy are required for microphone capture", device="microphone")
        try:
            self._stream = sd.InputStream(
                samplerate=self.sample_rate,
                channels=self.channels,
                device=self.device_id,
                callback=self._audio_callback,
                blocksize=self.blocksize,
                dtype='float32',
            )
            self._stream.start()
        except (sd.PortAudioError, OSError, ValueError) as e:
            self._stream = None
            raise AcquisitionError(f"Could not open microphone: {e}", device="microphone") from e
        logger.info(f"Microphone stream opened ({self.sample_rate} Hz, {self.channels} ch)")

    def drain(self) -> List[bytes]:
        """Take every chunk produced since the last drain."""
        chunks = []
        while True:
            try:
                chunks.append(self._chunks.get_nowait())
            except queue.Empty:
                return chunks

    def encode(self, pcm_data: bytes) -> bytes:
        return encode_wav(pcm_data, self.sample_rate, self.channels)

    def close(self) -> None:
        if self._stream is None:
            return
        try:
            self._stream.stop()
            self._stream.close()
        except sd.PortAudioError as e:
            logger.error(f"Error closing microphone stream: {e}")
        finally:
            self._stream = None
            logger.info("Microphone stream closed")


class MicrophoneSource:
    """Acquires and releases microphone streams."""

    def __init__(self, sample_rate: int = 16000, channels: int = 1, device_id: Optional[int] = None):
        self.sample_rate = sample_rate
        self.channels = channels
        # -1 in the config file means the system default device
        self.device_id = None if device_id is None or device_id < 0 else device_id

    @classmethod
    def from_settings(cls, settings: Dict[str, Any]) -> "MicrophoneSource":
        return cls(
            sample_rate=int(settings.get("sample_rate", 16000)),
            channels=int(settings.get("channels", 1)),
            device_id=settings.get("device_id", -1),
        )

    def acquire(self) -> MicrophoneStream:
        stream = MicrophoneStream(self.sample_rate, self.channels, self.device_id)
        stream.open()
        return stream

    def release(self, stream: MicrophoneStream) -> None:
        stream.close()

    @staticmethod
    def list_devices() -> List[Dict[str, Any]]:
        """Input devices known to PortAudio."""
        if not SOUNDDEVICE_AVAILABLE:
            return []
        devices = []
        try:
            default_input = sd.default.device[0]
            for i, device in enumerate(sd.query_devices()):
                if device['max_input_channels'] > 0:
                    devices.append({
                        'id': i,
                        'name': device['name'],
                        'channels': device['max_input_channels'],
                        'sample_rate': device['default_samplerate'],
                        'is_default': i == default_input,
                    })
        except sd.PortAudioError as e:
            logger.error(f"Error listing audio devices: {e}")
        return devices
