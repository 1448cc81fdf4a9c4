# audio_segment.py
# Description: Transient audio segment handed from the recorder to the transcription client.
#
# Imports
import io
import wave
from dataclasses import dataclass, field
#
#######################################################################################################################
#
# Classes / Functions:

MIME_EXTENSIONS = {
    "audio/wav": "wav",
    "audio/x-wav": "wav",
    "audio/webm": "webm",
    "audio/ogg": "ogg",
    "audio/mp4": "mp4",
    "audio/mpeg": "mp3",
}


@dataclass(frozen=True)
class AudioSegment:
    """Encoded audio for exactly one transcription request. Never stored."""
    data: bytes = field(repr=False)
    mime_type: str = "audio/wav"

    @property
    def size(self) -> int:
        return len(self.data)

    @property
    def filename(self) -> str:
        base_type = self.mime_type.split(";", 1)[0].strip()
        return f"audio.{MIME_EXTENSIONS.get(base_type, 'webm')}"


def encode_wav(pcm_data: bytes, sample_rate: int, channels: int = 1, sample_width: int = 2) -> bytes:
    """Create a WAV file in memory from raw 16-bit PCM data."""
    wav_buffer = io.BytesIO()
    with wave.open(wav_buffer, "wb") as wav:
        wav.setnchannels(channels)
        wav.setsampwidth(sample_width)
        wav.setframerate(sample_rate)
        wav.writeframes(pcm_data)
    return wav_buffer.getvalue()

#
# End of audio_segment.py
#######################################################################################################################
