# Audio module for microphone capture and segmented transcription
from .audio_segment import AudioSegment, encode_wav
from .audio_devices import MicrophoneSource, MicrophoneStream, compute_audio_level
from .segment_recorder import AudioSegmentRecorder, RecorderState, RecordingSession

__all__ = [
    'AudioSegment',
    'AudioSegmentRecorder',
    'MicrophoneSource',
    'MicrophoneStream',
    'RecorderState',
    'RecordingSession',
    'compute_audio_level',
    'encode_wav',
]
