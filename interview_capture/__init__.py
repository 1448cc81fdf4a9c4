# interview_capture
"""
Live capture of a technical presentation: screen sampling with change
detection, local text recognition, remote screen analysis and segmented
speech transcription, aggregated into one bounded state store.
"""

__version__ = "0.1.0"

from .errors import (
    AcquisitionError,
    CapturePipelineError,
    MalformedResponseError,
    TransientServiceError,
    UndersizedInputError,
)
from .state import CaptureLogEntry, CaptureLogKind, CaptureSnapshot, CaptureStateStore, ScreenCapture

__all__ = [
    '__version__',
    'AcquisitionError',
    'CapturePipelineError',
    'MalformedResponseError',
    'TransientServiceError',
    'UndersizedInputError',
    'CaptureLogEntry',
    'CaptureLogKind',
    'CaptureSnapshot',
    'CaptureStateStore',
    'ScreenCapture',
]
