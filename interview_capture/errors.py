# errors.py
# Description: Exception hierarchy for the capture and transcription pipeline.
#
# Imports
from typing import Optional
#
#######################################################################################################################
#
# Exceptions

class CapturePipelineError(Exception):
    """Base exception for capture pipeline errors"""
    pass


class AcquisitionError(CapturePipelineError):
    """Raised when the screen or microphone cannot be acquired (permission denied, no device)"""

    def __init__(self, message: str, device: str = "unknown"):
        super().__init__(message)
        self.device = device


class TransientServiceError(CapturePipelineError):
    """Raised when a remote transcription or vision call fails or times out"""

    def __init__(self, message: str, service: str = "unknown", status_code: Optional[int] = None):
        super().__init__(message)
        self.service = service
        self.status_code = status_code


class MalformedResponseError(CapturePipelineError):
    """Raised when a remote service returns content that cannot be parsed"""

    def __init__(self, message: str, service: str = "unknown"):
        super().__init__(message)
        self.service = service


class UndersizedInputError(CapturePipelineError):
    """An audio segment below the minimum byte threshold. Skipped, never surfaced to callers."""

    def __init__(self, size: int, minimum: int):
        super().__init__(f"Segment of {size} bytes is below the {minimum} byte minimum")
        self.size = size
        self.minimum = minimum

#
# End of errors.py
#######################################################################################################################
