# Screen module for display sampling and change detection
from .capture_orchestrator import CaptureOrchestrator
from .display_devices import DisplaySource, DisplayStream

__all__ = [
    'CaptureOrchestrator',
    'DisplaySource',
    'DisplayStream',
]
