"""
State management for the capture pipeline.
"""

from .capture_state import (
    CaptureLogEntry,
    CaptureLogKind,
    CaptureSnapshot,
    CaptureStateStore,
    ScreenCapture,
    now_ms,
)

__all__ = [
    'CaptureLogEntry',
    'CaptureLogKind',
    'CaptureSnapshot',
    'CaptureStateStore',
    'ScreenCapture',
    'now_ms',
]
