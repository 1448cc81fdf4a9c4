# Recognition module for local text extraction from screen frames
from .recognition_backends import (
    RecognitionBackend,
    RecognitionBackendError,
    RecognitionResult,
    TesseractRecognitionBackend,
    create_recognition_backend,
    decode_image_source,
)
from .recognition_engine import RecognitionEngine

__all__ = [
    'RecognitionBackend',
    'RecognitionBackendError',
    'RecognitionResult',
    'RecognitionEngine',
    'TesseractRecognitionBackend',
    'create_recognition_backend',
    'decode_image_source',
]
