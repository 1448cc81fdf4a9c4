# Remote service adapters (speech-to-text and screen analysis)
from .base_clients import APIClientBase
from .transcription_client import TranscriptionClient, create_transcription_client
from .vision_client import (
    SCREEN_ANALYZER_PROMPT,
    VISION_FALLBACK_TEXT,
    VisionAnalysisClient,
    create_vision_client,
)

__all__ = [
    'APIClientBase',
    'TranscriptionClient',
    'VisionAnalysisClient',
    'SCREEN_ANALYZER_PROMPT',
    'VISION_FALLBACK_TEXT',
    'create_transcription_client',
    'create_vision_client',
]
