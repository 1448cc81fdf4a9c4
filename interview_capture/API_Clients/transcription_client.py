# transcription_client.py
# Description: Speech-to-text adapter for an OpenAI-compatible transcription endpoint (Groq Whisper).
#
# Imports
import json
from typing import Any, Dict, Optional
#
# Third-Party Imports
import httpx
from loguru import logger
#
# Local Imports
from interview_capture.API_Clients.base_clients import APIClientBase
from interview_capture.Audio.audio_segment import AudioSegment
from interview_capture.config import GROQ_API_BASE_URL, TRANSCRIPTION_MODEL, get_api_settings
from interview_capture.errors import MalformedResponseError
#
#######################################################################################################################
#
# Classes:

class TranscriptionClient(APIClientBase):
    """
    Sends one audio segment per request and returns the recognized text.

    An empty string is a valid result (silence).
    """

    service_name = "transcription"

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: str = GROQ_API_BASE_URL,
        model: str = TRANSCRIPTION_MODEL,
        language: str = "en",
        timeout: float = 60.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        super().__init__(api_key=api_key, base_url=base_url, timeout=timeout, client=client)
        self.model = model
        self.language = language

    async def transcribe(self, segment: AudioSegment) -> str:
        """
        Transcribe a single audio segment.

        Raises:
            TransientServiceError: network failure or non-2xx status
            MalformedResponseError: body is not text and carries no "text" field
        """
        files = {"file": (segment.filename, segment.data, segment.mime_type)}
        data = {
            "model": self.model,
            "language": self.language,
            "response_format": "text",
        }
        logger.debug(f"Transcribing {segment.size} bytes of {segment.mime_type}")
        response = await self._post("/audio/transcriptions", files=files, data=data)
        text = self._extract_text(response)
        logger.debug(f"Transcription returned {len(text)} characters")
        return text

    def _extract_text(self, response: httpx.Response) -> str:
        content_type = response.headers.get("content-type", "")
        if "application/json" not in content_type:
            return response.text.strip()

        try:
            payload: Any = response.json()
        except (json.JSONDecodeError, ValueError) as e:
            raise MalformedResponseError("Transcription body is not valid JSON", service=self.service_name) from e
        if isinstance(payload, dict) and isinstance(payload.get("text"), str):
            return payload["text"].strip()
        raise MalformedResponseError("Transcription response has no text field", service=self.service_name)


def create_transcription_client(settings: Optional[Dict[str, Any]] = None) -> TranscriptionClient:
    """Build a TranscriptionClient from [api_settings.groq]."""
    settings = settings if settings is not None else get_api_settings("groq")
    return TranscriptionClient(
        api_key=settings.get("api_key"),
        base_url=settings.get("base_url", GROQ_API_BASE_URL),
        model=settings.get("transcription_model", TRANSCRIPTION_MODEL),
        language=settings.get("transcription_language", "en"),
        timeout=float(settings.get("timeout", 60.0)),
    )

#
# End of transcription_client.py
#######################################################################################################################
