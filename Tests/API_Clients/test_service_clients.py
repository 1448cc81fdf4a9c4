# test_service_clients.py
"""
Tests for the transcription and vision analysis clients.
HTTP traffic goes through httpx.MockTransport; no network access.
"""

import base64
import json

import httpx
import pytest

from interview_capture.API_Clients import (
    SCREEN_ANALYZER_PROMPT,
    TranscriptionClient,
    VisionAnalysisClient,
    create_transcription_client,
    create_vision_client,
)
from interview_capture.Audio import AudioSegment
from interview_capture.config import TRANSCRIPTION_MODEL, VISION_MODEL
from interview_capture.errors import MalformedResponseError, TransientServiceError

BASE_URL = "https://api.example.test/openai/v1"


def mock_http_client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


@pytest.fixture
def segment():
    return AudioSegment(b"RIFF" + b"\x00" * 2000, "audio/wav")


class TestTranscriptionClient:
    """Tests for TranscriptionClient.transcribe."""

    @pytest.mark.asyncio
    async def test_sends_multipart_request(self, segment):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["auth"] = request.headers.get("authorization")
            seen["body"] = request.content
            return httpx.Response(200, text="Hello from the presenter\n")

        client = TranscriptionClient(api_key="test-key", base_url=BASE_URL, client=mock_http_client(handler))
        text = await client.transcribe(segment)

        assert text == "Hello from the presenter"
        assert seen["url"] == f"{BASE_URL}/audio/transcriptions"
        assert seen["auth"] == "Bearer test-key"
        body = seen["body"]
        assert b'filename="audio.wav"' in body
        assert TRANSCRIPTION_MODEL.encode() in body
        assert b'name="response_format"' in body
        assert b'name="language"' in body

    @pytest.mark.asyncio
    async def test_json_body_with_text_field(self, segment):
        def handler(request):
            return httpx.Response(200, json={"text": " json text "})

        client = TranscriptionClient(api_key="k", base_url=BASE_URL, client=mock_http_client(handler))
        assert await client.transcribe(segment) == "json text"

    @pytest.mark.asyncio
    async def test_json_body_without_text_is_malformed(self, segment):
        def handler(request):
            return httpx.Response(200, json={"segments": []})

        client = TranscriptionClient(api_key="k", base_url=BASE_URL, client=mock_http_client(handler))
        with pytest.raises(MalformedResponseError):
            await client.transcribe(segment)

    @pytest.mark.asyncio
    async def test_empty_result_is_valid(self, segment):
        client = TranscriptionClient(api_key="k", base_url=BASE_URL,
                                     client=mock_http_client(lambda r: httpx.Response(200, text="")))
        assert await client.transcribe(segment) == ""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [400, 401, 429, 500, 503])
    async def test_error_status_is_transient_error(self, segment, status):
        def handler(request):
            return httpx.Response(status, json={"error": {"message": "quota exceeded"}})

        client = TranscriptionClient(api_key="k", base_url=BASE_URL, client=mock_http_client(handler))
        with pytest.raises(TransientServiceError) as exc_info:
            await client.transcribe(segment)
        assert exc_info.value.status_code == status
        assert "quota exceeded" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_network_error_is_transient_error(self, segment):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        client = TranscriptionClient(api_key="k", base_url=BASE_URL, client=mock_http_client(handler))
        with pytest.raises(TransientServiceError):
            await client.transcribe(segment)

    @pytest.mark.asyncio
    async def test_timeout_is_transient_error(self, segment):
        def handler(request):
            raise httpx.ReadTimeout("too slow", request=request)

        client = TranscriptionClient(api_key="k", base_url=BASE_URL, client=mock_http_client(handler))
        with pytest.raises(TransientServiceError):
            await client.transcribe(segment)

    @pytest.mark.asyncio
    async def test_missing_api_key(self, segment):
        client = TranscriptionClient(api_key=None, base_url=BASE_URL,
                                     client=mock_http_client(lambda r: httpx.Response(200)))
        with pytest.raises(TransientServiceError):
            await client.transcribe(segment)

    def test_filename_follows_mime_type(self):
        assert AudioSegment(b"", "audio/webm;codecs=opus").filename == "audio.webm"
        assert AudioSegment(b"", "audio/ogg").filename == "audio.ogg"


class TestVisionAnalysisClient:
    """Tests for VisionAnalysisClient.analyze."""

    @pytest.mark.asyncio
    async def test_sends_image_as_data_url(self):
        seen = {}

        def handler(request):
            seen["url"] = str(request.url)
            seen["payload"] = json.loads(request.content)
            return httpx.Response(200, json={"choices": [{"message": {"content": "A Python code editor"}}]})

        client = VisionAnalysisClient(api_key="k", base_url=BASE_URL, client=mock_http_client(handler))
        result = await client.analyze(b"\xff\xd8jpeg")

        assert result == "A Python code editor"
        assert seen["url"] == f"{BASE_URL}/chat/completions"
        payload = seen["payload"]
        assert payload["model"] == VISION_MODEL
        assert payload["max_tokens"] == 2000
        text_part, image_part = payload["messages"][0]["content"]
        assert text_part == {"type": "text", "text": SCREEN_ANALYZER_PROMPT}
        expected_url = "data:image/jpeg;base64," + base64.b64encode(b"\xff\xd8jpeg").decode()
        assert image_part == {"type": "image_url", "image_url": {"url": expected_url}}

    @pytest.mark.asyncio
    async def test_custom_prompt(self):
        seen = {}

        def handler(request):
            seen["payload"] = json.loads(request.content)
            return httpx.Response(200, json={"choices": [{"message": {"content": "ok"}}]})

        client = VisionAnalysisClient(api_key="k", base_url=BASE_URL, client=mock_http_client(handler))
        await client.analyze(b"img", "List the visible technologies")

        assert seen["payload"]["messages"][0]["content"][0]["text"] == "List the visible technologies"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("body", [
        {},
        {"choices": []},
        {"choices": [{"message": {}}]},
        {"choices": [{"message": {"content": None}}]},
        {"choices": [{"message": {"content": "   "}}]},
    ])
    async def test_unusable_body_is_malformed(self, body):
        client = VisionAnalysisClient(api_key="k", base_url=BASE_URL,
                                      client=mock_http_client(lambda r: httpx.Response(200, json=body)))
        with pytest.raises(MalformedResponseError):
            await client.analyze(b"img")

    @pytest.mark.asyncio
    async def test_non_json_body_is_malformed(self):
        client = VisionAnalysisClient(api_key="k", base_url=BASE_URL,
                                      client=mock_http_client(lambda r: httpx.Response(200, text="<html>")))
        with pytest.raises(MalformedResponseError):
            await client.analyze(b"img")

    @pytest.mark.asyncio
    async def test_server_error_is_transient(self):
        client = VisionAnalysisClient(api_key="k", base_url=BASE_URL,
                                      client=mock_http_client(lambda r: httpx.Response(502, text="bad gateway")))
        with pytest.raises(TransientServiceError) as exc_info:
            await client.analyze(b"img")
        assert exc_info.value.service == "vision"


class TestClientFactories:
    """Clients built from [api_settings.groq]."""

    def test_environment_key_wins(self, isolated_config, monkeypatch):
        monkeypatch.setenv("GROQ_API_KEY", "from-env")
        client = create_transcription_client()
        assert client.api_key == "from-env"
        assert client.model == TRANSCRIPTION_MODEL

    def test_placeholder_key_treated_as_missing(self, isolated_config):
        client = create_vision_client()
        assert client.api_key is None
        assert client.max_tokens == 2000

    def test_explicit_settings(self):
        client = create_vision_client({"api_key": "k", "base_url": BASE_URL, "vision_model": "other-model"})
        assert client.base_url == BASE_URL
        assert client.model == "other-model"

    @pytest.mark.asyncio
    async def test_close_owned_client(self):
        client = TranscriptionClient(api_key="k", base_url=BASE_URL)
        http_client = client.client
        await client.close()
        assert http_client.is_closed
