# vision_client.py
# Description: Screen analysis adapter for an OpenAI-compatible chat completions endpoint with image input.
#
# Imports
import base64
from typing import Any, Dict, Optional
#
# Third-Party Imports
import httpx
from loguru import logger
#
# Local Imports
from interview_capture.API_Clients.base_clients import APIClientBase
from interview_capture.config import GROQ_API_BASE_URL, VISION_MODEL, get_api_settings
from interview_capture.errors import MalformedResponseError
#
#######################################################################################################################
#
# Constants:

SCREEN_ANALYZER_PROMPT = (
    "You are an expert at analyzing technical content from screen captures. "
    "Analyze this screenshot and identify: "
    "1. What type of content is shown (code, slide, diagram, terminal, UI, documentation) "
    "2. Key technologies, frameworks, or tools visible "
    "3. Main concepts or topics being presented "
    "4. Any code snippets worth discussing "
    "5. Potential interview questions based on what you see. "
    "Be specific and technical. Focus on actionable insights for generating interview questions."
)

# Substituted by callers when the service answers with something unusable
VISION_FALLBACK_TEXT = "Unable to analyze screen content. Continuing without screen analysis."

#
# Classes:

class VisionAnalysisClient(APIClientBase):
    """Asks a vision-capable model to describe one screen frame."""

    service_name = "vision"

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: str = GROQ_API_BASE_URL,
        model: str = VISION_MODEL,
        max_tokens: int = 2000,
        timeout: float = 60.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        super().__init__(api_key=api_key, base_url=base_url, timeout=timeout, client=client)
        self.model = model
        self.max_tokens = max_tokens

    def _get_headers(self) -> Dict[str, str]:
        headers = super()._get_headers()
        headers["Content-Type"] = "application/json"
        return headers

    async def analyze(self, image_bytes: bytes, prompt_text: str = SCREEN_ANALYZER_PROMPT,
                      mime_type: str = "image/jpeg") -> str:
        """
        Analyze an encoded frame.

        Raises:
            TransientServiceError: network failure or non-2xx status
            MalformedResponseError: no choices[0].message.content string in the body
        """
        encoded = base64.b64encode(image_bytes).decode("ascii")
        payload = {
            "model": self.model,
            "messages": [
                {
                    "role": "user",
                    "content": [
                        {"type": "text", "text": prompt_text},
                        {"type": "image_url", "image_url": {"url": f"data:{mime_type};base64,{encoded}"}},
                    ],
                }
            ],
            "max_tokens": self.max_tokens,
        }
        logger.debug(f"Requesting vision analysis for {len(image_bytes)} byte frame")
        response = await self._post("/chat/completions", json=payload)
        return self._extract_content(self._parse_json(response))

    def _extract_content(self, data: Any) -> str:
        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as e:
            raise MalformedResponseError("Vision response has no message content", service=self.service_name) from e
        if not isinstance(content, str) or not content.strip():
            raise MalformedResponseError("Vision response content is empty", service=self.service_name)
        return content


def create_vision_client(settings: Optional[Dict[str, Any]] = None) -> VisionAnalysisClient:
    """Build a VisionAnalysisClient from [api_settings.groq]."""
    settings = settings if settings is not None else get_api_settings("groq")
    return VisionAnalysisClient(
        api_key=settings.get("api_key"),
        base_url=settings.get("base_url", GROQ_API_BASE_URL),
        model=settings.get("vision_model", VISION_MODEL),
        max_tokens=int(settings.get("vision_max_tokens", 2000)),
        timeout=float(settings.get("timeout", 60.0)),
    )

#
# End of vision_client.py
#######################################################################################################################
