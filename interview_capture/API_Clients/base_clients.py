# base_clients.py
# Description: Base class for the remote service adapters
#
# Imports
import json
from typing import Optional, Dict, Any
import httpx
from loguru import logger

# Local imports
from interview_capture.errors import MalformedResponseError, TransientServiceError

#######################################################################################################################
#
# Base Client Classes

class APIClientBase:
    """Base class for API-based service adapters (transcription, vision analysis)"""

    service_name = "api"

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: float = 60.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.api_key = api_key
        self.base_url = (base_url or "").rstrip("/")
        self.timeout = timeout
        self._client = client
        self._owns_client = client is None

    @property
    def client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    async def close(self):
        """Clean up HTTP client"""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()

    def _validate_api_key(self):
        """Validate API key is configured"""
        if not self.api_key:
            logger.error(f"{self.__class__.__name__}: No API key configured")
            raise TransientServiceError(
                f"{self.service_name} service not configured. Please set an API key.",
                service=self.service_name,
            )

    def _get_headers(self) -> Dict[str, str]:
        """Get common HTTP headers"""
        return {
            "Authorization": f"Bearer {self.api_key}",
        }

    async def _post(self, path: str, **kwargs) -> httpx.Response:
        """
        POST to the service and map transport / status failures to TransientServiceError.
        """
        self._validate_api_key()
        url = f"{self.base_url}{path}"
        try:
            response = await self.client.post(url, headers=self._get_headers(), **kwargs)
            response.raise_for_status()
            return response
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            error_msg = self._extract_error_message(e.response) or f"HTTP {status}"
            logger.error(f"{self.__class__.__name__}: API error {status}: {error_msg}")
            raise TransientServiceError(
                f"{self.service_name} request failed: {error_msg}",
                service=self.service_name,
                status_code=status,
            ) from e
        except httpx.TimeoutException as e:
            logger.error(f"{self.__class__.__name__}: Request timed out")
            raise TransientServiceError(f"{self.service_name} request timed out", service=self.service_name) from e
        except httpx.RequestError as e:
            # Log without exposing connection details
            logger.error(f"{self.__class__.__name__}: Network request failed")
            raise TransientServiceError(
                f"Unable to connect to {self.service_name} service", service=self.service_name
            ) from e

    @staticmethod
    def _extract_error_message(response: httpx.Response) -> Optional[str]:
        try:
            error_data = response.json()
        except (json.JSONDecodeError, ValueError):
            return None
        if isinstance(error_data, dict):
            error = error_data.get("error")
            if isinstance(error, dict) and "message" in error:
                return str(error["message"])
            if isinstance(error, str):
                return error
        return None

    def _parse_json(self, response: httpx.Response) -> Any:
        try:
            return response.json()
        except (json.JSONDecodeError, ValueError) as e:
            raise MalformedResponseError(
                f"{self.service_name} returned a body that is not JSON", service=self.service_name
            ) from e

#
# End of base_clients.py
#######################################################################################################################
