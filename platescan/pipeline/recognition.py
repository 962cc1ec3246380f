"""
HTTP client for the external plate recognition service.

Request:  POST {"image": "data:image/jpeg;base64,..."}
Response: {"plate": "ABC123"}; a missing, null or empty "plate" means no text.
"""

import asyncio
import logging
from typing import Any, Dict, Optional

import aiohttp

from ..cv.capture_encoder import build_capture_request

logger = logging.getLogger(__name__)

PLATE_FIELD = "plate"


class RecognitionRequestError(Exception):
    """Raised when the recognition service cannot be reached or answers badly."""
    pass


def parse_recognition_response(data: Any) -> Optional[str]:
    """
    Extract recognized text from a response body.

    Returns:
        The plate text, or None when the service found nothing
    """
    if not isinstance(data, dict):
        raise RecognitionRequestError(f"Unexpected response body: {type(data).__name__}")
    text = data.get(PLATE_FIELD)
    if text is None:
        return None
    text = str(text).strip()
    return text or None


class RecognitionClient:
    """Async recognition client sharing one aiohttp session."""

    def __init__(self, url: str, timeout: float = 15.0, session: Optional[aiohttp.ClientSession] = None):
        self.url = url
        self.timeout = timeout
        self._session = session
        self._owns_session = session is None

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=self.timeout))
            self._owns_session = True
        return self._session

    async def recognize(self, jpeg_bytes: bytes) -> Optional[str]:
        """
        Send a plate crop for recognition.

        Args:
            jpeg_bytes: JPEG-encoded crop

        Returns:
            Recognized text or None

        Raises:
            RecognitionRequestError: On transport failure, HTTP error status or
                a body that is not a JSON object
        """
        payload = build_capture_request(jpeg_bytes)
        return await self.post(payload)

    async def post(self, payload: Dict[str, Any]) -> Optional[str]:
        session = self._get_session()
        logger.debug(f"POST {self.url}")
        try:
            async with session.post(self.url, json=payload) as resp:
                if resp.status >= 400:
                    body = await resp.text()
                    raise RecognitionRequestError(f"HTTP {resp.status}: {body[:200]}")
                try:
                    data = await resp.json(content_type=None)
                except ValueError as e:
                    raise RecognitionRequestError(f"Invalid JSON response: {e}") from e
        except aiohttp.ClientError as e:
            raise RecognitionRequestError(f"Request failed: {e}") from e
        except asyncio.TimeoutError as e:
            raise RecognitionRequestError(f"Request timed out after {self.timeout}s") from e

        logger.debug(f"Backend response: {data}")
        return parse_recognition_response(data)

    async def close(self) -> None:
        if self._session is not None and self._owns_session and not self._session.closed:
            await self._session.close()
        self._session = None
