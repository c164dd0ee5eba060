"""
Google Gemini REST transport for Farsi Hub.
"""
import asyncio
import json
import logging
import re
import urllib.parse
from typing import Any, Dict, List, Optional, Tuple

import aiohttp
import async_timeout

from farsihub.errors import ConfigurationError, UpstreamError
from farsihub.utils.http import REQUEST_TIMEOUT, error_from_exception, error_from_response

# Configure logging
logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"

_FENCE_RE = re.compile(r"^\s*```(?:json)?\s*(.*?)\s*```\s*$", re.DOTALL)


class GeminiTransport:
    """
    Sends generateContent requests to the Gemini API.
    """
    def __init__(self, api_key: Optional[str], base_url: str = DEFAULT_BASE_URL,
                 timeout: float = REQUEST_TIMEOUT):
        """
        Initialize the GeminiTransport.

        Args:
            api_key: Gemini API key; calls fail with ConfigurationError without one
            base_url: API root, up to and including the version segment
            timeout: Wall-clock limit for a single request, in seconds
        """
        self.api_key = api_key
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self._session = None

    @property
    def session(self) -> aiohttp.ClientSession:
        """
        Lazy initialization of aiohttp session.

        Returns:
            aiohttp.ClientSession: The HTTP session
        """
        if self._session is None:
            self._session = aiohttp.ClientSession(headers={'Content-Type': 'application/json'})
        return self._session

    async def close_session(self):
        """Close aiohttp session."""
        if self._session is not None:
            await self._session.close()
            self._session = None

    def ensure_configured(self) -> None:
        """
        Raises:
            ConfigurationError: If no API key is set
        """
        if not self.api_key:
            raise ConfigurationError("API key missing! Set GEMINI_API_KEY (or API_KEY) to generate.")

    async def generate_content(self, model: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        """
        Call models/{model}:generateContent.

        Args:
            model: Model name, e.g. 'gemini-2.0-flash-exp'
            payload: Request body

        Returns:
            The decoded JSON response

        Raises:
            ConfigurationError: If no API key is set
            UpstreamError: On any HTTP, transport or decoding failure
        """
        self.ensure_configured()
        url = f"{self.base_url}/models/{urllib.parse.quote(model)}:generateContent"

        try:
            async with async_timeout.timeout(self.timeout):
                async with self.session.post(
                    url, json=payload, headers={'x-goog-api-key': self.api_key}
                ) as response:
                    text = await response.text()
                    status = response.status
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise error_from_exception(e, self.timeout) from e

        if status >= 400:
            raise error_from_response(status, _maybe_json(text), text)

        body = _maybe_json(text)
        if body is None:
            raise UpstreamError(f"Unreadable response from {model}: {text[:200]}")
        return body


def _maybe_json(text: str) -> Optional[Dict[str, Any]]:
    try:
        value = json.loads(text)
    except (TypeError, json.JSONDecodeError):
        return None
    return value if isinstance(value, dict) else None


def _first_candidate(response: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """
    The first candidate of a generateContent response, or None if there is none.

    Raises:
        UpstreamError: If the response or its candidate is not shaped as expected
    """
    if not isinstance(response, dict):
        raise UpstreamError(f"Malformed response: expected an object, got {type(response).__name__}")
    candidates = response.get('candidates') or []
    if not isinstance(candidates, list):
        raise UpstreamError("Malformed response: 'candidates' is not a list")
    if not candidates:
        return None
    candidate = candidates[0]
    if not isinstance(candidate, dict):
        raise UpstreamError("Malformed response: candidate is not an object")
    return candidate


def _parts(candidate: Dict[str, Any]) -> List[Dict[str, Any]]:
    content = candidate.get('content') or {}
    if not isinstance(content, dict):
        raise UpstreamError("Malformed response: candidate content is not an object")
    parts = content.get('parts') or []
    if not isinstance(parts, list) or not all(isinstance(part, dict) for part in parts):
        raise UpstreamError("Malformed response: content parts are not objects")
    return parts


def response_text(response: Dict[str, Any]) -> str:
    """
    Concatenate the text parts of the first candidate.

    Raises:
        UpstreamError: If the response has no candidates or is malformed
    """
    candidate = _first_candidate(response)
    if candidate is None:
        feedback = response.get('promptFeedback') or {}
        reason = feedback.get('blockReason', 'no candidates') if isinstance(feedback, dict) else 'no candidates'
        raise UpstreamError(f"Model returned no content ({reason})")
    return ''.join(
        part['text'] for part in _parts(candidate) if isinstance(part.get('text'), str)
    )


def parse_json_text(text: str) -> Any:
    """
    Decode model output that should be JSON, tolerating Markdown code fences.

    Raises:
        UpstreamError: If the text is not JSON
    """
    match = _FENCE_RE.match(text or '')
    if match:
        text = match.group(1)
    try:
        return json.loads(text or '{}')
    except json.JSONDecodeError as e:
        raise UpstreamError(f"Model returned invalid JSON: {e}") from e


def grounding_urls(response: Dict[str, Any]) -> List[str]:
    """
    Collect the web source URIs the search tool attached to the first candidate.

    Raises:
        UpstreamError: If the response is malformed
    """
    candidate = _first_candidate(response)
    if candidate is None:
        return []
    metadata = candidate.get('groundingMetadata') or {}
    if not isinstance(metadata, dict):
        return []
    chunks = metadata.get('groundingChunks') or []
    urls = []
    for chunk in chunks if isinstance(chunks, list) else []:
        web = chunk.get('web') if isinstance(chunk, dict) else None
        uri = web.get('uri') if isinstance(web, dict) else None
        if uri and isinstance(uri, str):
            urls.append(uri)
    return urls


def inline_image(response: Dict[str, Any]) -> Optional[Tuple[str, str]]:
    """
    Find the first image part of the first candidate.

    Returns:
        (mime_type, base64_data) for inline data, ('', uri) for a file
        reference, or None if the response holds no image

    Raises:
        UpstreamError: If the response is malformed
    """
    candidate = _first_candidate(response)
    if candidate is None:
        return None
    for part in _parts(candidate):
        data = part.get('inlineData') or {}
        if isinstance(data, dict) and data.get('data'):
            return data.get('mimeType', 'image/png'), data['data']
        file_data = part.get('fileData') or {}
        if isinstance(file_data, dict) and file_data.get('fileUri'):
            return '', file_data['fileUri']
    return None
