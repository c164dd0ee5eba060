"""
HTTP utilities for Farsi Hub.
"""
import asyncio
import logging
from typing import Optional

import aiohttp

from farsihub.errors import FailureKind, TransientUpstreamError, UpstreamError

# Configure logging
logger = logging.getLogger(__name__)

REQUEST_TIMEOUT = 60  # seconds

RATE_LIMITED_STATUSES = {429}
UNAVAILABLE_STATUSES = {500, 502, 503, 504}

# Google API error statuses that carry the same meaning as the HTTP codes
RATE_LIMITED_REASONS = {"RESOURCE_EXHAUSTED"}
UNAVAILABLE_REASONS = {"UNAVAILABLE", "INTERNAL", "DEADLINE_EXCEEDED"}


def classify_status(status: int, reason: Optional[str] = None) -> FailureKind:
    """
    Classify an HTTP error response for the retry policy.

    Args:
        status: HTTP status code
        reason: The 'status' string from a Google API error body, if any

    Returns:
        FailureKind
    """
    if status in RATE_LIMITED_STATUSES or reason in RATE_LIMITED_REASONS:
        return FailureKind.RATE_LIMITED
    if status in UNAVAILABLE_STATUSES or reason in UNAVAILABLE_REASONS:
        return FailureKind.TEMPORARILY_UNAVAILABLE
    return FailureKind.OTHER


def error_from_response(status: int, body: Optional[dict], text: str = "") -> UpstreamError:
    """
    Build the error for a non-2xx response.

    Args:
        status: HTTP status code
        body: Parsed JSON error body, if the response had one
        text: Raw response text, used when there is no JSON body

    Returns:
        TransientUpstreamError for retryable failures, UpstreamError otherwise
    """
    error = (body or {}).get("error") or {}
    reason = error.get("status")
    message = error.get("message") or text[:500] or f"HTTP {status}"
    kind = classify_status(status, reason)
    if kind is FailureKind.OTHER:
        return UpstreamError(f"HTTP {status}: {message}", kind=kind, status=status)
    return TransientUpstreamError(f"HTTP {status}: {message}", kind=kind, status=status)


def error_from_exception(exc: BaseException, timeout: float = REQUEST_TIMEOUT) -> UpstreamError:
    """
    Wrap a transport-level failure (connection reset, timeout).

    Args:
        exc: The exception raised by aiohttp or the timeout guard
        timeout: The timeout that was in force, for the message

    Returns:
        TransientUpstreamError
    """
    if isinstance(exc, asyncio.TimeoutError):
        return TransientUpstreamError(f"Request timed out after {timeout}s")
    if isinstance(exc, aiohttp.ClientError):
        return TransientUpstreamError(f"Network error: {exc}")
    return UpstreamError(str(exc))
