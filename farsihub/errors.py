"""
Error types for Farsi Hub.
"""
from enum import Enum
from typing import Optional


class FailureKind(Enum):
    """Classification of an upstream failure for the retry policy."""
    RATE_LIMITED = "rate_limited"
    TEMPORARILY_UNAVAILABLE = "temporarily_unavailable"
    OTHER = "other"


class FarsiHubError(Exception):
    """Base class for all Farsi Hub errors."""


class ConfigurationError(FarsiHubError):
    """Missing credentials or invalid settings. Raised before any network call."""


class UpstreamError(FarsiHubError):
    """
    A failed call to the generative service.

    Attributes:
        kind: How the retry policy should treat this failure
        status: HTTP status code, if the failure came from a response
    """
    def __init__(self, message: str, kind: FailureKind = FailureKind.OTHER, status: Optional[int] = None):
        super().__init__(message)
        self.kind = kind
        self.status = status

    @property
    def retryable(self) -> bool:
        return self.kind in (FailureKind.RATE_LIMITED, FailureKind.TEMPORARILY_UNAVAILABLE)


class TransientUpstreamError(UpstreamError):
    """Rate limited or temporarily unavailable; eligible for retry."""
    def __init__(self, message: str, kind: FailureKind = FailureKind.TEMPORARILY_UNAVAILABLE,
                 status: Optional[int] = None):
        super().__init__(message, kind=kind, status=status)


class CycleError(FarsiHubError):
    """A failure that aborts the current generation cycle."""


class ContentGenerationError(CycleError):
    """Article drafting failed after retries; no article can be produced."""


class StoreError(FarsiHubError):
    """Invalid data handed to the article store (e.g. a malformed import)."""
