"""
Retry policy for calls to the generative service.
"""
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Iterator, Optional

import backoff

from farsihub.errors import UpstreamError

logger = logging.getLogger(__name__)


def linear(base_delay: float = 5.0) -> Iterator[Optional[float]]:
    """
    Wait generator for backoff: base_delay, 2 * base_delay, 3 * base_delay...
    """
    # Advance past the priming send() backoff makes before the first retry
    yield None
    attempt = 1
    while True:
        yield base_delay * attempt
        attempt += 1


def is_permanent(exc: Exception) -> bool:
    """Give up at once on anything that is not rate limiting or an outage."""
    return not getattr(exc, 'retryable', False)


def _log_retry(details: Dict[str, Any]) -> None:
    exc = details.get('exception')
    logger.warning(
        f"{details['target'].__name__} failed ({getattr(exc, 'kind', None)}): {exc}; "
        f"attempt {details['tries']}, retrying in {details['wait']:.1f}s"
    )


def _log_giveup(details: Dict[str, Any]) -> None:
    logger.error(
        f"{details['target'].__name__} giving up after {details['tries']} attempt(s): "
        f"{details.get('exception')}"
    )


@dataclass(frozen=True)
class RetryPolicy:
    """
    Linear backoff for RATE_LIMITED and TEMPORARILY_UNAVAILABLE failures.

    Attributes:
        max_attempts: Total attempts, including the first
        base_delay: Seconds to wait before the first retry
    """
    max_attempts: int = 3
    base_delay: float = 5.0

    @classmethod
    def from_settings(cls, settings: Dict[str, Any]) -> 'RetryPolicy':
        return cls(
            max_attempts=int(settings.get('max_attempts', 3)),
            base_delay=float(settings.get('base_delay_seconds', 5)),
        )

    def wrap(self, func: Callable[..., Awaitable[Any]]) -> Callable[..., Awaitable[Any]]:
        """
        Decorate a coroutine function with this policy.

        Exhausted retries re-raise the last UpstreamError; permanent failures
        are re-raised on the first attempt.
        """
        return backoff.on_exception(
            linear,
            UpstreamError,
            max_tries=self.max_attempts,
            giveup=is_permanent,
            jitter=None,
            on_backoff=_log_retry,
            on_giveup=_log_giveup,
            logger=None,
            base_delay=self.base_delay,
        )(func)
