import asyncio

import pytest

from farsihub.core.retry import RetryPolicy, linear
from farsihub.errors import FailureKind, TransientUpstreamError, UpstreamError


def flaky_call(failures, result="ok"):
    """Async function that raises each queued failure once, then returns result."""
    pending = list(failures)

    async def call():
        call.attempts += 1
        if pending:
            raise pending.pop(0)
        return result

    call.attempts = 0
    return call


def rate_limited():
    return TransientUpstreamError("HTTP 429: quota", kind=FailureKind.RATE_LIMITED, status=429)


def test_linear_wait_generator() -> None:
    wait = linear(base_delay=5)
    next(wait)
    assert [next(wait) for _ in range(3)] == [5, 10, 15]


def test_rate_limited_twice_then_success(recorded_sleeps) -> None:
    call = flaky_call([rate_limited(), rate_limited()])
    wrapped = RetryPolicy(max_attempts=3, base_delay=5).wrap(call)
    assert asyncio.run(wrapped()) == "ok"
    assert call.attempts == 3
    assert recorded_sleeps == [5, 10]


def test_unavailable_is_retried(recorded_sleeps) -> None:
    call = flaky_call([TransientUpstreamError("HTTP 503: overloaded", status=503)])
    wrapped = RetryPolicy(max_attempts=3, base_delay=2).wrap(call)
    assert asyncio.run(wrapped()) == "ok"
    assert call.attempts == 2
    assert recorded_sleeps == [2]


def test_other_failures_are_not_retried(recorded_sleeps) -> None:
    call = flaky_call([UpstreamError("HTTP 400: bad request", status=400)])
    wrapped = RetryPolicy(max_attempts=3, base_delay=5).wrap(call)
    with pytest.raises(UpstreamError, match="bad request"):
        asyncio.run(wrapped())
    assert call.attempts == 1
    assert recorded_sleeps == []


def test_exhausted_retries_raise_last_error(recorded_sleeps) -> None:
    call = flaky_call([rate_limited(), rate_limited(), rate_limited(), rate_limited()])
    wrapped = RetryPolicy(max_attempts=3, base_delay=5).wrap(call)
    with pytest.raises(TransientUpstreamError) as excinfo:
        asyncio.run(wrapped())
    assert excinfo.value.kind is FailureKind.RATE_LIMITED
    assert call.attempts == 3
    assert recorded_sleeps == [5, 10]


def test_policy_from_settings() -> None:
    policy = RetryPolicy.from_settings({"max_attempts": 5, "base_delay_seconds": 1})
    assert policy == RetryPolicy(max_attempts=5, base_delay=1.0)
