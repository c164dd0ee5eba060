import asyncio

import pytest

from farsihub.errors import ConfigurationError, FailureKind, TransientUpstreamError, UpstreamError
from farsihub.services.gemini import (
    GeminiTransport,
    grounding_urls,
    inline_image,
    parse_json_text,
    response_text,
)
from farsihub.utils.http import classify_status, error_from_exception, error_from_response


@pytest.mark.parametrize("status,reason,kind", [
    (429, None, FailureKind.RATE_LIMITED),
    (400, "RESOURCE_EXHAUSTED", FailureKind.RATE_LIMITED),
    (503, None, FailureKind.TEMPORARILY_UNAVAILABLE),
    (500, "INTERNAL", FailureKind.TEMPORARILY_UNAVAILABLE),
    (400, "INVALID_ARGUMENT", FailureKind.OTHER),
    (403, "PERMISSION_DENIED", FailureKind.OTHER),
])
def test_classify_status(status, reason, kind) -> None:
    assert classify_status(status, reason) is kind


def test_error_from_response_uses_google_error_body() -> None:
    body = {"error": {"code": 429, "message": "Quota exceeded", "status": "RESOURCE_EXHAUSTED"}}
    error = error_from_response(429, body)
    assert isinstance(error, TransientUpstreamError)
    assert error.retryable
    assert "Quota exceeded" in str(error)

    error = error_from_response(404, None, "Not Found")
    assert not isinstance(error, TransientUpstreamError)
    assert error.kind is FailureKind.OTHER
    assert error.status == 404


def test_timeouts_are_transient() -> None:
    error = error_from_exception(asyncio.TimeoutError(), timeout=60)
    assert error.kind is FailureKind.TEMPORARILY_UNAVAILABLE
    assert "60" in str(error)


def test_response_helpers() -> None:
    response = {
        "candidates": [{
            "content": {"parts": [{"text": '{"a": '}, {"text": "1}"}]},
            "groundingMetadata": {"groundingChunks": [
                {"web": {"uri": "https://one.example"}},
                {"retrievedContext": {"uri": "ignored"}},
            ]},
        }]
    }
    assert parse_json_text(response_text(response)) == {"a": 1}
    assert grounding_urls(response) == ["https://one.example"]
    assert inline_image(response) is None
    assert grounding_urls({}) == []


def test_blocked_prompt_has_no_text() -> None:
    with pytest.raises(UpstreamError, match="SAFETY"):
        response_text({"promptFeedback": {"blockReason": "SAFETY"}})


def test_file_reference_image() -> None:
    response = {"candidates": [{"content": {"parts": [{"fileData": {"fileUri": "gs://bucket/img.png"}}]}}]}
    assert inline_image(response) == ("", "gs://bucket/img.png")


def test_transport_without_key_fails_before_request() -> None:
    transport = GeminiTransport(api_key=None)
    with pytest.raises(ConfigurationError):
        asyncio.run(transport.generate_content("model", {}))
    assert transport._session is None


@pytest.mark.parametrize("response", [
    {"candidates": "oops"},
    {"candidates": ["oops"]},
    {"candidates": [{"content": ["oops"]}]},
    {"candidates": [{"content": {"parts": ["oops"]}}]},
])
def test_malformed_responses_raise_upstream_error(response) -> None:
    with pytest.raises(UpstreamError, match="Malformed response") as excinfo:
        response_text(response)
    assert excinfo.value.kind is FailureKind.OTHER
    with pytest.raises(UpstreamError, match="Malformed response"):
        inline_image(response)


def test_grounding_urls_skip_malformed_chunks() -> None:
    response = {"candidates": [{"groundingMetadata": {"groundingChunks": [
        "oops", {"web": "oops"}, {"web": {"uri": "https://ok.example"}},
    ]}}]}
    assert grounding_urls(response) == ["https://ok.example"]
    with pytest.raises(UpstreamError, match="Malformed response"):
        grounding_urls({"candidates": ["oops"]})
