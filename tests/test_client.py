import asyncio
import json

import pytest

from conftest import DRAFT_PAYLOAD, FakeTransport, image_response, text_response
from farsihub.core.article import Category, TrendResult
from farsihub.core.client import GenerationClient, merge_citations, placeholder_image_url
from farsihub.core.retry import RetryPolicy
from farsihub.errors import (
    ConfigurationError,
    ContentGenerationError,
    FailureKind,
    TransientUpstreamError,
    UpstreamError,
)

MODELS = {"trend": "trend-model", "draft": "draft-model", "image": "image-model"}
NO_WAIT = {site: RetryPolicy(max_attempts=3, base_delay=0) for site in MODELS}


def make_client(responses, api_key="test-key"):
    transport = FakeTransport(
        {MODELS[site]: items for site, items in responses.items()}, api_key=api_key
    )
    return GenerationClient(transport, models=MODELS, policies=NO_WAIT), transport


def unavailable():
    return TransientUpstreamError("HTTP 503: overloaded", status=503)


def test_trending_topic_is_parsed() -> None:
    client, transport = make_client({"trend": [text_response({"topic": "GPT-5", "context": "Launch"})]})
    trend = asyncio.run(client.find_trending_topic(Category.TECH))
    assert trend == TrendResult(topic="GPT-5", context="Launch")
    payload = transport.calls[0]["payload"]
    assert payload["tools"] == [{"googleSearch": {}}]
    assert Category.TECH.label in payload["contents"][0]["parts"][0]["text"]


def test_trending_topic_falls_back_after_retries() -> None:
    client, transport = make_client({"trend": [unavailable()]})
    trend = asyncio.run(client.find_trending_topic(Category.CINEMA))
    assert trend == TrendResult(topic=f"{Category.CINEMA.label} News", context="General update")
    assert len(transport.calls) == 3


def test_trending_topic_falls_back_on_bad_json_without_retry() -> None:
    client, transport = make_client({"trend": [text_response("not json")]})
    trend = asyncio.run(client.find_trending_topic(Category.GAMES))
    assert trend.context == "General update"
    assert len(transport.calls) == 1


def test_draft_merges_explicit_and_grounding_citations() -> None:
    payload = dict(DRAFT_PAYLOAD, citations=["https://a.example", "https://b.example"])
    response = text_response(payload, grounding=["https://b.example", "https://c.example"])
    client, _ = make_client({"draft": [response]})
    draft = asyncio.run(client.draft_article("X", "Y", Category.TECH))
    assert draft.title == "T"
    assert draft.read_time_label == "1m"
    assert draft.image_prompt == "P"
    assert sorted(draft.citations) == ["https://a.example", "https://b.example", "https://c.example"]


def test_draft_accepts_fenced_json_and_strips_scripts() -> None:
    payload = dict(DRAFT_PAYLOAD, content='<h2 onclick="x()">Hi</h2><script>alert(1)</script><p>Body</p>')
    client, _ = make_client({"draft": [text_response("```json\n" + json.dumps(payload) + "\n```")]})
    draft = asyncio.run(client.draft_article("X", "Y", Category.TECH))
    assert draft.content_html == "<h2>Hi</h2><p>Body</p>"


def test_draft_failure_carries_upstream_message() -> None:
    client, transport = make_client({"draft": [UpstreamError("HTTP 400: API key not valid", status=400)]})
    with pytest.raises(ContentGenerationError, match="API key not valid"):
        asyncio.run(client.draft_article("X", "Y", Category.TECH))
    assert len(transport.calls) == 1


def test_draft_failure_after_exhausted_retries() -> None:
    rate_limited = TransientUpstreamError("HTTP 429: quota", kind=FailureKind.RATE_LIMITED, status=429)
    client, transport = make_client({"draft": [rate_limited]})
    with pytest.raises(ContentGenerationError, match="quota"):
        asyncio.run(client.draft_article("X", "Y", Category.TECH))
    assert len(transport.calls) == 3


def test_draft_missing_required_field_is_a_generation_error() -> None:
    payload = {key: value for key, value in DRAFT_PAYLOAD.items() if key != "imagePrompt"}
    client, _ = make_client({"draft": [text_response(payload)]})
    with pytest.raises(ContentGenerationError, match="imagePrompt"):
        asyncio.run(client.draft_article("X", "Y", Category.TECH))


def test_cover_image_from_inline_data() -> None:
    client, transport = make_client({"image": [image_response("QUJD", "image/jpeg")]})
    url = asyncio.run(client.synthesize_cover_image("Cinematic shot", "X"))
    assert url == "data:image/jpeg;base64,QUJD"
    config = transport.calls[0]["payload"]["generationConfig"]
    assert config["imageConfig"] == {"aspectRatio": "16:9"}


def test_cover_image_failure_uses_topic_placeholder() -> None:
    client, _ = make_client({"image": [UpstreamError("HTTP 400: blocked", status=400)]})
    url = asyncio.run(client.synthesize_cover_image("prompt", "هوش مصنوعی و آینده"))
    assert url == placeholder_image_url("هوش مصنوعی و آینده")
    assert url.startswith("https://picsum.photos/seed/%D9%87")
    assert url.endswith("/800/450")


def test_cover_image_without_image_part_uses_placeholder() -> None:
    client, _ = make_client({"image": [text_response("I cannot draw that")]})
    url = asyncio.run(client.synthesize_cover_image("prompt", "Topic"))
    assert url == "https://picsum.photos/seed/Topic/800/450"


def test_placeholder_without_topic_uses_random_seed() -> None:
    first = placeholder_image_url("")
    second = placeholder_image_url(None)
    assert first.startswith("https://picsum.photos/seed/")
    assert first != second


def test_missing_api_key_is_a_configuration_error() -> None:
    client, transport = make_client({"trend": [text_response({"topic": "a", "context": "b"})]}, api_key=None)
    with pytest.raises(ConfigurationError):
        client.ensure_configured()
    with pytest.raises(ConfigurationError):
        asyncio.run(client.find_trending_topic(Category.TECH))
    assert transport.calls == []


def test_citation_merge_is_idempotent_and_order_independent() -> None:
    explicit = ["https://a", "https://b", "https://a"]
    grounding = ["https://c", "https://b"]
    once = merge_citations(explicit, grounding)
    assert sorted(once) == ["https://a", "https://b", "https://c"]
    assert set(merge_citations(once, once)) == set(once)
    assert set(merge_citations(grounding, explicit)) == set(once)
    assert merge_citations(None, None) == []


MALFORMED_TEXT = {"candidates": ["oops"]}
MALFORMED_PARTS = {"candidates": [{"content": {"parts": ["oops"]}}]}


@pytest.mark.parametrize("response", [MALFORMED_TEXT, MALFORMED_PARTS, ["oops"]])
def test_malformed_trend_response_falls_back(response) -> None:
    client, transport = make_client({"trend": [response]})
    trend = asyncio.run(client.find_trending_topic(Category.SCIENCE))
    assert trend == TrendResult(topic=f"{Category.SCIENCE.label} News", context="General update")
    assert len(transport.calls) == 1


@pytest.mark.parametrize("response", [MALFORMED_TEXT, MALFORMED_PARTS])
def test_malformed_draft_response_is_a_generation_error(response) -> None:
    client, _ = make_client({"draft": [response]})
    with pytest.raises(ContentGenerationError, match="Malformed response"):
        asyncio.run(client.draft_article("X", "Y", Category.TECH))


@pytest.mark.parametrize("response", [
    MALFORMED_TEXT,
    MALFORMED_PARTS,
    {"candidates": [{"content": "oops"}]},
    RuntimeError("connection reset by fake"),
])
def test_cover_image_uses_placeholder_on_any_failure(response) -> None:
    client, _ = make_client({"image": [response]})
    url = asyncio.run(client.synthesize_cover_image("prompt", "Topic"))
    assert url == "https://picsum.photos/seed/Topic/800/450"
