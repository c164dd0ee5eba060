import asyncio
import json
from typing import Any, Dict, List

import pytest

from farsihub.core.article import Category, DraftResult, TrendResult
from farsihub.core.cache import KeyValueStore
from farsihub.core.logbook import CycleLog
from farsihub.core.store import ArticleStore, StatsStore
from farsihub.errors import ConfigurationError, ContentGenerationError


class FakeTransport:
    """
    Stands in for GeminiTransport. Each model name has a queue of responses;
    an Exception in the queue is raised instead of returned. The last item of
    a queue repeats once the queue runs dry.
    """
    def __init__(self, responses: Dict[str, List[Any]], api_key: str = "test-key"):
        self.responses = {model: list(items) for model, items in responses.items()}
        self.api_key = api_key
        self.calls: List[Dict[str, Any]] = []

    def ensure_configured(self):
        if not self.api_key:
            raise ConfigurationError("API key missing!")

    async def generate_content(self, model, payload):
        self.ensure_configured()
        self.calls.append({"model": model, "payload": payload})
        queue = self.responses[model]
        item = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(item, Exception):
            raise item
        return item

    def calls_for(self, model):
        return [call for call in self.calls if call["model"] == model]


def text_response(data, grounding=None):
    candidate = {"content": {"parts": [{"text": data if isinstance(data, str) else json.dumps(data)}]}}
    if grounding:
        candidate["groundingMetadata"] = {
            "groundingChunks": [{"web": {"uri": uri, "title": "src"}} for uri in grounding]
        }
    return {"candidates": [candidate]}


def image_response(data="QUJD", mime_type="image/png"):
    return {"candidates": [{"content": {"parts": [{"inlineData": {"mimeType": mime_type, "data": data}}]}}]}


DRAFT_PAYLOAD = {
    "title": "T",
    "excerpt": "E",
    "content": "<p>.</p>",
    "tags": ["a"],
    "readTime": "1m",
    "imagePrompt": "P",
}


class StubClient:
    """GenerationClient double with fixed results and call tracking."""
    def __init__(self, trend=None, draft=None, image_url="img://1", draft_error=None):
        self.trend = trend or TrendResult(topic="X", context="Y")
        self.draft = draft or DraftResult(
            title="T", excerpt="E", content_html="<p>.</p>", tags=["a"],
            read_time_label="1m", image_prompt="P",
        )
        self.image_url = image_url
        self.draft_error = draft_error
        self.calls: List[tuple] = []

    def ensure_configured(self):
        pass

    async def close(self):
        pass

    async def find_trending_topic(self, category: Category):
        self.calls.append(("trend", category))
        return self.trend

    async def draft_article(self, topic, context, category):
        self.calls.append(("draft", topic, context, category))
        if self.draft_error is not None:
            raise ContentGenerationError(self.draft_error)
        return self.draft

    async def synthesize_cover_image(self, prompt, fallback_topic):
        self.calls.append(("image", prompt, fallback_topic))
        return self.image_url


@pytest.fixture
def kv(tmp_path):
    return KeyValueStore(tmp_path / "farsihub.db")


@pytest.fixture
def store(kv):
    return ArticleStore(kv)


@pytest.fixture
def stats(kv):
    return StatsStore(kv)


@pytest.fixture
def cycle_log():
    return CycleLog()


@pytest.fixture
def recorded_sleeps(monkeypatch):
    """Replace asyncio.sleep with a no-op that records requested delays."""
    delays = []

    async def fake_sleep(delay, result=None):
        delays.append(delay)
        return result

    monkeypatch.setattr(asyncio, "sleep", fake_sleep)
    return delays
