"""
Content synthesis through the generative service.

Three stages, each behind its own retry policy:

1. find_trending_topic - search-grounded lookup of a current story
2. draft_article - the Persian article body, as structured JSON
3. synthesize_cover_image - a 16:9 cover image

Only drafting can fail a cycle. The trend lookup and the image fall back to
substitute values instead of raising.
"""
import logging
import urllib.parse
import uuid
from typing import Any, Dict, Iterable, List, Optional

import jsonschema

from farsihub.config import Config, get_api_key
from farsihub.core.article import Category, DraftResult, TrendResult
from farsihub.core.retry import RetryPolicy
from farsihub.errors import ConfigurationError, ContentGenerationError, UpstreamError
from farsihub.services.gemini import (
    GeminiTransport,
    grounding_urls,
    inline_image,
    parse_json_text,
    response_text,
)
from farsihub.utils.html import sanitize_html

logger = logging.getLogger(__name__)

DEFAULT_MODELS = {
    'trend': 'gemini-2.0-flash-exp',
    'draft': 'gemini-2.0-flash-exp',
    'image': 'gemini-2.5-flash-image',
}

TREND_PROMPT = """Find a currently trending, specific topic or news story in Iran regarding "{category}".
Return only the topic headline and a brief 1-sentence context.
Do not hallucinate. Use Google Search to find real, recent trends."""

DRAFT_PROMPT = """Write a high-quality, engaging blog post in Farsi (Persian) about: "{topic}".
Context: {context}.
Category: {category}.

Requirements:
- Language: Persian (Farsi).
- Tone: Professional, engaging, magazine-style.
- Structure: Use HTML tags (<h2>, <h3>, <p>, <ul>, <li>).
- SEO: Optimize for search engines.
- Length: Detailed (approx 400-600 words).
- Citations: If you use the search tool, include source URLs in the separate 'citations' array field.
- Image Prompt: Create a detailed, highly visual, ENGLISH prompt for an AI image generator to create a photorealistic cover image for this article. Describe lighting, subject, and style (e.g. "Cinematic shot of..."). No text in the image.
"""

# Gemini responseSchema (OpenAPI subset)
TREND_RESPONSE_SCHEMA = {
    'type': 'OBJECT',
    'properties': {
        'topic': {'type': 'STRING'},
        'context': {'type': 'STRING'},
    },
    'required': ['topic', 'context'],
}

DRAFT_RESPONSE_SCHEMA = {
    'type': 'OBJECT',
    'properties': {
        'title': {'type': 'STRING', 'description': 'Catchy title in Farsi'},
        'excerpt': {'type': 'STRING', 'description': '2 sentence summary for meta description'},
        'content': {'type': 'STRING', 'description': 'Full HTML content'},
        'tags': {'type': 'ARRAY', 'items': {'type': 'STRING'}},
        'readTime': {'type': 'STRING', 'description': "e.g., '۵ دقیقه'"},
        'citations': {'type': 'ARRAY', 'items': {'type': 'STRING'}},
        'imagePrompt': {'type': 'STRING', 'description': 'Detailed image generation prompt in English'},
    },
    'required': ['title', 'excerpt', 'content', 'tags', 'readTime', 'imagePrompt'],
}

# Local validation of what actually came back
TREND_SCHEMA = {
    'type': 'object',
    'properties': {
        'topic': {'type': 'string', 'minLength': 1},
        'context': {'type': 'string'},
    },
    'required': ['topic', 'context'],
}

DRAFT_SCHEMA = {
    'type': 'object',
    'properties': {
        'title': {'type': 'string', 'minLength': 1},
        'excerpt': {'type': 'string'},
        'content': {'type': 'string', 'minLength': 1},
        'tags': {'type': 'array', 'items': {'type': 'string'}},
        'readTime': {'type': 'string'},
        'citations': {'type': 'array', 'items': {'type': 'string'}},
        'imagePrompt': {'type': 'string'},
    },
    'required': ['title', 'excerpt', 'content', 'tags', 'readTime', 'imagePrompt'],
}

PLACEHOLDER_IMAGE_URL = 'https://picsum.photos/seed/{seed}/800/450'


def merge_citations(explicit: Optional[Iterable[str]], grounding: Optional[Iterable[str]]) -> List[str]:
    """
    Union of the model's own citation list and the search grounding URLs,
    without duplicates. Order carries no meaning.
    """
    merged = dict.fromkeys(
        url.strip()
        for url in list(explicit or []) + list(grounding or [])
        if isinstance(url, str) and url.strip()
    )
    return list(merged)


def placeholder_image_url(topic: Optional[str]) -> str:
    """Stock image URL seeded by the topic, or by a random token without one."""
    seed = topic.strip() if topic and topic.strip() else uuid.uuid4().hex
    return PLACEHOLDER_IMAGE_URL.format(seed=urllib.parse.quote(seed, safe=''))


def _validated(data: Any, schema: Dict[str, Any], what: str) -> Dict[str, Any]:
    try:
        jsonschema.validate(data, schema)
    except jsonschema.ValidationError as e:
        raise UpstreamError(f"{what} does not match the expected schema: {e.message}") from e
    return data


class GenerationClient:
    """
    Wraps the three generation calls and their fallback policies.
    """
    def __init__(self, transport: GeminiTransport, models: Optional[Dict[str, str]] = None,
                 policies: Optional[Dict[str, RetryPolicy]] = None, aspect_ratio: str = '16:9'):
        """
        Initialize the GenerationClient.

        Args:
            transport: Object with an async generate_content(model, payload)
            models: Model name per stage ('trend', 'draft', 'image')
            policies: Retry policy per stage; missing stages get the default policy
            aspect_ratio: Requested cover image aspect ratio
        """
        self.transport = transport
        self.models = dict(DEFAULT_MODELS, **(models or {}))
        self.aspect_ratio = aspect_ratio
        policies = policies or {}
        self._trend = policies.get('trend', RetryPolicy()).wrap(self._request_trend)
        self._draft = policies.get('draft', RetryPolicy()).wrap(self._request_draft)
        self._image = policies.get('image', RetryPolicy()).wrap(self._request_image)

    @classmethod
    def from_config(cls, config: Config, transport: Optional[GeminiTransport] = None) -> 'GenerationClient':
        """
        Build a client from configuration.

        Args:
            config: Loaded configuration
            transport: Transport to use; a GeminiTransport is created if omitted

        Returns:
            GenerationClient
        """
        if transport is None:
            transport = GeminiTransport(
                api_key=get_api_key(),
                base_url=config.get('gemini.base_url'),
                timeout=config.get('gemini.timeout_seconds', 60),
            )
        return cls(
            transport,
            models=config.get('gemini.models'),
            policies={
                site: RetryPolicy.from_settings(config.retry_settings(site))
                for site in ('trend', 'draft', 'image')
            },
            aspect_ratio=config.get('gemini.image_aspect_ratio', '16:9'),
        )

    def ensure_configured(self) -> None:
        """Raise ConfigurationError if the transport has no credentials."""
        check = getattr(self.transport, 'ensure_configured', None)
        if check is not None:
            check()

    async def close(self) -> None:
        close = getattr(self.transport, 'close_session', None)
        if close is not None:
            await close()

    async def find_trending_topic(self, category: Category) -> TrendResult:
        """
        Look up a trending story for a category.

        Args:
            category: Category to search in

        Returns:
            TrendResult; a generic '<category> News' result if the lookup fails
        """
        try:
            return await self._trend(category)
        except ConfigurationError:
            raise
        except Exception as e:  # noqa: BLE001
            logger.info(f"Trend lookup for {category.name} failed, using fallback topic: {e}")
            return TrendResult(topic=f"{category.label} News", context="General update")

    async def draft_article(self, topic: str, context: str, category: Category) -> DraftResult:
        """
        Write the article for a topic.

        Args:
            topic: Headline from the trend stage
            context: One-sentence background
            category: Category of the article

        Returns:
            DraftResult

        Raises:
            ContentGenerationError: If drafting fails after retries
        """
        try:
            return await self._draft(topic, context, category)
        except UpstreamError as e:
            raise ContentGenerationError(str(e) or "Unknown API Error") from e

    async def synthesize_cover_image(self, prompt: str, fallback_topic: Optional[str]) -> str:
        """
        Generate a cover image.

        Args:
            prompt: English image prompt
            fallback_topic: Seed for the placeholder image

        Returns:
            data: URL or image reference; a placeholder URL if generation fails
        """
        try:
            image_url = await self._image(prompt)
        except ConfigurationError:
            raise
        except Exception as e:  # noqa: BLE001
            logger.info(f"Image generation failed, using placeholder: {e}")
            return placeholder_image_url(fallback_topic)
        if not image_url:
            logger.info("Image model returned no image, using placeholder")
            return placeholder_image_url(fallback_topic)
        return image_url

    async def _request_trend(self, category: Category) -> TrendResult:
        payload = {
            'contents': [{'parts': [{'text': TREND_PROMPT.format(category=category.label)}]}],
            'tools': [{'googleSearch': {}}],
            'generationConfig': {
                'responseMimeType': 'application/json',
                'responseSchema': TREND_RESPONSE_SCHEMA,
            },
        }
        response = await self.transport.generate_content(self.models['trend'], payload)
        data = _validated(parse_json_text(response_text(response)), TREND_SCHEMA, 'Trend')
        return TrendResult(topic=data['topic'], context=data['context'])

    async def _request_draft(self, topic: str, context: str, category: Category) -> DraftResult:
        prompt = DRAFT_PROMPT.format(topic=topic, context=context, category=category.label)
        payload = {
            'contents': [{'parts': [{'text': prompt}]}],
            'tools': [{'googleSearch': {}}],
            'generationConfig': {
                'responseMimeType': 'application/json',
                'responseSchema': DRAFT_RESPONSE_SCHEMA,
            },
        }
        response = await self.transport.generate_content(self.models['draft'], payload)
        data = _validated(parse_json_text(response_text(response)), DRAFT_SCHEMA, 'Draft')

        return DraftResult(
            title=data['title'],
            excerpt=data['excerpt'],
            content_html=sanitize_html(data['content']),
            tags=list(data['tags']),
            read_time_label=data['readTime'],
            image_prompt=data['imagePrompt'],
            citations=merge_citations(data.get('citations'), grounding_urls(response)),
        )

    async def _request_image(self, prompt: str) -> Optional[str]:
        payload = {
            'contents': [{'parts': [{'text': prompt}]}],
            'generationConfig': {
                'responseModalities': ['IMAGE'],
                'imageConfig': {'aspectRatio': self.aspect_ratio},
            },
        }
        response = await self.transport.generate_content(self.models['image'], payload)
        image = inline_image(response)
        if image is None:
            return None
        mime_type, data = image
        if not mime_type:
            return data
        return f"data:{mime_type};base64,{data}"
