"""
One generation cycle: category, trend, draft, image, publish.
"""
import logging
import uuid
from datetime import date
from typing import Callable, Dict, Optional

from farsihub.config import Config
from farsihub.core.article import AUTHORS, ArticleRecord, Author, Category, author_for
from farsihub.core.client import GenerationClient
from farsihub.core.logbook import CycleLog, Severity
from farsihub.core.selector import CategorySelector
from farsihub.core.store import ArticleStore, StatsStore
from farsihub.errors import ConfigurationError, CycleError
from farsihub.utils.dates import date_label

logger = logging.getLogger(__name__)


def new_article_id() -> str:
    return uuid.uuid4().hex[:9]


class CycleOrchestrator:
    """
    Runs the generation stages in order and publishes the result.
    """
    def __init__(self, selector: CategorySelector, client: GenerationClient, store: ArticleStore,
                 stats: StatsStore, log: CycleLog, authors: Optional[Dict[Category, Author]] = None,
                 date_format: str = '%Y/%m/%d', digits: str = 'persian',
                 today: Optional[Callable[[], date]] = None):
        """
        Initialize the CycleOrchestrator.

        Args:
            selector: Picks the category of each cycle
            client: Generation calls
            store: Where finished articles go
            stats: Holds the posts-generated counter
            log: Progress messages for the admin panel
            authors: Byline per category; defaults to AUTHORS
            date_format: strftime format of the published date label
            digits: 'persian' or 'latin' digits in the date label
            today: Clock for the date label
        """
        self.selector = selector
        self.client = client
        self.store = store
        self.stats = stats
        self.log = log
        self.authors = authors or AUTHORS
        self.date_format = date_format
        self.digits = digits
        self.today = today or date.today

    @classmethod
    def from_config(cls, config: Config, client: GenerationClient, store: ArticleStore,
                    stats: StatsStore, log: CycleLog) -> 'CycleOrchestrator':
        selector = CategorySelector(
            config.get('generation.weights'),
            default=Category.parse(config.get('generation.default_category', 'TECH')),
        )
        return cls(
            selector, client, store, stats, log,
            date_format=config.get('locale.date_format', '%Y/%m/%d'),
            digits=config.get('locale.digits', 'persian'),
        )

    async def run_cycle(self) -> ArticleRecord:
        """
        Produce and publish one article.

        Returns:
            The published ArticleRecord

        Raises:
            ConfigurationError: If the API key is missing
            CycleError: If drafting fails; nothing is published
        """
        try:
            self.client.ensure_configured()
        except ConfigurationError as e:
            self.log.log(str(e), Severity.ERROR)
            raise

        category = self.selector.pick()
        self.log.log(f"Starting cycle. Category: {category.label}", Severity.INFO)

        try:
            self.log.log(f"🔍 Searching trends for {category.label}...")
            trend = await self.client.find_trending_topic(category)
            self.log.log(f'Topic found: "{trend.topic}"', Severity.SUCCESS)

            self.log.log("✍️ Drafting content...")
            draft = await self.client.draft_article(trend.topic, trend.context, category)
            self.log.log(f"Content generated: {draft.title}", Severity.SUCCESS)

            self.log.log("🎨 Generating visuals...")
            prompt = draft.image_prompt or f"Photorealistic image about {trend.topic}"
            image_url = await self.client.synthesize_cover_image(prompt, trend.topic)
        except CycleError as e:
            self.log.log(f"❌ Cycle failed: {e}", Severity.ERROR)
            raise

        record = ArticleRecord(
            id=new_article_id(),
            title=draft.title,
            excerpt=draft.excerpt,
            content_html=draft.content_html,
            category=category,
            image_url=image_url,
            author=author_for(category, self.authors),
            published_date_label=date_label(self.today(), self.date_format, self.digits),
            read_time_label=draft.read_time_label,
            view_count=0,
            tags=list(draft.tags),
            citations=list(draft.citations),
        )

        self.store.append_article(record)
        self.stats.increment_posts_generated()
        self.log.log("✅ Post published successfully!", Severity.SUCCESS)
        logger.debug(f"Published {record.id} ({category.name}): {record.title}")
        return record
