"""
Article and statistics storage for Farsi Hub.

Articles are kept in memory as a newest-first list and written back whole to
the key-value store after every change. On startup the collection is loaded
from the bundled snapshot (posts.json) if it has articles, then from the
key-value store, and finally seeded with a single welcome article.
"""
import json
import logging
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import jsonschema

from farsihub.core.article import AUTHORS, ArticleRecord, Author, Category, DEFAULT_CATEGORY, author_for
from farsihub.core.cache import KeyValueStore
from farsihub.errors import StoreError
from farsihub.utils.dates import date_label

logger = logging.getLogger(__name__)

POSTS_KEY = 'fh_posts_v1'
STATS_KEY = 'fh_stats_v1'
CORRUPT_SUFFIX = '.corrupt'

SITEMAP_NS = 'http://www.sitemaps.org/schemas/sitemap/0.9'

_CATEGORY_VALUES = [c.name for c in Category] + [c.label for c in Category]

_AUTHOR_SCHEMA = {
    'type': 'object',
    'properties': {
        'id': {'type': 'string'},
        'name': {'type': 'string'},
        'role': {'type': 'string'},
        'avatar': {'type': 'string'},
    },
    'required': ['id', 'name'],
}


def _collection_schema(author_schema: Dict[str, Any]) -> Dict[str, Any]:
    return {
        'type': 'array',
        'items': {
            'type': 'object',
            'properties': {
                'id': {'type': ['string', 'integer']},
                'title': {'type': 'string', 'minLength': 1},
                'excerpt': {'type': 'string'},
                'content': {'type': 'string'},
                'category': {'enum': _CATEGORY_VALUES},
                'imageUrl': {'type': 'string'},
                'author': author_schema,
                'date': {'type': 'string'},
                'readTime': {'type': 'string'},
                'views': {'type': 'integer', 'minimum': 0},
                'tags': {'type': 'array', 'items': {'type': 'string'}},
                'citations': {'type': 'array', 'items': {'type': 'string'}},
            },
            'required': ['id', 'title', 'category', 'author'],
        },
    }


COLLECTION_SCHEMA = _collection_schema(_AUTHOR_SCHEMA)
# Early builds stored the author as a bare name
LEGACY_COLLECTION_SCHEMA = _collection_schema({'anyOf': [_AUTHOR_SCHEMA, {'type': 'string'}]})


class DataStatus(Enum):
    VALID = 'valid'
    LEGACY = 'legacy'
    CORRUPT = 'corrupt'


@dataclass
class ValidationResult:
    """
    Outcome of checking a stored or imported article collection.

    Attributes:
        status: VALID, LEGACY (readable after migration) or CORRUPT
        records: Parsed records; migrated for LEGACY, empty for CORRUPT
        error: Why the data was rejected, for CORRUPT
    """
    status: DataStatus
    records: List[ArticleRecord] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def usable(self) -> bool:
        return self.status is not DataStatus.CORRUPT


def _migrate_legacy(item: Dict[str, Any]) -> Dict[str, Any]:
    if not isinstance(item.get('author'), str):
        return item
    default = author_for(Category.parse(item['category']))
    migrated = dict(item)
    migrated['author'] = Author(default.id, item['author'], default.role, default.avatar_url).to_dict()
    return migrated


def validate_articles(data: Any) -> ValidationResult:
    """
    Check a decoded article collection against the storage schema.

    Args:
        data: Decoded JSON

    Returns:
        ValidationResult
    """
    try:
        jsonschema.validate(data, COLLECTION_SCHEMA)
        return ValidationResult(DataStatus.VALID, [ArticleRecord.from_dict(item) for item in data])
    except jsonschema.ValidationError as e:
        current_error = e.message

    try:
        jsonschema.validate(data, LEGACY_COLLECTION_SCHEMA)
    except jsonschema.ValidationError:
        return ValidationResult(DataStatus.CORRUPT, error=current_error)
    records = [ArticleRecord.from_dict(_migrate_legacy(item)) for item in data]
    return ValidationResult(DataStatus.LEGACY, records)


def seed_articles() -> List[ArticleRecord]:
    """The welcome article shown when there is no stored data at all."""
    return [
        ArticleRecord(
            id='seed-1',
            title='خوش آمدید به فارسی هاب',
            excerpt='این اولین پست آزمایشی سیستم تولید محتوای خودکار است.',
            content_html='<p>این سیستم به صورت خودکار اخبار و مقالات جذاب تولید می‌کند.</p>',
            category=DEFAULT_CATEGORY,
            image_url='https://picsum.photos/seed/tech/800/400',
            author=AUTHORS[DEFAULT_CATEGORY],
            published_date_label=date_label(),
            read_time_label='۱ دقیقه',
            view_count=120,
            tags=['هوش مصنوعی', 'آغاز'],
        )
    ]


class ArticleStore:
    """
    Durable, newest-first article collection.
    """
    def __init__(self, kv: KeyValueStore, snapshot_path: Optional[Union[str, Path]] = None):
        """
        Initialize the ArticleStore and load the collection.

        Args:
            kv: Key-value store holding the collection
            snapshot_path: Optional bundled posts.json that takes precedence
        """
        self.kv = kv
        self.snapshot_path = Path(snapshot_path) if snapshot_path else None
        self._articles: List[ArticleRecord] = []
        self.source = self.load()

    def load(self) -> str:
        """
        (Re)load the collection.

        Returns:
            Where the data came from: 'snapshot', 'local' or 'seed'
        """
        records = self._load_snapshot()
        if records:
            self._articles = records
            logger.info(f"Loaded {len(records)} posts from snapshot {self.snapshot_path}")
            return 'snapshot'

        records = self._load_local()
        if records:
            self._articles = records
            return 'local'

        self._articles = seed_articles()
        self._save()
        logger.info("No stored posts found, seeded the welcome article")
        return 'seed'

    def _load_snapshot(self) -> List[ArticleRecord]:
        if self.snapshot_path is None or not self.snapshot_path.exists():
            return []
        try:
            with open(self.snapshot_path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Snapshot {self.snapshot_path} unreadable, falling back to local storage: {e}")
            return []

        result = validate_articles(data)
        if not result.usable:
            logger.warning(f"Snapshot {self.snapshot_path} is invalid ({result.error}), ignoring it")
            return []
        return result.records

    def _load_local(self) -> List[ArticleRecord]:
        raw = self.kv.get_raw(POSTS_KEY)
        if raw is None:
            return []
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            self._quarantine(raw, f"not JSON: {e}")
            return []

        result = validate_articles(data)
        if result.status is DataStatus.CORRUPT:
            self._quarantine(raw, result.error)
            return []
        if result.status is DataStatus.LEGACY:
            logger.warning(f"Legacy post data detected, migrated {len(result.records)} posts")
            self._articles = result.records
            self._save()
        return result.records

    def _quarantine(self, raw: str, reason: Optional[str]) -> None:
        # Keep the unreadable data around instead of overwriting it with the seed
        self.kv.set_raw(POSTS_KEY + CORRUPT_SUFFIX, raw)
        logger.error(f"Stored posts are corrupt ({reason}); backed up under {POSTS_KEY + CORRUPT_SUFFIX}")

    def _save(self) -> None:
        self.kv.set(POSTS_KEY, [record.to_dict() for record in self._articles])

    def append_article(self, record: ArticleRecord) -> None:
        """Add a new article at the front of the collection."""
        self._articles.insert(0, record)
        self._save()

    def list_articles(self) -> List[ArticleRecord]:
        """Articles, newest first."""
        return list(self._articles)

    def get_article(self, article_id: str) -> Optional[ArticleRecord]:
        for record in self._articles:
            if record.id == article_id:
                return record
        return None

    def remove_article(self, article_id: str) -> bool:
        """
        Delete an article.

        Returns:
            True if an article was removed
        """
        remaining = [record for record in self._articles if record.id != article_id]
        if len(remaining) == len(self._articles):
            return False
        self._articles = remaining
        self._save()
        return True

    def replace_all(self, records: List[ArticleRecord]) -> None:
        self._articles = list(records)
        self._save()

    def record_view(self, article_id: str) -> Optional[ArticleRecord]:
        """
        Count a reader opening an article.

        Returns:
            The updated record, or None if there is no such article
        """
        record = self.get_article(article_id)
        if record is None:
            return None
        record.view_count += 1
        self._save()
        return record

    def trending(self, limit: int = 5) -> List[ArticleRecord]:
        """Most viewed articles."""
        return sorted(self._articles, key=lambda r: r.view_count, reverse=True)[:limit]

    def export_file(self, path: Union[str, Path]) -> Path:
        """
        Write the collection to a JSON backup file.

        Returns:
            Path written
        """
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, 'w', encoding='utf-8') as f:
            json.dump([record.to_dict() for record in self._articles], f, indent=2, ensure_ascii=False)
        return path

    def import_file(self, path: Union[str, Path]) -> int:
        """
        Replace the collection with a JSON backup.

        Returns:
            Number of articles imported

        Raises:
            StoreError: If the file is unreadable, empty or not an article list
        """
        try:
            with open(path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise StoreError(f"Cannot read backup {path}: {e}") from e

        if not isinstance(data, list) or not data:
            raise StoreError(f"Backup {path} holds no articles")
        result = validate_articles(data)
        if not result.usable:
            raise StoreError(f"Backup {path} is not a valid article list: {result.error}")
        self.replace_all(result.records)
        return len(result.records)

    def sitemap(self, base_url: str, lastmod: Optional[date] = None) -> str:
        """
        Build sitemap.xml content with one ?post=<id> URL per article.

        Args:
            base_url: Site origin, e.g. https://farsihub.example
            lastmod: Date stamped on every URL; today if omitted

        Returns:
            XML document as a string
        """
        stamp = (lastmod or date.today()).isoformat()
        urlset = ET.Element('urlset', xmlns=SITEMAP_NS)
        for record in self._articles:
            url = ET.SubElement(urlset, 'url')
            ET.SubElement(url, 'loc').text = f"{base_url.rstrip('/')}/?post={record.id}"
            ET.SubElement(url, 'lastmod').text = stamp
            ET.SubElement(url, 'changefreq').text = 'monthly'
            ET.SubElement(url, 'priority').text = '0.8'
        body = ET.tostring(urlset, encoding='unicode')
        return '<?xml version="1.0" encoding="UTF-8"?>\n' + body + '\n'

    def __len__(self) -> int:
        return len(self._articles)


@dataclass
class Stats:
    total_views: int = 1250
    total_revenue: float = 12.5
    posts_generated: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            'totalViews': self.total_views,
            'totalRevenue': round(self.total_revenue, 2),
            'postsGenerated': self.posts_generated,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Stats':
        defaults = cls()
        return cls(
            total_views=int(data.get('totalViews', defaults.total_views)),
            total_revenue=float(data.get('totalRevenue', defaults.total_revenue)),
            posts_generated=int(data.get('postsGenerated', defaults.posts_generated)),
        )


class StatsStore:
    """
    Site-wide counters, persisted after every change.
    """
    def __init__(self, kv: KeyValueStore, revenue_per_view: float = 0.02):
        self.kv = kv
        self.revenue_per_view = revenue_per_view
        try:
            data = kv.get(STATS_KEY)
        except json.JSONDecodeError as e:
            logger.warning(f"Stored stats unreadable, starting fresh: {e}")
            data = None
        self._stats = Stats.from_dict(data) if isinstance(data, dict) else Stats()

    def _save(self) -> None:
        self.kv.set(STATS_KEY, self._stats.to_dict())

    def increment_posts_generated(self) -> int:
        self._stats.posts_generated += 1
        self._save()
        return self._stats.posts_generated

    def record_view(self) -> None:
        self._stats.total_views += 1
        self._stats.total_revenue += self.revenue_per_view
        self._save()

    @property
    def posts_generated(self) -> int:
        return self._stats.posts_generated

    def snapshot(self) -> Stats:
        return Stats(**vars(self._stats))
