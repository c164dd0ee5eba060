"""
Article data model for Farsi Hub.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class Category(Enum):
    """
    Topic domains the site publishes in. The value is the Persian label shown
    on the site and sent to the model.
    """
    TECH = 'تکنولوژی'
    CINEMA = 'سینما و هنر'
    GAMES = 'بازی‌های ویدیویی'
    COOKING = 'آشپزی'
    TOURISM = 'گردشگری'
    SCIENCE = 'علمی'

    @property
    def label(self) -> str:
        return self.value

    @classmethod
    def parse(cls, value: Any) -> 'Category':
        """
        Resolve a category from its name ('TECH') or its label.

        Raises:
            ValueError: If the value names no category
        """
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            if value.upper() in cls.__members__:
                return cls[value.upper()]
            return cls(value)
        raise ValueError(f"Unknown category: {value!r}")


@dataclass(frozen=True)
class Author:
    """
    A byline. Records carry a copy, so later edits to the author table do not
    touch published articles.
    """
    id: str
    name: str
    role: str
    avatar_url: str

    def to_dict(self) -> Dict[str, str]:
        return {'id': self.id, 'name': self.name, 'role': self.role, 'avatar': self.avatar_url}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Author':
        return cls(
            id=data['id'],
            name=data['name'],
            role=data.get('role', ''),
            avatar_url=data.get('avatar', data.get('avatar_url', '')),
        )


AUTHORS: Dict[Category, Author] = {
    Category.TECH: Author('a1', 'آرش مهندس', 'سردبیر تکنولوژی', 'https://picsum.photos/seed/arash/100/100'),
    Category.CINEMA: Author('a2', 'سارا سینما', 'منتقد فیلم', 'https://picsum.photos/seed/sara/100/100'),
    Category.GAMES: Author('a3', 'نیما گیمر', 'کارشناس بازی', 'https://picsum.photos/seed/nima/100/100'),
    Category.COOKING: Author('a4', 'مریم بانو', 'سرآشپز', 'https://picsum.photos/seed/maryam/100/100'),
    Category.TOURISM: Author('a5', 'کامران جهانگرد', 'راهنمای سفر', 'https://picsum.photos/seed/kamran/100/100'),
    Category.SCIENCE: Author('a6', 'دکتر دانش', 'پژوهشگر', 'https://picsum.photos/seed/dr/100/100'),
}

DEFAULT_CATEGORY = Category.TECH


def author_for(category: Category, authors: Optional[Dict[Category, Author]] = None) -> Author:
    """
    Look up the default author of a category, falling back to the default
    category's author.
    """
    table = AUTHORS if authors is None else authors
    return table.get(category) or table[DEFAULT_CATEGORY]


@dataclass(frozen=True)
class TrendResult:
    """Topic found by the trend lookup stage."""
    topic: str
    context: str


@dataclass
class DraftResult:
    """Article body produced by the drafting stage."""
    title: str
    excerpt: str
    content_html: str
    tags: List[str]
    read_time_label: str
    image_prompt: str
    citations: List[str] = field(default_factory=list)


@dataclass
class ArticleRecord:
    """
    A published article as stored and rendered by the site.
    """
    id: str
    title: str
    excerpt: str
    content_html: str
    category: Category
    image_url: str
    author: Author
    published_date_label: str
    read_time_label: str
    view_count: int = 0
    tags: List[str] = field(default_factory=list)
    citations: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        """
        Serialize using the site's storage field names.

        Returns:
            JSON-compatible dict
        """
        return {
            'id': self.id,
            'title': self.title,
            'excerpt': self.excerpt,
            'content': self.content_html,
            'category': self.category.label,
            'imageUrl': self.image_url,
            'author': self.author.to_dict(),
            'date': self.published_date_label,
            'readTime': self.read_time_label,
            'views': self.view_count,
            'tags': list(self.tags),
            'citations': list(self.citations),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ArticleRecord':
        """
        Build a record from its stored form.

        Args:
            data: Dict in the shape produced by to_dict

        Returns:
            ArticleRecord
        """
        return cls(
            id=str(data['id']),
            title=data['title'],
            excerpt=data.get('excerpt', ''),
            content_html=data.get('content', ''),
            category=Category.parse(data['category']),
            image_url=data.get('imageUrl', ''),
            author=Author.from_dict(data['author']),
            published_date_label=data.get('date', ''),
            read_time_label=data.get('readTime', ''),
            view_count=int(data.get('views', 0)),
            tags=list(data.get('tags') or []),
            citations=list(data.get('citations') or []),
        )
