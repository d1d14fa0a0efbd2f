"""Content models for extracted and summarized articles."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from newsletter_studio.models.newsletter import Article, ContentType


UNTITLED = "Untitled"


@dataclass
class ExtractedPage:
    """Cleaned content pulled from an article page."""

    url: str
    title: str = UNTITLED
    text: str = ""
    image_url: Optional[str] = None
    extraction_method: str = "container"
    fetched_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def word_count(self) -> int:
        return len(self.text.split())


@dataclass
class ArticleSummary:
    """AI summary of an article, ready to drop into a draft."""

    title: str
    summary: str
    image_url: Optional[str] = None
    source_url: Optional[str] = None

    def to_article(self) -> Article:
        """Convert into a markdown Article for the draft."""
        return Article(
            title=self.title,
            content=self.summary,
            content_type=ContentType.MARKDOWN,
            url=self.source_url,
            image_url=self.image_url,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "title": self.title,
            "summary": self.summary,
            "imageUrl": self.image_url,
        }
