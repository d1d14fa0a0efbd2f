"""Newsletter draft models for Newsletter Studio."""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel

from newsletter_studio.infrastructure.error_handling import ValidationError


DEFAULT_NEWSLETTER_TITLE = "Weekly Digest"
DEFAULT_NEWSLETTER_SUBJECT = "Your weekly news update!"


class ContentType(str, Enum):
    """How an article's body content is written."""

    MARKDOWN = "markdown"
    HTML = "html"
    TEXT = "text"


class StyleSlot(str, Enum):
    """Structural elements that accept a style-token override.

    Values are the wire names used by the AI provider and the web API.
    """

    CARD = "card"
    HEADER = "header"
    MAIN_TITLE = "mainTitle"
    ARTICLE_CONTAINER = "articleContainer"
    ARTICLE_TITLE = "articleTitle"
    FOOTER = "footer"


@dataclass
class Article:
    """A single article inside a newsletter draft."""

    title: str = ""
    content: str = ""
    content_type: ContentType = ContentType.MARKDOWN
    url: Optional[str] = None
    image_url: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "url": self.url,
            "title": self.title,
            "content": self.content,
            "contentType": self.content_type.value,
            "imageUrl": self.image_url,
        }


@dataclass
class NewsletterDraft:
    """An in-progress newsletter: title, subject line and ordered articles."""

    title: str = DEFAULT_NEWSLETTER_TITLE
    subject: str = DEFAULT_NEWSLETTER_SUBJECT
    articles: List[Article] = field(default_factory=list)

    @property
    def article_count(self) -> int:
        return len(self.articles)

    def ensure_sendable(self) -> None:
        """Raise ValidationError unless the draft can be rendered or sent."""
        if not self.title.strip():
            raise ValidationError("Newsletter title is required.")
        if not self.subject.strip():
            raise ValidationError("Newsletter subject is required.")
        if not self.articles:
            raise ValidationError("A newsletter needs at least one article.")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "newsletterTitle": self.title,
            "newsletterSubject": self.subject,
            "articles": [article.to_dict() for article in self.articles],
        }


@dataclass
class StyleTokens:
    """Style-class overrides for the six structural slots.

    A slot left as None means "use the default styling".
    """

    card: Optional[str] = None
    header: Optional[str] = None
    main_title: Optional[str] = None
    article_container: Optional[str] = None
    article_title: Optional[str] = None
    footer: Optional[str] = None

    _SLOT_FIELDS = {
        StyleSlot.CARD: "card",
        StyleSlot.HEADER: "header",
        StyleSlot.MAIN_TITLE: "main_title",
        StyleSlot.ARTICLE_CONTAINER: "article_container",
        StyleSlot.ARTICLE_TITLE: "article_title",
        StyleSlot.FOOTER: "footer",
    }

    @classmethod
    def from_mapping(cls, data: Optional[Mapping[str, Any]]) -> "StyleTokens":
        """Build tokens from a wire mapping, ignoring unknown keys and non-strings.

        Raises:
            ValidationError: If data is present but not an object
        """
        tokens = cls()
        if data is None:
            return tokens
        if not isinstance(data, Mapping):
            raise ValidationError("aiStyles must be an object.")
        for slot, attr in cls._SLOT_FIELDS.items():
            for key in (slot.value, attr):
                value = data.get(key)
                if isinstance(value, str):
                    setattr(tokens, attr, value.strip())
                    break
        return tokens

    def get(self, slot: StyleSlot) -> str:
        """Class string for a slot, empty when no override is set."""
        return getattr(self, self._SLOT_FIELDS[slot]) or ""

    def to_dict(self) -> Dict[str, str]:
        """Wire mapping containing only the slots that carry an override."""
        return {
            slot.value: getattr(self, attr)
            for slot, attr in self._SLOT_FIELDS.items()
            if getattr(self, attr) is not None
        }

    @property
    def is_empty(self) -> bool:
        return not self.to_dict()


@dataclass
class SavedNewsletter:
    """A persisted newsletter draft with identity and timestamps."""

    draft: NewsletterDraft
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def title(self) -> str:
        return self.draft.title

    def to_dict(self) -> Dict[str, Any]:
        data = self.draft.to_dict()
        data.update({
            "id": self.id,
            "createdAt": self.created_at.isoformat(),
            "updatedAt": self.updated_at.isoformat(),
        })
        return data


# Pydantic models for API serialization
class ArticleModel(BaseModel):
    """Pydantic model for Article (camelCase on the wire)."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    url: Optional[str] = None
    title: str = ""
    content: str = ""
    content_type: ContentType = ContentType.MARKDOWN
    image_url: Optional[str] = None

    def to_article(self) -> Article:
        return Article(
            title=self.title,
            content=self.content,
            content_type=self.content_type,
            url=self.url or None,
            image_url=self.image_url or None,
        )


class NewsletterDraftModel(BaseModel):
    """Pydantic model for NewsletterDraft as sent by the editor."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    title: str = Field(..., alias="newsletterTitle", min_length=1, max_length=200)
    subject: str = Field(..., alias="newsletterSubject", min_length=1, max_length=998)
    articles: List[ArticleModel] = Field(default_factory=list)

    def to_draft(self) -> NewsletterDraft:
        return NewsletterDraft(
            title=self.title,
            subject=self.subject,
            articles=[article.to_article() for article in self.articles],
        )


def parse_draft(payload: Any) -> NewsletterDraft:
    """Validate an editor payload into a NewsletterDraft.

    Raises:
        ValidationError: if the payload is missing or malformed
    """
    if not isinstance(payload, Mapping):
        raise ValidationError("Newsletter data is incomplete.")
    try:
        return NewsletterDraftModel.model_validate(payload).to_draft()
    except PydanticValidationError as e:
        fields = sorted({".".join(str(part) for part in err["loc"]) for err in e.errors()})
        raise ValidationError(
            "Newsletter data is incomplete.",
            details={"fields": fields},
        ) from e

