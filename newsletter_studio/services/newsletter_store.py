"""Saved-newsletter persistence: the store interface and its implementations."""

import copy
import uuid
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Dict, List, Optional

from newsletter_studio.infrastructure.database import Database, NewsletterRecord, as_utc
from newsletter_studio.infrastructure.error_handling import (
    NewsletterNotFoundError,
    handle_service_errors,
)
from newsletter_studio.infrastructure.logging import LoggerMixin
from newsletter_studio.models.newsletter import (
    ArticleModel,
    NewsletterDraft,
    SavedNewsletter,
)


def _now() -> datetime:
    return datetime.now(timezone.utc)


class NewsletterStore(ABC):
    """Keyed storage of saved newsletters.

    ``save(draft)`` creates a record with a fresh id. ``save(draft, id)``
    updates an existing record and raises NewsletterNotFoundError when the id
    is unknown; it never falls back to creating a record.
    """

    @abstractmethod
    async def list(self) -> List[SavedNewsletter]:
        """All saved newsletters, most recently created first."""

    @abstractmethod
    async def get(self, newsletter_id: str) -> Optional[SavedNewsletter]:
        """The saved newsletter with this id, or None."""

    @abstractmethod
    async def save(
        self, draft: NewsletterDraft, newsletter_id: Optional[str] = None
    ) -> SavedNewsletter:
        """Create or update a saved newsletter."""

    @abstractmethod
    async def delete(self, newsletter_id: str) -> bool:
        """Remove a saved newsletter; False when nothing was removed."""


class InMemoryNewsletterStore(NewsletterStore, LoggerMixin):
    """Dictionary-backed store for tests and throwaway sessions."""

    def __init__(self):
        self._records: Dict[str, SavedNewsletter] = {}

    async def list(self) -> List[SavedNewsletter]:
        records = sorted(
            self._records.values(), key=lambda record: record.created_at, reverse=True
        )
        return [copy.deepcopy(record) for record in records]

    async def get(self, newsletter_id: str) -> Optional[SavedNewsletter]:
        record = self._records.get(newsletter_id)
        return copy.deepcopy(record) if record is not None else None

    async def save(
        self, draft: NewsletterDraft, newsletter_id: Optional[str] = None
    ) -> SavedNewsletter:
        if newsletter_id is None:
            now = _now()
            record = SavedNewsletter(
                draft=copy.deepcopy(draft),
                id=uuid.uuid4().hex,
                created_at=now,
                updated_at=now,
            )
            self._records[record.id] = record
            self.logger.info("Newsletter created", newsletter_id=record.id)
            return copy.deepcopy(record)

        record = self._records.get(newsletter_id)
        if record is None:
            raise NewsletterNotFoundError(f"Newsletter {newsletter_id} not found.")
        record.draft = copy.deepcopy(draft)
        record.updated_at = max(_now(), record.created_at)
        self.logger.info("Newsletter updated", newsletter_id=newsletter_id)
        return copy.deepcopy(record)

    async def delete(self, newsletter_id: str) -> bool:
        removed = self._records.pop(newsletter_id, None) is not None
        if removed:
            self.logger.info("Newsletter deleted", newsletter_id=newsletter_id)
        return removed


def record_to_saved(record: NewsletterRecord) -> SavedNewsletter:
    """Convert a database row into a SavedNewsletter."""
    draft = NewsletterDraft(
        title=record.title,
        subject=record.subject,
        articles=[
            ArticleModel.model_validate(article).to_article()
            for article in (record.articles or [])
        ],
    )
    return SavedNewsletter(
        draft=draft,
        id=record.id,
        created_at=as_utc(record.created_at),
        updated_at=as_utc(record.updated_at),
    )


class SqlNewsletterStore(NewsletterStore, LoggerMixin):
    """Store backed by the application database."""

    def __init__(self, database: Database):
        self.database = database

    @handle_service_errors("Newsletter store")
    async def list(self) -> List[SavedNewsletter]:
        records = await self.database.list_newsletter_records()
        return [record_to_saved(record) for record in records]

    @handle_service_errors("Newsletter store")
    async def get(self, newsletter_id: str) -> Optional[SavedNewsletter]:
        record = await self.database.get_newsletter_record(newsletter_id)
        return record_to_saved(record) if record is not None else None

    @handle_service_errors("Newsletter store", log_level="warning")
    async def save(
        self, draft: NewsletterDraft, newsletter_id: Optional[str] = None
    ) -> SavedNewsletter:
        values = {
            "title": draft.title,
            "subject": draft.subject,
            "articles": [article.to_dict() for article in draft.articles],
        }

        if newsletter_id is None:
            now = _now()
            values.update(id=uuid.uuid4().hex, created_at=now, updated_at=now)
            record = await self.database.insert_newsletter_record(values)
            self.logger.info("Newsletter created", newsletter_id=record.id)
            return record_to_saved(record)

        values["updated_at"] = _now()
        record = await self.database.update_newsletter_record(newsletter_id, values)
        if record is None:
            raise NewsletterNotFoundError(f"Newsletter {newsletter_id} not found.")
        self.logger.info("Newsletter updated", newsletter_id=newsletter_id)
        return record_to_saved(record)

    @handle_service_errors("Newsletter store")
    async def delete(self, newsletter_id: str) -> bool:
        removed = await self.database.delete_newsletter_record(newsletter_id)
        if removed:
            self.logger.info("Newsletter deleted", newsletter_id=newsletter_id)
        return removed
