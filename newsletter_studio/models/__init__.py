"""Data models for Newsletter Studio."""

from .newsletter import (
    Article,
    ContentType,
    NewsletterDraft,
    SavedNewsletter,
    StyleSlot,
    StyleTokens,
    parse_draft,
)
from .content import ArticleSummary, ExtractedPage
from .email import BulkSendResult, DeliveryResult, EmailMessage
from .subscriber import SubscribeOutcome, Subscriber

__all__ = [
    "Article",
    "ContentType",
    "NewsletterDraft",
    "SavedNewsletter",
    "StyleSlot",
    "StyleTokens",
    "parse_draft",
    "ArticleSummary",
    "ExtractedPage",
    "BulkSendResult",
    "DeliveryResult",
    "EmailMessage",
    "SubscribeOutcome",
    "Subscriber",
]
