"""API clients for external services."""

from .gmail_api import GmailClient, MailSender, build_mime_message, encode_raw_message
from .page_fetcher import PageFetcher, validate_article_url
from .rate_limiter import (
    BackoffPolicy,
    DispatchOutcome,
    DispatchQueue,
    ExponentialBackoff,
    FixedDelayBackoff,
)

__all__ = [
    "GmailClient",
    "MailSender",
    "build_mime_message",
    "encode_raw_message",
    "PageFetcher",
    "validate_article_url",
    "BackoffPolicy",
    "DispatchOutcome",
    "DispatchQueue",
    "ExponentialBackoff",
    "FixedDelayBackoff",
]
