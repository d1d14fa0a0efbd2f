"""Business logic services for Newsletter Studio."""

from .content_extraction import ContentExtractor
from .dispatch import BulkDispatcher
from .newsletter_store import InMemoryNewsletterStore, NewsletterStore, SqlNewsletterStore
from .openai_service import OpenAIService
from .rendering import NewsletterRenderer, render_newsletter
from .structured_response import extract_structured_response
from .studio import NewsletterStudio, create_studio

__all__ = [
    "ContentExtractor",
    "BulkDispatcher",
    "InMemoryNewsletterStore",
    "NewsletterStore",
    "SqlNewsletterStore",
    "OpenAIService",
    "NewsletterRenderer",
    "render_newsletter",
    "extract_structured_response",
    "NewsletterStudio",
    "create_studio",
]
