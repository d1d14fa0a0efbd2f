"""Newsletter Studio

Compose newsletters from web articles, summarize them with an AI provider,
restyle them from a design prompt, and deliver them to subscribers.
"""

__version__ = "0.1.0"

from newsletter_studio.models.newsletter import Article, NewsletterDraft, StyleTokens
from newsletter_studio.models.content import ArticleSummary

__all__ = [
    "Article",
    "NewsletterDraft",
    "StyleTokens",
    "ArticleSummary",
]
