"""Application facade implementing the user-facing newsletter operations."""

from typing import Any, Callable, List, Optional

from pydantic import ValidationError as PydanticValidationError

from newsletter_studio.infrastructure.api_clients import validate_article_url
from newsletter_studio.infrastructure.config import ApplicationConfig
from newsletter_studio.infrastructure.database import Database, init_database
from newsletter_studio.infrastructure.error_handling import (
    ValidationError,
    handle_service_errors,
)
from newsletter_studio.infrastructure.logging import LoggerMixin
from newsletter_studio.models.content import ArticleSummary
from newsletter_studio.models.email import (
    BulkSendResult,
    DeliveryResult,
    EmailMessage,
    SingleSendRequest,
    SubscribeRequest,
)
from newsletter_studio.models.newsletter import NewsletterDraft, SavedNewsletter, StyleTokens
from newsletter_studio.models.subscriber import SubscribeOutcome
from newsletter_studio.services.content_extraction import ContentExtractor
from newsletter_studio.services.dispatch import BulkDispatcher
from newsletter_studio.services.newsletter_store import (
    InMemoryNewsletterStore,
    NewsletterStore,
    SqlNewsletterStore,
)
from newsletter_studio.services.openai_service import OpenAIService
from newsletter_studio.services.rendering import NewsletterRenderer

AIServiceFactory = Callable[[str], OpenAIService]


def _require_api_key(api_key: Optional[str]) -> str:
    if not api_key or not isinstance(api_key, str) or not api_key.strip():
        raise ValidationError("API Key is required for AI services.")
    return api_key.strip()


class NewsletterStudio(LoggerMixin):
    """Wires extraction, AI, rendering, persistence and delivery together.

    Every public operation either returns its result or raises a
    NewsletterError subclass.
    """

    def __init__(
        self,
        database: Database,
        store: NewsletterStore,
        config: Optional[ApplicationConfig] = None,
        extractor: Optional[ContentExtractor] = None,
        renderer: Optional[NewsletterRenderer] = None,
        dispatcher: Optional[BulkDispatcher] = None,
        ai_service_factory: Optional[AIServiceFactory] = None,
    ):
        self.config = config or ApplicationConfig()
        self.database = database
        self.store = store
        self.extractor = extractor or ContentExtractor(config=self.config)
        self.renderer = renderer or NewsletterRenderer(config=self.config)
        self.dispatcher = dispatcher or BulkDispatcher(
            subscribers=database,
            renderer=self.renderer,
            config=self.config,
        )
        self.ai_service_factory = ai_service_factory or (
            lambda api_key: OpenAIService(api_key, config=self.config)
        )

    # Subscribers
    @handle_service_errors("Subscriber store", log_level="warning")
    async def subscribe(self, email: Any) -> SubscribeOutcome:
        """Add an email to the subscriber list."""
        try:
            request = SubscribeRequest(email=email)
        except PydanticValidationError as e:
            raise ValidationError("Valid email is required.") from e
        outcome = await self.database.add_subscriber(request.email)
        self.logger.info("Subscribe request handled", outcome=outcome.value)
        return outcome

    @handle_service_errors("Subscriber store", log_level="warning")
    async def unsubscribe(self, email: str) -> bool:
        if not email or "@" not in email:
            raise ValidationError("Valid email is required.")
        return await self.database.deactivate_subscriber(email)

    # AI
    async def summarize(self, url: Any, api_key: Any) -> ArticleSummary:
        """Extract an article and summarize it with the caller's API key."""
        url = validate_article_url(url)
        api_key = _require_api_key(api_key)

        page = await self.extractor.extract(url)
        self.logger.info("Summarizing article", url=url, words=page.word_count)
        service = self.ai_service_factory(api_key)
        result = await service.summarize_article(page.text, fallback_title=page.title)

        return ArticleSummary(
            title=result["title"] or page.title,
            summary=result["summary"],
            image_url=page.image_url,
            source_url=url,
        )

    async def redesign(self, design_prompt: Any, api_key: Any) -> StyleTokens:
        """Generate style tokens from a free-text design request."""
        api_key = _require_api_key(api_key)
        if not design_prompt or not isinstance(design_prompt, str) or not design_prompt.strip():
            raise ValidationError("Design prompt is required.")
        service = self.ai_service_factory(api_key)
        return await service.generate_style_tokens(design_prompt)

    # Rendering and delivery
    def render(self, draft: NewsletterDraft, styles: Optional[StyleTokens] = None) -> str:
        return self.renderer.render(draft, styles)

    async def send_single(self, to: Any, subject: Any, html: Any) -> DeliveryResult:
        """Send one already-rendered email."""
        try:
            request = SingleSendRequest(to=to, subject=subject, htmlContent=html)
        except PydanticValidationError as e:
            raise ValidationError("Recipient, subject, and HTML content are required.") from e
        return await self.dispatcher.send_single(
            EmailMessage(to=request.to, subject=request.subject, html=request.html)
        )

    async def send_bulk(
        self, draft: NewsletterDraft, styles: Optional[StyleTokens] = None
    ) -> BulkSendResult:
        return await self.dispatcher.send_bulk(draft, styles)

    # Saved newsletters
    async def list_newsletters(self) -> List[SavedNewsletter]:
        return await self.store.list()

    async def get_newsletter(self, newsletter_id: str) -> Optional[SavedNewsletter]:
        return await self.store.get(newsletter_id)

    async def save_newsletter(
        self, draft: NewsletterDraft, newsletter_id: Optional[str] = None
    ) -> SavedNewsletter:
        return await self.store.save(draft, newsletter_id)

    async def delete_newsletter(self, newsletter_id: str) -> bool:
        return await self.store.delete(newsletter_id)

    async def close(self) -> None:
        await self.database.close()


async def create_studio(
    config: Optional[ApplicationConfig] = None,
    in_memory_store: bool = False,
) -> NewsletterStudio:
    """Build a studio backed by the configured database."""
    config = config or ApplicationConfig()
    database = await init_database(config)
    store: NewsletterStore = InMemoryNewsletterStore() if in_memory_store else SqlNewsletterStore(database)
    return NewsletterStudio(database=database, store=store, config=config)
