"""
Shared fixtures: configuration, fake providers and sample drafts.
External services are never contacted; every client is injected.
"""

from __future__ import annotations

from types import SimpleNamespace
from typing import Any, Dict, Iterable, List, Optional

import pytest

from newsletter_studio.infrastructure.api_clients import FixedDelayBackoff
from newsletter_studio.infrastructure.config import ApplicationConfig
from newsletter_studio.infrastructure.database import init_database
from newsletter_studio.infrastructure.error_handling import UpstreamServiceError
from newsletter_studio.models.email import EmailMessage
from newsletter_studio.models.newsletter import Article, ContentType, NewsletterDraft
from newsletter_studio.services.content_extraction import ContentExtractor
from newsletter_studio.services.dispatch import BulkDispatcher
from newsletter_studio.services.newsletter_store import SqlNewsletterStore
from newsletter_studio.services.openai_service import OpenAIService
from newsletter_studio.services.studio import NewsletterStudio


class RecordingSleeper:
    """Stands in for asyncio.sleep and remembers every requested pause."""

    def __init__(self) -> None:
        self.delays: List[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


class FakeMailSender:
    """Mail sender that records messages and fails for chosen recipients."""

    def __init__(self, fail_for: Iterable[str] = (), error: Optional[Exception] = None) -> None:
        self.fail_for = set(fail_for)
        self.error = error
        self.sent: List[EmailMessage] = []
        self.attempts: List[str] = []

    async def send(self, message: EmailMessage) -> str:
        self.attempts.append(message.to)
        if message.to in self.fail_for:
            raise self.error or UpstreamServiceError(f"Mailbox unavailable: {message.to}")
        self.sent.append(message)
        return f"msg-{len(self.sent)}"


class FakeSubscriberSource:
    def __init__(self, emails: Iterable[str] = ()) -> None:
        self.emails = list(emails)
        self.calls = 0

    async def list_active_subscribers(self) -> List[str]:
        self.calls += 1
        return list(self.emails)


class FakeCompletions:
    """Mimics ``client.chat.completions`` of the OpenAI SDK."""

    def __init__(self, responses: Iterable[Any]) -> None:
        self.responses = list(responses)
        self.calls: List[Dict[str, Any]] = []

    async def create(self, **kwargs: Any) -> Any:
        self.calls.append(kwargs)
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return SimpleNamespace(
            choices=[SimpleNamespace(message=SimpleNamespace(content=response))],
            usage=SimpleNamespace(total_tokens=42),
        )


class FakeOpenAIClient:
    def __init__(self, *responses: Any) -> None:
        self.chat = SimpleNamespace(completions=FakeCompletions(responses))

    @property
    def calls(self) -> List[Dict[str, Any]]:
        return self.chat.completions.calls


@pytest.fixture
def config() -> ApplicationConfig:
    return ApplicationConfig(
        _env_file=None,
        database_url="sqlite:///:memory:",
        gmail_client_id="client-id",
        gmail_client_secret="client-secret",
        gmail_refresh_token="refresh-token",
        company_name="Acme Weekly",
        company_url="https://acme.example",
        bulk_success_delay=0.2,
        bulk_failure_delay=1.0,
    )


@pytest.fixture
def unconfigured_config() -> ApplicationConfig:
    return ApplicationConfig(
        _env_file=None,
        database_url="sqlite:///:memory:",
        gmail_client_id="",
        gmail_client_secret="",
        gmail_refresh_token="",
    )


@pytest.fixture
def sleeper() -> RecordingSleeper:
    return RecordingSleeper()


@pytest.fixture
def draft() -> NewsletterDraft:
    return NewsletterDraft(
        title="Acme Digest",
        subject="This week at Acme",
        articles=[
            Article(
                title="Rockets, revisited",
                content="Acme ships a **new** rocket.\n\n- faster\n- cheaper",
                url="https://news.example/rockets",
                image_url="https://news.example/rocket.jpg",
            ),
            Article(
                title="Anvils in the wild",
                content="<p>Field report on <em>anvils</em>.</p>",
                content_type=ContentType.HTML,
            ),
        ],
    )


@pytest.fixture
def draft_payload(draft: NewsletterDraft) -> Dict[str, Any]:
    return draft.to_dict()


class FakeFetcher:
    """Page fetcher returning canned HTML or raising a canned error."""

    def __init__(self, html: str = "", error: Optional[Exception] = None) -> None:
        self.html = html
        self.error = error
        self.urls: List[str] = []

    async def fetch(self, url: str) -> str:
        self.urls.append(url)
        if self.error is not None:
            raise self.error
        return self.html


ARTICLE_HTML = """
<html>
  <head>
    <title>Acme launches a rocket</title>
    <meta property="og:image" content="/img/rocket.png">
  </head>
  <body>
    <nav>Home | News</nav>
    <article>
      <p>Acme Corporation announced on Tuesday that its newest rocket completed a
      full orbital test flight. Engineers said the vehicle is lighter, cheaper and
      considerably quieter than the previous generation, and launches are planned
      every month for the rest of the year.</p>
    </article>
  </body>
</html>
"""


@pytest.fixture
def mail_sender() -> FakeMailSender:
    return FakeMailSender()


@pytest.fixture
def ai_client() -> FakeOpenAIClient:
    return FakeOpenAIClient()


@pytest.fixture
async def studio(config, mail_sender, ai_client):
    """Studio over an in-memory SQLite database with every provider faked."""
    database = await init_database(config)
    studio = NewsletterStudio(
        database=database,
        store=SqlNewsletterStore(database),
        config=config,
        extractor=ContentExtractor(fetcher=FakeFetcher(ARTICLE_HTML), config=config),
        dispatcher=BulkDispatcher(
            subscribers=database,
            mail_sender=mail_sender,
            config=config,
            backoff=FixedDelayBackoff(0, 0),
        ),
        ai_service_factory=lambda api_key: OpenAIService(api_key, config=config, client=ai_client),
    )
    yield studio
    await studio.close()
