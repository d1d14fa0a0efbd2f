"""Newsletter delivery: single sends and the bulk dispatcher."""

from typing import Awaitable, Callable, List, Optional, Protocol

from newsletter_studio.infrastructure.api_clients import (
    BackoffPolicy,
    DispatchOutcome,
    DispatchQueue,
    FixedDelayBackoff,
    GmailClient,
    MailSender,
)
from newsletter_studio.infrastructure.api_clients.gmail_api import (
    AUTH_FAILED_MESSAGE,
    MISSING_CREDENTIALS_MESSAGE,
    is_auth_failure,
)
from newsletter_studio.infrastructure.config import ApplicationConfig
from newsletter_studio.infrastructure.error_handling import (
    AuthenticationError,
    ConfigurationError,
    NewsletterError,
    UpstreamServiceError,
)
from newsletter_studio.infrastructure.logging import LoggerMixin
from newsletter_studio.models.email import (
    BulkSendResult,
    DeliveryResult,
    EmailMessage,
    no_recipients_result,
)
from newsletter_studio.models.newsletter import NewsletterDraft, StyleTokens
from newsletter_studio.services.rendering import NewsletterRenderer


class SubscriberSource(Protocol):
    """Read access to the active subscriber list."""

    async def list_active_subscribers(self) -> List[str]:
        ...


class BulkDispatcher(LoggerMixin):
    """Sends newsletters through the server's mail credential.

    Bulk sends are best effort and at most once: every active subscriber gets
    one attempt, failures are recorded and never retried in the same run.
    """

    def __init__(
        self,
        subscribers: SubscriberSource,
        mail_sender: Optional[MailSender] = None,
        renderer: Optional[NewsletterRenderer] = None,
        config: Optional[ApplicationConfig] = None,
        backoff: Optional[BackoffPolicy] = None,
        sleep: Optional[Callable[[float], Awaitable[None]]] = None,
    ):
        self.config = config or ApplicationConfig()
        self.subscribers = subscribers
        self._mail_sender = mail_sender
        self.renderer = renderer or NewsletterRenderer(config=self.config)
        self.backoff = backoff or FixedDelayBackoff(
            success_delay=self.config.bulk_success_delay,
            failure_delay=self.config.bulk_failure_delay,
        )
        self._sleep = sleep

    @property
    def mail_sender(self) -> MailSender:
        """The configured sender; built from Gmail settings on first use.

        Raises:
            ConfigurationError: If no sender was injected and Gmail is not configured
        """
        if self._mail_sender is None:
            if not self.config.gmail_configured:
                raise ConfigurationError(MISSING_CREDENTIALS_MESSAGE)
            self._mail_sender = GmailClient.from_config(self.config)
        return self._mail_sender

    async def send_single(self, message: EmailMessage) -> DeliveryResult:
        """Send one email.

        Raises:
            ConfigurationError, AuthenticationError, UpstreamServiceError
        """
        sender = self.mail_sender
        self.logger.info(
            "Sending email",
            recipient=message.to,
            subject=message.subject,
            size_kb=round(message.estimated_size_kb, 1),
        )
        try:
            message_id = await sender.send(message)
        except NewsletterError:
            raise
        except Exception as e:
            if is_auth_failure(e):
                raise AuthenticationError(AUTH_FAILED_MESSAGE) from e
            self.logger.error("Email sending failed", recipient=message.to, error=str(e), exc_info=True)
            raise UpstreamServiceError(f"Failed to send email to {message.to}: {e}") from e

        return DeliveryResult(
            success=True,
            recipient=message.to,
            message_id=message_id or None,
        )

    async def _active_subscribers(self) -> List[str]:
        try:
            return await self.subscribers.list_active_subscribers()
        except NewsletterError:
            raise
        except Exception as e:
            self.logger.error("Error fetching subscribers", error=str(e), exc_info=True)
            raise UpstreamServiceError("Failed to fetch subscribers.") from e

    async def send_bulk(
        self,
        draft: NewsletterDraft,
        styles: Optional[StyleTokens] = None,
    ) -> BulkSendResult:
        """Send the newsletter to every active subscriber.

        Raises:
            ValidationError: If the draft is not sendable
            ConfigurationError: If mail credentials are absent
            AuthenticationError: If every attempt was rejected for bad credentials
        """
        draft.ensure_sendable()
        sender = self.mail_sender

        recipients = await self._active_subscribers()
        if not recipients:
            self.logger.info("No active subscribers, nothing to send")
            return no_recipients_result()

        # one render shared by every recipient
        html = self.renderer.render_email(draft, styles)
        text = self.renderer.render_text(draft)

        queue = DispatchQueue(
            backoff=self.backoff,
            concurrency=self.config.bulk_concurrency,
            sleep=self._sleep,
        )
        for email in recipients:
            queue.add_task(
                email,
                sender.send,
                EmailMessage(to=email, subject=draft.subject, html=html, text=text),
            )

        self.logger.info(
            "Starting bulk send",
            recipients=len(recipients),
            concurrency=queue.concurrency,
            subject=draft.subject,
        )
        outcomes = await queue.process_all()
        result = self._summarize(outcomes)

        if result.failed_count and not result.sent_count and all(
            outcome.error is not None and is_auth_failure(outcome.error) for outcome in outcomes
        ):
            raise AuthenticationError(AUTH_FAILED_MESSAGE)

        if result.failed_count:
            self.logger.warning(
                "Bulk send completed with failures",
                sent=result.sent_count,
                failed=result.failed_count,
                failed_emails=result.failed_emails,
            )
        else:
            self.logger.info("Bulk send completed", sent=result.sent_count)
        return result

    @staticmethod
    def _summarize(outcomes: List[DispatchOutcome]) -> BulkSendResult:
        result = BulkSendResult()
        for outcome in outcomes:
            if outcome.success:
                result.sent_count += 1
            else:
                result.failed_count += 1
                result.failed_emails.append(outcome.key)
        result.message = (
            "Newsletter sending process completed. "
            f"Sent to {result.sent_count} subscribers. {result.failed_count} failed."
        )
        return result
