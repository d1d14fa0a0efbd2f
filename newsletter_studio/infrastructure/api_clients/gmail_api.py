"""Gmail API client for sending newsletter email."""

import asyncio
import base64
from email.header import Header
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Any, Optional, Protocol

import structlog
from google.auth.exceptions import GoogleAuthError, RefreshError
from google.oauth2.credentials import Credentials
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from newsletter_studio.infrastructure.config import ApplicationConfig
from newsletter_studio.infrastructure.error_handling import (
    AuthenticationError,
    ConfigurationError,
    UpstreamServiceError,
)
from newsletter_studio.models.email import EmailMessage

GMAIL_SEND_SCOPE = "https://www.googleapis.com/auth/gmail.send"
GOOGLE_TOKEN_URI = "https://oauth2.googleapis.com/token"  # nosec B105
GOOGLE_AUTH_URI = "https://accounts.google.com/o/oauth2/auth"

MISSING_CREDENTIALS_MESSAGE = "Gmail API credentials are not fully configured on the server."
AUTH_FAILED_MESSAGE = (
    "Authentication failed. Please check your Gmail API credentials "
    "(CLIENT_ID, CLIENT_SECRET, REFRESH_TOKEN)."
)


class MailSender(Protocol):
    """Anything that can deliver an EmailMessage and return a message id."""

    async def send(self, message: EmailMessage) -> str:
        ...


def build_mime_message(message: EmailMessage) -> bytes:
    """Build the RFC 822 bytes for an HTML email.

    A plain-text alternative is attached when ``message.text`` is set.
    """
    html_part = MIMEText(message.html, "html", "utf-8")
    if message.text:
        mime = MIMEMultipart("alternative")
        mime.attach(MIMEText(message.text, "plain", "utf-8"))
        mime.attach(html_part)
    else:
        mime = html_part

    mime["To"] = message.to
    mime["Subject"] = Header(message.subject, "utf-8").encode()
    for name, value in message.headers.items():
        mime[name] = value
    return mime.as_bytes()


def encode_raw_message(raw: bytes) -> str:
    """Base64url-encode a message without padding, as the Gmail API expects."""
    return base64.urlsafe_b64encode(raw).decode("ascii").rstrip("=")


def decode_raw_message(data: str) -> bytes:
    """Inverse of encode_raw_message."""
    padding = "=" * (-len(data) % 4)
    return base64.urlsafe_b64decode(data + padding)


def is_auth_failure(error: BaseException) -> bool:
    """Whether a Google client error means the credential was rejected."""
    if isinstance(error, (RefreshError, AuthenticationError)):
        return True
    if isinstance(error, HttpError):
        return getattr(error.resp, "status", None) == 401
    return "invalid credentials" in str(error).lower()


class GmailClient:
    """Sends email through the Gmail API using an offline refresh token."""

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        refresh_token: str,
        user_id: str = "me",
        service: Any = None,
    ):
        if not (client_id and client_secret and refresh_token):
            raise ConfigurationError(MISSING_CREDENTIALS_MESSAGE)
        self.client_id = client_id
        self.client_secret = client_secret
        self.refresh_token = refresh_token
        self.user_id = user_id
        self.logger = structlog.get_logger(__name__)
        self._service = service

    @classmethod
    def from_config(cls, config: ApplicationConfig) -> "GmailClient":
        """Create a client from application configuration.

        Raises:
            ConfigurationError: If any Gmail credential is missing
        """
        if not config.gmail_configured:
            raise ConfigurationError(MISSING_CREDENTIALS_MESSAGE)
        return cls(
            client_id=config.gmail_client_id,
            client_secret=config.gmail_client_secret,
            refresh_token=config.gmail_refresh_token,
            user_id=config.gmail_user_id,
        )

    def _credentials(self) -> Credentials:
        return Credentials(
            token=None,
            refresh_token=self.refresh_token,
            client_id=self.client_id,
            client_secret=self.client_secret,
            token_uri=GOOGLE_TOKEN_URI,
            scopes=[GMAIL_SEND_SCOPE],
        )

    def _get_service(self) -> Any:
        if self._service is None:
            self._service = build(
                "gmail", "v1", credentials=self._credentials(), cache_discovery=False
            )
        return self._service

    def _send_blocking(self, raw: str) -> str:
        service = self._get_service()
        response = (
            service.users()
            .messages()
            .send(userId=self.user_id, body={"raw": raw})
            .execute()
        )
        return response.get("id", "")

    async def send(self, message: EmailMessage) -> str:
        """Send one message and return the Gmail message id.

        Raises:
            AuthenticationError: If Google rejects the credential
            UpstreamServiceError: For any other API failure
        """
        raw = encode_raw_message(build_mime_message(message))
        try:
            message_id = await asyncio.to_thread(self._send_blocking, raw)
        except (HttpError, GoogleAuthError) as e:
            if is_auth_failure(e):
                self.logger.error("Gmail rejected credentials", recipient=message.to, error=str(e))
                raise AuthenticationError(AUTH_FAILED_MESSAGE) from e
            self.logger.error("Gmail send failed", recipient=message.to, error=str(e))
            raise UpstreamServiceError(f"Failed to send email to {message.to}: {e}") from e

        self.logger.info("Email sent", recipient=message.to, message_id=message_id)
        return message_id


def run_authorization_flow(
    client_id: str,
    client_secret: str,
    port: int = 0,
    open_browser: bool = True,
) -> Optional[str]:
    """Run the installed-app OAuth flow and return the refresh token."""
    from google_auth_oauthlib.flow import InstalledAppFlow

    client_config = {
        "installed": {
            "client_id": client_id,
            "client_secret": client_secret,
            "auth_uri": GOOGLE_AUTH_URI,
            "token_uri": GOOGLE_TOKEN_URI,
            "redirect_uris": ["http://localhost"],
        }
    }
    flow = InstalledAppFlow.from_client_config(client_config, [GMAIL_SEND_SCOPE])
    creds = flow.run_local_server(
        port=port,
        open_browser=open_browser,
        access_type="offline",
        prompt="consent",
    )
    return creds.refresh_token
