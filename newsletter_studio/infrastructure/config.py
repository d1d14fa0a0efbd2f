"""Configuration management for Newsletter Studio."""

from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36"
)


class ApplicationConfig(BaseSettings):
    """Application configuration with environment variable support."""

    model_config = SettingsConfigDict(
        env_prefix="NEWSLETTER_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Database
    database_url: str = Field(
        default="sqlite:///newsletter_studio.db",
        description="Database connection URL for subscribers and saved newsletters"
    )

    # Gmail API (server-side mail credential)
    gmail_client_id: str = Field(
        default="",
        description="OAuth client ID for the sending Gmail account"
    )
    gmail_client_secret: str = Field(
        default="",
        description="OAuth client secret for the sending Gmail account"
    )
    gmail_refresh_token: str = Field(
        default="",
        description="Offline refresh token for the sending Gmail account"
    )
    gmail_user_id: str = Field(
        default="me",
        description="Gmail user id used for users.messages.send"
    )

    # OpenAI Configuration
    openai_model: str = Field(
        default="gpt-4o-mini",
        description="OpenAI model used for summaries and style generation"
    )
    openai_max_tokens: int = Field(
        default=1000,
        description="Maximum tokens for OpenAI API calls"
    )
    openai_temperature: float = Field(
        default=0.3,
        description="Temperature setting for OpenAI API calls"
    )
    ai_timeout: float = Field(
        default=60.0,
        description="Timeout in seconds for AI provider calls"
    )
    summary_input_char_limit: int = Field(
        default=15000,
        description="Maximum characters of article text sent for summarization"
    )

    # Content extraction
    request_timeout: float = Field(
        default=20.0,
        description="HTTP request timeout in seconds for page fetches"
    )
    user_agent: str = Field(
        default=DEFAULT_USER_AGENT,
        description="User-Agent header sent when fetching article pages"
    )
    min_content_length: int = Field(
        default=150,
        description="Minimum cleaned text length accepted for summarization"
    )
    container_min_length: int = Field(
        default=200,
        description="Minimum text length for a content container to be used"
    )
    paragraph_min_length: int = Field(
        default=40,
        description="Minimum paragraph length kept by the paragraph fallback"
    )
    min_image_dimension: int = Field(
        default=200,
        description="Inline images must declare a width or height above this"
    )

    # Bulk sending
    bulk_success_delay: float = Field(
        default=0.2,
        description="Delay in seconds after a successful send"
    )
    bulk_failure_delay: float = Field(
        default=1.0,
        description="Delay in seconds after a failed send"
    )
    bulk_concurrency: int = Field(
        default=1,
        ge=1,
        description="Number of sends in flight at once (1 keeps strict ordering)"
    )

    # Rendering
    sanitize_html_content: bool = Field(
        default=True,
        description="Strip scripts and event handlers from HTML article content"
    )
    inline_email_css: bool = Field(
        default=True,
        description="Inline CSS into the email variant of the newsletter"
    )
    company_name: str = Field(
        default="Your Company",
        description="Name shown in the newsletter footer"
    )
    company_url: str = Field(
        default="#",
        description="Link target for the footer company name"
    )

    # Web server
    host: str = Field(default="127.0.0.1", description="Bind address for the web API")
    port: int = Field(default=8080, description="Port for the web API")

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level"
    )
    log_format: str = Field(
        default="structured",
        description="Log format: structured or text"
    )
    log_to_file: bool = Field(
        default=False,
        description="Also write logs to logs/newsletter_studio.log"
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v):
        """Validate log level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"log_level must be one of {valid_levels}")
        return v.upper()

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v):
        """Validate log format."""
        if v not in ("structured", "text"):
            raise ValueError("log_format must be 'structured' or 'text'")
        return v

    @property
    def gmail_configured(self) -> bool:
        """Whether every credential needed to send through Gmail is present."""
        return bool(
            self.gmail_client_id
            and self.gmail_client_secret
            and self.gmail_refresh_token
        )

    @property
    def async_database_url(self) -> str:
        """Database URL with an async driver for SQLite."""
        if self.database_url.startswith("sqlite:///"):
            return self.database_url.replace("sqlite:///", "sqlite+aiosqlite:///")
        return self.database_url


def get_project_root() -> Path:
    """Get the project root directory."""
    return Path(__file__).parent.parent.parent


def get_templates_dir() -> Path:
    """Get the templates directory shipped inside the package."""
    return Path(__file__).parent.parent / "templates"


def get_logs_dir() -> Path:
    """Get the logs directory."""
    logs_dir = get_project_root() / "logs"
    logs_dir.mkdir(exist_ok=True)
    return logs_dir
