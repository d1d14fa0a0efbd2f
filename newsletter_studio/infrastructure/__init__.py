"""Infrastructure layer for external integrations and data persistence."""

from .config import ApplicationConfig
from .logging import setup_logging
from .error_handling import NewsletterError, handle_service_errors

__all__ = [
    "ApplicationConfig",
    "setup_logging",
    "NewsletterError",
    "handle_service_errors",
]
