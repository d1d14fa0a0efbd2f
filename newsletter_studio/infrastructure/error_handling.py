"""Error taxonomy and unified error handling utilities for Newsletter Studio."""

import functools
from typing import Any, Callable, Dict, Optional, Type, TypeVar, cast

from newsletter_studio.infrastructure.logging import get_logger

F = TypeVar('F', bound=Callable[..., Any])
logger = get_logger(__name__)


class NewsletterError(Exception):
    """Base exception for every failure reported to callers."""

    status_code: int = 500
    default_code: str = "NEWSLETTER_ERROR"

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code or self.default_code
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """Serialize for API responses."""
        payload: Dict[str, Any] = {"error": self.message, "code": self.error_code}
        if self.details:
            payload["details"] = self.details
        return payload


class ValidationError(NewsletterError):
    """A required request field is missing or malformed."""

    status_code = 400
    default_code = "VALIDATION_ERROR"


class AuthenticationError(NewsletterError):
    """The AI or mail provider rejected the credential."""

    status_code = 401
    default_code = "AUTHENTICATION_FAILED"


class NewsletterNotFoundError(NewsletterError):
    """No saved newsletter exists with the requested identifier."""

    status_code = 404
    default_code = "NEWSLETTER_NOT_FOUND"


class InsufficientContentError(NewsletterError):
    """Extracted article text is too short to summarize."""

    status_code = 422
    default_code = "INSUFFICIENT_CONTENT"


class ConfigurationError(NewsletterError):
    """Server-side credentials or settings are missing."""

    status_code = 500
    default_code = "CONFIGURATION_ERROR"


class UpstreamFetchError(NewsletterError):
    """The origin site was unreachable or answered with a non-success status."""

    status_code = 502
    default_code = "FETCH_FAILED"

    def __init__(self, message: str, status: Optional[int] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.status = status


class AIFormatError(NewsletterError):
    """The model response could not be parsed into the required JSON shape."""

    status_code = 502
    default_code = "AI_FORMAT_ERROR"


class UpstreamServiceError(NewsletterError):
    """An external service failed in a way not covered by the other kinds."""

    status_code = 502
    default_code = "UPSTREAM_SERVICE_ERROR"


def handle_service_errors(
    service_name: str,
    log_level: str = "error",
    convert_to: Type[NewsletterError] = UpstreamServiceError,
) -> Callable[[F], F]:
    """
    Decorator for service-level error handling.

    Errors already in the taxonomy pass through after logging. Anything else
    is logged with its traceback and re-raised as ``convert_to``.

    Usage:
        @handle_service_errors("Subscriber store")
        async def list_active(self) -> List[str]:
            ...
    """
    def decorator(func: F) -> F:
        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            try:
                return await func(*args, **kwargs)
            except NewsletterError as e:
                log_func = getattr(logger, log_level, logger.error)
                log_func(
                    f"{service_name}.{func.__name__} failed",
                    error=e.message,
                    error_code=e.error_code,
                )
                raise
            except Exception as e:
                logger.error(
                    f"Error in {service_name}.{func.__name__}",
                    error=str(e),
                    exception_type=type(e).__name__,
                    exc_info=True,
                )
                raise convert_to(
                    f"{service_name} failed: {e}",
                    details={"exception_type": type(e).__name__},
                ) from e

        return cast(F, wrapper)
    return decorator
