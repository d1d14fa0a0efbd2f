"""Subscriber models for Newsletter Studio."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum


class SubscribeOutcome(str, Enum):
    """Result of a subscribe request."""

    CREATED = "created"
    ALREADY_SUBSCRIBED = "already_subscribed"
    REACTIVATED = "reactivated"

    @property
    def message(self) -> str:
        if self is SubscribeOutcome.ALREADY_SUBSCRIBED:
            return "You are already subscribed!"
        if self is SubscribeOutcome.REACTIVATED:
            return "Welcome back! Your subscription has been reactivated."
        return "Successfully subscribed to the newsletter!"


@dataclass
class Subscriber:
    """A newsletter recipient."""

    email: str
    is_active: bool = True
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


def normalize_email(email: str) -> str:
    """Canonical form used as the unique subscriber key."""
    return email.strip().lower()
