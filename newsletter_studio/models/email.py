"""Email models for Newsletter Studio."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field


@dataclass
class EmailMessage:
    """A single HTML email ready for the mail provider."""

    to: str
    subject: str
    html: str
    text: Optional[str] = None
    headers: Dict[str, str] = field(default_factory=dict)

    @property
    def estimated_size_kb(self) -> float:
        """Estimate email size in KB."""
        size = len(self.html.encode('utf-8'))
        if self.text:
            size += len(self.text.encode('utf-8'))
        return size / 1024


@dataclass
class DeliveryResult:
    """Result of a single email delivery attempt."""

    success: bool
    recipient: str
    message_id: Optional[str] = None
    sent_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass
class BulkSendResult:
    """Summary of a bulk send to every active subscriber."""

    sent_count: int = 0
    failed_count: int = 0
    failed_emails: List[str] = field(default_factory=list)
    message: str = ""

    @property
    def attempted(self) -> int:
        return self.sent_count + self.failed_count

    @property
    def partial_failure(self) -> bool:
        """Completed, but some recipients failed."""
        return self.failed_count > 0 and self.sent_count > 0

    @property
    def warning(self) -> Optional[str]:
        if not self.failed_count:
            return None
        return f"{self.failed_count} of {self.attempted} emails could not be sent."

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "message": self.message,
            "sentCount": self.sent_count,
            "failedCount": self.failed_count,
            "failedEmails": list(self.failed_emails),
        }
        if self.warning:
            data["warning"] = self.warning
        return data


def no_recipients_result() -> BulkSendResult:
    return BulkSendResult(message="No active subscribers found to send the newsletter to.")


# Pydantic models for API serialization
class SingleSendRequest(BaseModel):
    """Pydantic model for the single-send request body."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    to: EmailStr
    subject: str = Field(..., min_length=1, max_length=998)
    html: str = Field(..., alias="htmlContent", min_length=1)


class SubscribeRequest(BaseModel):
    """Pydantic model for the subscribe request body."""

    email: EmailStr
