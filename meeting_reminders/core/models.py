from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, EmailStr, field_validator


ELIGIBLE_STATUSES = ("invited", "accepted")


def _ensure_aware(value: Optional[datetime]) -> Optional[datetime]:
    # Timestamps without an offset are stored as UTC.
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class ReminderState(str, Enum):
    ISSUED = "issued"
    REVIEWABLE = "reviewable"
    CONFIRMED = "confirmed"
    SENT = "sent"
    EXPIRED = "expired"


class ReminderToken(BaseModel):
    """Persisted state of one meeting's reminder cycle; the token doubles as a bearer credential."""

    id: str
    meeting_id: str
    leader_id: str
    token: str
    expires_at: datetime
    created_at: Optional[datetime] = None
    reminder_sent_at: Optional[datetime] = None
    confirmed_at: Optional[datetime] = None
    attendee_email_sent_at: Optional[datetime] = None
    custom_description: Optional[str] = None
    custom_message: Optional[str] = None

    @field_validator(
        "expires_at",
        "created_at",
        "reminder_sent_at",
        "confirmed_at",
        "attendee_email_sent_at",
    )
    @classmethod
    def _aware(cls, value: Optional[datetime]) -> Optional[datetime]:
        return _ensure_aware(value)


class CandidateMeeting(BaseModel):
    id: str
    title: str
    description: Optional[str] = None
    date: datetime
    location: Optional[str] = None
    group_id: Optional[str] = None
    group_name: str = ""
    group_timezone: Optional[str] = None
    timezone: Optional[str] = None
    organizer_id: Optional[str] = None
    organizer_email: Optional[str] = None
    organizer_name: Optional[str] = None

    @field_validator("date")
    @classmethod
    def _aware(cls, value: datetime) -> datetime:
        return _ensure_aware(value)

    @property
    def organizer_display_name(self) -> str:
        return self.organizer_name or "Meeting Leader"


class AttendanceRecord(BaseModel):
    meeting_id: str
    status: str
    user_id: Optional[str] = None
    placeholder_id: Optional[str] = None
    email: Optional[str] = None
    full_name: Optional[str] = None

    @property
    def is_eligible(self) -> bool:
        return self.status in ELIGIBLE_STATUSES


class EmailRecipient(BaseModel):
    email: EmailStr
    name: Optional[str] = None
