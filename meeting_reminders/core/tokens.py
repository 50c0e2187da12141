import secrets
from datetime import datetime, timedelta
from typing import Optional

from meeting_reminders.core.errors import (
    AlreadySentError,
    InvalidTokenError,
    MeetingNotFoundError,
    MeetingPassedError,
    TokenExpiredError,
)
from meeting_reminders.core.models import CandidateMeeting, ReminderState, ReminderToken


TOKEN_BYTES = 32
MAX_DESCRIPTION_LENGTH = 5000
MAX_MESSAGE_LENGTH = 2000


def generate_secure_token() -> str:
    """Return a 64-character lowercase hex token from the OS CSPRNG."""
    return secrets.token_hex(TOKEN_BYTES)


def compute_expiry(now: datetime, ttl_days: int = 7) -> datetime:
    return now + timedelta(days=ttl_days)


def mask_token(token: Optional[str]) -> str:
    """Shorten a token for logs; the full value is a credential."""
    if not token:
        return ""
    return f"{token[:8]}…"


def is_expired(token: ReminderToken, now: datetime) -> bool:
    return token.expires_at <= now


def derive_state(token: ReminderToken, now: datetime) -> ReminderState:
    """
    Derive the workflow phase from the token's timestamps.

    Expiry wins over every other flag.
    """
    if is_expired(token, now):
        return ReminderState.EXPIRED
    if token.attendee_email_sent_at is not None:
        return ReminderState.SENT
    if token.confirmed_at is not None:
        return ReminderState.CONFIRMED
    if token.reminder_sent_at is not None:
        return ReminderState.REVIEWABLE
    return ReminderState.ISSUED


def ensure_token_actionable(token: Optional[ReminderToken], now: datetime) -> ReminderToken:
    """
    Run the token checks shared by review and confirm.

    Order matters: an unresolvable token is reported before expiry, and expiry
    before the already-confirmed check.
    """
    if token is None:
        raise InvalidTokenError()
    if is_expired(token, now):
        raise TokenExpiredError()
    if token.confirmed_at is not None:
        raise AlreadySentError()
    return token


def ensure_meeting_upcoming(meeting: Optional[CandidateMeeting], now: datetime) -> CandidateMeeting:
    if meeting is None:
        raise MeetingNotFoundError()
    if meeting.date < now:
        raise MeetingPassedError()
    return meeting


def sanitize_content(content: Optional[str], max_length: int) -> Optional[str]:
    """Trim, normalize empty to None and truncate to max_length."""
    if content is None:
        return None
    trimmed = content.strip()
    if not trimmed:
        return None
    if len(trimmed) > max_length:
        return trimmed[:max_length]
    return trimmed
