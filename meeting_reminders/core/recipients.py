import logging
from typing import Iterable, List

from pydantic import ValidationError

from meeting_reminders.core.models import AttendanceRecord, EmailRecipient


logger = logging.getLogger(__name__)


def count_eligible(records: Iterable[AttendanceRecord]) -> int:
    """Invited and accepted attendees, whether or not they have an email."""
    return sum(1 for r in records if r.is_eligible)


def resolve_recipients(records: Iterable[AttendanceRecord]) -> List[EmailRecipient]:
    """
    Turn attendance records into the recipients of the attendee reminder.

    Only invited/accepted records with a resolvable email take part; duplicates
    (same address, any case) are sent once.
    """
    recipients: List[EmailRecipient] = []
    seen: set[str] = set()
    for record in records:
        if not record.is_eligible:
            continue
        email = (record.email or "").strip()
        if not email:
            continue
        key = email.lower()
        if key in seen:
            continue
        try:
            recipient = EmailRecipient(email=email, name=record.full_name or None)
        except ValidationError:
            logger.warning(
                f"Skipping attendee with unusable email on meeting {record.meeting_id}"
            )
            continue
        seen.add(key)
        recipients.append(recipient)
    return recipients
