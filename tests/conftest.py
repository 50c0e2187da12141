from datetime import datetime, timedelta, timezone
from typing import List, Optional

import pytest

from meeting_reminders.core.config import AppConfig
from meeting_reminders.core.models import AttendanceRecord, CandidateMeeting, EmailRecipient
from meeting_reminders.services.emailer import Emailer
from meeting_reminders.store.memory_repository import InMemoryReminderRepository


NOW = datetime(2026, 10, 19, 14, 0, tzinfo=timezone.utc)


class RecordingEmailer(Emailer):
    """Captures every dispatch instead of delivering it."""

    driver = "recording"

    def __init__(self, fail_with: Optional[Exception] = None):
        self.sent: List[dict] = []
        self.fail_with = fail_with

    def send(
        self,
        subject: str,
        html: str,
        recipients: List[EmailRecipient],
        sender: str,
        plaintext: Optional[str] = None,
        sender_name: Optional[str] = None,
    ) -> Optional[str]:
        if self.fail_with is not None:
            raise self.fail_with
        self.sent.append({
            "subject": subject,
            "html": html,
            "recipients": [str(r.email) for r in recipients],
            "sender": sender,
            "plaintext": plaintext,
            "sender_name": sender_name,
        })
        return f"MSG-{len(self.sent)}"


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def config() -> AppConfig:
    return AppConfig(
        app_base_url="https://app.example.com",
        store_driver="memory",
        mail_driver="console",
        default_sender="reminders@example.com",
        default_sender_name="Leader App",
    )


@pytest.fixture
def make_meeting():
    def _make(**overrides) -> CandidateMeeting:
        fields = {
            "id": "m1",
            "title": "Community Dinner",
            "description": "Bring a dish to share.",
            # 7:30 PM EDT the next evening
            "date": NOW + timedelta(hours=33, minutes=30),
            "location": "Fellowship Hall",
            "group_id": "g1",
            "group_name": "Riverside Group",
            "group_timezone": "America/New_York",
            "organizer_id": "leader-1",
            "organizer_email": "leader@example.com",
            "organizer_name": "Dana Leader",
        }
        fields.update(overrides)
        return CandidateMeeting(**fields)
    return _make


@pytest.fixture
def make_attendance():
    def _make(meeting_id: str = "m1", email: Optional[str] = None, status: str = "accepted",
              full_name: Optional[str] = None, user_id: Optional[str] = "u1") -> AttendanceRecord:
        return AttendanceRecord(
            meeting_id=meeting_id,
            status=status,
            user_id=user_id,
            email=email,
            full_name=full_name,
        )
    return _make


@pytest.fixture
def repository(make_meeting, make_attendance) -> InMemoryReminderRepository:
    """One upcoming meeting with two emailable attendees and one without an address."""
    return InMemoryReminderRepository(
        meetings=[make_meeting()],
        attendance=[
            make_attendance(email="ann@example.com", full_name="Ann", user_id="u1"),
            make_attendance(email="ben@example.com", full_name="Ben", status="invited", user_id="u2"),
            make_attendance(email=None, full_name="Cal", user_id="u3"),
            make_attendance(email="dee@example.com", full_name="Dee", status="declined", user_id="u4"),
        ],
    )


@pytest.fixture
def emailer() -> RecordingEmailer:
    return RecordingEmailer()


@pytest.fixture
def make_emailer():
    def _make(fail_with: Optional[Exception] = None) -> RecordingEmailer:
        return RecordingEmailer(fail_with=fail_with)
    return _make
