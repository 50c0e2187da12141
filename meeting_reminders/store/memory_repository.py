import threading
import uuid
from datetime import datetime
from typing import Dict, Iterable, List, Optional

from meeting_reminders.core.models import AttendanceRecord, CandidateMeeting, ReminderToken


class InMemoryReminderRepository:
    """
    Process-local store with the same semantics as the Supabase tables.

    Used by the test-suite and for local runs with STORE_DRIVER=memory.
    """

    def __init__(
        self,
        meetings: Optional[Iterable[CandidateMeeting]] = None,
        attendance: Optional[Iterable[AttendanceRecord]] = None,
    ) -> None:
        self._lock = threading.Lock()
        self.meetings: Dict[str, CandidateMeeting] = {}
        self.attendance: List[AttendanceRecord] = []
        self.tokens: Dict[str, ReminderToken] = {}
        for meeting in meetings or []:
            self.add_meeting(meeting)
        for record in attendance or []:
            self.add_attendance(record)

    def add_meeting(self, meeting: CandidateMeeting) -> None:
        with self._lock:
            self.meetings[meeting.id] = meeting

    def remove_meeting(self, meeting_id: str) -> None:
        with self._lock:
            self.meetings.pop(meeting_id, None)

    def add_attendance(self, record: AttendanceRecord) -> None:
        with self._lock:
            self.attendance.append(record)

    def find_meetings_between(self, start: datetime, end: datetime) -> List[CandidateMeeting]:
        with self._lock:
            found = [
                m for m in self.meetings.values()
                if m.organizer_id is not None and start <= m.date <= end
            ]
        return sorted(found, key=lambda m: m.date)

    def get_meeting(self, meeting_id: str) -> Optional[CandidateMeeting]:
        with self._lock:
            return self.meetings.get(meeting_id)

    def list_attendance(self, meeting_id: str) -> List[AttendanceRecord]:
        with self._lock:
            return [r for r in self.attendance if r.meeting_id == meeting_id and r.is_eligible]

    def count_eligible_attendees(self, meeting_id: str) -> int:
        return len(self.list_attendance(meeting_id))

    def get_token(self, token: str) -> Optional[ReminderToken]:
        with self._lock:
            for record in self.tokens.values():
                if record.token == token:
                    return record.model_copy()
        return None

    def get_token_by_id(self, token_id: str) -> Optional[ReminderToken]:
        with self._lock:
            record = self.tokens.get(token_id)
            return record.model_copy() if record else None

    def get_token_by_meeting(self, meeting_id: str) -> Optional[ReminderToken]:
        with self._lock:
            for record in self.tokens.values():
                if record.meeting_id == meeting_id:
                    return record.model_copy()
        return None

    def insert_token(self, meeting_id: str, leader_id: str, token: str, expires_at: datetime) -> ReminderToken:
        with self._lock:
            if any(t.meeting_id == meeting_id for t in self.tokens.values()):
                raise ValueError(f"Reminder token already exists for meeting {meeting_id}")
            record = ReminderToken(
                id=str(uuid.uuid4()),
                meeting_id=meeting_id,
                leader_id=leader_id,
                token=token,
                expires_at=expires_at,
                created_at=datetime.now(expires_at.tzinfo),
            )
            self.tokens[record.id] = record
            return record.model_copy()

    def _update(self, token_id: str, **fields) -> ReminderToken:
        record = self.tokens[token_id]
        updated = record.model_copy(update=fields)
        self.tokens[token_id] = updated
        return updated.model_copy()

    def refresh_token(self, token_id: str, token: str, expires_at: datetime) -> ReminderToken:
        with self._lock:
            return self._update(token_id, token=token, expires_at=expires_at)

    def mark_reminder_sent(self, token_id: str, sent_at: datetime) -> None:
        with self._lock:
            self._update(token_id, reminder_sent_at=sent_at)

    def mark_confirmed(
        self,
        token_id: str,
        confirmed_at: datetime,
        custom_description: Optional[str],
        custom_message: Optional[str],
    ) -> bool:
        with self._lock:
            record = self.tokens.get(token_id)
            if record is None or record.confirmed_at is not None:
                return False
            self._update(
                token_id,
                confirmed_at=confirmed_at,
                custom_description=custom_description,
                custom_message=custom_message,
            )
            return True

    def clear_confirmation(self, token_id: str) -> None:
        with self._lock:
            self._update(token_id, confirmed_at=None)

    def mark_attendee_email_sent(self, token_id: str, sent_at: datetime) -> None:
        with self._lock:
            self._update(token_id, attendee_email_sent_at=sent_at)


_shared: Optional[InMemoryReminderRepository] = None


def get_shared_memory_repository() -> InMemoryReminderRepository:
    global _shared
    if _shared is None:
        _shared = InMemoryReminderRepository()
    return _shared


def reset_shared_memory_repository() -> None:
    global _shared
    _shared = None
