from datetime import datetime
from typing import List, Optional, Protocol

from meeting_reminders.core.config import AppConfig, load_config
from meeting_reminders.core.models import AttendanceRecord, CandidateMeeting, ReminderToken


class ReminderRepository(Protocol):
    """
    Data access used by the reminder workflow.

    Meetings and attendance are read-only here; every token write touches a
    single row.
    """

    def find_meetings_between(self, start: datetime, end: datetime) -> List[CandidateMeeting]:
        """Meetings dated within [start, end] that have an organizer, oldest first."""
        ...

    def get_meeting(self, meeting_id: str) -> Optional[CandidateMeeting]:
        ...

    def list_attendance(self, meeting_id: str) -> List[AttendanceRecord]:
        """Attendance records with email/name resolved from profile or placeholder."""
        ...

    def count_eligible_attendees(self, meeting_id: str) -> int:
        ...

    def get_token(self, token: str) -> Optional[ReminderToken]:
        ...

    def get_token_by_id(self, token_id: str) -> Optional[ReminderToken]:
        ...

    def get_token_by_meeting(self, meeting_id: str) -> Optional[ReminderToken]:
        ...

    def insert_token(self, meeting_id: str, leader_id: str, token: str, expires_at: datetime) -> ReminderToken:
        ...

    def refresh_token(self, token_id: str, token: str, expires_at: datetime) -> ReminderToken:
        ...

    def mark_reminder_sent(self, token_id: str, sent_at: datetime) -> None:
        ...

    def mark_confirmed(
        self,
        token_id: str,
        confirmed_at: datetime,
        custom_description: Optional[str],
        custom_message: Optional[str],
    ) -> bool:
        """
        Set confirmed_at only if it is still null.

        Returns False when another submission got there first.
        """
        ...

    def clear_confirmation(self, token_id: str) -> None:
        ...

    def mark_attendee_email_sent(self, token_id: str, sent_at: datetime) -> None:
        ...


def select_repository_from_env(config: Optional[AppConfig] = None) -> ReminderRepository:
    """Factory selecting the store implementation from STORE_DRIVER."""
    cfg = config or load_config()
    driver = cfg.store_driver

    if driver == "supabase":
        from meeting_reminders.store.supabase_repository import SupabaseReminderRepository
        return SupabaseReminderRepository()
    elif driver == "memory":
        from meeting_reminders.store.memory_repository import get_shared_memory_repository
        return get_shared_memory_repository()
    else:
        raise ValueError(f"Unsupported STORE_DRIVER: {driver}")
