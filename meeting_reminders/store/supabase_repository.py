from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from meeting_reminders.core.errors import StoreError
from meeting_reminders.core.models import (
    ELIGIBLE_STATUSES,
    AttendanceRecord,
    CandidateMeeting,
    ReminderToken,
)
from meeting_reminders.store.client import get_supabase


logger = logging.getLogger(__name__)

MEETING_COLUMNS = (
    "id, title, description, date, location, group_id, created_by, timezone, "
    "groups!inner(name, timezone), "
    "profiles!meetings_created_by_fkey(email, full_name)"
)

ATTENDEE_COLUMNS = (
    "meeting_id, user_id, placeholder_id, status, "
    "profiles!meeting_attendees_user_id_fkey(email, full_name), "
    "placeholder_profiles(email, full_name)"
)


def _one(value: Any) -> Dict[str, Any]:
    # Embedded relations come back as an object or a one-element list.
    if isinstance(value, list):
        return value[0] if value else {}
    if isinstance(value, dict):
        return value
    return {}


def _rows(res: Any) -> List[Dict[str, Any]]:
    data = getattr(res, "data", None)
    if isinstance(data, list):
        return data
    if isinstance(data, dict):
        return [data]
    return []


def _meeting_from_row(row: Dict[str, Any]) -> CandidateMeeting:
    group = _one(row.get("groups"))
    leader = _one(row.get("profiles"))
    return CandidateMeeting(
        id=str(row["id"]),
        title=row.get("title") or "Untitled Meeting",
        description=row.get("description"),
        date=row["date"],
        location=row.get("location"),
        group_id=row.get("group_id"),
        group_name=group.get("name") or "",
        group_timezone=group.get("timezone"),
        timezone=row.get("timezone"),
        organizer_id=row.get("created_by"),
        organizer_email=leader.get("email"),
        organizer_name=leader.get("full_name"),
    )


def _attendance_from_row(row: Dict[str, Any]) -> AttendanceRecord:
    profile = _one(row.get("profiles"))
    placeholder = _one(row.get("placeholder_profiles"))
    # A real account wins over a placeholder when both resolve.
    email = profile.get("email") or placeholder.get("email")
    full_name = profile.get("full_name") or placeholder.get("full_name")
    return AttendanceRecord(
        meeting_id=str(row.get("meeting_id") or ""),
        status=row.get("status") or "invited",
        user_id=row.get("user_id"),
        placeholder_id=row.get("placeholder_id"),
        email=email,
        full_name=full_name,
    )


class SupabaseReminderRepository:
    MEETINGS = "meetings"
    ATTENDEES = "meeting_attendees"
    TOKENS = "meeting_reminder_tokens"

    def __init__(self, client: Any = None) -> None:
        self._client = client

    @property
    def sb(self) -> Any:
        if self._client is None:
            self._client = get_supabase()
        return self._client

    def _execute(self, query: Any, action: str) -> Any:
        try:
            return query.execute()
        except Exception as exc:
            logger.error(f"Supabase call failed during {action}: {exc}")
            raise StoreError(f"Data store error during {action}") from exc

    # Meetings / attendance (read-only)

    def find_meetings_between(self, start: datetime, end: datetime) -> List[CandidateMeeting]:
        query = (
            self.sb.table(self.MEETINGS)
            .select(MEETING_COLUMNS)
            .gte("date", start.isoformat())
            .lte("date", end.isoformat())
            .not_.is_("created_by", "null")
            .order("date")
        )
        res = self._execute(query, "find_meetings_between")
        return [_meeting_from_row(row) for row in _rows(res)]

    def get_meeting(self, meeting_id: str) -> Optional[CandidateMeeting]:
        query = self.sb.table(self.MEETINGS).select(MEETING_COLUMNS).eq("id", meeting_id).limit(1)
        rows = _rows(self._execute(query, "get_meeting"))
        return _meeting_from_row(rows[0]) if rows else None

    def list_attendance(self, meeting_id: str) -> List[AttendanceRecord]:
        query = (
            self.sb.table(self.ATTENDEES)
            .select(ATTENDEE_COLUMNS)
            .eq("meeting_id", meeting_id)
            .in_("status", list(ELIGIBLE_STATUSES))
        )
        res = self._execute(query, "list_attendance")
        return [_attendance_from_row(row) for row in _rows(res)]

    def count_eligible_attendees(self, meeting_id: str) -> int:
        query = (
            self.sb.table(self.ATTENDEES)
            .select("id", count="exact")
            .eq("meeting_id", meeting_id)
            .in_("status", list(ELIGIBLE_STATUSES))
        )
        res = self._execute(query, "count_eligible_attendees")
        count = getattr(res, "count", None)
        if count is None:
            return len(_rows(res))
        return int(count)

    # Reminder tokens

    def _token_or_none(self, query: Any, action: str) -> Optional[ReminderToken]:
        rows = _rows(self._execute(query.limit(1), action))
        return ReminderToken(**rows[0]) if rows else None

    def get_token(self, token: str) -> Optional[ReminderToken]:
        query = self.sb.table(self.TOKENS).select("*").eq("token", token)
        return self._token_or_none(query, "get_token")

    def get_token_by_id(self, token_id: str) -> Optional[ReminderToken]:
        query = self.sb.table(self.TOKENS).select("*").eq("id", token_id)
        return self._token_or_none(query, "get_token_by_id")

    def get_token_by_meeting(self, meeting_id: str) -> Optional[ReminderToken]:
        query = self.sb.table(self.TOKENS).select("*").eq("meeting_id", meeting_id)
        return self._token_or_none(query, "get_token_by_meeting")

    def insert_token(self, meeting_id: str, leader_id: str, token: str, expires_at: datetime) -> ReminderToken:
        payload = {
            "meeting_id": meeting_id,
            "leader_id": leader_id,
            "token": token,
            "expires_at": expires_at.isoformat(),
            "reminder_sent_at": None,
        }
        rows = _rows(self._execute(self.sb.table(self.TOKENS).insert(payload), "insert_token"))
        if not rows:
            raise StoreError("Data store returned no row for insert_token")
        return ReminderToken(**rows[0])

    def refresh_token(self, token_id: str, token: str, expires_at: datetime) -> ReminderToken:
        query = (
            self.sb.table(self.TOKENS)
            .update({"token": token, "expires_at": expires_at.isoformat()})
            .eq("id", token_id)
        )
        rows = _rows(self._execute(query, "refresh_token"))
        if not rows:
            raise StoreError("Data store returned no row for refresh_token")
        return ReminderToken(**rows[0])

    def mark_reminder_sent(self, token_id: str, sent_at: datetime) -> None:
        query = self.sb.table(self.TOKENS).update({"reminder_sent_at": sent_at.isoformat()}).eq("id", token_id)
        self._execute(query, "mark_reminder_sent")

    def mark_confirmed(
        self,
        token_id: str,
        confirmed_at: datetime,
        custom_description: Optional[str],
        custom_message: Optional[str],
    ) -> bool:
        query = (
            self.sb.table(self.TOKENS)
            .update(
                {
                    "custom_description": custom_description,
                    "custom_message": custom_message,
                    "confirmed_at": confirmed_at.isoformat(),
                }
            )
            .eq("id", token_id)
            .is_("confirmed_at", "null")
        )
        rows = _rows(self._execute(query, "mark_confirmed"))
        return bool(rows)

    def clear_confirmation(self, token_id: str) -> None:
        query = self.sb.table(self.TOKENS).update({"confirmed_at": None}).eq("id", token_id)
        self._execute(query, "clear_confirmation")

    def mark_attendee_email_sent(self, token_id: str, sent_at: datetime) -> None:
        query = (
            self.sb.table(self.TOKENS)
            .update({"attendee_email_sent_at": sent_at.isoformat()})
            .eq("id", token_id)
        )
        self._execute(query, "mark_attendee_email_sent")
