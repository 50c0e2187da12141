from datetime import datetime
from typing import Any, Dict, Optional

from meeting_reminders.core.models import CandidateMeeting
from meeting_reminders.core.tokens import MAX_DESCRIPTION_LENGTH, MAX_MESSAGE_LENGTH
from meeting_reminders.rendering.formatting import (
    describe_lead_time,
    format_date,
    format_date_short,
    format_time,
    format_time_with_zone,
    format_timezone_short,
)


def build_meeting_context(meeting: CandidateMeeting, tz_name: str) -> Dict[str, Any]:
    """Display fields shared by every email and page about one meeting."""
    return {
        "meeting_id": meeting.id,
        "title": meeting.title,
        "description": meeting.description or "",
        "location": meeting.location,
        "group_name": meeting.group_name,
        "organizer_name": meeting.organizer_display_name,
        "timezone": tz_name,
        "date_human": format_date(meeting.date, tz_name),
        "date_short": format_date_short(meeting.date, tz_name),
        "time_human": format_time(meeting.date, tz_name),
        "time_with_zone": format_time_with_zone(meeting.date, tz_name),
        "timezone_label": format_timezone_short(meeting.date, tz_name),
        "starts_at": meeting.date.isoformat(),
    }


def build_leader_reminder_context(
    meeting: CandidateMeeting,
    tz_name: str,
    attendee_count: int,
    confirmation_url: str,
    ttl_days: int,
    now: datetime,
) -> Dict[str, Any]:
    return {
        **build_meeting_context(meeting, tz_name),
        "attendee_count": attendee_count,
        "confirmation_url": confirmation_url,
        "ttl_days": ttl_days,
        "lead_time": describe_lead_time(now, meeting.date),
    }


def build_attendee_reminder_context(
    meeting: CandidateMeeting,
    tz_name: str,
    custom_description: Optional[str],
    custom_message: Optional[str],
) -> Dict[str, Any]:
    context = build_meeting_context(meeting, tz_name)
    context["description"] = custom_description or meeting.description or ""
    context["message"] = custom_message
    return context


def build_confirmation_form_context(
    meeting: CandidateMeeting,
    tz_name: str,
    attendee_count: int,
    recipient_count: int,
    error: Optional[str] = None,
    description: Optional[str] = None,
    message: Optional[str] = None,
) -> Dict[str, Any]:
    context = build_meeting_context(meeting, tz_name)
    if description is not None:
        context["description"] = description
    return {
        **context,
        "message": message or "",
        "attendee_count": attendee_count,
        "recipient_count": recipient_count,
        "max_description_length": MAX_DESCRIPTION_LENGTH,
        "max_message_length": MAX_MESSAGE_LENGTH,
        "error": error,
    }
