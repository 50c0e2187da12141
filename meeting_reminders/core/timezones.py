import logging
from typing import Iterable, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from meeting_reminders.core.models import CandidateMeeting


logger = logging.getLogger(__name__)

FALLBACK_TIMEZONE = "America/New_York"


def _is_valid_timezone(name: str) -> bool:
    try:
        ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        return False
    return True


def first_valid_timezone(candidates: Iterable[Optional[str]], default: str = FALLBACK_TIMEZONE) -> str:
    """
    Return the first usable IANA timezone name from an ordered list.

    Blank and unknown names are skipped; when nothing matches the default is used.
    """
    for name in candidates:
        if not name or not name.strip():
            continue
        name = name.strip()
        if _is_valid_timezone(name):
            return name
        logger.warning(f"Ignoring unknown timezone {name!r}")
    return default


def resolve_meeting_timezone(meeting: CandidateMeeting, default: str = FALLBACK_TIMEZONE) -> str:
    """Meeting override, then group timezone, then the configured default."""
    return first_valid_timezone([meeting.timezone, meeting.group_timezone], default=default)
