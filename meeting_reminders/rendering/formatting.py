from datetime import datetime
from typing import Optional
from zoneinfo import ZoneInfo

from markupsafe import Markup, escape


def nl2br(text: Optional[str]) -> Markup:
    """Escape text and turn newlines into <br> tags."""
    if not text:
        return Markup("")
    escaped = str(escape(text)).replace("\r\n", "\n")
    return Markup(escaped.replace("\n", "<br>"))


def _localize(value: datetime, tz_name: Optional[str]) -> datetime:
    if tz_name:
        return value.astimezone(ZoneInfo(tz_name))
    return value


def format_date(value: datetime, tz_name: Optional[str] = None) -> str:
    """e.g. 'Wednesday, October 21, 2026'"""
    local = _localize(value, tz_name)
    day = str(int(local.strftime("%d")))
    return f"{local.strftime('%A')}, {local.strftime('%B')} {day}, {local.strftime('%Y')}"


def format_date_short(value: datetime, tz_name: Optional[str] = None) -> str:
    """e.g. 'October 21'"""
    local = _localize(value, tz_name)
    day = str(int(local.strftime("%d")))
    return f"{local.strftime('%B')} {day}"


def format_time(value: datetime, tz_name: Optional[str] = None) -> str:
    """e.g. '7:30 PM'"""
    local = _localize(value, tz_name)
    hour = str(int(local.strftime("%I")))
    return f"{hour}:{local.strftime('%M')} {local.strftime('%p')}"


def format_timezone_short(value: datetime, tz_name: str) -> str:
    """Abbreviation in effect at that instant, e.g. 'EDT' or 'EST'."""
    return _localize(value, tz_name).tzname() or ""


def format_time_with_zone(value: datetime, tz_name: str) -> str:
    label = format_timezone_short(value, tz_name)
    time_str = format_time(value, tz_name)
    return f"{time_str} {label}" if label else time_str


def describe_lead_time(now: datetime, starts_at: datetime) -> str:
    """Human phrase for how far away a meeting is: 'in 2 days', 'tomorrow', 'in 5 hours'."""
    hours = int((starts_at - now).total_seconds() // 3600)
    if hours < 1:
        return "within the hour"
    if hours < 24:
        return f"in {hours} hour{'s' if hours != 1 else ''}"
    days = round(hours / 24)
    if days <= 1:
        return "tomorrow"
    return f"in {days} days"


def pluralize(count: int, singular: str, plural: Optional[str] = None) -> str:
    if count == 1:
        return singular
    return plural or f"{singular}s"
