import json
import logging
import os
import re
import time
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Dict, Iterator, Optional

import sentry_sdk

logger = logging.getLogger(__name__)

# Confirmation tokens are 64 hex chars; anything that long and hex-only is treated as one.
_TOKEN_PATTERN = re.compile(r"\b[0-9a-f]{64}\b")
_REDACTED_SUBJECT_WORDS = ("password", "secret", "token", "credential")
_MAX_SUBJECT_LENGTH = 100


def _utc_timestamp() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%fZ")


def scrub_tokens(text: str) -> str:
    """Replace full confirmation tokens with their first 8 characters."""
    return _TOKEN_PATTERN.sub(lambda m: f"{m.group(0)[:8]}…", text)


def redact_subject(subject: str) -> str:
    """
    Make an email subject safe to log.

    Subjects mentioning credentials are dropped entirely; long ones are cut.
    """
    lowered = subject.lower()
    if any(word in lowered for word in _REDACTED_SUBJECT_WORDS):
        return "[REDACTED]"
    if len(subject) > _MAX_SUBJECT_LENGTH:
        return subject[:_MAX_SUBJECT_LENGTH - 3] + "..."
    return subject


def _emit(level: int, entry: Dict[str, Any]) -> None:
    line = json.dumps(entry, separators=(",", ":"), default=str)
    logger.log(level, scrub_tokens(line))


class Timer:
    """Wall-clock duration of a block, read with get_duration_ms()."""

    def __init__(self, operation_name: str):
        self.operation_name = operation_name
        self._started: Optional[float] = None
        self._elapsed: Optional[float] = None

    def get_duration_ms(self) -> Optional[float]:
        return self._elapsed


@contextmanager
def timing(operation_name: str) -> Iterator[Timer]:
    timer = Timer(operation_name)
    timer._started = time.perf_counter()
    try:
        yield timer
    finally:
        timer._elapsed = (time.perf_counter() - timer._started) * 1000


def log_event(
    action: str,
    driver: str,
    source: str,
    subject: str,
    recipients_count: int,
    message_id: Optional[str] = None,
    duration_ms: Optional[float] = None,
    **fields: Any,
) -> None:
    """
    Record one email dispatch (or failed dispatch) as a JSON line.

    Args:
        action: 'reminder_sent', 'attendee_reminder_sent' or 'send_failed'
        driver: Mail driver that handled it ('console', 'smtp', 'sendgrid')
        source: Which phase sent it ('generator' or 'confirmation')
        subject: Email subject, redacted before logging
        recipients_count: Number of recipients
        message_id: Provider message id, when the driver returns one
        duration_ms: Time spent in the driver
        **fields: Extra context such as meeting_id or a masked token
    """
    entry: Dict[str, Any] = {
        "timestamp": _utc_timestamp(),
        "action": action,
        "driver": driver,
        "source": source,
        "subject": redact_subject(subject),
        "recipients_count": recipients_count,
    }
    if message_id is not None:
        entry["message_id"] = message_id
    if duration_ms is not None:
        entry["duration_ms"] = round(duration_ms, 2)
    entry.update(fields)
    _emit(logging.INFO, entry)


def log_error(error: Exception, context: Optional[Dict[str, Any]] = None) -> None:
    """Log a caught exception with its type and any context fields."""
    entry = {
        "timestamp": _utc_timestamp(),
        "level": "ERROR",
        "error": str(error),
        "error_type": type(error).__name__,
        **(context or {}),
    }
    _emit(logging.ERROR, entry)


def log_warning(message: str, context: Optional[Dict[str, Any]] = None) -> None:
    _emit(logging.WARNING, {"timestamp": _utc_timestamp(), "level": "WARNING", "message": message, **(context or {})})


def log_info(message: str, context: Optional[Dict[str, Any]] = None) -> None:
    _emit(logging.INFO, {"timestamp": _utc_timestamp(), "level": "INFO", "message": message, **(context or {})})


def _strip_tokens_from_event(event: Dict[str, Any], hint: Dict[str, Any]) -> Dict[str, Any]:
    # Confirmation links carry the token in the query string.
    request = event.get("request")
    if isinstance(request, dict):
        for key in ("query_string", "url"):
            value = request.get(key)
            if isinstance(value, str):
                request[key] = scrub_tokens(value)
    return event


def init_sentry() -> bool:
    """
    Initialize Sentry when OBS_ENABLED=true and SENTRY_DSN is set.

    Returns:
        True if Sentry was initialized, False otherwise
    """
    if os.getenv("OBS_ENABLED", "false").lower() != "true":
        return False

    sentry_dsn = os.getenv("SENTRY_DSN")
    if not sentry_dsn:
        logger.info("Sentry DSN not provided, skipping Sentry initialization")
        return False

    from sentry_sdk.integrations.fastapi import FastApiIntegration
    from sentry_sdk.integrations.logging import LoggingIntegration

    try:
        sentry_sdk.init(
            dsn=sentry_dsn,
            integrations=[
                FastApiIntegration(),
                LoggingIntegration(level=logging.INFO, event_level=logging.ERROR),
            ],
            traces_sample_rate=0.1,
            environment=os.getenv("ENVIRONMENT", "development"),
            send_default_pii=False,
            before_send=_strip_tokens_from_event,
        )
    except Exception as e:
        logger.error(f"Failed to initialize Sentry: {e}")
        return False

    logger.info("Sentry initialized")
    return True


def capture_exception(error: Exception) -> None:
    """Report an unexpected error to Sentry; a no-op when Sentry is not initialized."""
    sentry_sdk.capture_exception(error)
