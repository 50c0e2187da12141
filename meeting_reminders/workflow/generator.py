import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, List, Optional

from pydantic import BaseModel

from meeting_reminders.core.config import AppConfig, load_config
from meeting_reminders.core.models import CandidateMeeting, EmailRecipient
from meeting_reminders.core.timezones import resolve_meeting_timezone
from meeting_reminders.core.tokens import compute_expiry, generate_secure_token, mask_token
from meeting_reminders.observability.logger import log_error, log_event, log_info, timing
from meeting_reminders.rendering.context_builder import build_leader_reminder_context
from meeting_reminders.rendering.plaintext import render_leader_reminder_text
from meeting_reminders.rendering.renderer import render_leader_reminder_html
from meeting_reminders.services.emailer import Emailer, select_emailer_from_env
from meeting_reminders.store.repository import ReminderRepository, select_repository_from_env

logger = logging.getLogger(__name__)


class GenerationSummary(BaseModel):
    processed: int = 0
    skipped: int = 0
    errors: List[str] = []
    window_start: Optional[datetime] = None
    window_end: Optional[datetime] = None


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def build_confirmation_url(base_url: str, token: str) -> str:
    return f"{base_url.rstrip('/')}/confirm-reminder?token={token}"


class ReminderGenerator:
    """
    Issue confirmation tokens for upcoming meetings and email each organizer a review link.

    Safe to run more often than the nominal schedule: a meeting whose token
    already has reminder_sent_at is skipped. Each meeting is handled on its
    own; a failure is recorded and the batch carries on.
    """

    def __init__(
        self,
        repository: ReminderRepository,
        emailer: Emailer,
        config: Optional[AppConfig] = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.repository = repository
        self.emailer = emailer
        self.config = config or load_config()
        self.clock = clock

    def window(self, now: datetime) -> tuple[datetime, datetime]:
        start = now + timedelta(hours=self.config.window_start_hours)
        end = now + timedelta(hours=self.config.window_end_hours)
        return start, end

    def run(self, now: Optional[datetime] = None) -> GenerationSummary:
        now = now or self.clock()
        start, end = self.window(now)
        summary = GenerationSummary(window_start=start, window_end=end)

        logger.info(f"Looking for meetings between {start.isoformat()} and {end.isoformat()}")
        meetings = self.repository.find_meetings_between(start, end)
        logger.info(f"Found {len(meetings)} meetings to process")

        for meeting in meetings:
            try:
                if self._process_meeting(meeting, now):
                    summary.processed += 1
                else:
                    summary.skipped += 1
            except Exception as exc:
                log_error(exc, {"action": "reminder_failed", "meeting_id": meeting.id})
                summary.errors.append(f"Meeting {meeting.id}: {exc}")

        log_info(
            f"Processed {summary.processed} meetings, skipped {summary.skipped}",
            {"errors": len(summary.errors), "candidates": len(meetings)},
        )
        return summary

    def _process_meeting(self, meeting: CandidateMeeting, now: datetime) -> bool:
        existing = self.repository.get_token_by_meeting(meeting.id)
        if existing is not None and existing.reminder_sent_at is not None:
            logger.info(f"Skipping meeting {meeting.id}: reminder already sent")
            return False

        if not meeting.organizer_id:
            raise ValueError("Meeting has no organizer")
        if not meeting.organizer_email:
            raise ValueError("Organizer has no email address")

        attendee_count = self.repository.count_eligible_attendees(meeting.id)

        token_value = generate_secure_token()
        expires_at = compute_expiry(now, self.config.token_ttl_days)

        if existing is not None:
            token = self.repository.refresh_token(existing.id, token_value, expires_at)
        else:
            token = self.repository.insert_token(meeting.id, meeting.organizer_id, token_value, expires_at)

        tz_name = resolve_meeting_timezone(meeting, default=self.config.default_timezone)
        context = build_leader_reminder_context(
            meeting,
            tz_name,
            attendee_count=attendee_count,
            confirmation_url=build_confirmation_url(self.config.app_base_url, token.token),
            ttl_days=self.config.token_ttl_days,
            now=now,
        )
        html = render_leader_reminder_html(context)
        plaintext = render_leader_reminder_text(context)
        subject = f'[Action Required] Confirm reminder for "{meeting.title}" - {context["date_short"]}'

        recipient = EmailRecipient(email=meeting.organizer_email, name=meeting.organizer_name)
        with timing("leader_reminder_send") as timer:
            message_id = self.emailer.send(
                subject=subject,
                html=html,
                recipients=[recipient],
                sender=self.config.default_sender,
                plaintext=plaintext,
                sender_name=self.config.default_sender_name,
            )

        self.repository.mark_reminder_sent(token.id, now)
        log_event(
            action="reminder_sent",
            driver=getattr(self.emailer, "driver", "unknown"),
            source="generator",
            subject=subject,
            recipients_count=1,
            message_id=message_id,
            duration_ms=timer.get_duration_ms(),
            meeting_id=meeting.id,
            token=mask_token(token.token),
        )
        return True


def build_generator_from_env(config: Optional[AppConfig] = None) -> ReminderGenerator:
    cfg = config or load_config()
    return ReminderGenerator(
        repository=select_repository_from_env(cfg),
        emailer=select_emailer_from_env(cfg),
        config=cfg,
    )
