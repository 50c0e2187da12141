import logging
from datetime import datetime, timezone
from typing import Callable, List, Optional

from pydantic import BaseModel

from meeting_reminders.core.config import AppConfig, load_config
from meeting_reminders.core.errors import (
    AlreadySentError,
    EmailDeliveryError,
    MissingTokenError,
    ReminderSendFailedError,
)
from meeting_reminders.core.models import AttendanceRecord, CandidateMeeting, EmailRecipient, ReminderToken
from meeting_reminders.core.recipients import count_eligible, resolve_recipients
from meeting_reminders.core.timezones import resolve_meeting_timezone
from meeting_reminders.core.tokens import (
    MAX_DESCRIPTION_LENGTH,
    MAX_MESSAGE_LENGTH,
    ensure_meeting_upcoming,
    ensure_token_actionable,
    mask_token,
    sanitize_content,
)
from meeting_reminders.observability.logger import log_error, log_event, timing
from meeting_reminders.rendering.context_builder import build_attendee_reminder_context
from meeting_reminders.rendering.plaintext import render_attendee_reminder_text
from meeting_reminders.rendering.renderer import render_attendee_reminder_html
from meeting_reminders.services.emailer import Emailer, select_emailer_from_env
from meeting_reminders.store.repository import ReminderRepository, select_repository_from_env

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ReviewContext(BaseModel):
    """Everything the organizer sees before confirming."""

    token: ReminderToken
    meeting: CandidateMeeting
    timezone: str
    attendee_count: int
    recipients: List[EmailRecipient]

    @property
    def recipient_count(self) -> int:
        return len(self.recipients)

    @property
    def draft_description(self) -> Optional[str]:
        """Text edited on an earlier attempt wins over the meeting's own description."""
        return self.token.custom_description or self.meeting.description

    @property
    def draft_message(self) -> Optional[str]:
        return self.token.custom_message


class ConfirmationResult(BaseModel):
    meeting: CandidateMeeting
    timezone: str
    attendee_count: int
    emailed_count: int
    message_id: Optional[str] = None


class ConfirmationService:
    """
    Review and confirm a reminder from the organizer's link.

    The token moves issued/reviewable -> confirmed -> sent. confirmed_at is the
    commit point: it is written with a conditional update so that only one
    submission of a link can win, and it is cleared again if the attendee
    email cannot be sent.
    """

    def __init__(
        self,
        repository: ReminderRepository,
        emailer: Optional[Emailer] = None,
        config: Optional[AppConfig] = None,
        clock: Callable[[], datetime] = _utcnow,
        emailer_factory: Optional[Callable[[], Emailer]] = None,
    ):
        self.repository = repository
        self.config = config or load_config()
        self.clock = clock
        self._emailer = emailer
        self._emailer_factory = emailer_factory or (lambda: select_emailer_from_env(self.config))

    @property
    def emailer(self) -> Emailer:
        # Lazy: review must work without mail settings.
        if self._emailer is None:
            self._emailer = self._emailer_factory()
        return self._emailer

    def _load(self, token_value: Optional[str], now: datetime) -> tuple[ReminderToken, CandidateMeeting]:
        if token_value is None or not token_value.strip():
            raise MissingTokenError()
        token = ensure_token_actionable(self.repository.get_token(token_value.strip()), now)
        meeting = ensure_meeting_upcoming(self.repository.get_meeting(token.meeting_id), now)
        return token, meeting

    def review(self, token_value: Optional[str], now: Optional[datetime] = None) -> ReviewContext:
        now = now or self.clock()
        token, meeting = self._load(token_value, now)
        attendance = self.repository.list_attendance(meeting.id)
        return ReviewContext(
            token=token,
            meeting=meeting,
            timezone=resolve_meeting_timezone(meeting, default=self.config.default_timezone),
            attendee_count=count_eligible(attendance),
            recipients=resolve_recipients(attendance),
        )

    def confirm(
        self,
        token_value: Optional[str],
        description: Optional[str] = None,
        message: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> ConfirmationResult:
        now = now or self.clock()
        token, meeting = self._load(token_value, now)

        custom_description = sanitize_content(description, MAX_DESCRIPTION_LENGTH)
        custom_message = sanitize_content(message, MAX_MESSAGE_LENGTH)

        attendance: List[AttendanceRecord] = self.repository.list_attendance(meeting.id)
        attendee_count = count_eligible(attendance)
        recipients = resolve_recipients(attendance)
        tz_name = resolve_meeting_timezone(meeting, default=self.config.default_timezone)

        # Re-read right before writing; the conditional update below is the real guard.
        current = self.repository.get_token_by_id(token.id)
        if current is None or current.confirmed_at is not None:
            raise AlreadySentError()

        if not self.repository.mark_confirmed(token.id, now, custom_description, custom_message):
            logger.info(f"Concurrent confirmation lost the race for token {mask_token(token.token)}")
            raise AlreadySentError()

        if not recipients:
            logger.info(f"Confirmed meeting {meeting.id} with no emailable attendees; nothing to send")
            return ConfirmationResult(
                meeting=meeting,
                timezone=tz_name,
                attendee_count=attendee_count,
                emailed_count=0,
            )

        message_id = self._send_to_attendees(token, meeting, tz_name, recipients, custom_description, custom_message)

        # Read the clock again after the send; never earlier than confirmed_at.
        sent_at = max(self.clock(), now)
        self.repository.mark_attendee_email_sent(token.id, sent_at)
        logger.info(f"Sent reminder emails to {len(recipients)} attendees for meeting {meeting.id}")
        return ConfirmationResult(
            meeting=meeting,
            timezone=tz_name,
            attendee_count=attendee_count,
            emailed_count=len(recipients),
            message_id=message_id,
        )

    def _send_to_attendees(
        self,
        token: ReminderToken,
        meeting: CandidateMeeting,
        tz_name: str,
        recipients: List[EmailRecipient],
        custom_description: Optional[str],
        custom_message: Optional[str],
    ) -> Optional[str]:
        context = build_attendee_reminder_context(meeting, tz_name, custom_description, custom_message)
        subject = f'Reminder: "{meeting.title}" - {context["date_short"]}'
        driver = "unknown"
        try:
            emailer = self.emailer
            driver = getattr(emailer, "driver", "unknown")
            html = render_attendee_reminder_html(context)
            plaintext = render_attendee_reminder_text(context)
            with timing("attendee_reminder_send") as timer:
                message_id = emailer.send(
                    subject=subject,
                    html=html,
                    recipients=recipients,
                    sender=self.config.default_sender,
                    plaintext=plaintext,
                    sender_name=self.config.default_sender_name,
                )
        except EmailDeliveryError as exc:
            log_error(exc, {"action": "send_failed", "meeting_id": meeting.id, "driver": driver})
            self.repository.clear_confirmation(token.id)
            log_event(
                action="send_failed",
                driver=driver,
                source="confirmation",
                subject=subject,
                recipients_count=len(recipients),
                meeting_id=meeting.id,
                rolled_back=True,
            )
            raise ReminderSendFailedError() from exc
        except Exception:
            self.repository.clear_confirmation(token.id)
            raise

        log_event(
            action="attendee_reminder_sent",
            driver=driver,
            source="confirmation",
            subject=subject,
            recipients_count=len(recipients),
            message_id=message_id,
            duration_ms=timer.get_duration_ms(),
            meeting_id=meeting.id,
            token=mask_token(token.token),
        )
        return message_id


def build_confirmation_service_from_env(config: Optional[AppConfig] = None) -> ConfirmationService:
    cfg = config or load_config()
    return ConfirmationService(repository=select_repository_from_env(cfg), config=cfg)
