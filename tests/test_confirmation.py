from datetime import timedelta

import pytest

from meeting_reminders.core.errors import (
    AlreadySentError,
    EmailConfigurationError,
    EmailDeliveryError,
    InvalidTokenError,
    MeetingNotFoundError,
    MeetingPassedError,
    MissingTokenError,
    ReminderSendFailedError,
    TokenExpiredError,
)
from meeting_reminders.core.models import ReminderState
from meeting_reminders.core.tokens import derive_state
from meeting_reminders.store.memory_repository import InMemoryReminderRepository
from meeting_reminders.workflow.confirmation import ConfirmationService
from meeting_reminders.workflow.generator import ReminderGenerator


TOKEN = "c" * 64


@pytest.fixture
def issued(repository, now):
    """A token whose organizer email already went out."""
    token = repository.insert_token("m1", "leader-1", TOKEN, now + timedelta(days=7))
    repository.mark_reminder_sent(token.id, now)
    return repository.get_token_by_id(token.id)


def _service(repository, emailer, config, now):
    return ConfirmationService(repository, emailer=emailer, config=config, clock=lambda: now)


class TestReview:
    """GET side: validate and describe, never mutate."""

    def test_review_describes_meeting_and_counts(self, repository, issued, emailer, config, now):
        ctx = _service(repository, emailer, config, now).review(TOKEN)

        assert ctx.meeting.id == "m1"
        assert ctx.attendee_count == 3
        assert ctx.recipient_count == 2
        assert ctx.timezone == "America/New_York"
        assert repository.get_token_by_id(issued.id) == issued

    def test_review_works_without_mail_settings(self, repository, issued, config, now):
        def broken_factory():
            raise EmailConfigurationError("SENDGRID_API_KEY missing", driver="sendgrid")

        service = ConfirmationService(repository, config=config, clock=lambda: now, emailer_factory=broken_factory)
        assert service.review(TOKEN).attendee_count == 3

    @pytest.mark.parametrize("value", [None, "", "   "])
    def test_missing_token(self, repository, emailer, config, now, value):
        with pytest.raises(MissingTokenError):
            _service(repository, emailer, config, now).review(value)

    def test_unknown_token(self, repository, issued, emailer, config, now):
        with pytest.raises(InvalidTokenError):
            _service(repository, emailer, config, now).review("d" * 64)

    def test_expired_token(self, repository, issued, emailer, config, now):
        with pytest.raises(TokenExpiredError):
            _service(repository, emailer, config, now).review(TOKEN, now=now + timedelta(days=7))

    def test_already_confirmed(self, repository, issued, emailer, config, now):
        repository.mark_confirmed(issued.id, now, None, None)
        with pytest.raises(AlreadySentError):
            _service(repository, emailer, config, now).review(TOKEN)

    def test_meeting_deleted(self, repository, issued, emailer, config, now):
        repository.remove_meeting("m1")
        with pytest.raises(MeetingNotFoundError):
            _service(repository, emailer, config, now).review(TOKEN)

    def test_meeting_passed(self, repository, issued, emailer, config, now):
        with pytest.raises(MeetingPassedError):
            _service(repository, emailer, config, now).review(TOKEN, now=now + timedelta(hours=34))


class TestConfirm:
    """POST side: commit, send once, roll back on failure."""

    def test_confirm_sends_to_every_recipient(self, repository, issued, emailer, config, now):
        result = _service(repository, emailer, config, now).confirm(
            TOKEN, description="  Potluck at 7.  ", message="Please RSVP!"
        )

        assert result.emailed_count == 2
        assert result.attendee_count == 3
        assert len(emailer.sent) == 1
        sent = emailer.sent[0]
        assert sent["recipients"] == ["ann@example.com", "ben@example.com"]
        assert sent["subject"] == 'Reminder: "Community Dinner" - October 20'
        assert "Potluck at 7." in sent["html"]
        assert "Please RSVP!" in sent["plaintext"]

        token = repository.get_token_by_id(issued.id)
        assert token.confirmed_at == now
        assert token.attendee_email_sent_at == now
        assert token.custom_description == "Potluck at 7."
        assert token.custom_message == "Please RSVP!"
        assert derive_state(token, now) == ReminderState.SENT

    def test_attendee_send_is_stamped_after_confirmation(self, repository, issued, emailer, config, now):
        ticks = iter(range(60))
        service = ConfirmationService(
            repository, emailer=emailer, config=config, clock=lambda: now + timedelta(seconds=next(ticks))
        )

        service.confirm(TOKEN)

        token = repository.get_token_by_id(issued.id)
        assert token.attendee_email_sent_at > token.confirmed_at

    def test_send_stamp_never_precedes_explicit_now(self, repository, issued, emailer, config, now):
        later = now + timedelta(hours=1)
        _service(repository, emailer, config, now).confirm(TOKEN, now=later)

        token = repository.get_token_by_id(issued.id)
        assert token.confirmed_at == later
        assert token.attendee_email_sent_at == later

    def test_second_confirm_is_rejected(self, repository, issued, emailer, config, now):
        service = _service(repository, emailer, config, now)
        service.confirm(TOKEN)

        with pytest.raises(AlreadySentError):
            service.confirm(TOKEN)
        assert len(emailer.sent) == 1

    def test_blank_fields_fall_back_to_meeting_description(self, repository, issued, emailer, config, now):
        _service(repository, emailer, config, now).confirm(TOKEN, description="   ", message="")

        token = repository.get_token_by_id(issued.id)
        assert token.custom_description is None
        assert token.custom_message is None
        assert "Bring a dish to share." in emailer.sent[0]["html"]

    def test_long_content_is_truncated(self, repository, issued, emailer, config, now):
        _service(repository, emailer, config, now).confirm(TOKEN, description="d" * 6000, message="m" * 2500)

        token = repository.get_token_by_id(issued.id)
        assert len(token.custom_description) == 5000
        assert len(token.custom_message) == 2000

    def test_no_emailable_attendees(self, make_meeting, make_attendance, emailer, config, now):
        repo = InMemoryReminderRepository(
            meetings=[make_meeting()],
            attendance=[make_attendance(email=None)],
        )
        token = repo.insert_token("m1", "leader-1", TOKEN, now + timedelta(days=7))

        result = _service(repo, emailer, config, now).confirm(TOKEN)

        assert result.emailed_count == 0
        assert result.attendee_count == 1
        assert emailer.sent == []
        stored = repo.get_token_by_id(token.id)
        assert stored.confirmed_at == now
        assert stored.attendee_email_sent_at is None
        assert derive_state(stored, now) == ReminderState.CONFIRMED

    def test_delivery_failure_rolls_back_and_allows_retry(
        self, repository, issued, make_emailer, config, now
    ):
        failing = make_emailer(fail_with=EmailDeliveryError("SendGrid API error: 503", driver="sendgrid"))

        with pytest.raises(ReminderSendFailedError) as exc_info:
            _service(repository, failing, config, now).confirm(TOKEN, message="See you there")

        assert exc_info.value.retryable is True
        token = repository.get_token_by_id(issued.id)
        assert token.confirmed_at is None
        assert token.attendee_email_sent_at is None
        assert token.custom_message == "See you there"
        draft = _service(repository, failing, config, now).review(TOKEN)
        assert draft.draft_message == "See you there"

        working = make_emailer()
        result = _service(repository, working, config, now).confirm(TOKEN, message="See you there")
        assert result.emailed_count == 2
        assert len(working.sent) == 1

    def test_unconfigured_mail_driver_is_a_send_failure(self, repository, issued, config, now):
        def broken_factory():
            raise EmailConfigurationError("SENDGRID_API_KEY missing", driver="sendgrid")

        service = ConfirmationService(repository, config=config, clock=lambda: now, emailer_factory=broken_factory)
        with pytest.raises(ReminderSendFailedError):
            service.confirm(TOKEN)
        assert repository.get_token_by_id(issued.id).confirmed_at is None

    def test_unexpected_error_also_rolls_back(self, repository, issued, make_emailer, config, now):
        failing = make_emailer(fail_with=RuntimeError("template blew up"))

        with pytest.raises(RuntimeError):
            _service(repository, failing, config, now).confirm(TOKEN)

        assert repository.get_token_by_id(issued.id).confirmed_at is None

    def test_losing_a_concurrent_confirmation(self, repository, issued, emailer, config, now, monkeypatch):
        monkeypatch.setattr(repository, "mark_confirmed", lambda *args, **kwargs: False)

        with pytest.raises(AlreadySentError):
            _service(repository, emailer, config, now).confirm(TOKEN)
        assert emailer.sent == []

    def test_expired_link_cannot_confirm(self, repository, issued, emailer, config, now):
        with pytest.raises(TokenExpiredError):
            _service(repository, emailer, config, now).confirm(TOKEN, now=now + timedelta(days=8))
        assert emailer.sent == []


class TestEndToEnd:
    """Generator run, organizer review, confirmation and a repeat run."""

    def test_full_cycle(self, repository, make_emailer, config, now):
        leader_mail = make_emailer()
        ReminderGenerator(repository, leader_mail, config=config, clock=lambda: now).run()

        token = repository.get_token_by_meeting("m1")
        assert derive_state(token, now) == ReminderState.REVIEWABLE
        assert token.token in leader_mail.sent[0]["html"]

        attendee_mail = make_emailer()
        later = now + timedelta(hours=2)
        service = _service(repository, attendee_mail, config, later)
        assert service.review(token.token).recipient_count == 2
        service.confirm(token.token, message="Doors open at 7")

        assert attendee_mail.sent[0]["recipients"] == ["ann@example.com", "ben@example.com"]
        assert derive_state(repository.get_token_by_id(token.id), later) == ReminderState.SENT

        rerun = ReminderGenerator(repository, leader_mail, config=config, clock=lambda: later).run()
        assert rerun.skipped == 1
        assert len(leader_mail.sent) == 1

        with pytest.raises(AlreadySentError):
            service.review(token.token)
