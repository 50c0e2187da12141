from datetime import timedelta

import pytest

from meeting_reminders.core.errors import (
    AlreadySentError,
    InvalidTokenError,
    MeetingNotFoundError,
    MeetingPassedError,
    TokenExpiredError,
)
from meeting_reminders.core.models import ReminderState, ReminderToken
from meeting_reminders.core.tokens import (
    compute_expiry,
    derive_state,
    ensure_meeting_upcoming,
    ensure_token_actionable,
    generate_secure_token,
    is_expired,
    mask_token,
    sanitize_content,
)


def _token(now, **overrides) -> ReminderToken:
    fields = {
        "id": "t1",
        "meeting_id": "m1",
        "leader_id": "leader-1",
        "token": "a" * 64,
        "expires_at": now + timedelta(days=7),
    }
    fields.update(overrides)
    return ReminderToken(**fields)


class TestTokenGeneration:
    """Token values and expiry."""

    def test_token_is_64_lowercase_hex(self):
        token = generate_secure_token()
        assert len(token) == 64
        assert all(c in "0123456789abcdef" for c in token)

    def test_tokens_are_unique(self):
        assert len({generate_secure_token() for _ in range(50)}) == 50

    def test_expiry_defaults_to_seven_days(self, now):
        assert compute_expiry(now) == now + timedelta(days=7)
        assert compute_expiry(now, ttl_days=2) == now + timedelta(days=2)

    def test_mask_token(self):
        assert mask_token("0123456789abcdef") == "01234567…"
        assert mask_token(None) == ""
        assert mask_token("") == ""


class TestDeriveState:
    """Workflow state is derived from timestamps with expiry taking priority."""

    def test_fresh_token_is_issued(self, now):
        assert derive_state(_token(now), now) == ReminderState.ISSUED

    def test_reminded_token_is_reviewable(self, now):
        token = _token(now, reminder_sent_at=now)
        assert derive_state(token, now) == ReminderState.REVIEWABLE

    def test_confirmed_token(self, now):
        token = _token(now, reminder_sent_at=now, confirmed_at=now)
        assert derive_state(token, now) == ReminderState.CONFIRMED

    def test_sent_token(self, now):
        token = _token(now, reminder_sent_at=now, confirmed_at=now, attendee_email_sent_at=now)
        assert derive_state(token, now) == ReminderState.SENT

    def test_expiry_wins_over_everything(self, now):
        token = _token(
            now,
            expires_at=now - timedelta(seconds=1),
            reminder_sent_at=now,
            confirmed_at=now,
            attendee_email_sent_at=now,
        )
        assert derive_state(token, now) == ReminderState.EXPIRED

    def test_expiry_boundary_is_inclusive(self, now):
        assert is_expired(_token(now, expires_at=now), now) is True
        assert is_expired(_token(now, expires_at=now + timedelta(seconds=1)), now) is False

    def test_naive_timestamps_are_treated_as_utc(self, now):
        token = _token(now, expires_at=(now + timedelta(days=1)).replace(tzinfo=None))
        assert token.expires_at.tzinfo is not None
        assert is_expired(token, now) is False


class TestValidationOrder:
    """Token and meeting checks shared by review and confirm."""

    def test_unknown_token_is_invalid(self, now):
        with pytest.raises(InvalidTokenError):
            ensure_token_actionable(None, now)

    def test_expired_checked_before_confirmed(self, now):
        token = _token(now, expires_at=now - timedelta(hours=1), confirmed_at=now - timedelta(hours=2))
        with pytest.raises(TokenExpiredError):
            ensure_token_actionable(token, now)

    def test_confirmed_token_is_already_sent(self, now):
        with pytest.raises(AlreadySentError):
            ensure_token_actionable(_token(now, confirmed_at=now), now)

    def test_actionable_token_is_returned(self, now):
        token = _token(now, reminder_sent_at=now)
        assert ensure_token_actionable(token, now) is token

    def test_missing_meeting(self, now):
        with pytest.raises(MeetingNotFoundError):
            ensure_meeting_upcoming(None, now)

    def test_past_meeting(self, now, make_meeting):
        with pytest.raises(MeetingPassedError):
            ensure_meeting_upcoming(make_meeting(date=now - timedelta(minutes=1)), now)

    def test_meeting_starting_now_is_still_upcoming(self, now, make_meeting):
        meeting = make_meeting(date=now)
        assert ensure_meeting_upcoming(meeting, now) is meeting


class TestSanitizeContent:
    """Organizer-supplied text is trimmed, emptied to None and truncated."""

    def test_none_stays_none(self):
        assert sanitize_content(None, 10) is None

    def test_whitespace_only_becomes_none(self):
        assert sanitize_content("   \n\t ", 10) is None

    def test_trims(self):
        assert sanitize_content("  hello  ", 10) == "hello"

    def test_truncates_after_trimming(self):
        assert sanitize_content("  " + "x" * 12 + "  ", 10) == "x" * 10
