from typing import Optional


class ReminderError(Exception):
    """
    Expected workflow failure surfaced to the caller as a typed response.

    Each subclass carries a stable error code and HTTP status so that clients
    can tell "try again" apart from "this was already done".
    """

    status_code: int = 400
    code: str = "error"
    title: str = "Error"
    message: str = "Something went wrong."
    retryable: bool = False

    def __init__(self, message: Optional[str] = None):
        if message is not None:
            self.message = message
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {
            "ok": False,
            "error": self.code,
            "message": self.message,
            "retryable": self.retryable,
        }


class MissingTokenError(ReminderError):
    status_code = 400
    code = "missing_token"
    title = "Invalid Link"
    message = "No token provided."


class MalformedRequestError(ReminderError):
    status_code = 400
    code = "malformed_body"
    title = "Invalid Request"
    message = "The submitted form could not be read."


class InvalidTokenError(ReminderError):
    status_code = 404
    code = "invalid_token"
    title = "Invalid Link"
    message = "This link is invalid."


class TokenExpiredError(ReminderError):
    status_code = 410
    code = "expired"
    title = "Link Expired"
    message = "This link has expired. Please contact the meeting organizer."


class AlreadySentError(ReminderError):
    status_code = 409
    code = "already_sent"
    title = "Already Sent"
    message = "The reminder for this meeting has already been sent."


class MeetingNotFoundError(ReminderError):
    status_code = 404
    code = "meeting_not_found"
    title = "Meeting Not Found"
    message = "The meeting associated with this link no longer exists."


class MeetingPassedError(ReminderError):
    status_code = 410
    code = "meeting_passed"
    title = "Meeting Passed"
    message = "This meeting has already occurred."


class ReminderSendFailedError(ReminderError):
    status_code = 503
    code = "send_failed"
    title = "Send Failed"
    message = "Failed to send emails. Please try again."
    retryable = True


class StoreError(Exception):
    """A data-store call failed unexpectedly."""


class EmailDeliveryError(Exception):
    """The email transport rejected or could not complete a dispatch."""

    def __init__(self, message: str, driver: str = "unknown"):
        self.driver = driver
        super().__init__(message)


class EmailConfigurationError(EmailDeliveryError):
    """The selected mail driver is missing required settings."""
