import json
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import Response
from pydantic import ValidationError

from meeting_reminders.core.errors import (
    MalformedRequestError,
    MissingTokenError,
    ReminderError,
    ReminderSendFailedError,
)
from meeting_reminders.core.tokens import mask_token
from meeting_reminders.observability.logger import capture_exception, log_error
from meeting_reminders.rendering.responses import negotiate_format, render_as
from meeting_reminders.schemas.reminders import ConfirmSubmission
from meeting_reminders.workflow.confirmation import ConfirmationService, build_confirmation_service_from_env

logger = logging.getLogger(__name__)

router = APIRouter()


def get_confirmation_service() -> ConfirmationService:
    return build_confirmation_service_from_env()


async def _read_submission(request: Request) -> ConfirmSubmission:
    """Accept the organizer's edits as JSON or as a regular HTML form post."""
    content_type = request.headers.get("content-type", "").lower()
    try:
        if "application/json" in content_type:
            raw = await request.body()
            if not raw.strip():
                return ConfirmSubmission()
            payload = json.loads(raw)
            if not isinstance(payload, dict):
                raise MalformedRequestError("Request body must be a JSON object.")
            return ConfirmSubmission(**payload)
        form = await request.form()
        description = form.get("description")
        message = form.get("message")
        return ConfirmSubmission(
            description=description if isinstance(description, str) else None,
            message=message if isinstance(message, str) else None,
        )
    except (json.JSONDecodeError, UnicodeDecodeError, ValidationError) as exc:
        raise MalformedRequestError() from exc


@router.get("/confirm-reminder")
async def review_reminder(
    request: Request,
    token: Optional[str] = None,
    service: ConfirmationService = Depends(get_confirmation_service),
) -> Response:
    """
    Show the meeting, attendee count and editable fields for a reminder link.

    Returns HTML by default, or JSON if format=json or Accept: application/json.
    Never changes the token.
    """
    responder = render_as(negotiate_format(request))
    try:
        ctx = service.review(token)
    except ReminderError as exc:
        logger.info(f"Review rejected ({exc.code}) for token {mask_token(token)}")
        return responder.error(exc)
    except Exception as exc:
        log_error(exc, {"action": "review_failed", "token": mask_token(token)})
        capture_exception(exc)
        return responder.internal_error()
    return responder.review(ctx)


@router.post("/confirm-reminder")
async def confirm_reminder(
    request: Request,
    token: Optional[str] = None,
    service: ConfirmationService = Depends(get_confirmation_service),
) -> Response:
    """
    Confirm the reminder and email every attendee with a resolvable address.

    Body (JSON or form): description and message, both optional. A failed send
    rolls the confirmation back and answers with a retryable error.
    """
    responder = render_as(negotiate_format(request))
    try:
        # A missing token outranks anything wrong with the body.
        if token is None or not token.strip():
            raise MissingTokenError()
        submission = await _read_submission(request)
        result = service.confirm(token, description=submission.description, message=submission.message)
    except ReminderSendFailedError as exc:
        review = None
        if responder.format == "html":
            try:
                review = service.review(token)
            except Exception as review_exc:
                log_error(review_exc, {"action": "rerender_failed", "token": mask_token(token)})
        return responder.error(exc, review=review)
    except ReminderError as exc:
        logger.info(f"Confirmation rejected ({exc.code}) for token {mask_token(token)}")
        return responder.error(exc)
    except Exception as exc:
        log_error(exc, {"action": "confirm_failed", "token": mask_token(token)})
        capture_exception(exc)
        return responder.internal_error()
    return responder.confirmed(result)
