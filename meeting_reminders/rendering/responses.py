from typing import Literal, Optional

from fastapi.responses import HTMLResponse, JSONResponse, Response
from starlette.requests import Request

from meeting_reminders.core.errors import ReminderError
from meeting_reminders.rendering.context_builder import build_confirmation_form_context, build_meeting_context
from meeting_reminders.rendering.renderer import (
    render_confirmation_form_html,
    render_confirmation_success_html,
    render_error_page_html,
)
from meeting_reminders.schemas.reminders import ConfirmResponse, MeetingSummary, ReviewResponse
from meeting_reminders.workflow.confirmation import ConfirmationResult, ReviewContext


ResponseFormat = Literal["json", "html"]


def _accept_weights(accept: str) -> dict:
    weights = {}
    for part in accept.split(","):
        pieces = [p.strip() for p in part.split(";")]
        media = pieces[0].lower()
        if not media:
            continue
        q = 1.0
        for param in pieces[1:]:
            if param.startswith("q="):
                try:
                    q = float(param[2:])
                except ValueError:
                    q = 0.0
        weights[media] = max(q, weights.get(media, 0.0))
    return weights


def negotiate_format(request: Request) -> ResponseFormat:
    """
    JSON when asked for with ?format=json or an Accept header preferring it; HTML otherwise.
    """
    explicit = (request.query_params.get("format") or "").lower()
    if explicit in ("json", "html"):
        return explicit  # type: ignore[return-value]

    weights = _accept_weights(request.headers.get("accept", ""))
    json_q = weights.get("application/json", 0.0)
    html_q = max(weights.get("text/html", 0.0), weights.get("application/xhtml+xml", 0.0))
    if json_q > 0 and json_q >= html_q:
        return "json"
    return "html"


class ConfirmationResponder:
    """Renders every confirmation outcome in one output format."""

    def __init__(self, fmt: ResponseFormat):
        self.format = fmt

    def review(self, ctx: ReviewContext) -> Response:
        meeting_ctx = build_meeting_context(ctx.meeting, ctx.timezone)
        if self.format == "json":
            body = ReviewResponse(
                meeting=MeetingSummary(
                    id=ctx.meeting.id,
                    title=ctx.meeting.title,
                    description=ctx.meeting.description,
                    date=ctx.meeting.date,
                    location=ctx.meeting.location,
                    date_human=meeting_ctx["date_human"],
                    time_human=meeting_ctx["time_with_zone"],
                ),
                organizer_name=ctx.meeting.organizer_display_name,
                group_name=ctx.meeting.group_name,
                attendee_count=ctx.attendee_count,
                recipient_count=ctx.recipient_count,
                timezone=ctx.timezone,
                expires_at=ctx.token.expires_at,
            )
            return JSONResponse(status_code=200, content=body.model_dump(mode="json", by_alias=True))
        context = build_confirmation_form_context(
            ctx.meeting,
            ctx.timezone,
            ctx.attendee_count,
            ctx.recipient_count,
            description=ctx.draft_description,
            message=ctx.draft_message,
        )
        return HTMLResponse(status_code=200, content=render_confirmation_form_html(context))

    def confirmed(self, result: ConfirmationResult) -> Response:
        if self.format == "json":
            body = ConfirmResponse(attendee_count=result.emailed_count)
            return JSONResponse(status_code=200, content=body.model_dump(by_alias=True))
        context = {
            **build_meeting_context(result.meeting, result.timezone),
            "emailed_count": result.emailed_count,
        }
        return HTMLResponse(status_code=200, content=render_confirmation_success_html(context))

    def error(self, exc: ReminderError, review: Optional[ReviewContext] = None) -> Response:
        if self.format == "json":
            return JSONResponse(status_code=exc.status_code, content=exc.to_dict())
        if review is not None:
            # Retryable failures re-render the form so the organizer can submit again.
            context = build_confirmation_form_context(
                review.meeting,
                review.timezone,
                review.attendee_count,
                review.recipient_count,
                error=exc.message,
                description=review.draft_description,
                message=review.draft_message,
            )
            return HTMLResponse(status_code=exc.status_code, content=render_confirmation_form_html(context))
        return HTMLResponse(status_code=exc.status_code, content=render_error_page_html(exc.title, exc.message))

    def internal_error(self) -> Response:
        message = "An unexpected error occurred. Please try again later."
        if self.format == "json":
            return JSONResponse(
                status_code=500,
                content={"ok": False, "error": "internal_error", "message": message, "retryable": True},
            )
        return HTMLResponse(status_code=500, content=render_error_page_html("Error", message))


def render_as(fmt: ResponseFormat) -> ConfirmationResponder:
    return ConfirmationResponder(fmt)
