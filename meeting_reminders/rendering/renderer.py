from pathlib import Path
from typing import Any, Dict

from fastapi.templating import Jinja2Templates
from starlette.requests import Request

from meeting_reminders.rendering.formatting import nl2br, pluralize


TEMPLATES_DIR = Path(__file__).resolve().parent.parent / "templates"

templates = Jinja2Templates(directory=str(TEMPLATES_DIR))
templates.env.filters["nl2br"] = nl2br
templates.env.filters["pluralize"] = pluralize


def _render(template_name: str, context: Dict[str, Any]) -> str:
    request = context.get("request")
    if request is None:
        request = Request(scope={"type": "http"})
    template = templates.get_template(template_name)
    return template.render({**context, "request": request})


def render_leader_reminder_html(context: Dict[str, Any]) -> str:
    return _render("leader_reminder_email.html", context)


def render_attendee_reminder_html(context: Dict[str, Any]) -> str:
    return _render("attendee_reminder_email.html", context)


def render_confirmation_form_html(context: Dict[str, Any]) -> str:
    return _render("confirmation_form.html", context)


def render_confirmation_success_html(context: Dict[str, Any]) -> str:
    return _render("confirmation_success.html", context)


def render_error_page_html(title: str, message: str) -> str:
    return _render("confirmation_error.html", {"title": title, "message": message})
