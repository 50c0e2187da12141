from typing import Any, Dict, List

from meeting_reminders.rendering.formatting import pluralize


def render_leader_reminder_text(context: Dict[str, Any]) -> str:
    """
    Plain-text part of the organizer's confirmation request.

    Args:
        context: Output of build_leader_reminder_context

    Returns:
        Plaintext email body
    """
    lines: List[str] = []
    lines.append(f"Your meeting is coming up {context.get('lead_time', 'soon')}")
    lines.append("")
    lines.append(context.get("title", ""))
    lines.append("")
    lines.append(f"Date: {context.get('date_human', '')}")
    lines.append(f"Time: {context.get('time_with_zone', '')}")
    if context.get("location"):
        lines.append(f"Location: {context['location']}")
    count = context.get("attendee_count", 0)
    lines.append(f"Attendees: {count} {pluralize(count, 'person', 'people')} invited")
    lines.append("")
    lines.append("Click the link below to review the meeting details and send a reminder to all attendees:")
    lines.append("")
    lines.append(context.get("confirmation_url", ""))
    lines.append("")
    ttl_days = context.get("ttl_days", 7)
    lines.append(f"This link expires in {ttl_days} {pluralize(ttl_days, 'day')}.")
    lines.append("")
    lines.append("---")
    lines.append(f"Sent via {context.get('group_name', '')}")
    return "\n".join(lines)


def render_attendee_reminder_text(context: Dict[str, Any]) -> str:
    """Plain-text part of the attendee reminder."""
    lines: List[str] = []
    lines.append(f"REMINDER: {context.get('title', '')}")
    lines.append("")

    message = context.get("message")
    if message:
        lines.append(f"Message from {context.get('organizer_name', 'Meeting Leader')}:")
        lines.append(f'"{message}"')
        lines.append("")

    lines.append(f"Date: {context.get('date_human', '')}")
    lines.append(f"Time: {context.get('time_with_zone', '')}")
    if context.get("location"):
        lines.append(f"Location: {context['location']}")

    description = context.get("description")
    if description:
        lines.append("")
        lines.append("Details:")
        lines.append(description)

    lines.append("")
    lines.append("Open the app to RSVP and see more details.")
    lines.append("")
    lines.append("---")
    lines.append(f"Sent by {context.get('organizer_name', 'Meeting Leader')} via {context.get('group_name', '')}")
    return "\n".join(lines)
