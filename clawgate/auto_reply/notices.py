"""
User- and admin-facing texts sent by the admission pipeline.
"""
from __future__ import annotations

NOT_AUTHORIZED_TEXT = "Sorry, you're not authorized to use this bot."
QUEUE_FULL_TEXT = "Too many pending pairing requests. Please try again later."
PAIRING_ACK_TEXT = "Your request has been sent to the bot owner for approval."
APPROVED_USER_TEXT = "You've been approved! You can now chat."
GROUP_ADD_DENIED_TEXT = "This bot can only be added to groups by paired users."


def format_pairing_message(channel: str, code: str) -> str:
    """Pairing notice for the user (no admin chat configured)"""
    return (
        "Hi! This bot requires pairing.\n\n"
        f"Your pairing code: {code}\n\n"
        f"Send this code to the bot owner so they can approve your {channel} access."
    )


def format_admin_pairing_notification(
    channel: str,
    user_id: str,
    display_name: str,
    code: str,
    first_message: str | None = None,
) -> str:
    """Admin chat notification; replying "approve" or "deny" resolves it"""
    who = f"{display_name} ({user_id})" if display_name and display_name != user_id else user_id
    lines = [
        f"New {channel} pairing request from {who}",
        f"Code: {code}",
    ]
    if first_message:
        preview = first_message if len(first_message) <= 200 else first_message[:197] + "..."
        lines.append(f"Message: {preview}")
    lines.append("")
    lines.append('Reply "approve" or "deny" to this message.')
    return "\n".join(lines)


def format_approval_result(display_name: str, approved: bool) -> str:
    if approved:
        return f"Approved! {display_name} can now chat."
    return f"Denied. {display_name} will not be able to chat."
