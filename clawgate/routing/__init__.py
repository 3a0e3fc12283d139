"""Group routing policy: allowlists and participation modes."""

from .group_mode import (
    is_group_allowed,
    is_group_user_allowed,
    resolve_group_allowed_users,
    resolve_group_mode,
    resolve_receive_bot_messages,
)

__all__ = [
    "is_group_allowed",
    "is_group_user_allowed",
    "resolve_group_allowed_users",
    "resolve_group_mode",
    "resolve_receive_bot_messages",
]
