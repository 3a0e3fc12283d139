"""
Group mode resolution shared by every channel.

Each helper takes an ordered list of candidate keys, so a channel can offer
several spellings of the same group (raw id, "group:<id>", a server id).
Precedence is always: first matching candidate key, then the "*" wildcard,
then the caller's fallback.
"""
from __future__ import annotations

from typing import Any, Mapping, Sequence

from ..config.schema import GroupModeConfig
from ..types import GROUP_MODES, GroupMode

WILDCARD = "*"

GroupsLike = Mapping[str, "GroupModeConfig | dict[str, Any]"]


def _entry(groups: GroupsLike | None, key: str) -> GroupModeConfig | None:
    if not groups or key not in groups:
        return None
    entry = groups[key]
    if isinstance(entry, GroupModeConfig):
        return entry
    if isinstance(entry, Mapping):
        return GroupModeConfig.model_validate(entry)
    return None


def coerce_mode(config: GroupModeConfig | None) -> GroupMode | None:
    """
    Effective mode of one entry, or None when the entry does not say.

    ``mode`` wins over the deprecated ``requireMention`` boolean.
    """
    if config is None:
        return None
    if config.mode in GROUP_MODES:
        return config.mode  # type: ignore[return-value]
    if config.require_mention is not None:
        return "mention-only" if config.require_mention else "open"
    return None


def is_group_allowed(groups: GroupsLike | None, keys: Sequence[str]) -> bool:
    """
    Whether a group may be served at all.

    No groups config (or an empty one) means every group is allowed.
    """
    if not groups:
        return True
    if WILDCARD in groups:
        return True
    return any(key in groups for key in keys)


def resolve_group_mode(
    groups: GroupsLike | None,
    keys: Sequence[str],
    fallback: GroupMode = "open",
) -> GroupMode:
    """Resolve the effective mode for a group (key order, then "*", then fallback)."""
    for key in keys:
        mode = coerce_mode(_entry(groups, key))
        if mode:
            return mode
    wildcard_mode = coerce_mode(_entry(groups, WILDCARD))
    if wildcard_mode:
        return wildcard_mode
    return fallback


def resolve_group_allowed_users(
    groups: GroupsLike | None,
    keys: Sequence[str],
) -> list[str] | None:
    """First allowedUsers list found for the keys, then the wildcard, else None."""
    for key in keys:
        entry = _entry(groups, key)
        if entry is not None and entry.allowed_users is not None:
            return entry.allowed_users
    entry = _entry(groups, WILDCARD)
    if entry is not None and entry.allowed_users is not None:
        return entry.allowed_users
    return None


def is_group_user_allowed(
    groups: GroupsLike | None,
    keys: Sequence[str],
    sender_id: str | None,
) -> bool:
    """
    Whether a sender may trigger the bot in a group.

    True when no (or an empty) allowedUsers list applies, and when the
    platform did not tell us who the sender is.
    """
    allowed = resolve_group_allowed_users(groups, keys)
    if not allowed:
        return True
    if not sender_id:
        return True
    return str(sender_id) in allowed


def resolve_receive_bot_messages(groups: GroupsLike | None, keys: Sequence[str]) -> bool:
    """Whether messages from other bots are processed (default: dropped)."""
    for key in [*keys, WILDCARD]:
        entry = _entry(groups, key)
        if entry is not None and entry.receive_bot_messages is not None:
            return entry.receive_bot_messages
    return False
