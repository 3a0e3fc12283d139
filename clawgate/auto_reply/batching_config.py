"""
Per-channel group batching settings.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Mapping

from ..config.schema import ChannelConfig

DEFAULT_DEBOUNCE_MS = 5000


def resolve_debounce_ms(channel: ChannelConfig) -> int:
    """
    Group debounce in milliseconds.

    Prefers groupDebounceSec, falls back to the deprecated
    groupPollIntervalMin. Default: 5 seconds.
    """
    if channel.group_debounce_sec is not None:
        return int(channel.group_debounce_sec * 1000)
    if channel.group_poll_interval_min is not None:
        return int(channel.group_poll_interval_min * 60 * 1000)
    return DEFAULT_DEBOUNCE_MS


@dataclass
class GroupBatchingConfig:
    intervals: dict[str, int] = field(default_factory=dict)
    """channel id -> debounce ms"""
    instant_ids: set[str] = field(default_factory=set)
    """channel:chatId keys that bypass batching"""

    def debounce_for(self, channel: str, chat_id: str, server_id: str | None = None) -> int:
        if f"{channel}:{chat_id}" in self.instant_ids:
            return 0
        if server_id and f"{channel}:{server_id}" in self.instant_ids:
            return 0
        return self.intervals.get(channel, DEFAULT_DEBOUNCE_MS)


def collect_group_batching_config(channels: Mapping[str, ChannelConfig]) -> GroupBatchingConfig:
    """Build debounce intervals and the instant-group set for all channels"""
    config = GroupBatchingConfig()
    for channel_id, channel in channels.items():
        config.intervals[channel_id] = resolve_debounce_ms(channel)
        for chat_id in channel.instant_groups:
            config.instant_ids.add(f"{channel_id}:{chat_id}")
    return config
