"""
Group message gating.

Decides whether a group message should reach the agent. The same steps run
for every platform; only mention detection and group key spelling come
from the platform's MentionStrategy.

1. group allowlist                      -> "group-not-in-allowlist"
2. per-group allowedUsers               -> "user-not-allowed"
3. messages from other bots             -> "bot-message"
4. mode resolution, mode "disabled"     -> "groups-disabled"
5. mention detection
6. open / listen always pass
7. mention-only passes only when addressed -> "mention-required"

Config precedence is the same everywhere: specific group key, then "*",
then the strategy's fallback mode.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Literal, Mapping, Sequence

from ..routing.group_mode import (
    GroupsLike,
    is_group_allowed,
    is_group_user_allowed,
    resolve_group_mode,
    resolve_receive_bot_messages,
)
from ..types import GroupMode, InboundMessage, MentionMethod
from .mentions import MentionConfig, MentionDetector, MentionStrategy, get_mention_strategy

logger = logging.getLogger(__name__)

GatingReason = Literal[
    "group-not-in-allowlist",
    "user-not-allowed",
    "bot-message",
    "groups-disabled",
    "mention-required",
]


@dataclass(frozen=True)
class GatingResult:
    """Gating decision for one group message"""

    should_process: bool
    mode: GroupMode
    was_mentioned: bool | None = None
    method: MentionMethod | None = None
    reason: GatingReason | None = None

    @property
    def is_listening(self) -> bool:
        """Processed for context only: listen mode and not addressed"""
        return self.should_process and self.mode == "listen" and not self.was_mentioned


class GroupGatingEngine:
    """
    One gating implementation for all channels.

    Usage:
        engine = GroupGatingEngine()
        result = engine.gate(
            msg,
            group_keys=engine.group_keys(msg),
            sender_id=msg.sender_id,
            groups_config={"*": {"mode": "mention-only"}},
            mention_config=MentionConfig(patterns=("@?bot",)),
        )
        if not result.should_process:
            return
    """

    def __init__(self, strategies: Mapping[str, MentionStrategy] | None = None):
        self._strategies = dict(strategies or {})

    def strategy_for(self, channel: str) -> MentionStrategy:
        return self._strategies.get(channel) or get_mention_strategy(channel)

    def group_keys(self, msg: InboundMessage) -> list[str]:
        return self.strategy_for(msg.channel).group_keys(msg)

    def gate(
        self,
        msg: InboundMessage,
        group_keys: Sequence[str],
        sender_id: str | None,
        groups_config: GroupsLike | None,
        mention_config: MentionConfig,
    ) -> GatingResult:
        strategy = self.strategy_for(msg.channel)
        mode = resolve_group_mode(groups_config, group_keys, strategy.default_mode)

        if not is_group_allowed(groups_config, group_keys):
            return GatingResult(False, mode, reason="group-not-in-allowlist")

        if not is_group_user_allowed(groups_config, group_keys, sender_id):
            return GatingResult(False, mode, reason="user-not-allowed")

        if msg.sender_is_bot and not resolve_receive_bot_messages(groups_config, group_keys):
            return GatingResult(False, mode, reason="bot-message")

        if mode == "disabled":
            return GatingResult(False, mode, reason="groups-disabled")

        mention = MentionDetector(strategy).detect(msg.text, msg.mentions, mention_config)

        # listen-mode reply suppression is the consumer's job
        if mode in ("open", "listen"):
            return GatingResult(True, mode, mention.was_mentioned, mention.method)

        if mention.was_mentioned:
            return GatingResult(True, mode, True, mention.method)
        return GatingResult(False, mode, False, reason="mention-required")
