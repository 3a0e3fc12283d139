"""
Configuration schema.

The on-disk spelling is camelCase (``dmPolicy``, ``allowedUsers``...);
every model accepts either the alias or the Python field name.
"""
from __future__ import annotations

from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..types import DmPolicy


def _coerce_id_list(value: Any) -> Any:
    """Telegram/Discord ids are often written as numbers; store them as strings"""
    if value is None:
        return None
    if isinstance(value, (str, int)):
        value = [value]
    if isinstance(value, (list, tuple, set)):
        return [str(v).strip() for v in value if str(v).strip()]
    return value


class GroupModeConfig(BaseModel):
    """Per-group participation settings"""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    mode: str | None = None
    """open | listen | mention-only | disabled (anything else is ignored)"""

    allowed_users: list[str] | None = Field(default=None, alias="allowedUsers")
    receive_bot_messages: bool | None = Field(default=None, alias="receiveBotMessages")

    require_mention: bool | None = Field(default=None, alias="requireMention")
    """Deprecated: use mode "mention-only" (true) or "open" (false)"""

    @field_validator("allowed_users", mode="before")
    @classmethod
    def _ids(cls, value: Any) -> Any:
        return _coerce_id_list(value)


GroupsConfig = dict[str, GroupModeConfig]


class BotIdentity(BaseModel):
    """How the bot itself appears on a platform (used for mention detection)"""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    username: str | None = None
    user_id: str | None = Field(default=None, alias="userId")
    uuid: str | None = None
    phone_number: str | None = Field(default=None, alias="phoneNumber")
    jid: str | None = None
    lid: str | None = None

    @field_validator("user_id", mode="before")
    @classmethod
    def _id(cls, value: Any) -> Any:
        return None if value is None else str(value)

    @field_validator("username", mode="before")
    @classmethod
    def _strip_at(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().lstrip("@") or None
        return value


class ChannelConfig(BaseModel):
    """Admission settings for one channel"""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    enabled: bool = True
    dm_policy: DmPolicy = Field(default="pairing", alias="dmPolicy")
    allowed_users: list[str] = Field(default_factory=list, alias="allowedUsers")
    self_chat_mode: bool = Field(default=False, alias="selfChatMode")
    admin_chat_id: str | None = Field(default=None, alias="adminChatId")

    groups: GroupsConfig | None = None
    mention_patterns: list[str] = Field(default_factory=list, alias="mentionPatterns")
    require_group_approval: bool = Field(default=False, alias="requireGroupApproval")

    group_debounce_sec: float | None = Field(default=None, ge=0, alias="groupDebounceSec")
    group_poll_interval_min: float | None = Field(default=None, ge=0, alias="groupPollIntervalMin")
    """Deprecated: use groupDebounceSec"""
    instant_groups: list[str] = Field(default_factory=list, alias="instantGroups")

    bot: BotIdentity = Field(default_factory=BotIdentity, alias="botIdentity")

    @field_validator("allowed_users", "instant_groups", mode="before")
    @classmethod
    def _ids(cls, value: Any) -> Any:
        return _coerce_id_list(value) or []

    @field_validator("admin_chat_id", mode="before")
    @classmethod
    def _admin_id(cls, value: Any) -> Any:
        return None if value is None else str(value)


class PairingConfig(BaseModel):
    """Pairing queue limits"""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    max_pending: int = Field(default=3, ge=1, alias="maxPending")
    ttl_minutes: int = Field(default=60, ge=1, alias="ttlMinutes")


class ClawgateConfig(BaseModel):
    """Top-level configuration"""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    state_dir: str | None = Field(default=None, alias="stateDir")
    strict: bool = False
    """Raise on malformed inbound messages instead of logging and dropping them"""

    pairing: PairingConfig = Field(default_factory=PairingConfig)
    channels: dict[str, ChannelConfig] = Field(default_factory=dict)

    def channel(self, channel_id: str) -> ChannelConfig:
        """Config for a channel; an unconfigured channel gets the defaults"""
        return self.channels.get(channel_id) or ChannelConfig()

    def resolve_state_dir(self) -> Path:
        if self.state_dir:
            return Path(self.state_dir).expanduser()
        return Path.home() / ".clawgate"
