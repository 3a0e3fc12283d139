"""
Shared message and policy types.

InboundMessage is produced by a channel adapter and consumed once by the
admission pipeline. It is frozen: the pipeline derives new instances with
dataclasses.replace() (admitted copies, synthetic batches) and never
mutates what the adapter handed over.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Literal

ChannelId = Literal[
    "telegram",
    "telegram-mtproto",
    "discord",
    "slack",
    "whatsapp",
    "signal",
]

CHANNEL_IDS: tuple[str, ...] = (
    "telegram",
    "telegram-mtproto",
    "discord",
    "slack",
    "whatsapp",
    "signal",
)

GroupMode = Literal["open", "listen", "mention-only", "disabled"]

GROUP_MODES: tuple[str, ...] = ("open", "listen", "mention-only", "disabled")

DmPolicy = Literal["open", "allowlist", "pairing"]

MentionMethod = Literal["native", "regex", "reply", "e164", "command", "text", "entity"]


@dataclass(frozen=True)
class MentionRef:
    """One entry of a platform's structured mentions list"""

    user_id: str | None = None
    username: str | None = None
    uuid: str | None = None
    number: str | None = None
    jid: str | None = None


@dataclass(frozen=True)
class TextEntity:
    """Telegram-style message entity (offset/length into the text)"""

    type: str
    offset: int
    length: int
    user_id: str | None = None
    """Set for text_mention entities that point at a user without a username"""


@dataclass(frozen=True)
class ReplyRef:
    """Author of the message being replied to / quoted"""

    author_id: str | None = None
    author_uuid: str | None = None
    author_number: str | None = None
    author_jid: str | None = None
    message_id: str | None = None
    """Id of the message being replied to"""


@dataclass(frozen=True)
class MentionSignals:
    """
    Native mention data an adapter could extract from the platform event.

    Every field is optional; a missing field just means that detection
    method has nothing to look at and the next one is tried.
    """

    mentions: tuple[MentionRef, ...] = ()
    entities: tuple[TextEntity, ...] = ()
    reply_to: ReplyRef | None = None
    platform_mentioned: bool | None = None
    """Adapter-computed flag (Slack app_mention, discord.py mentions.has)"""


@dataclass(frozen=True)
class InboundMessage:
    """Inbound message from any channel"""

    channel: ChannelId
    chat_id: str
    sender_id: str
    text: str
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    is_group: bool = False
    group_name: str | None = None
    was_mentioned: bool | None = None
    is_batch: bool = False
    batched_messages: tuple[InboundMessage, ...] | None = None

    sender_name: str | None = None
    sender_handle: str | None = None
    message_id: str | None = None
    thread_id: str | None = None
    server_id: str | None = None
    """Discord guild / Slack team the chat belongs to"""
    sender_is_bot: bool = False
    is_self_chat: bool = False
    mentions: MentionSignals = field(default_factory=MentionSignals)

    group_mode: GroupMode | None = None
    """Resolved mode, set by the pipeline on admitted group messages"""
    is_listening_mode: bool = False
    """True for listen-mode groups when the bot was not addressed"""

    @property
    def batch_key(self) -> str:
        return f"{self.channel}:{self.chat_id}"
