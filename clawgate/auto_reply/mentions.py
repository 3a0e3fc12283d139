"""
Mention detection: "was the bot addressed?"

Every platform exposes a different subset of signals (structured mention
lists, Telegram entities, reply/quote authors, plain text). Each detection
method looks at one signal and returns:

- MentionResult(True, method)  - the bot was addressed, stop
- MentionResult(False)         - the bot was definitely not addressed, stop
                                 (an explicit mention list naming others)
- None                         - no opinion, try the next method

A MentionStrategy lists the methods a platform supports in priority order;
MentionDetector runs them. Adding a platform means adding a strategy, not
another copy of the gating logic.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Callable, ClassVar

from ..config.schema import BotIdentity, ChannelConfig
from ..types import GroupMode, InboundMessage, MentionMethod, MentionRef, MentionSignals

logger = logging.getLogger(__name__)

_ZERO_WIDTH_RE = re.compile(r"[\u200B-\u200D\uFEFF]")
_USER_TOKEN_RE = re.compile(r"<@!?([A-Za-z0-9_.-]+)(?:\|[^>]*)?>")


@dataclass(frozen=True)
class MentionResult:
    was_mentioned: bool
    method: MentionMethod | None = None


NOT_MENTIONED = MentionResult(False)


@dataclass(frozen=True)
class MentionConfig:
    """Operator patterns plus the bot's own identity on the platform"""

    patterns: tuple[str, ...] = ()
    bot: BotIdentity = field(default_factory=BotIdentity)

    @classmethod
    def from_channel(cls, config: ChannelConfig) -> MentionConfig:
        return cls(patterns=tuple(config.mention_patterns), bot=config.bot)


DetectionMethod = Callable[[str, MentionSignals, MentionConfig], "MentionResult | None"]


# ---------------------------------------------------------------------------
# Normalization helpers
# ---------------------------------------------------------------------------

def digits(value: str | None) -> str:
    return re.sub(r"\D", "", value or "")


def jid_user(value: str | None) -> str:
    """'15551234567:3@s.whatsapp.net' -> '15551234567'"""
    if not value:
        return ""
    return value.split("@", 1)[0].split(":", 1)[0]


def _same_phone(a: str | None, b: str | None) -> bool:
    da, db = digits(a), digits(b)
    return bool(da) and da == db


def _self_jid_users(bot: BotIdentity) -> set[str]:
    return {u for u in (jid_user(bot.jid), jid_user(bot.lid)) if u}


def is_self_ref(ref: MentionRef, bot: BotIdentity) -> bool:
    """Whether one structured mention points at the bot"""
    if bot.uuid and ref.uuid and ref.uuid == bot.uuid:
        return True
    if bot.user_id and ref.user_id and str(ref.user_id) == bot.user_id:
        return True
    if bot.username and ref.username and ref.username.lstrip("@").lower() == bot.username.lower():
        return True
    if ref.number and _same_phone(ref.number, bot.phone_number):
        return True
    if ref.jid:
        user = jid_user(ref.jid)
        if user and user in _self_jid_users(bot):
            return True
        if _same_phone(user, bot.phone_number):
            return True
    return False


@lru_cache(maxsize=256)
def compile_pattern(pattern: str) -> re.Pattern[str] | None:
    """Compile a mention pattern; invalid ones are logged once and skipped"""
    try:
        return re.compile(pattern, re.IGNORECASE)
    except re.error as e:
        logger.warning(f"Invalid mention pattern {pattern!r} skipped: {e}")
        return None


def _entity_text(text: str, offset: int, length: int) -> str:
    """Telegram offsets count UTF-16 code units"""
    encoded = text.encode("utf-16-le")
    return encoded[offset * 2:(offset + length) * 2].decode("utf-16-le", errors="ignore")


# ---------------------------------------------------------------------------
# Detection methods
# ---------------------------------------------------------------------------

def detect_native(text: str, signals: MentionSignals, config: MentionConfig) -> MentionResult | None:
    """Structured mentions list supplied by the platform"""
    if signals.platform_mentioned:
        return MentionResult(True, "native")
    if signals.mentions:
        if any(is_self_ref(ref, config.bot) for ref in signals.mentions):
            return MentionResult(True, "native")
        # Explicit mentions of other users only
        return NOT_MENTIONED
    return None


def detect_user_tokens(text: str, signals: MentionSignals, config: MentionConfig) -> MentionResult | None:
    """Discord/Slack '<@U123>' tokens when the adapter passed no mentions list"""
    ids = _USER_TOKEN_RE.findall(text or "")
    if not ids:
        return None
    if config.bot.user_id and config.bot.user_id in ids:
        return MentionResult(True, "native")
    return NOT_MENTIONED


def detect_entity(text: str, signals: MentionSignals, config: MentionConfig) -> MentionResult | None:
    """
    Telegram mention / text_mention / bot_command entities.

    Vetoes only when every user-mention entity could be checked against
    the bot's identity and none of them (nor any command) names the bot.
    """
    bot = config.bot
    username = bot.username.lower() if bot.username else None
    mentions_others = False
    unverifiable = False

    for entity in signals.entities:
        if entity.type == "text_mention":
            if not bot.user_id:
                unverifiable = True
            elif entity.user_id and str(entity.user_id) == bot.user_id:
                return MentionResult(True, "entity")
            else:
                mentions_others = True
        elif entity.type == "mention":
            if not username:
                unverifiable = True
                continue
            if _entity_text(text, entity.offset, entity.length).lower() == f"@{username}":
                return MentionResult(True, "entity")
            mentions_others = True
        elif entity.type == "bot_command" and username:
            command = _entity_text(text, entity.offset, entity.length).lower()
            if command.endswith(f"@{username}"):
                return MentionResult(True, "command")

    if mentions_others and not unverifiable:
        return NOT_MENTIONED
    return None


def detect_text_username(text: str, signals: MentionSignals, config: MentionConfig) -> MentionResult | None:
    username = config.bot.username
    if username and re.search(rf"@{re.escape(username)}\b", text or "", re.IGNORECASE):
        return MentionResult(True, "text")
    return None


def detect_command(text: str, signals: MentionSignals, config: MentionConfig) -> MentionResult | None:
    """/command@botusername (Telegram convention)"""
    username = config.bot.username
    if username and re.match(rf"^/\w+@{re.escape(username)}\b", (text or "").strip(), re.IGNORECASE):
        return MentionResult(True, "command")
    return None


def detect_regex(text: str, signals: MentionSignals, config: MentionConfig) -> MentionResult | None:
    if not config.patterns:
        return None
    clean = _ZERO_WIDTH_RE.sub("", (text or "").strip())
    for pattern in config.patterns:
        if not pattern:
            continue
        compiled = compile_pattern(pattern)
        if compiled is not None and compiled.search(clean):
            return MentionResult(True, "regex")
    return None


def detect_reply(text: str, signals: MentionSignals, config: MentionConfig) -> MentionResult | None:
    """Reply to / quote of one of the bot's own messages"""
    reply = signals.reply_to
    if reply is None:
        return None
    bot = config.bot
    if bot.uuid and reply.author_uuid == bot.uuid:
        return MentionResult(True, "reply")
    if bot.user_id and reply.author_id and str(reply.author_id) == bot.user_id:
        return MentionResult(True, "reply")
    if _same_phone(reply.author_number, bot.phone_number):
        return MentionResult(True, "reply")
    if reply.author_jid:
        user = jid_user(reply.author_jid)
        if user in _self_jid_users(bot) or _same_phone(user, bot.phone_number):
            return MentionResult(True, "reply")
    return None


def detect_e164(text: str, signals: MentionSignals, config: MentionConfig) -> MentionResult | None:
    """Last resort: the bot's phone number digits appear in the text"""
    self_digits = digits(config.bot.phone_number)
    if self_digits and self_digits in digits(text):
        return MentionResult(True, "e164")
    return None


# ---------------------------------------------------------------------------
# Strategies
# ---------------------------------------------------------------------------

class MentionStrategy:
    """
    Per-platform mention detection and group key conventions.

    Subclasses only declare which detection methods the platform supports
    (in priority order) and how a chat id is spelled in the groups config.
    """

    channel: ClassVar[str] = ""
    methods: ClassVar[tuple[DetectionMethod, ...]] = (detect_native, detect_regex, detect_reply)
    default_mode: ClassVar[GroupMode] = "open"

    def group_keys(self, msg: InboundMessage) -> list[str]:
        return [msg.chat_id]


class TelegramMentionStrategy(MentionStrategy):
    channel = "telegram"
    methods = (detect_entity, detect_text_username, detect_command, detect_regex, detect_reply)


class TelegramMTProtoMentionStrategy(MentionStrategy):
    channel = "telegram-mtproto"
    methods = (detect_native, detect_entity, detect_text_username, detect_regex, detect_reply)


class DiscordMentionStrategy(MentionStrategy):
    channel = "discord"
    methods = (detect_native, detect_user_tokens, detect_regex, detect_reply)

    def group_keys(self, msg: InboundMessage) -> list[str]:
        keys = [msg.chat_id]
        if msg.server_id:
            keys.append(msg.server_id)
        return keys


class SlackMentionStrategy(DiscordMentionStrategy):
    channel = "slack"


class WhatsAppMentionStrategy(MentionStrategy):
    channel = "whatsapp"
    methods = (detect_native, detect_regex, detect_reply, detect_e164)


class SignalMentionStrategy(MentionStrategy):
    channel = "signal"
    methods = (detect_native, detect_regex, detect_reply, detect_e164)
    # Signal groups historically required a mention unless told otherwise
    default_mode = "mention-only"

    def group_keys(self, msg: InboundMessage) -> list[str]:
        group_id = msg.chat_id.removeprefix("group:")
        return [group_id, f"group:{group_id}"]


DEFAULT_STRATEGIES: dict[str, MentionStrategy] = {
    s.channel: s
    for s in (
        TelegramMentionStrategy(),
        TelegramMTProtoMentionStrategy(),
        DiscordMentionStrategy(),
        SlackMentionStrategy(),
        WhatsAppMentionStrategy(),
        SignalMentionStrategy(),
    )
}


def get_mention_strategy(channel: str) -> MentionStrategy:
    """Strategy for a channel; unknown channels get the generic chain"""
    return DEFAULT_STRATEGIES.get(channel) or MentionStrategy()


class MentionDetector:
    """Runs a strategy's detection methods, first decisive answer wins"""

    def __init__(self, strategy: MentionStrategy):
        self.strategy = strategy

    def detect(
        self,
        text: str,
        signals: MentionSignals | None,
        config: MentionConfig,
    ) -> MentionResult:
        signals = signals or MentionSignals()
        for method in self.strategy.methods:
            result = method(text or "", signals, config)
            if result is not None:
                return result
        return NOT_MENTIONED
