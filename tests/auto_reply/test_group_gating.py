"""
Unit tests for GroupGatingEngine

Tests the shared gating steps across platforms.
"""

import pytest

from clawgate.auto_reply.group_gating import GroupGatingEngine
from clawgate.auto_reply.mentions import MentionConfig
from clawgate.config.schema import BotIdentity
from clawgate.types import MentionRef, MentionSignals


@pytest.fixture
def engine():
    return GroupGatingEngine()


def gate(engine, msg, groups, patterns=(), **bot):
    return engine.gate(
        msg,
        engine.group_keys(msg),
        msg.sender_id,
        groups,
        MentionConfig(patterns=tuple(patterns), bot=BotIdentity(**bot)),
    )


class TestModes:
    """Test mode handling with the wildcard/specific precedence."""

    GROUPS = {"*": {"mode": "mention-only"}, "-1001": {"mode": "open"}}

    def test_specific_open_group(self, engine, make_msg):
        msg = make_msg("hello everyone", chat_id="-1001", is_group=True)
        result = gate(engine, msg, self.GROUPS, patterns=["@?claw"])
        assert result.should_process is True
        assert result.mode == "open"
        assert result.was_mentioned is False

    def test_wildcard_mention_only_group(self, engine, make_msg):
        msg = make_msg("hello everyone", chat_id="-1002", is_group=True)
        result = gate(engine, msg, self.GROUPS, patterns=["@?claw"])
        assert result.should_process is False
        assert result.reason == "mention-required"

    def test_mention_only_mentioned(self, engine, make_msg):
        msg = make_msg("@claw what's the weather", chat_id="-1002", is_group=True)
        result = gate(engine, msg, self.GROUPS, patterns=["@?claw"])
        assert result.should_process is True
        assert result.was_mentioned is True
        assert result.method == "regex"

    def test_listen_mode(self, engine, make_msg):
        groups = {"-1001": {"mode": "listen"}}
        quiet = gate(engine, make_msg("chatter", is_group=True), groups, patterns=["claw"])
        addressed = gate(engine, make_msg("claw?", is_group=True), groups, patterns=["claw"])

        assert quiet.should_process is True
        assert quiet.is_listening is True
        assert addressed.should_process is True
        assert addressed.is_listening is False

    def test_disabled(self, engine, make_msg):
        groups = {"-1001": {"mode": "disabled"}}
        result = gate(engine, make_msg("claw", is_group=True), groups, patterns=["claw"])
        assert result.should_process is False
        assert result.reason == "groups-disabled"

    def test_legacy_require_mention_equivalent(self, engine, make_msg):
        legacy = {"-1001": {"requireMention": True}}
        modern = {"-1001": {"mode": "mention-only"}}
        for text in ("plain chat", "hey claw"):
            msg = make_msg(text, is_group=True)
            a = gate(engine, msg, legacy, patterns=["claw"])
            b = gate(engine, msg, modern, patterns=["claw"])
            assert (a.should_process, a.mode, a.reason) == (b.should_process, b.mode, b.reason)


class TestAllowlists:
    """Test group and sender allowlists."""

    def test_group_not_listed(self, engine, make_msg):
        groups = {"-1001": {"mode": "open"}}
        result = gate(engine, make_msg(chat_id="-1003", is_group=True), groups)
        assert result.should_process is False
        assert result.reason == "group-not-in-allowlist"

    def test_no_groups_config_is_open(self, engine, make_msg):
        result = gate(engine, make_msg(is_group=True), None)
        assert result.should_process is True
        assert result.mode == "open"

    def test_sender_not_allowed(self, engine, make_msg):
        groups = {"-1001": {"mode": "open", "allowedUsers": ["7"]}}
        result = gate(engine, make_msg(sender_id="42", is_group=True), groups)
        assert result.reason == "user-not-allowed"

    def test_sender_allowed(self, engine, make_msg):
        groups = {"-1001": {"mode": "open", "allowedUsers": [42]}}
        assert gate(engine, make_msg(sender_id="42", is_group=True), groups).should_process is True


class TestBotMessages:
    def test_bot_sender_dropped_by_default(self, engine, make_msg):
        msg = make_msg(is_group=True, sender_is_bot=True)
        assert gate(engine, msg, None).reason == "bot-message"

    def test_bot_sender_opt_in(self, engine, make_msg):
        msg = make_msg(is_group=True, sender_is_bot=True)
        groups = {"*": {"mode": "open", "receiveBotMessages": True}}
        assert gate(engine, msg, groups).should_process is True


class TestPlatforms:
    """Test platform-specific keys and detection inside gating."""

    def test_native_beats_regex(self, engine, make_msg):
        msg = make_msg(
            "claw, see this",
            channel="discord",
            chat_id="c1",
            is_group=True,
            mentions=MentionSignals(mentions=(MentionRef(user_id="B1"),)),
        )
        groups = {"*": {"mode": "mention-only"}}
        result = gate(engine, msg, groups, patterns=["claw"], userId="B1")
        assert result.should_process is True
        assert result.method == "native"

    def test_discord_server_key(self, engine, make_msg):
        msg = make_msg(channel="discord", chat_id="c9", server_id="g1", is_group=True)
        groups = {"g1": {"mode": "disabled"}}
        assert gate(engine, msg, groups).reason == "groups-disabled"

    def test_signal_prefixed_key(self, engine, make_msg):
        msg = make_msg("hi", channel="signal", chat_id="abc", is_group=True)
        groups = {"group:abc": {"mode": "open"}}
        assert gate(engine, msg, groups).should_process is True

    def test_signal_defaults_to_mention_only(self, engine, make_msg):
        msg = make_msg("hi", channel="signal", chat_id="abc", is_group=True)
        result = gate(engine, msg, None)
        assert result.mode == "mention-only"
        assert result.should_process is False

    def test_same_decision_for_every_platform(self, engine, make_msg):
        groups = {"*": {"mode": "mention-only"}, "-1001": {"mode": "listen"}}
        for channel in ("telegram", "telegram-mtproto", "discord", "slack", "whatsapp"):
            listed = gate(engine, make_msg("hi", channel=channel, is_group=True), groups)
            other = gate(engine, make_msg("hi", channel=channel, chat_id="-1009", is_group=True), groups)
            assert (listed.should_process, listed.mode) == (True, "listen")
            assert (other.should_process, other.reason) == (False, "mention-required")
