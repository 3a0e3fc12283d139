"""
Tests for configuration loading and schema validation
"""
import json

import pytest

from clawgate.config.loader import get_config_path, load_config
from clawgate.config.schema import ClawgateConfig
from clawgate.errors import ConfigError


def test_missing_file_gives_defaults(tmp_path):
    config = load_config(tmp_path / "nope.json")
    assert config.channels == {}
    assert config.pairing.max_pending == 3
    assert config.channel("telegram").dm_policy == "pairing"


def test_json5_with_aliases(tmp_path):
    path = tmp_path / "clawgate.json5"
    path.write_text(
        """
        // comments and trailing commas are fine
        {
          stateDir: "/tmp/claw",
          channels: {
            telegram: {
              dmPolicy: "allowlist",
              allowedUsers: [123, "456"],
              groups: {"*": {mode: "mention-only"}, "-1001": {requireMention: false}},
              mentionPatterns: ["@?claw"],
              groupDebounceSec: 2,
              botIdentity: {username: "@clawbot", userId: 999},
            },
          },
        }
        """
    )

    config = load_config(path)
    telegram = config.channel("telegram")

    assert config.state_dir == "/tmp/claw"
    assert telegram.dm_policy == "allowlist"
    assert telegram.allowed_users == ["123", "456"]
    assert telegram.groups["*"].mode == "mention-only"
    assert telegram.groups["-1001"].require_mention is False
    assert telegram.group_debounce_sec == 2
    assert telegram.bot.username == "clawbot"
    assert telegram.bot.user_id == "999"


def test_env_substitution_and_include(tmp_path, monkeypatch):
    monkeypatch.setenv("CLAW_ADMIN", "777")
    (tmp_path / "discord.json").write_text(json.dumps({"dmPolicy": "open"}))
    path = tmp_path / "clawgate.json"
    path.write_text(json.dumps({
        "channels": {
            "telegram": {"adminChatId": "${CLAW_ADMIN}"},
            "discord": {"$include": "./discord.json"},
        }
    }))

    config = load_config(path)

    assert config.channel("telegram").admin_chat_id == "777"
    assert config.channel("discord").dm_policy == "open"


def test_invalid_policy_raises(tmp_path):
    path = tmp_path / "clawgate.json"
    path.write_text(json.dumps({"channels": {"telegram": {"dmPolicy": "everyone"}}}))
    with pytest.raises(ConfigError):
        load_config(path)


def test_unparseable_file_raises(tmp_path):
    path = tmp_path / "clawgate.json"
    path.write_text("{channels: ")
    with pytest.raises(ConfigError):
        load_config(path)


def test_config_path_from_env(tmp_path, monkeypatch):
    path = tmp_path / "custom.json"
    path.write_text(json.dumps({"strict": True}))
    monkeypatch.setenv("CLAWGATE_CONFIG", str(path))

    assert get_config_path() == path
    assert load_config().strict is True
    # Cached until invalidated
    path.write_text(json.dumps({"strict": False}))
    assert load_config().strict is True


def test_resolve_state_dir(tmp_path):
    assert ClawgateConfig(stateDir=str(tmp_path)).resolve_state_dir() == tmp_path
    assert ClawgateConfig().resolve_state_dir().name == ".clawgate"
