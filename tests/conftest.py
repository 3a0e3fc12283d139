"""
Pytest configuration for clawgate tests

Shared fixtures: adapters, pairing stores, resettable caches
"""
from pathlib import Path
from unittest.mock import AsyncMock

import pytest

from clawgate.auto_reply.mentions import compile_pattern
from clawgate.channels.base import ChannelAdapter
from clawgate.config.loader import invalidate_config_cache
from clawgate.pairing.store import PairingStore
from clawgate.types import InboundMessage


class MockAdapter(ChannelAdapter):
    """Adapter whose outbound calls are AsyncMocks."""

    def __init__(self, channel_id: str = "telegram"):
        super().__init__(channel_id)
        self._next_id = 0
        self.send_message = AsyncMock(side_effect=self._next_message_id)
        self.leave_chat = AsyncMock()

    async def send_message(self, chat_id: str, text: str) -> str | None:
        # Replaced per instance by the AsyncMock above
        return None

    def _next_message_id(self, chat_id: str, text: str) -> str:
        self._next_id += 1
        return f"out-{self._next_id}"

    def sent_to(self, chat_id: str) -> list[str]:
        return [c.args[1] for c in self.send_message.call_args_list if c.args[0] == chat_id]


@pytest.fixture(autouse=True)
def reset_caches():
    """Clear process-wide caches between tests"""
    compile_pattern.cache_clear()
    invalidate_config_cache()
    yield
    compile_pattern.cache_clear()
    invalidate_config_cache()


@pytest.fixture
def state_dir(tmp_path: Path) -> Path:
    return tmp_path / "state"


@pytest.fixture
def store(state_dir: Path) -> PairingStore:
    return PairingStore(state_dir)


@pytest.fixture
def make_adapter():
    """Factory for mock adapters on any channel"""
    return MockAdapter


@pytest.fixture
def adapter() -> MockAdapter:
    return MockAdapter("telegram")


@pytest.fixture
def make_msg():
    """Factory for inbound messages with sensible defaults"""

    def _make(text: str = "hello", **kwargs) -> InboundMessage:
        kwargs.setdefault("channel", "telegram")
        kwargs.setdefault("chat_id", "-1001")
        kwargs.setdefault("sender_id", "42")
        return InboundMessage(text=text, **kwargs)

    return _make
