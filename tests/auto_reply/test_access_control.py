"""
Unit tests for AccessController

Tests the DM policy state machine and group join approval.
"""

import pytest

from clawgate.auto_reply.access_control import AccessController
from clawgate.config.schema import ChannelConfig
from clawgate.pairing.group_store import GroupApprovalStore


@pytest.fixture
def controller(store, state_dir):
    return AccessController(store, GroupApprovalStore(state_dir))


class TestDmPolicies:
    """Test each dmPolicy."""

    @pytest.mark.asyncio
    async def test_open(self, controller):
        decision = await controller.check("telegram", "1", ChannelConfig(dmPolicy="open"))
        assert decision.allowed is True
        assert decision.reason == "open"

    @pytest.mark.asyncio
    async def test_static_allowlist(self, controller):
        config = ChannelConfig(dmPolicy="allowlist", allowedUsers=[123])
        decision = await controller.check("telegram", "123", config)
        assert decision.allowed is True
        assert decision.reason == "allowlisted"

    @pytest.mark.asyncio
    async def test_allowlist_blocks_once(self, controller):
        """Test the refusal notice is requested only the first time"""
        config = ChannelConfig(dmPolicy="allowlist", allowedUsers=["123"])

        first = await controller.check("telegram", "999", config)
        second = await controller.check("telegram", "999", config)

        assert first.status == "blocked"
        assert first.notify_user is True
        assert second.status == "blocked"
        assert second.notify_user is False

    @pytest.mark.asyncio
    async def test_allowlist_never_creates_pairing(self, controller, store):
        config = ChannelConfig(dmPolicy="allowlist")
        await controller.check("telegram", "999", config)
        assert await store.list_pairing_requests("telegram") == []

    @pytest.mark.asyncio
    async def test_approved_user_allowed_under_allowlist(self, controller, store):
        await store.add_allow_from("telegram", "55")
        decision = await controller.check("telegram", "55", ChannelConfig(dmPolicy="allowlist"))
        assert decision.allowed is True


class TestPairing:
    """Test the pairing flow."""

    @pytest.mark.asyncio
    async def test_first_message_creates_code(self, controller):
        decision = await controller.check("telegram", "1", ChannelConfig())
        assert decision.status == "pairing"
        assert decision.reason == "pairing-created"
        assert decision.notify_user is True
        assert decision.notify_admin is False
        assert len(decision.pairing_code) == 8

    @pytest.mark.asyncio
    async def test_repeat_message_is_silent(self, controller):
        first = await controller.check("telegram", "1", ChannelConfig())
        second = await controller.check("telegram", "1", ChannelConfig())
        assert second.reason == "pairing-pending"
        assert second.pairing_code == first.pairing_code
        assert second.notify_user is False

    @pytest.mark.asyncio
    async def test_admin_notified_when_configured(self, controller):
        decision = await controller.check("telegram", "1", ChannelConfig(adminChatId=777))
        assert decision.notify_admin is True

    @pytest.mark.asyncio
    async def test_queue_full(self, controller):
        for user in ("1", "2", "3"):
            await controller.check("telegram", user, ChannelConfig())
        decision = await controller.check("telegram", "4", ChannelConfig())
        assert decision.status == "queue_full"
        assert decision.notify_user is True
        assert decision.pairing_code is None

    @pytest.mark.asyncio
    async def test_allowed_after_approval(self, controller, store):
        decision = await controller.check("telegram", "1", ChannelConfig())
        await store.approve_pairing_code("telegram", decision.pairing_code)
        assert (await controller.check("telegram", "1", ChannelConfig())).allowed is True


class TestSelfChat:
    """Test self-chat handling."""

    @pytest.mark.asyncio
    async def test_self_chat_always_allowed(self, controller):
        config = ChannelConfig(dmPolicy="allowlist", selfChatMode=True)
        decision = await controller.check("whatsapp", "me", config, is_self_chat=True)
        assert decision.allowed is True
        assert decision.reason == "self"

    @pytest.mark.asyncio
    async def test_self_chat_mode_blocks_silently(self, controller, store):
        config = ChannelConfig(selfChatMode=True)
        decision = await controller.check("whatsapp", "friend", config)
        assert decision.status == "blocked"
        assert decision.notify_user is False
        assert await store.list_pairing_requests("whatsapp") == []


class TestGroupJoin:
    """Test group join approval."""

    @pytest.mark.asyncio
    async def test_non_pairing_policy_auto_approves(self, controller):
        config = ChannelConfig(dmPolicy="open", requireGroupApproval=True)
        decision = await controller.check_group_join("telegram", "-1001", "1", config)
        assert decision.approved is True

    @pytest.mark.asyncio
    async def test_paired_user_approves_group(self, controller, store):
        await store.add_allow_from("telegram", "1")
        config = ChannelConfig(requireGroupApproval=True)

        decision = await controller.check_group_join("telegram", "-1001", "1", config)

        assert decision.approved is True
        assert await controller.is_group_admitted("telegram", "-1001", config) is True

    @pytest.mark.asyncio
    async def test_unpaired_user_rejected(self, controller):
        config = ChannelConfig(requireGroupApproval=True)
        decision = await controller.check_group_join("telegram", "-1001", "2", config)
        assert decision.approved is False
        assert await controller.is_group_admitted("telegram", "-1001", config) is False

    @pytest.mark.asyncio
    async def test_group_admission_off_by_default(self, controller):
        assert await controller.is_group_admitted("telegram", "-1001", ChannelConfig()) is True
