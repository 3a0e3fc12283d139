"""
Direct-message access control

Handles pairing, allowlists, and DM policy enforcement.

Access control logic:
1. Self-chat is always allowed
2. If selfChatMode is enabled, ONLY self-chat is allowed (others silently ignored)
3. dmPolicy "open": everyone allowed
4. Static allowlist or approved pairing store: allowed
5. dmPolicy "allowlist": blocked (user told once)
6. dmPolicy "pairing": create or reuse a pairing request

The controller only decides. Sending notices is up to the caller, guided
by the notify_user / notify_admin flags.
"""
from __future__ import annotations

import logging
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Literal, Mapping

from ..config.schema import ChannelConfig
from ..pairing.group_store import GroupApprovalStore
from ..pairing.store import PairingStore

logger = logging.getLogger(__name__)

MAX_BLOCKED_NOTICES = 10_000

AccessStatus = Literal["allowed", "blocked", "pairing", "queue_full"]
AccessReason = Literal[
    "self",
    "self-chat-mode",
    "open",
    "allowlisted",
    "not-allowlisted",
    "pairing-created",
    "pairing-pending",
    "queue-full",
]


@dataclass(frozen=True)
class AccessDecision:
    """Result of a DM access check"""

    status: AccessStatus
    reason: AccessReason
    pairing_code: str | None = None
    notify_user: bool = False
    """Caller should send the user the notice matching status"""
    notify_admin: bool = False
    """Caller should post the pairing code to the admin chat"""

    @property
    def allowed(self) -> bool:
        return self.status == "allowed"


@dataclass(frozen=True)
class GroupJoinDecision:
    approved: bool
    reason: Literal["policy-not-pairing", "added-by-paired-user", "added-by-unpaired-user"]


class AccessController:
    """
    DM access state machine per (channel, user).

    Usage:
        controller = AccessController(pairing_store)
        decision = await controller.check("telegram", "12345", channel_config)
        if decision.allowed:
            ...
    """

    def __init__(self, store: PairingStore, group_store: GroupApprovalStore | None = None):
        self.store = store
        self.group_store = group_store
        self._blocked_notified: OrderedDict[tuple[str, str], None] = OrderedDict()

    def _first_block(self, channel: str, user_id: str) -> bool:
        """True the first time a user is blocked (so they are told only once)"""
        key = (channel, user_id)
        if key in self._blocked_notified:
            return False
        self._blocked_notified[key] = None
        while len(self._blocked_notified) > MAX_BLOCKED_NOTICES:
            self._blocked_notified.popitem(last=False)
        return True

    async def check(
        self,
        channel: str,
        user_id: str,
        config: ChannelConfig,
        *,
        is_self_chat: bool = False,
        meta: Mapping[str, Any] | None = None,
    ) -> AccessDecision:
        user_id = str(user_id)

        if is_self_chat:
            return AccessDecision("allowed", "self")

        if config.self_chat_mode:
            # Never engage pairing: the bot must not message the owner's contacts
            return AccessDecision("blocked", "self-chat-mode")

        if config.dm_policy == "open":
            return AccessDecision("allowed", "open")

        if await self.store.is_user_allowed(channel, user_id, config.allowed_users):
            return AccessDecision("allowed", "allowlisted")

        if config.dm_policy == "allowlist":
            notify = self._first_block(channel, user_id)
            if notify:
                logger.info(f"Blocked {channel} DM from {user_id} (not in allowlist)")
            return AccessDecision("blocked", "not-allowlisted", notify_user=notify)

        result = await self.store.upsert_pairing_request(channel, user_id, meta)

        if result.queue_full:
            return AccessDecision("queue_full", "queue-full", notify_user=True)

        if not result.created:
            return AccessDecision("pairing", "pairing-pending", pairing_code=result.code)

        return AccessDecision(
            "pairing",
            "pairing-created",
            pairing_code=result.code,
            notify_user=True,
            notify_admin=bool(config.admin_chat_id),
        )

    async def check_group_join(
        self,
        channel: str,
        chat_id: str,
        added_by: str,
        config: ChannelConfig,
    ) -> GroupJoinDecision:
        """
        Decide on a group the bot was just added to.

        Under dmPolicy "pairing" only paired users may add the bot; an
        unapproved join means the adapter should leave the group.
        """
        if config.dm_policy != "pairing":
            await self._approve_group(channel, chat_id)
            return GroupJoinDecision(True, "policy-not-pairing")

        if await self.store.is_user_allowed(channel, added_by, config.allowed_users):
            await self._approve_group(channel, chat_id)
            logger.info(f"{channel} group {chat_id} approved by paired user {added_by}")
            return GroupJoinDecision(True, "added-by-paired-user")

        logger.info(f"Unpaired {channel} user {added_by} tried to add the bot to group {chat_id}")
        return GroupJoinDecision(False, "added-by-unpaired-user")

    async def _approve_group(self, channel: str, chat_id: str) -> None:
        if self.group_store is not None:
            await self.group_store.approve_group(channel, chat_id)

    async def is_group_admitted(self, channel: str, chat_id: str, config: ChannelConfig) -> bool:
        """Pairing-level group gate (only active with requireGroupApproval)"""
        if not config.require_group_approval or config.dm_policy != "pairing":
            return True
        if self.group_store is None:
            return True
        return await self.group_store.is_group_approved(channel, chat_id)
