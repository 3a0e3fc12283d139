"""
Inbound admission pipeline.

Every normalized message from every channel goes through
InboundPipeline.handle():

- DMs go through the AccessController; allowed ones are delivered to the
  agent right away, the rest trigger (at most one) pairing or refusal
  notice.
- Group messages go through the GroupGatingEngine; admitted ones are
  buffered by the GroupBatcher and delivered as one batch per quiet period
  (or immediately on a mention / for instant groups).

The agent side sees exactly one on_admitted() call per admitted DM or per
flushed group batch.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Awaitable, Callable, Literal, Mapping

from ..channels.base import ChannelAdapter
from ..config.schema import ChannelConfig, ClawgateConfig
from ..errors import MessageValidationError
from ..pairing.approval import ApprovalTracker, PendingApproval, parse_approval_reply
from ..pairing.group_store import GroupApprovalStore
from ..pairing.store import PairingStore
from ..types import CHANNEL_IDS, InboundMessage
from . import notices
from .access_control import AccessController, AccessDecision
from .batching_config import collect_group_batching_config
from .debounce import GroupBatcher
from .group_gating import GatingResult, GroupGatingEngine
from .mentions import MentionConfig, MentionStrategy
from .scheduler import Scheduler

logger = logging.getLogger(__name__)

OnAdmitted = Callable[[InboundMessage], Awaitable[None]]


@dataclass(frozen=True)
class AdmissionOutcome:
    """What handle() did with a message"""

    action: Literal["delivered", "buffered", "dropped", "admin-reply"]
    reason: str | None = None
    access: AccessDecision | None = None
    gating: GatingResult | None = None


class InboundPipeline:
    """
    Admission pipeline for all channels of one process.

    Usage:
        async def on_admitted(msg: InboundMessage) -> None:
            await agent_session.send(msg)

        pipeline = InboundPipeline.from_config(load_config(), on_admitted)
        adapter.set_message_handler(pipeline.handle)
        ...
        await pipeline.stop()
    """

    def __init__(
        self,
        config: ClawgateConfig,
        store: PairingStore,
        on_admitted: OnAdmitted,
        *,
        group_store: GroupApprovalStore | None = None,
        scheduler: Scheduler | None = None,
        strategies: Mapping[str, MentionStrategy] | None = None,
    ):
        self.config = config
        self.store = store
        self.on_admitted = on_admitted
        self.access = AccessController(store, group_store)
        self.gating = GroupGatingEngine(strategies)
        self.batching = collect_group_batching_config(config.channels)
        self.batcher = GroupBatcher(self._on_flush, scheduler)
        self.approvals = ApprovalTracker()
        self._tasks: set[asyncio.Task] = set()
        self._stopped = False

    @classmethod
    def from_config(
        cls,
        config: ClawgateConfig,
        on_admitted: OnAdmitted,
        *,
        state_dir: Path | None = None,
        scheduler: Scheduler | None = None,
    ) -> InboundPipeline:
        """Build the pipeline and its stores from configuration"""
        state_dir = state_dir or config.resolve_state_dir()
        store = PairingStore(
            state_dir,
            max_pending=config.pairing.max_pending,
            ttl_ms=config.pairing.ttl_minutes * 60 * 1000,
        )
        return cls(
            config,
            store,
            on_admitted,
            group_store=GroupApprovalStore(state_dir),
            scheduler=scheduler,
        )

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------

    async def handle(self, msg: InboundMessage, adapter: ChannelAdapter) -> AdmissionOutcome:
        """Admit, buffer or drop one inbound message"""
        problem = self._validate(msg)
        if problem:
            if self.config.strict:
                raise MessageValidationError(problem)
            logger.warning(f"Dropping malformed inbound message: {problem}")
            return AdmissionOutcome("dropped", "invalid-message")

        if self._stopped:
            return AdmissionOutcome("dropped", "stopped")

        channel_config = self.config.channel(msg.channel)

        if await self._maybe_handle_admin_reply(msg, adapter, channel_config):
            return AdmissionOutcome("admin-reply")

        if msg.is_group:
            return await self._handle_group(msg, adapter, channel_config)
        return await self._handle_dm(msg, adapter, channel_config)

    def _validate(self, msg: InboundMessage) -> str | None:
        if msg.channel not in CHANNEL_IDS:
            return f"unknown channel {msg.channel!r}"
        if not msg.chat_id:
            return f"{msg.channel} message without chat_id"
        if not isinstance(msg.text, str):
            return f"{msg.channel} message {msg.chat_id} has non-text body"
        if not msg.is_group and not msg.sender_id:
            return f"{msg.channel} DM in {msg.chat_id} without sender_id"
        return None

    # ------------------------------------------------------------------
    # DMs
    # ------------------------------------------------------------------

    async def _handle_dm(
        self,
        msg: InboundMessage,
        adapter: ChannelAdapter,
        config: ChannelConfig,
    ) -> AdmissionOutcome:
        decision = await self.access.check(
            msg.channel,
            msg.sender_id,
            config,
            is_self_chat=msg.is_self_chat,
            meta={"username": msg.sender_handle, "name": msg.sender_name},
        )

        if decision.allowed:
            await self._deliver(msg)
            return AdmissionOutcome("delivered", decision.reason, access=decision)

        await self._send_access_notices(msg, adapter, config, decision)
        return AdmissionOutcome("dropped", decision.reason, access=decision)

    async def _send_access_notices(
        self,
        msg: InboundMessage,
        adapter: ChannelAdapter,
        config: ChannelConfig,
        decision: AccessDecision,
    ) -> None:
        if decision.status == "blocked":
            if decision.notify_user:
                await self._safe_send(adapter, msg.chat_id, notices.NOT_AUTHORIZED_TEXT)
            return

        if decision.status == "queue_full":
            await self._safe_send(adapter, msg.chat_id, notices.QUEUE_FULL_TEXT)
            return

        if not decision.notify_user or not decision.pairing_code:
            return

        code = decision.pairing_code
        display_name = msg.sender_handle or msg.sender_name or msg.sender_id

        if not decision.notify_admin:
            await self._safe_send(adapter, msg.chat_id, notices.format_pairing_message(msg.channel, code))
            logger.info(
                f"Pairing request from {display_name} on {msg.channel}: {code} "
                f"(approve with approve_pairing_request(store, '{msg.channel}', '{code}'))"
            )
            return

        await self._safe_send(adapter, msg.chat_id, notices.PAIRING_ACK_TEXT)
        admin_text = notices.format_admin_pairing_notification(
            msg.channel, msg.sender_id, display_name, code, msg.text
        )
        message_id = await self._safe_send(adapter, config.admin_chat_id, admin_text)
        if message_id is None:
            logger.info(f"Pairing request from {display_name} on {msg.channel}: {code}")
            return
        self.approvals.track(
            message_id,
            PendingApproval(
                channel=msg.channel,
                code=code,
                user_id=msg.sender_id,
                chat_id=msg.chat_id,
                display_name=display_name,
            ),
        )

    async def _maybe_handle_admin_reply(
        self,
        msg: InboundMessage,
        adapter: ChannelAdapter,
        config: ChannelConfig,
    ) -> bool:
        """Approve/deny pairing when the admin replies to a notification"""
        reply = msg.mentions.reply_to
        if not config.admin_chat_id or msg.chat_id != config.admin_chat_id:
            return False
        if reply is None or not reply.message_id:
            return False
        pending = self.approvals.get(reply.message_id)
        if pending is None:
            return False

        action = parse_approval_reply(msg.text)
        if action is None:
            # Not a verdict; keep waiting but don't forward it to the agent
            return True

        self.approvals.pop(reply.message_id)
        if action == "approve":
            approved = await self.store.approve_pairing_code(pending.channel, pending.code)
            if approved is None:
                await self._safe_send(
                    adapter, msg.chat_id, "Could not approve: code not found or expired."
                )
                return True
            await self._safe_send(adapter, msg.chat_id, notices.format_approval_result(pending.display_name, True))
            await self._safe_send(adapter, pending.chat_id, notices.APPROVED_USER_TEXT)
        else:
            await self.store.deny_pairing_code(pending.channel, pending.code)
            await self._safe_send(adapter, msg.chat_id, notices.format_approval_result(pending.display_name, False))
        return True

    # ------------------------------------------------------------------
    # Groups
    # ------------------------------------------------------------------

    async def _handle_group(
        self,
        msg: InboundMessage,
        adapter: ChannelAdapter,
        config: ChannelConfig,
    ) -> AdmissionOutcome:
        if not await self.access.is_group_admitted(msg.channel, msg.chat_id, config):
            logger.debug(f"Dropping {msg.batch_key}: group not approved")
            return AdmissionOutcome("dropped", "group-not-approved")

        result = self.gating.gate(
            msg,
            self.gating.group_keys(msg),
            msg.sender_id,
            config.groups,
            MentionConfig.from_channel(config),
        )
        if not result.should_process:
            logger.debug(f"Dropping {msg.batch_key} from {msg.sender_id}: {result.reason}")
            return AdmissionOutcome("dropped", result.reason, gating=result)

        admitted = replace(
            msg,
            was_mentioned=bool(result.was_mentioned),
            group_mode=result.mode,
            is_listening_mode=result.is_listening,
        )
        debounce_ms = self.batching.debounce_for(msg.channel, msg.chat_id, msg.server_id)
        logger.debug(
            f"Group message for {msg.batch_key} to batcher "
            f"(debounce={debounce_ms}ms, mentioned={admitted.was_mentioned}, method={result.method})"
        )
        self.batcher.enqueue(admitted, adapter, debounce_ms)

        if self.batcher.is_pending(msg.batch_key):
            return AdmissionOutcome("buffered", gating=result)
        return AdmissionOutcome("delivered", gating=result)

    async def handle_group_join(
        self,
        channel: str,
        chat_id: str,
        added_by: str,
        adapter: ChannelAdapter,
    ) -> bool:
        """The bot was added to a group; leave it unless the adder is paired"""
        config = self.config.channel(channel)
        decision = await self.access.check_group_join(channel, chat_id, added_by, config)
        if not decision.approved:
            await self._safe_send(adapter, chat_id, notices.GROUP_ADD_DENIED_TEXT)
            try:
                await adapter.leave_chat(chat_id)
            except Exception as e:
                logger.error(f"Failed to leave {channel} group {chat_id}: {e}")
        return decision.approved

    def _on_flush(self, batch: InboundMessage, adapter: ChannelAdapter) -> None:
        if self._stopped:
            return
        batch = replace(
            batch,
            is_listening_mode=batch.group_mode == "listen" and not batch.was_mentioned,
        )
        task = asyncio.get_running_loop().create_task(self._deliver(batch))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _deliver(self, msg: InboundMessage) -> None:
        try:
            await self.on_admitted(msg)
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception(f"Agent delivery failed for {msg.batch_key}")

    # ------------------------------------------------------------------
    # Helpers / lifecycle
    # ------------------------------------------------------------------

    async def _safe_send(self, adapter: ChannelAdapter, chat_id: str | None, text: str) -> str | None:
        if not chat_id:
            return None
        try:
            return await adapter.send_message(chat_id, text)
        except Exception as e:
            logger.error(f"Failed to send {adapter.channel_id} message to {chat_id}: {e}")
            return None

    async def drain(self) -> None:
        """Wait for in-flight batch deliveries"""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def stop(self) -> None:
        """Cancel timers, drop buffered batches, cancel in-flight deliveries"""
        self._stopped = True
        self.batcher.stop()
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._tasks.clear()
