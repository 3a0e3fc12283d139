"""
Group message batching.

Debounces group chat messages per chat and flushes them as one synthetic
message after a quiet period, or immediately when the bot is mentioned.
Channel-agnostic: works with any ChannelAdapter.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import Callable

from ..channels.base import ChannelAdapter
from ..types import InboundMessage
from .scheduler import AsyncioScheduler, CancelHandle, Scheduler

logger = logging.getLogger(__name__)

OnFlushCallback = Callable[[InboundMessage, ChannelAdapter], None]


@dataclass
class BufferEntry:
    messages: list[InboundMessage] = field(default_factory=list)
    adapter: ChannelAdapter | None = None
    timer: CancelHandle | None = None


class GroupBatcher:
    """
    Batches bursts of admitted group messages per channel:chat.

    Every new message for a chat resets that chat's quiet-period timer;
    the buffer flushes when the timer fires, or at once for a mention or
    a zero debounce.

    Usage:
        def on_flush(batch: InboundMessage, adapter: ChannelAdapter):
            ...  # batch.batched_messages holds the originals

        batcher = GroupBatcher(on_flush)
        batcher.enqueue(msg, adapter, debounce_ms=5000)
    """

    def __init__(self, on_flush: OnFlushCallback, scheduler: Scheduler | None = None):
        self._on_flush = on_flush
        self._scheduler = scheduler or AsyncioScheduler()
        self._buffer: dict[str, BufferEntry] = {}

    def enqueue(self, msg: InboundMessage, adapter: ChannelAdapter, debounce_ms: int) -> None:
        """
        Add a group message to its chat's buffer.

        Flushes synchronously when msg.was_mentioned or debounce_ms == 0,
        otherwise (re)starts the chat's timer.
        """
        key = msg.batch_key

        entry = self._buffer.get(key)
        if entry is None:
            entry = BufferEntry()
            self._buffer[key] = entry

        entry.messages.append(msg)
        # Most recent adapter wins (reconnects replace it)
        entry.adapter = adapter

        if msg.was_mentioned or debounce_ms <= 0:
            self.flush(key)
            return

        if entry.timer is not None:
            entry.timer.cancel()
        entry.timer = self._scheduler.schedule(debounce_ms, lambda: self.flush(key))

    def flush(self, key: str) -> None:
        """Flush buffered messages for a key as one synthetic batch message"""
        entry = self._buffer.get(key)
        if entry is None or not entry.messages:
            return

        if entry.timer is not None:
            entry.timer.cancel()
            entry.timer = None

        # Remove before dispatch so the callback can't re-enter this key
        del self._buffer[key]

        messages = tuple(entry.messages)
        last = messages[-1]
        batch = replace(
            last,
            text="\n".join(m.text for m in messages),
            is_group=True,
            was_mentioned=any(bool(m.was_mentioned) for m in messages),
            is_batch=True,
            batched_messages=messages,
        )
        logger.debug(f"Flushing {len(messages)} message(s) for {key}")
        self._on_flush(batch, entry.adapter)

    def flush_all(self) -> None:
        """Flush all pending buffers immediately"""
        for key in list(self._buffer):
            self.flush(key)

    def is_pending(self, key: str) -> bool:
        return key in self._buffer

    def count_pending(self, key: str) -> int:
        entry = self._buffer.get(key)
        return len(entry.messages) if entry else 0

    def stop(self) -> None:
        """Cancel every timer and drop all buffers (nothing is flushed)"""
        dropped = 0
        for entry in self._buffer.values():
            if entry.timer is not None:
                entry.timer.cancel()
                entry.timer = None
            dropped += len(entry.messages)
        self._buffer.clear()
        if dropped:
            logger.info(f"Group batcher stopped, dropped {dropped} buffered message(s)")
