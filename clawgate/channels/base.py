"""
Channel adapter boundary.

Platform SDK bindings live outside clawgate. An adapter normalizes platform
events into InboundMessage, hands them to its registered handler, and
exposes the few outbound operations the admission pipeline needs (pairing
notices, admin notifications, leaving unapproved groups).
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Awaitable, Callable

if TYPE_CHECKING:
    from ..types import InboundMessage

MessageHandler = Callable[["InboundMessage", "ChannelAdapter"], Awaitable[None]]


class ChannelAdapter(ABC):
    """Base class for platform adapters"""

    def __init__(self, channel_id: str):
        self.channel_id = channel_id
        self._handler: MessageHandler | None = None

    def set_message_handler(self, handler: MessageHandler) -> None:
        """Register the inbound-message callback"""
        self._handler = handler

    async def dispatch(self, msg: InboundMessage) -> None:
        """Called by the platform binding for every normalized event"""
        if self._handler is not None:
            await self._handler(msg, self)

    @abstractmethod
    async def send_message(self, chat_id: str, text: str) -> str | None:
        """
        Send a text message.

        Returns:
            Platform message id, if the platform reports one
        """

    async def send_typing(self, chat_id: str) -> None:
        """Show a typing indicator (no-op where unsupported)"""

    async def leave_chat(self, chat_id: str) -> None:
        """Leave a group (no-op where unsupported)"""
