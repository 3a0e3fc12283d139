"""
Pairing approval workflow

Approval happens out-of-band: either an admin command calls
approve_pairing_request() with the code, or the admin replies
"approve"/"deny" to the notification the bot posted in the admin chat.
"""
from __future__ import annotations

import logging
from collections import OrderedDict
from dataclasses import dataclass
from typing import Literal

from .store import PairingStore

logger = logging.getLogger(__name__)

APPROVE_WORDS = frozenset({"approve", "yes", "y"})
DENY_WORDS = frozenset({"deny", "no", "n", "reject"})
MAX_TRACKED_NOTIFICATIONS = 100

ApprovalAction = Literal["approve", "deny"]


async def approve_pairing_request(
    store: PairingStore,
    channel: str,
    code: str,
) -> tuple[bool, str]:
    """
    Approve a pairing request by code

    Args:
        store: Pairing store
        channel: Channel ID
        code: 8-character pairing code

    Returns:
        Tuple of (success, message)
    """
    approved = await store.approve_pairing_code(channel, code)
    if approved is None:
        return False, f"Pairing code not found or expired: {code}"
    return True, f"Approved {channel} user {approved.user_id}"


async def deny_pairing_request(
    store: PairingStore,
    channel: str,
    code: str,
) -> tuple[bool, str]:
    """Deny a pairing request by code (the user is not notified)"""
    request = await store.deny_pairing_code(channel, code)
    if request is None:
        return False, f"Pairing code not found or expired: {code}"
    return True, f"Denied {channel} user {request.id}"


def parse_approval_reply(text: str) -> ApprovalAction | None:
    """Map an admin's reply text to an action; anything else is ignored"""
    word = (text or "").strip().lower()
    if word in APPROVE_WORDS:
        return "approve"
    if word in DENY_WORDS:
        return "deny"
    return None


@dataclass(frozen=True)
class PendingApproval:
    """Admin notification awaiting a reply"""

    channel: str
    code: str
    user_id: str
    chat_id: str
    """Chat to notify the user in once approved"""
    display_name: str


class ApprovalTracker:
    """
    Remembers which admin-chat message announced which pairing code.

    Bounded: only the most recent notifications are kept.
    """

    def __init__(self, max_entries: int = MAX_TRACKED_NOTIFICATIONS):
        self.max_entries = max_entries
        self._pending: OrderedDict[str, PendingApproval] = OrderedDict()

    def track(self, message_id: str, pending: PendingApproval) -> None:
        self._pending[str(message_id)] = pending
        self._pending.move_to_end(str(message_id))
        while len(self._pending) > self.max_entries:
            self._pending.popitem(last=False)

    def get(self, message_id: str) -> PendingApproval | None:
        return self._pending.get(str(message_id))

    def pop(self, message_id: str) -> PendingApproval | None:
        return self._pending.pop(str(message_id), None)

    def __len__(self) -> int:
        return len(self._pending)
