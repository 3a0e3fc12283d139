"""
Approved groups store

Tracks which groups were activated by a paired user adding the bot.
Only consulted for channels that set ``requireGroupApproval`` while
running with dmPolicy "pairing".

Storage: <state_dir>/credentials/{channel}-approvedGroups.json
"""
from __future__ import annotations

import asyncio
import logging
from pathlib import Path

from .io import read_json, safe_channel_key, write_json_atomic

logger = logging.getLogger(__name__)


class GroupApprovalStore:
    """Per-channel set of approved group ids"""

    def __init__(self, state_dir: Path | None = None):
        self.state_dir = Path(state_dir) if state_dir else Path.home() / ".clawgate"
        self._groups: dict[str, list[str]] = {}
        self._lock = asyncio.Lock()

    def store_path(self, channel: str) -> Path:
        return self.state_dir / "credentials" / f"{safe_channel_key(channel)}-approvedGroups.json"

    def _load(self, channel: str) -> list[str]:
        result = read_json(self.store_path(channel))
        if not result.ok:
            logger.warning(f"Approved groups store unreadable, treating as empty: {result.error}")
        return [str(g) for g in result.unwrap_or({}).get("groups", [])]

    async def _channel_groups(self, channel: str) -> list[str]:
        groups = self._groups.get(channel)
        if groups is None:
            groups = await asyncio.to_thread(self._load, channel)
            self._groups[channel] = groups
        return groups

    async def is_group_approved(self, channel: str, chat_id: str) -> bool:
        async with self._lock:
            return str(chat_id) in await self._channel_groups(channel)

    async def approve_group(self, channel: str, chat_id: str) -> bool:
        """Approve a group; False if it was already approved"""
        chat_id = str(chat_id)
        async with self._lock:
            groups = await self._channel_groups(channel)
            if chat_id in groups:
                return False
            groups.append(chat_id)
            result = await asyncio.to_thread(
                write_json_atomic,
                self.store_path(channel),
                {"version": 1, "groups": list(groups)},
            )
        if not result.ok:
            logger.warning(f"Keeping in-memory group approval after failed write: {result.error}")
        logger.info(f"Approved {channel} group {chat_id}")
        return True
