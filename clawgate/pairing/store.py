"""
Pairing request and allowlist storage

Keeps, per channel, the pending pairing requests and the list of users an
admin has approved. Both live in JSON files under
``<state_dir>/credentials/``:

- ``telegram-pairing.json``   {"version": 1, "requests": [...]}
- ``telegram-allowFrom.json`` {"version": 1, "allowFrom": [...]}

One PairingStore is constructed at process start and handed to every
component that needs it. Each channel's files are read once, on first use;
from then on the in-memory copy is the source of truth and every mutation
is written back atomically. A failed write is logged and otherwise ignored.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Iterable, Mapping

from ..errors import StoreIOError
from .codes import generate_unique_code, normalize_pairing_code
from .io import StoreResult, read_json, safe_channel_key, write_json_atomic

logger = logging.getLogger(__name__)

PAIRING_PENDING_TTL_MS = 60 * 60 * 1000  # 1 hour
PAIRING_PENDING_MAX = 3  # Max pending requests per channel
STORE_VERSION = 1


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _clean_meta(meta: Mapping[str, Any] | None) -> dict[str, str]:
    if not meta:
        return {}
    cleaned = {}
    for key, value in meta.items():
        if value is None:
            continue
        text = str(value).strip()
        if text:
            cleaned[str(key)] = text
    return cleaned


@dataclass
class PairingRequest:
    """Pending pairing request for one user on one channel"""

    id: str
    """User ID on the channel"""

    code: str
    """8-character pairing code"""

    created_at: str
    """ISO8601 timestamp when created"""

    last_seen_at: str
    """ISO8601 timestamp of the user's most recent message"""

    meta: dict[str, str] = field(default_factory=dict)
    """Display metadata (username, first name...)"""

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "code": self.code,
            "createdAt": self.created_at,
            "lastSeenAt": self.last_seen_at,
            "meta": self.meta,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> PairingRequest:
        return cls(
            id=str(data["id"]),
            code=str(data["code"]),
            created_at=data["createdAt"],
            last_seen_at=data.get("lastSeenAt", data["createdAt"]),
            meta=_clean_meta(data.get("meta")),
        )

    def created(self) -> datetime | None:
        try:
            created = datetime.fromisoformat(self.created_at.replace("Z", "+00:00"))
        except (AttributeError, ValueError):
            return None
        if created.tzinfo is None:
            created = created.replace(tzinfo=timezone.utc)
        return created

    def is_expired(self, now: datetime, ttl_ms: int = PAIRING_PENDING_TTL_MS) -> bool:
        """Unparseable timestamps count as expired"""
        created = self.created()
        if created is None:
            return True
        return (now - created).total_seconds() * 1000 > ttl_ms


@dataclass(frozen=True)
class PairingUpsert:
    """Result of upsert_pairing_request()"""

    code: str
    created: bool

    @property
    def queue_full(self) -> bool:
        return not self.code


@dataclass(frozen=True)
class ApprovedPairing:
    """Result of a successful approve_pairing_code()"""

    user_id: str
    request: PairingRequest


@dataclass
class _ChannelState:
    requests: list[PairingRequest] = field(default_factory=list)
    allow_from: list[str] = field(default_factory=list)


class PairingStore:
    """
    Persistent pending-pairing queue and approved allowlist, for all channels.

    Usage:
        store = PairingStore(Path("~/.clawgate").expanduser())

        result = await store.upsert_pairing_request("telegram", "12345")
        if result.created:
            ...  # tell the user, notify the admin

        approved = await store.approve_pairing_code("telegram", code)
    """

    def __init__(
        self,
        state_dir: Path | None = None,
        *,
        max_pending: int = PAIRING_PENDING_MAX,
        ttl_ms: int = PAIRING_PENDING_TTL_MS,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.state_dir = Path(state_dir) if state_dir else Path.home() / ".clawgate"
        self.max_pending = max_pending
        self.ttl_ms = ttl_ms
        self._clock = clock
        self._channels: dict[str, _ChannelState] = {}
        self._lock = asyncio.Lock()
        self.last_write_error: StoreIOError | None = None

    @property
    def credentials_dir(self) -> Path:
        return self.state_dir / "credentials"

    def pairing_path(self, channel: str) -> Path:
        return self.credentials_dir / f"{safe_channel_key(channel)}-pairing.json"

    def allow_from_path(self, channel: str) -> Path:
        return self.credentials_dir / f"{safe_channel_key(channel)}-allowFrom.json"

    # ------------------------------------------------------------------
    # Loading / persistence
    # ------------------------------------------------------------------

    def _load_channel(self, channel: str) -> _ChannelState:
        state = _ChannelState()

        pairing = read_json(self.pairing_path(channel))
        if not pairing.ok:
            logger.warning(f"Pairing store unreadable, treating as empty: {pairing.error}")
        for raw in pairing.unwrap_or({}).get("requests", []):
            try:
                state.requests.append(PairingRequest.from_dict(raw))
            except (AttributeError, KeyError, TypeError) as e:
                logger.warning(f"Skipping malformed pairing request in {channel} store: {e}")

        allow = read_json(self.allow_from_path(channel))
        if not allow.ok:
            logger.warning(f"Allowlist store unreadable, treating as empty: {allow.error}")
        for user_id in allow.unwrap_or({}).get("allowFrom", []):
            user_id = str(user_id).strip()
            if user_id and user_id not in state.allow_from:
                state.allow_from.append(user_id)

        self._prune(state)
        return state

    async def _state(self, channel: str) -> _ChannelState:
        """Per-channel state, loading it from disk on first use (lock held)"""
        state = self._channels.get(channel)
        if state is None:
            state = await asyncio.to_thread(self._load_channel, channel)
            self._channels[channel] = state
        return state

    def _prune(self, state: _ChannelState) -> bool:
        """Drop expired requests and keep at most max_pending (newest win)"""
        now = self._clock()
        kept = [r for r in state.requests if not r.is_expired(now, self.ttl_ms)]
        if len(kept) > self.max_pending:
            kept.sort(key=lambda r: r.created_at)
            kept = kept[-self.max_pending:]
        changed = len(kept) != len(state.requests)
        state.requests = kept
        return changed

    async def _write(self, path: Path, data: dict[str, Any]) -> StoreResult[None]:
        result = await asyncio.to_thread(write_json_atomic, path, data)
        if not result.ok:
            self.last_write_error = result.error
            logger.warning(f"Keeping in-memory state after failed write: {result.error}")
        return result

    async def _persist_requests(self, channel: str, state: _ChannelState) -> StoreResult[None]:
        data = {"version": STORE_VERSION, "requests": [r.to_dict() for r in state.requests]}
        return await self._write(self.pairing_path(channel), data)

    async def _persist_allow_from(self, channel: str, state: _ChannelState) -> StoreResult[None]:
        data = {"version": STORE_VERSION, "allowFrom": list(state.allow_from)}
        return await self._write(self.allow_from_path(channel), data)

    # ------------------------------------------------------------------
    # Allowlist
    # ------------------------------------------------------------------

    async def is_user_allowed(
        self,
        channel: str,
        user_id: str,
        static_allowlist: Iterable[str] | None = None,
    ) -> bool:
        """True if user_id is in the static config allowlist or was approved"""
        user_id = str(user_id)
        if static_allowlist and user_id in {str(u) for u in static_allowlist}:
            return True
        async with self._lock:
            state = await self._state(channel)
            return user_id in state.allow_from

    async def read_allow_from(self, channel: str) -> list[str]:
        async with self._lock:
            state = await self._state(channel)
            return list(state.allow_from)

    async def add_allow_from(self, channel: str, user_id: str) -> bool:
        """Add a user to the approved allowlist; False if already present"""
        user_id = str(user_id).strip()
        if not user_id:
            return False
        async with self._lock:
            state = await self._state(channel)
            if user_id in state.allow_from:
                return False
            state.allow_from.append(user_id)
            await self._persist_allow_from(channel, state)
        logger.info(f"Added {user_id} to {channel} allowFrom")
        return True

    # ------------------------------------------------------------------
    # Pending requests
    # ------------------------------------------------------------------

    async def list_pairing_requests(self, channel: str) -> list[PairingRequest]:
        """Snapshot of pending requests, oldest first"""
        async with self._lock:
            state = await self._state(channel)
            if self._prune(state):
                await self._persist_requests(channel, state)
            return sorted(
                (replace(r, meta=dict(r.meta)) for r in state.requests),
                key=lambda r: r.created_at,
            )

    async def upsert_pairing_request(
        self,
        channel: str,
        user_id: str,
        meta: Mapping[str, Any] | None = None,
    ) -> PairingUpsert:
        """
        Get or create the pending request for a user.

        Returns the existing code with created=False when the user already
        has a pending request, code "" when the queue is full, and a fresh
        code with created=True otherwise.
        """
        user_id = str(user_id)
        async with self._lock:
            state = await self._state(channel)
            self._prune(state)
            now = self._clock().isoformat()

            existing = next((r for r in state.requests if r.id == user_id), None)
            if existing is not None:
                existing.last_seen_at = now
                existing.meta = {**existing.meta, **_clean_meta(meta)}
                await self._persist_requests(channel, state)
                return PairingUpsert(code=existing.code, created=False)

            if len(state.requests) >= self.max_pending:
                logger.warning(
                    f"Pairing queue full for {channel} ({len(state.requests)}/{self.max_pending}), "
                    f"rejecting request from {user_id}"
                )
                return PairingUpsert(code="", created=False)

            request = PairingRequest(
                id=user_id,
                code=generate_unique_code([r.code for r in state.requests]),
                created_at=now,
                last_seen_at=now,
                meta=_clean_meta(meta),
            )
            state.requests.append(request)
            await self._persist_requests(channel, state)

        logger.info(f"New {channel} pairing request from {user_id}: {request.code}")
        return PairingUpsert(code=request.code, created=True)

    async def approve_pairing_code(self, channel: str, code: str) -> ApprovedPairing | None:
        """
        Approve a pending request by code.

        The user moves into the allowlist and the request is deleted.
        Returns None for unknown or expired codes.
        """
        code = normalize_pairing_code(code)
        if not code:
            return None
        async with self._lock:
            state = await self._state(channel)
            self._prune(state)
            request = next((r for r in state.requests if r.code.upper() == code), None)
            if request is None:
                return None

            state.requests.remove(request)
            if request.id not in state.allow_from:
                state.allow_from.append(request.id)
            await self._persist_allow_from(channel, state)
            await self._persist_requests(channel, state)

        logger.info(f"Approved {channel} pairing for {request.id}")
        return ApprovedPairing(user_id=request.id, request=request)

    async def deny_pairing_code(self, channel: str, code: str) -> PairingRequest | None:
        """Delete a pending request without granting access"""
        code = normalize_pairing_code(code)
        if not code:
            return None
        async with self._lock:
            state = await self._state(channel)
            request = next((r for r in state.requests if r.code.upper() == code), None)
            if request is None:
                return None
            state.requests.remove(request)
            await self._persist_requests(channel, state)

        logger.info(f"Denied {channel} pairing for {request.id}")
        return request
