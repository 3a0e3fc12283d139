"""
JSON file I/O for the credential stores.

Reads and writes never raise into the caller: they return a StoreResult
that either carries a value or a StoreIOError. Writes go to a temp file in
the same directory and are renamed over the target, so a crash mid-write
leaves the previous file intact.
"""
from __future__ import annotations

import contextlib
import json
import os
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Generic, TypeVar

from ..errors import StoreIOError

T = TypeVar("T")


@dataclass(frozen=True)
class StoreResult(Generic[T]):
    """Value-or-error result of a store operation"""

    value: T | None = None
    error: StoreIOError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap_or(self, default: T) -> T:
        if self.error is not None or self.value is None:
            return default
        return self.value

    @classmethod
    def success(cls, value: T | None = None) -> StoreResult[T]:
        return cls(value=value)

    @classmethod
    def failure(cls, error: StoreIOError) -> StoreResult[T]:
        return cls(error=error)


def read_json(path: Path) -> StoreResult[dict[str, Any]]:
    """
    Read a JSON object from disk.

    A missing file is not an error (value is None); unreadable or
    malformed content is.
    """
    if not path.exists():
        return StoreResult.success(None)
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, ValueError) as e:
        return StoreResult.failure(StoreIOError(str(path), "read", e))
    if not isinstance(data, dict):
        return StoreResult.failure(
            StoreIOError(str(path), "read", ValueError("expected a JSON object"))
        )
    return StoreResult.success(data)


def write_json_atomic(path: Path, data: dict[str, Any]) -> StoreResult[None]:
    """Write a JSON object atomically (temp file + rename, mode 0600)"""
    try:
        path.parent.mkdir(parents=True, exist_ok=True, mode=0o700)
        fd, tmp_path = tempfile.mkstemp(
            dir=path.parent,
            prefix=f"{path.name}.",
            suffix=".tmp",
        )
    except OSError as e:
        return StoreResult.failure(StoreIOError(str(path), "write", e))

    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)
            f.write("\n")
        os.chmod(tmp_path, 0o600)
        os.replace(tmp_path, path)
    except (OSError, TypeError, ValueError) as e:
        with contextlib.suppress(OSError):
            os.unlink(tmp_path)
        return StoreResult.failure(StoreIOError(str(path), "write", e))

    return StoreResult.success(None)


def safe_channel_key(channel: str) -> str:
    """Sanitize a channel id for use in file names"""
    safe = channel.strip().lower()
    safe = safe.replace("/", "_").replace("\\", "_")
    safe = safe.replace("..", "_")

    if not safe or safe == "_":
        raise ValueError(f"Invalid channel ID: {channel}")

    return safe
