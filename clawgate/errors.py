"""
Error types for the admission pipeline.

None of these are fatal to the process. Store and config faults are
recovered where they happen; only MessageValidationError signals a
programming error in a channel adapter.
"""
from __future__ import annotations


class ClawgateError(Exception):
    """Base class for all clawgate errors"""


class ConfigError(ClawgateError):
    """Malformed configuration (bad mention pattern, unreadable config file)"""


class StoreIOError(ClawgateError):
    """Pairing or group store could not be read or written"""

    def __init__(self, path: str, operation: str, cause: BaseException | None = None):
        self.path = path
        self.operation = operation
        self.cause = cause
        detail = f": {cause}" if cause else ""
        super().__init__(f"Failed to {operation} {path}{detail}")


class MessageValidationError(ClawgateError):
    """Inbound message is missing a required field"""
