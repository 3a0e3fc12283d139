"""DM pairing: codes, pending requests, approved allowlists"""

from .approval import (
    ApprovalTracker,
    PendingApproval,
    approve_pairing_request,
    deny_pairing_request,
    parse_approval_reply,
)
from .codes import generate_pairing_code, validate_pairing_code
from .group_store import GroupApprovalStore
from .io import StoreResult
from .store import ApprovedPairing, PairingRequest, PairingStore, PairingUpsert

__all__ = [
    "ApprovalTracker",
    "ApprovedPairing",
    "GroupApprovalStore",
    "PairingRequest",
    "PairingStore",
    "PairingUpsert",
    "PendingApproval",
    "StoreResult",
    "approve_pairing_request",
    "deny_pairing_request",
    "generate_pairing_code",
    "parse_approval_reply",
    "validate_pairing_code",
]
