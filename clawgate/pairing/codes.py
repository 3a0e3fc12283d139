"""
Pairing code generation

Generates 8-character pairing codes using a safe alphabet.
"""
from __future__ import annotations

import secrets
from typing import Collection

# Safe alphabet excluding confusable characters: I, O, 0, 1
PAIRING_CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
PAIRING_CODE_LENGTH = 8
MAX_CODE_ATTEMPTS = 500


def generate_pairing_code(length: int = PAIRING_CODE_LENGTH) -> str:
    """
    Generate a secure pairing code

    Uses cryptographically secure random generator with
    a safe alphabet (no I, O, 0, 1 to avoid confusion).

    Args:
        length: Code length (default: 8)

    Returns:
        Pairing code (e.g., "A7JKPC29")
    """
    return "".join(
        secrets.choice(PAIRING_CODE_ALPHABET)
        for _ in range(length)
    )


def generate_unique_code(existing: Collection[str]) -> str:
    """Generate a code that does not collide with any pending code"""
    taken = {c.upper() for c in existing}
    for _ in range(MAX_CODE_ATTEMPTS):
        code = generate_pairing_code()
        if code not in taken:
            return code
    raise RuntimeError("Failed to generate a unique pairing code")


def normalize_pairing_code(code: str) -> str:
    return (code or "").strip().upper()


def validate_pairing_code(code: str) -> bool:
    """
    Validate pairing code format

    Args:
        code: Code to validate

    Returns:
        True if valid
    """
    code = normalize_pairing_code(code)
    if len(code) != PAIRING_CODE_LENGTH:
        return False

    return all(c in PAIRING_CODE_ALPHABET for c in code)
