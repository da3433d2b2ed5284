"""
Backup (recovery) codes for accounts with 2FA enabled.

Codes are shown to the user once as XXXX-XXXX and persisted only as SHA-256
hex digests. This module is stateless: after a successful verify the caller
must delete the matched hash in the same transaction that grants access.
"""

import hashlib
import hmac
import secrets
from typing import Iterable, List, Optional


BACKUP_CODE_COUNT = 10
BACKUP_CODE_BYTES = 4


def generate_backup_codes(count: int = BACKUP_CODE_COUNT) -> List[str]:
    """
    Generate single-use recovery codes.

    Args:
        count: Number of codes

    Returns:
        Codes formatted as XXXX-XXXX (uppercase hex)
    """
    codes = []
    for _ in range(count):
        raw = secrets.token_hex(BACKUP_CODE_BYTES).upper()
        codes.append(f"{raw[:4]}-{raw[4:]}")
    return codes


def hash_backup_code(code: str) -> str:
    """SHA-256 hex digest of the code, dash included."""
    return hashlib.sha256(code.encode('utf-8')).hexdigest()


def find_backup_code(code: str, hashed_codes: Iterable[str]) -> Optional[str]:
    """
    Find the stored hash matching a candidate code.

    Args:
        code: Code typed by the user
        hashed_codes: Stored hashes of the unused codes

    Returns:
        The matching hash (for the caller to consume), or None
    """
    candidate = hash_backup_code(code).encode('ascii')
    for stored in hashed_codes:
        if hmac.compare_digest(candidate, stored.encode('utf-8')):
            return stored
    return None


def verify_backup_code(code: str, hashed_codes: Iterable[str]) -> bool:
    """True if the code's hash is among the stored hashes."""
    return find_backup_code(code, hashed_codes) is not None
