"""
Request signing and password gate utilities.
SHA-256 signatures over "{time}:{message}:{secret}".
"""

import hashlib
import hmac
from typing import List, Optional


def generate_signature(time: Optional[int], message: str, secret: str) -> str:
    """
    Sign a request.

    Args:
        time: Client epoch-ms timestamp sent alongside the request
        message: Text of the last user turn
        secret: Shared signing secret

    Returns:
        Lowercase hex SHA-256 digest
    """
    payload = f"{time}:{message}:{secret}"
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


def verify_signature(time: Optional[int], message: str, secret: str, signature: Optional[str]) -> bool:
    """Constant-time comparison against the expected signature."""
    if not signature:
        return False
    expected = generate_signature(time, message, secret)
    return hmac.compare_digest(expected.encode("utf-8"), signature.encode("utf-8"))


def check_password(candidate: Optional[str], accepted: List[str]) -> bool:
    """
    Check a password against the configured list.

    An empty list means the gate is disabled and every caller passes.
    """
    if not accepted:
        return True
    if not candidate:
        return False
    return any(hmac.compare_digest(candidate.encode("utf-8"), p.encode("utf-8")) for p in accepted)
