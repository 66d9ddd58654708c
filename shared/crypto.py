"""
Cryptographic helpers — OTP hashing and constant-time comparison.

OTP codes are stored as SHA-256 digests so the plaintext is never persisted.
"""

from __future__ import annotations

import hashlib
import hmac


def hash_token(token: str) -> str:
    """Return the hex-encoded SHA-256 digest of *token*.

    Args:
        token: The plaintext code or token string to hash.

    Returns:
        64-character lowercase hex string.
    """
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def code_matches(submitted_code: str, code_hash: str) -> bool:
    """Compare *submitted_code* against a stored digest in constant time.

    Both sides are fixed-length digests, so the comparison time does not
    depend on how many leading characters of the code were right.
    """
    return hmac.compare_digest(hash_token(submitted_code.strip()), code_hash)
