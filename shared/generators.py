"""
Random code and identifier generators — pure, side-effect-free functions.

All generators use cryptographically secure sources (``secrets`` module).
"""

from __future__ import annotations

import secrets


def generate_otp_code(length: int = 6) -> str:
    """Generate a cryptographically secure numeric OTP.

    Draws a single integer from ``[0, 10**length)`` and zero-pads it, so every
    code of the requested length (including ones with leading zeros) is
    equally likely.

    Args:
        length: Number of digits (default 6).

    Returns:
        String of exactly *length* decimal digits.
    """
    if length < 1:
        raise ValueError("OTP length must be positive")
    return f"{secrets.randbelow(10**length):0{length}d}"


def generate_request_id() -> str:
    """Generate a correlation id for log tracing, e.g. ``req_1a2b3c4d5e6f``."""
    return f"req_{secrets.token_hex(6)}"


def generate_fallback_message_id() -> str:
    """Message id reported by the console fallback provider."""
    return f"fallback-{secrets.token_hex(8)}"
