"""
Destination validators — framework-agnostic, pure functions.

Used by the delivery channels to fail fast on malformed destinations before
any provider is contacted or a cooldown slot is consumed.
"""

from __future__ import annotations

import re

import validators as _validators

# E.164: leading "+", no leading zero in the country code, 8 to 15 digits total
_E164_RE = re.compile(r"^\+[1-9]\d{7,14}$")

# Separators people type into phone numbers
_PHONE_NOISE_RE = re.compile(r"[\s\-().]")


def normalize_phone(phone: str) -> str:
    """Strip spaces, dashes, dots and parentheses; ``00`` prefix becomes ``+``."""
    cleaned = _PHONE_NOISE_RE.sub("", phone.strip())
    if cleaned.startswith("00"):
        cleaned = "+" + cleaned[2:]
    return cleaned


def normalize_email(email: str) -> str:
    """Trim whitespace and lowercase the address."""
    return email.strip().lower()


def validate_e164(phone: str) -> bool:
    """Return True if *phone* is an E.164 number such as ``+15550001111``."""
    return bool(_E164_RE.match(phone))


def validate_email(email: str) -> bool:
    """Return True if *email* looks like ``local@domain.tld``."""
    if not email or any(ch.isspace() for ch in email):
        return False
    return bool(_validators.email(email))


def normalize_destination(destination: str) -> str:
    """Normalise an email address or phone number, whichever it looks like."""
    if "@" in destination:
        return normalize_email(destination)
    return normalize_phone(destination)


_PHONE_LIKE_RE = re.compile(r"^[\s+\d\-().]+$")


def normalize_lookup_key(key: str) -> str:
    """Normalise a lookup key that may be an owner id or a contact detail.

    Owner ids are opaque and returned trimmed. Phone-like keys get a leading
    ``+`` restored, since an unescaped ``+`` in a query string decodes to a space.
    """
    key = key.strip()
    if "@" in key:
        return normalize_email(key)
    if _PHONE_LIKE_RE.match(key):
        phone = normalize_phone(key)
        return phone if phone.startswith("+") else f"+{phone}"
    return key
