"""
OTP record document model.

Maps to the `otp-records` MongoDB collection.

code_hash stores SHA-256(code) — the plain OTP is never stored.
lookup_key is owner_id when the subject is known, otherwise the normalised
destination; the newest record per (lookup_key, purpose) is the current one.
Records are never deleted by the service: expiry is logical, purging is the
cleanup worker's job.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import Field

from schemas.models.base import MongoBaseModel, as_utc


class OtpChannel(str, Enum):
    EMAIL = "email"
    SMS = "sms"


class OtpPurpose(str, Enum):
    VERIFICATION = "verification"
    PASSWORD_RESET = "passwordReset"
    LOGIN = "login"


class DeliveryStatus(str, Enum):
    SENT = "sent"
    FALLBACK = "fallback"
    FAILED = "failed"


class OtpRecordDoc(MongoBaseModel):
    """Document model for the `otp-records` collection."""

    owner_id: Optional[str] = None
    lookup_key: str
    channel: OtpChannel
    destination: str
    purpose: OtpPurpose
    code_hash: str
    created_at: datetime
    expires_at: datetime
    attempts: int = Field(default=0, ge=0)
    max_attempts: int = Field(default=3, ge=1)
    consumed: bool = False
    consumed_at: Optional[datetime] = None
    request_id: Optional[str] = None
    delivery_status: Optional[DeliveryStatus] = None
    provider: Optional[str] = None
    message_id: Optional[str] = None

    def is_expired(self, now: datetime) -> bool:
        return as_utc(now) >= self.expires_at

    @property
    def attempts_exhausted(self) -> bool:
        return self.attempts >= self.max_attempts

    @property
    def attempts_remaining(self) -> int:
        return max(self.max_attempts - self.attempts, 0)

    def is_active(self, now: datetime) -> bool:
        """Unconsumed, unexpired and still accepting attempts."""
        return not (self.consumed or self.is_expired(now) or self.attempts_exhausted)
