"""
Response DTOs for the OTP endpoints.

SendOtpResponse    — POST /otp/send, POST /otp/resend
VerifyOtpResponse  — POST /otp/verify
OtpStatusResponse  — GET /otp/status
OtpStatsResponse   — GET /otp/stats (admin dashboard)
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict


class SendOtpResponse(BaseModel):
    """``code`` is only ever populated outside production."""

    model_config = ConfigDict(populate_by_name=True)

    success: bool
    message: str
    expires_at: datetime
    request_id: str
    code: Optional[str] = None


class VerifyOtpResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool
    message: str


class OtpStatusResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    active: bool
    expires_at: Optional[datetime] = None
    attempts_remaining: int = 0
    resend_available_in: int = 0


class OtpOutcomeTotals(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    generated: int = 0
    verified: int = 0
    expired: int = 0
    exhausted: int = 0
    pending: int = 0
    delivery_failed: int = 0


class OtpStatsResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    period: str
    since: datetime
    totals: OtpOutcomeTotals
    success_rate: float
    by_channel: dict[str, OtpOutcomeTotals]
