"""
Request DTOs for the OTP endpoints.

SendOtpRequest    — POST /otp/send, POST /otp/resend
VerifyOtpRequest  — POST /otp/verify

Mobile clients send camelCase (``ownerId``); both spellings are accepted.
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from schemas.models.otp import OtpChannel, OtpPurpose
from shared.validators import normalize_destination


class SendOtpRequest(BaseModel):
    """Request body for POST /otp/send.

    ``destination`` is the email address or E.164 phone number the code is
    delivered to. ``owner_id`` is optional and only honoured when it matches
    the bearer token's subject; the record is then keyed by it instead of by
    the destination.
    """

    model_config = ConfigDict(populate_by_name=True)

    destination: str = Field(min_length=3, max_length=254)
    channel: OtpChannel
    purpose: OtpPurpose
    owner_id: Optional[str] = Field(default=None, alias="ownerId", max_length=64)

    @field_validator("destination")
    @classmethod
    def _normalize(cls, v: str) -> str:
        return normalize_destination(v)


class VerifyOtpRequest(BaseModel):
    """Request body for POST /otp/verify.

    Either ``owner_id`` or ``destination`` identifies the record; ``owner_id``
    wins when both are given.
    """

    model_config = ConfigDict(populate_by_name=True)

    destination: Optional[str] = Field(default=None, max_length=254)
    owner_id: Optional[str] = Field(default=None, alias="ownerId", max_length=64)
    purpose: OtpPurpose
    code: str = Field(pattern=r"^\s*\d{4,10}\s*$")

    @field_validator("destination")
    @classmethod
    def _normalize(cls, v: Optional[str]) -> Optional[str]:
        return normalize_destination(v) if v else None

    @model_validator(mode="after")
    def _require_key(self) -> "VerifyOtpRequest":
        if not self.owner_id and not self.destination:
            raise ValueError("Either owner_id or destination is required")
        return self

    @property
    def lookup_key(self) -> str:
        return self.owner_id or self.destination or ""
