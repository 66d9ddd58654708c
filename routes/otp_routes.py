"""
OTP endpoints.

POST /otp/send     — generate and deliver a code
POST /otp/resend   — same contract as send, logged as a resend
POST /otp/verify   — check a submitted code and consume the record
GET  /otp/status   — whether a code is active and when a resend is allowed
GET  /otp/stats    — outcome counts for the admin dashboard (bearer token required)

A valid bearer token supplies ``owner_id`` (its ``sub`` claim). On send and
resend a body ``owner_id`` is only honoured alongside a token whose ``sub``
matches it; without a token the record is keyed by its destination.
On verify the token's ``sub`` takes precedence over the body.
"""

from __future__ import annotations

from typing import Literal, Optional

from fastapi import APIRouter, Depends, Query

from dependencies import (
    get_optional_owner_id,
    get_otp_service,
    get_request_id,
    require_owner_id,
)
from errors import AuthenticationError, ValidationError
from schemas.dto.requests.otp import SendOtpRequest, VerifyOtpRequest
from schemas.dto.responses.common import ErrorResponse
from schemas.dto.responses.otp import (
    OtpStatsResponse,
    OtpStatusResponse,
    SendOtpResponse,
    VerifyOtpResponse,
)
from schemas.models.otp import OtpPurpose
from services.otp_service import OtpService
from shared.validators import normalize_lookup_key

router = APIRouter(prefix="/otp", tags=["otp"])

_SEND_ERRORS = {
    400: {"model": ErrorResponse},
    401: {"model": ErrorResponse},
    429: {"model": ErrorResponse},
    500: {"model": ErrorResponse},
}


async def _send(
    body: SendOtpRequest,
    service: OtpService,
    request_id: str,
    token_owner_id: Optional[str],
    resend: bool,
) -> SendOtpResponse:
    if body.owner_id and token_owner_id and body.owner_id != token_owner_id:
        raise AuthenticationError("ownerId does not match the access token")
    result = await service.request_otp(
        destination=body.destination,
        channel=body.channel,
        purpose=body.purpose,
        # An unauthenticated ownerId is ignored
        owner_id=token_owner_id,
        request_id=request_id,
        resend=resend,
    )
    return SendOtpResponse(
        success=True,
        message=f"Verification code sent via {body.channel.value}",
        expires_at=result.expires_at,
        request_id=result.request_id,
        code=result.code,
    )


@router.post(
    "/send",
    response_model=SendOtpResponse,
    response_model_exclude_none=True,
    responses=_SEND_ERRORS,
)
async def send_otp(
    body: SendOtpRequest,
    service: OtpService = Depends(get_otp_service),
    request_id: str = Depends(get_request_id),
    token_owner_id: Optional[str] = Depends(get_optional_owner_id),
) -> SendOtpResponse:
    return await _send(body, service, request_id, token_owner_id, resend=False)


@router.post(
    "/resend",
    response_model=SendOtpResponse,
    response_model_exclude_none=True,
    responses=_SEND_ERRORS,
)
async def resend_otp(
    body: SendOtpRequest,
    service: OtpService = Depends(get_otp_service),
    request_id: str = Depends(get_request_id),
    token_owner_id: Optional[str] = Depends(get_optional_owner_id),
) -> SendOtpResponse:
    return await _send(body, service, request_id, token_owner_id, resend=True)


@router.post(
    "/verify",
    response_model=VerifyOtpResponse,
    responses={400: {"model": ErrorResponse}, 401: {"model": ErrorResponse}},
)
async def verify_otp(
    body: VerifyOtpRequest,
    service: OtpService = Depends(get_otp_service),
    request_id: str = Depends(get_request_id),
    token_owner_id: Optional[str] = Depends(get_optional_owner_id),
) -> VerifyOtpResponse:
    await service.verify_otp(
        key=token_owner_id or body.lookup_key,
        purpose=body.purpose,
        code=body.code,
        request_id=request_id,
    )
    return VerifyOtpResponse(success=True, message="Verification successful")


@router.get(
    "/status",
    response_model=OtpStatusResponse,
    responses={400: {"model": ErrorResponse}, 401: {"model": ErrorResponse}},
)
async def otp_status(
    purpose: OtpPurpose,
    key: Optional[str] = Query(default=None, max_length=254),
    service: OtpService = Depends(get_otp_service),
    token_owner_id: Optional[str] = Depends(get_optional_owner_id),
) -> OtpStatusResponse:
    if key:
        lookup_key = normalize_lookup_key(key)
    elif token_owner_id:
        lookup_key = token_owner_id
    else:
        raise ValidationError("key is required", field="key")
    return await service.otp_status(lookup_key, purpose)


@router.get(
    "/stats",
    response_model=OtpStatsResponse,
    responses={400: {"model": ErrorResponse}, 401: {"model": ErrorResponse}},
)
async def otp_stats(
    period: Literal["day", "week", "month"] = "week",
    service: OtpService = Depends(get_otp_service),
    _owner_id: str = Depends(require_owner_id),
) -> OtpStatsResponse:
    return await service.otp_stats(period)
