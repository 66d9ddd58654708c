"""
FastAPI dependency providers.

All injectable dependencies are defined here as plain functions used with
FastAPI's Depends() system. Collaborators are built once in the app lifespan
and read back from app.state.
"""

from __future__ import annotations

from typing import Optional

import jwt
from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from config import AppSettings
from errors import AuthenticationError
from services.otp_service import OtpService
from shared.auth import verify_access_token
from shared.generators import generate_request_id
from shared.logging import get_logger

log = get_logger(__name__)

_bearer = HTTPBearer(auto_error=False)


def get_settings(request: Request) -> AppSettings:
    """Return the AppSettings instance stored on app.state."""
    return request.app.state.settings


def get_otp_service(request: Request) -> OtpService:
    return request.app.state.otp_service


def get_request_id(request: Request) -> str:
    """Return the id bound by the request-id middleware (or a fresh one)."""
    request_id = getattr(request.state, "request_id", None)
    return request_id or generate_request_id()


def get_optional_owner_id(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer),
    settings: AppSettings = Depends(get_settings),
) -> Optional[str]:
    """Return the ``sub`` claim of a bearer token, or None when no token is sent.

    A token that is present but does not verify is rejected with 401 rather
    than silently treated as anonymous.
    """
    if credentials is None:
        return None
    try:
        claims = verify_access_token(credentials.credentials, settings.jwt)
    except jwt.InvalidTokenError as e:
        log.info("bearer_token_rejected", reason=type(e).__name__)
        raise AuthenticationError("Invalid or expired access token") from None
    return str(claims["sub"])


def require_owner_id(
    owner_id: Optional[str] = Depends(get_optional_owner_id),
) -> str:
    """Like get_optional_owner_id, but a bearer token is mandatory."""
    if owner_id is None:
        raise AuthenticationError("Authentication required")
    return owner_id
