"""Bearer token verification.

Tokens are minted by the Okada auth service; this service only verifies them.
RS256 is used when a public key is configured, HS256 with the shared secret
otherwise.
"""

from __future__ import annotations

from typing import Any

import jwt

from config import JWTSettings


def _verification_key(settings: JWTSettings) -> tuple[str, str]:
    if settings.use_rs256:
        # Keys provided via env often carry literal \n sequences
        return settings.jwt_public_key.replace("\\n", "\n"), "RS256"
    return settings.jwt_secret, "HS256"


def verify_access_token(token: str, settings: JWTSettings) -> dict[str, Any]:
    """Decode *token* and return its claims.

    Raises jwt.InvalidTokenError (or a subclass) for a bad signature, wrong
    issuer/audience, expiry, or a missing ``sub`` claim.
    """
    if not settings.is_configured:
        raise jwt.InvalidTokenError("JWT verification is not configured")
    key, algorithm = _verification_key(settings)
    claims = jwt.decode(
        token,
        key,
        algorithms=[algorithm],
        audience=settings.jwt_audience,
        issuer=settings.jwt_issuer,
        options={"require": ["exp", "sub"]},
    )
    if not str(claims.get("sub") or "").strip():
        raise jwt.InvalidTokenError("Token has an empty subject")
    return claims
