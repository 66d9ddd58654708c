"""
Logger factory and masking helpers for the Okada OTP service.

Provides:
- get_logger(): Get a configured logger instance
- mask_email() / mask_phone() / mask_destination(): keep contact details
  out of log sinks while leaving enough to correlate a support ticket
"""

import re
from typing import Optional

import structlog
from structlog.stdlib import BoundLogger


def get_logger(name: str) -> BoundLogger:
    """
    Get a configured logger instance.

    Args:
        name: Logger name (typically __name__ of the calling module)

    Returns:
        Configured structlog BoundLogger instance

    Example:
        >>> from shared.logging import get_logger
        >>> log = get_logger(__name__)
        >>> log.info("otp_sent", channel="sms", purpose="login")
    """
    return structlog.get_logger(name)


def mask_email(email: str) -> str:
    """Keep the first two characters of the local part: ``jo***@example.com``."""
    local, sep, domain = email.partition("@")
    if not sep:
        return mask_phone(email)
    return f"{local[:2]}***@{domain}"


def mask_phone(phone: str) -> str:
    """Replace every character except the last four with ``*``."""
    return re.sub(r".(?=.{4})", "*", phone)


def mask_destination(destination: Optional[str]) -> Optional[str]:
    """Mask an email address or phone number, whichever *destination* is."""
    if destination is None:
        return None
    if "@" in destination:
        return mask_email(destination)
    return mask_phone(destination)


def log_with_context(logger: BoundLogger, **context) -> BoundLogger:
    """
    Bind context to a logger for all subsequent log calls.

    Example:
        >>> log = log_with_context(get_logger(__name__), request_id="req_abc")
        >>> log.info("otp_verified")  # Will include request_id
    """
    return logger.bind(**context)
