"""
Logging utilities — single import point for application code.

Re-exports from utils.logger and utils.logging_config so that services,
repositories and routes import from shared.logging only.
"""

from utils.logger import (
    get_logger,
    log_with_context,
    mask_destination,
    mask_email,
    mask_phone,
)
from utils.logging_config import (
    configure_structlog,
    redact_sensitive_fields,
    setup_logging,
)

__all__ = [
    "get_logger",
    "log_with_context",
    "mask_destination",
    "mask_email",
    "mask_phone",
    "configure_structlog",
    "redact_sensitive_fields",
    "setup_logging",
]
