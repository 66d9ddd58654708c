"""DeliveryProvider protocol — channels depend on this, not the concrete providers."""

from dataclasses import dataclass
from typing import Optional, Protocol

from schemas.models.otp import OtpPurpose


@dataclass(frozen=True)
class DeliveryResult:
    success: bool
    provider: str
    message_id: Optional[str] = None
    error: Optional[str] = None
    fallback: bool = False


class DeliveryProvider(Protocol):
    """Providers report failure through DeliveryResult instead of raising."""

    name: str

    async def send(
        self, destination: str, code: str, purpose: OtpPurpose
    ) -> DeliveryResult: ...
