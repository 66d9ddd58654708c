"""Console fallback provider.

Last link of every channel's provider chain, reached when the real
transports fail or time out. In development the code is
written to the log so a developer can finish the flow without a provider
account; in production nothing is disclosed and the delivery is reported as
failed. Never raises and keeps no state, so repeated calls are harmless.
"""

from infrastructure.delivery.protocol import DeliveryResult
from schemas.models.otp import OtpChannel, OtpPurpose
from shared.generators import generate_fallback_message_id
from shared.logging import get_logger, mask_destination

log = get_logger(__name__)


class ConsoleFallbackProvider:
    name = "console"

    def __init__(self, channel: OtpChannel, disclose_code: bool = False) -> None:
        self._channel = channel
        self._disclose_code = disclose_code

    async def send(
        self, destination: str, code: str, purpose: OtpPurpose
    ) -> DeliveryResult:
        if not self._disclose_code:
            log.error(
                "otp_fallback_unavailable",
                channel=self._channel.value,
                destination=mask_destination(destination),
                purpose=purpose.value,
            )
            return DeliveryResult(
                success=False,
                provider=self.name,
                error="fallback_disabled",
            )

        message_id = generate_fallback_message_id()
        # dev_code is deliberately outside the redaction list
        log.warning(
            "otp_fallback_delivery",
            channel=self._channel.value,
            destination=mask_destination(destination),
            purpose=purpose.value,
            dev_code=code,
            message_id=message_id,
        )
        return DeliveryResult(success=True, provider=self.name, message_id=message_id)
