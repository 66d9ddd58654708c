"""Twilio implementation of DeliveryProvider for the SMS channel.

Talks to the Twilio Messages REST endpoint through the shared HttpClient, so
the provider timeout is the HttpClient timeout and no SDK-level global client
exists. Credentials are injected from SmsSettings.
"""

from config import SmsSettings
from infrastructure.delivery.messages import build_sms_body
from infrastructure.delivery.protocol import DeliveryResult
from infrastructure.http_client import HttpClient
from schemas.models.otp import OtpPurpose
from shared.logging import get_logger, mask_phone

log = get_logger(__name__)

_TWILIO_MESSAGES_URL = "https://api.twilio.com/2010-04-01/Accounts/{sid}/Messages.json"


class TwilioSmsProvider:
    name = "twilio"

    def __init__(
        self,
        settings: SmsSettings,
        http_client: HttpClient,
        brand: str = "Okada Ride Africa",
        ttl_seconds: int = 600,
    ) -> None:
        self._settings = settings
        self._http = http_client
        self._brand = brand
        self._ttl_seconds = ttl_seconds

    async def send(
        self, destination: str, code: str, purpose: OtpPurpose
    ) -> DeliveryResult:
        if not self._settings.is_configured:
            log.warning("twilio_send_skipped", reason="not_configured")
            return DeliveryResult(
                success=False, provider=self.name, error="not_configured"
            )

        sid = self._settings.twilio_account_sid
        body = build_sms_body(self._brand, code, purpose, self._ttl_seconds)
        try:
            response = await self._http.post(
                _TWILIO_MESSAGES_URL.format(sid=sid),
                data={
                    "To": destination,
                    "From": self._settings.twilio_phone_number,
                    "Body": body,
                },
                auth=(sid, self._settings.twilio_auth_token),
            )
            if response.status_code in (200, 201):
                message_id = response.json().get("sid")
                log.info(
                    "sms_sent_success",
                    destination=mask_phone(destination),
                    message_id=message_id,
                )
                return DeliveryResult(
                    success=True, provider=self.name, message_id=message_id
                )
            log.error(
                "sms_sent_failed",
                destination=mask_phone(destination),
                status_code=response.status_code,
                response=response.text[:200],
            )
            return DeliveryResult(
                success=False,
                provider=self.name,
                error=f"http_{response.status_code}",
            )
        except Exception as e:
            log.error(
                "sms_send_error",
                destination=mask_phone(destination),
                error=str(e),
                error_type=type(e).__name__,
            )
            return DeliveryResult(success=False, provider=self.name, error=str(e))
