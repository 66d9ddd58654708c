"""Generic HTTP SMS gateway, the secondary SMS transport.

Posts ``{"to", "message", "sender"}`` as JSON with an optional bearer token,
which is the shape most regional aggregators accept. Any 2xx answer counts
as accepted; the message id is read from ``message_id`` or ``id`` when the
gateway returns one.
"""

from typing import Optional

import httpx

from config import SmsSettings
from infrastructure.delivery.messages import build_sms_body
from infrastructure.delivery.protocol import DeliveryResult
from infrastructure.http_client import HttpClient
from schemas.models.otp import OtpPurpose
from shared.logging import get_logger, mask_phone

log = get_logger(__name__)


def _message_id(response: httpx.Response) -> Optional[str]:
    try:
        body = response.json()
    except ValueError:
        return None
    if not isinstance(body, dict):
        return None
    value = body.get("message_id") or body.get("id")
    return str(value) if value is not None else None


class SmsGatewayProvider:
    name = "sms_gateway"

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
        if not self._settings.gateway_configured:
            log.warning("sms_gateway_send_skipped", reason="not_configured")
            return DeliveryResult(
                success=False, provider=self.name, error="not_configured"
            )

        payload = {
            "to": destination,
            "message": build_sms_body(self._brand, code, purpose, self._ttl_seconds),
        }
        if self._settings.sms_gateway_sender:
            payload["sender"] = self._settings.sms_gateway_sender
        headers = {}
        if self._settings.sms_gateway_token:
            headers["Authorization"] = f"Bearer {self._settings.sms_gateway_token}"

        try:
            response = await self._http.post(
                self._settings.sms_gateway_url, json=payload, headers=headers
            )
            if 200 <= response.status_code < 300:
                message_id = _message_id(response)
                log.info(
                    "sms_sent_success",
                    provider=self.name,
                    destination=mask_phone(destination),
                    message_id=message_id,
                )
                return DeliveryResult(
                    success=True, provider=self.name, message_id=message_id
                )
            log.error(
                "sms_sent_failed",
                provider=self.name,
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
                provider=self.name,
                destination=mask_phone(destination),
                error=str(e),
                error_type=type(e).__name__,
            )
            return DeliveryResult(success=False, provider=self.name, error=str(e))
