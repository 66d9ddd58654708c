"""SendGrid implementation of DeliveryProvider, the secondary email transport.

Uses the v3 Mail Send REST endpoint through the shared HttpClient rather than
the SendGrid SDK, so it shares the ZeptoMail provider's timeout and shutdown
handling. Sender identity comes from the ZeptoMail settings.
"""

from config import EmailSettings
from infrastructure.delivery.email_templates import DEFAULT_TEMPLATE_DIR, OtpEmailRenderer
from infrastructure.delivery.messages import build_email_subject, build_email_text
from infrastructure.delivery.protocol import DeliveryResult
from infrastructure.http_client import HttpClient
from schemas.models.otp import OtpPurpose
from shared.logging import get_logger, mask_email

log = get_logger(__name__)

_SENDGRID_MAIL_URL = "https://api.sendgrid.com/v3/mail/send"


class SendGridProvider:
    name = "sendgrid"

    def __init__(
        self,
        settings: EmailSettings,
        http_client: HttpClient,
        brand: str = "Okada Ride Africa",
        ttl_seconds: int = 600,
        template_dir: str = DEFAULT_TEMPLATE_DIR,
    ) -> None:
        self._settings = settings
        self._http = http_client
        self._brand = brand
        self._ttl_seconds = ttl_seconds
        self._renderer = OtpEmailRenderer(brand, ttl_seconds, template_dir)

    async def send(
        self, destination: str, code: str, purpose: OtpPurpose
    ) -> DeliveryResult:
        if not self._settings.sendgrid_configured:
            log.warning("sendgrid_send_skipped", reason="api_key_not_configured")
            return DeliveryResult(
                success=False, provider=self.name, error="not_configured"
            )

        subject = build_email_subject(self._brand, purpose)
        # SendGrid requires text/plain ahead of text/html
        payload = {
            "personalizations": [{"to": [{"email": destination}]}],
            "from": {
                "email": self._settings.zepto_from_email,
                "name": self._settings.zepto_from_name,
            },
            "subject": subject,
            "content": [
                {
                    "type": "text/plain",
                    "value": build_email_text(code, purpose, self._ttl_seconds),
                },
                {"type": "text/html", "value": self._renderer.render(code, purpose)},
            ],
        }
        headers = {"Authorization": f"Bearer {self._settings.sendgrid_api_key}"}

        try:
            response = await self._http.post(
                _SENDGRID_MAIL_URL, json=payload, headers=headers
            )
            if response.status_code in (200, 202):
                message_id = response.headers.get("X-Message-Id")
                log.info(
                    "email_sent_success",
                    provider=self.name,
                    destination=mask_email(destination),
                    subject=subject,
                    message_id=message_id,
                )
                return DeliveryResult(
                    success=True, provider=self.name, message_id=message_id
                )
            log.error(
                "email_sent_failed",
                provider=self.name,
                destination=mask_email(destination),
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
                "email_send_error",
                provider=self.name,
                destination=mask_email(destination),
                error=str(e),
                error_type=type(e).__name__,
            )
            return DeliveryResult(success=False, provider=self.name, error=str(e))
