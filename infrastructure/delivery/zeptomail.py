"""ZeptoMail implementation of DeliveryProvider for the email channel.

- async httpx via the injected HttpClient
- credentials from EmailSettings
- one Jinja2 template for every purpose; the copy comes from messages.py
"""

from config import EmailSettings
from infrastructure.delivery.email_templates import DEFAULT_TEMPLATE_DIR, OtpEmailRenderer
from infrastructure.delivery.messages import build_email_subject, build_email_text
from infrastructure.delivery.protocol import DeliveryResult
from infrastructure.http_client import HttpClient
from schemas.models.otp import OtpPurpose
from shared.logging import get_logger, mask_email

log = get_logger(__name__)

_ZEPTO_API_URL = "https://api.zeptomail.com/v1.1/email"


class ZeptoMailProvider:
    name = "zeptomail"

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

    def _render_html(self, code: str, purpose: OtpPurpose) -> str:
        return self._renderer.render(code, purpose)

    async def send(
        self, destination: str, code: str, purpose: OtpPurpose
    ) -> DeliveryResult:
        if not self._settings.is_configured:
            log.warning("zepto_mail_send_skipped", reason="token_not_configured")
            return DeliveryResult(
                success=False, provider=self.name, error="not_configured"
            )

        subject = build_email_subject(self._brand, purpose)
        payload: dict = {
            "from": {
                "address": self._settings.zepto_from_email,
                "name": self._settings.zepto_from_name,
            },
            "to": [{"email_address": {"address": destination, "name": destination}}],
            "subject": subject,
            "htmlbody": self._render_html(code, purpose),
            "textbody": build_email_text(code, purpose, self._ttl_seconds),
        }

        token = self._settings.zepto_api_token
        if not token.startswith("Zoho-enczapikey "):
            token = f"Zoho-enczapikey {token}"
        headers = {"Authorization": token, "Content-Type": "application/json"}

        try:
            response = await self._http.post(
                _ZEPTO_API_URL, json=payload, headers=headers
            )
            if response.status_code in (200, 201, 202):
                message_id = response.json().get("request_id")
                log.info(
                    "email_sent_success",
                    destination=mask_email(destination),
                    subject=subject,
                    message_id=message_id,
                )
                return DeliveryResult(
                    success=True, provider=self.name, message_id=message_id
                )
            log.error(
                "email_sent_failed",
                destination=mask_email(destination),
                subject=subject,
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
                destination=mask_email(destination),
                subject=subject,
                error=str(e),
                error_type=type(e).__name__,
            )
            return DeliveryResult(success=False, provider=self.name, error=str(e))
