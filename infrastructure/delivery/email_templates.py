"""Jinja2 rendering of the OTP email, shared by every email provider."""

import os

from jinja2 import Environment, FileSystemLoader, select_autoescape

from infrastructure.delivery.messages import PURPOSE_COPY, ttl_minutes
from schemas.models.otp import OtpPurpose

DEFAULT_TEMPLATE_DIR = os.path.join(
    os.path.dirname(os.path.dirname(os.path.dirname(__file__))),
    "templates",
    "emails",
)


class OtpEmailRenderer:
    def __init__(
        self,
        brand: str = "Okada Ride Africa",
        ttl_seconds: int = 600,
        template_dir: str = DEFAULT_TEMPLATE_DIR,
    ) -> None:
        self._brand = brand
        self._ttl_seconds = ttl_seconds
        self._jinja = Environment(
            loader=FileSystemLoader(template_dir),
            autoescape=select_autoescape(["html", "xml"]),
        )

    def render(self, code: str, purpose: OtpPurpose) -> str:
        copy = PURPOSE_COPY[purpose]
        template = self._jinja.get_template("otp_code.html")
        return template.render(
            brand=self._brand,
            title=copy.title,
            lead=copy.lead,
            footer=copy.footer,
            otp_code=code,
            ttl_minutes=ttl_minutes(self._ttl_seconds),
        )
