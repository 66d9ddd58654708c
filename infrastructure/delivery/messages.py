"""Message copy per OTP purpose, shared by the SMS and email providers."""

from dataclasses import dataclass

from schemas.models.otp import OtpPurpose


@dataclass(frozen=True)
class PurposeCopy:
    title: str
    lead: str
    footer: str


PURPOSE_COPY = {
    OtpPurpose.VERIFICATION: PurposeCopy(
        title="Verification",
        lead="Your verification code is",
        footer="If you did not request this, please ignore this message.",
    ),
    OtpPurpose.PASSWORD_RESET: PurposeCopy(
        title="Password Reset",
        lead="Your password reset code is",
        footer="If you did not request this, please contact our support team immediately.",
    ),
    OtpPurpose.LOGIN: PurposeCopy(
        title="Login Verification",
        lead="Your login verification code is",
        footer="If you did not attempt to log in, please secure your account immediately.",
    ),
}


def ttl_minutes(ttl_seconds: int) -> int:
    return max(ttl_seconds // 60, 1)


def build_sms_body(brand: str, code: str, purpose: OtpPurpose, ttl_seconds: int) -> str:
    copy = PURPOSE_COPY[purpose]
    return f"[{brand}] {copy.lead}: {code}. Valid for {ttl_minutes(ttl_seconds)} minutes."


def build_email_subject(brand: str, purpose: OtpPurpose) -> str:
    return f"{brand} - {PURPOSE_COPY[purpose].title}"


def build_email_text(code: str, purpose: OtpPurpose, ttl_seconds: int) -> str:
    copy = PURPOSE_COPY[purpose]
    return (
        f"{copy.lead}: {code}\n\n"
        f"This code will expire in {ttl_minutes(ttl_seconds)} minutes.\n\n"
        f"{copy.footer}"
    )
