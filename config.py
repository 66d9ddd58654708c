"""
Application configuration via pydantic-settings.

All settings are loaded from environment variables (and .env file).

Provider credentials (Twilio, ZeptoMail) are optional: when they are missing
the delivery channel falls through to the secondary transport (an SMS
gateway, SendGrid) when one is configured, and finally to the console
provider, which logs the code in development and reports a failed delivery
in production.
"""

from __future__ import annotations

from typing import Literal, Optional

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class DatabaseSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    mongodb_uri: str
    db_name: str = "okada"
    otp_collection: str = "otp-records"

    # Upper bound for every store call (client-side wait + server maxTimeMS)
    store_timeout_seconds: float = Field(default=5.0, gt=0)


class RedisSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Optional — without Redis the cooldown tracker is kept in process memory
    redis_uri: Optional[str] = None

    # Socket and per-command bound; a slow Redis falls back to process memory
    redis_timeout_seconds: float = Field(default=1.0, gt=0)


class OtpSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    otp_length: int = Field(default=6, ge=4, le=10)
    otp_ttl_seconds: int = Field(default=600, gt=0)
    otp_cooldown_seconds: int = Field(default=60, ge=0)
    otp_max_attempts: int = Field(default=3, ge=1, le=10)
    otp_delivery_timeout_seconds: float = Field(default=5.0, gt=0)

    # "mongodb" in every real deployment; "memory" for local development
    otp_storage_mode: Literal["mongodb", "memory"] = "mongodb"

    # Per-strategy bounds for the tiered record lookup
    otp_lookup_index_timeout_seconds: float = Field(default=2.0, gt=0)
    otp_lookup_scan_timeout_seconds: float = Field(default=1.5, gt=0)

    # Records older than expiry + retention are purged by the cleanup worker
    otp_retention_days: int = Field(default=30, ge=0)
    otp_cleanup_interval_seconds: int = Field(default=3600, gt=0)


class SmsSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    twilio_account_sid: str = ""
    twilio_auth_token: str = ""
    twilio_phone_number: str = ""

    # Secondary transport: any JSON SMS gateway taking {to, message, sender}
    sms_gateway_url: str = ""
    sms_gateway_token: str = ""
    sms_gateway_sender: str = ""

    @property
    def is_configured(self) -> bool:
        return bool(
            self.twilio_account_sid
            and self.twilio_auth_token
            and self.twilio_phone_number
        )

    @property
    def gateway_configured(self) -> bool:
        return bool(self.sms_gateway_url)


class EmailSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    zepto_api_token: str = ""
    zepto_from_email: str = "noreply@okadaride.africa"
    zepto_from_name: str = "Okada Ride Africa"

    # Secondary transport; reuses the ZeptoMail sender identity
    sendgrid_api_key: str = ""

    @property
    def is_configured(self) -> bool:
        return bool(self.zepto_api_token)

    @property
    def sendgrid_configured(self) -> bool:
        return bool(self.sendgrid_api_key)


class JWTSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    jwt_issuer: str = "okada"
    jwt_audience: str = "okada.api"

    # RS256 public key (preferred); only verification happens in this service
    jwt_public_key: str = ""

    # HS256 fallback (used when the RS256 key is absent)
    jwt_secret: str = ""

    @property
    def use_rs256(self) -> bool:
        return bool(self.jwt_public_key)

    @property
    def is_configured(self) -> bool:
        return bool(self.jwt_public_key or self.jwt_secret)


class LoggingSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    log_level: str = "INFO"
    log_format: str = "console"  # "json" in production


class SentrySettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    sentry_dsn: str = ""
    sentry_send_pii: bool = False
    sentry_traces_sample_rate: float = 0.1


class AppSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Core
    env: str = "development"
    app_name: str = "Okada OTP Service"
    brand_name: str = "Okada Ride Africa"

    cors_origins: list[str] = ["*"]

    # OpenAPI docs URL (None disables the docs UI in production)
    docs_url: Optional[str] = "/docs"

    # Sub-configs (composed via model_validator below)
    db: Optional[DatabaseSettings] = None
    redis: Optional[RedisSettings] = None
    otp: Optional[OtpSettings] = None
    sms: Optional[SmsSettings] = None
    email: Optional[EmailSettings] = None
    jwt: Optional[JWTSettings] = None
    logging: Optional[LoggingSettings] = None
    sentry: Optional[SentrySettings] = None

    @model_validator(mode="after")
    def _populate_sub_configs(self) -> "AppSettings":
        if self.db is None:
            self.db = DatabaseSettings()
        if self.redis is None:
            self.redis = RedisSettings()
        if self.otp is None:
            self.otp = OtpSettings()
        if self.sms is None:
            self.sms = SmsSettings()
        if self.email is None:
            self.email = EmailSettings()
        if self.jwt is None:
            self.jwt = JWTSettings()
        if self.logging is None:
            self.logging = LoggingSettings()
        if self.sentry is None:
            self.sentry = SentrySettings()
        return self

    @property
    def is_production(self) -> bool:
        return self.env == "production"
