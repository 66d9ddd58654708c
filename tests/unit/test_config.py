"""Unit tests for AppSettings and sub-configs."""

import pytest
from pydantic import ValidationError as PydanticValidationError

from config import (
    AppSettings,
    DatabaseSettings,
    EmailSettings,
    JWTSettings,
    OtpSettings,
    RedisSettings,
    SmsSettings,
)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def with_mongo(monkeypatch):
    """Set the required MONGODB_URI so AppSettings can be instantiated."""
    monkeypatch.setenv("MONGODB_URI", "mongodb://localhost:27017/")
    return monkeypatch


# ---------------------------------------------------------------------------
# DatabaseSettings
# ---------------------------------------------------------------------------


class TestDatabaseSettings:
    def test_loads_mongodb_uri(self, monkeypatch):
        monkeypatch.setenv("MONGODB_URI", "mongodb://localhost:27017/")
        assert DatabaseSettings().mongodb_uri == "mongodb://localhost:27017/"

    def test_defaults(self, monkeypatch):
        monkeypatch.setenv("MONGODB_URI", "mongodb://localhost:27017/")
        s = DatabaseSettings()
        assert s.db_name == "okada"
        assert s.otp_collection == "otp-records"
        assert s.store_timeout_seconds == 5.0

    def test_missing_mongodb_uri_raises(self, monkeypatch):
        monkeypatch.delenv("MONGODB_URI", raising=False)
        with pytest.raises(PydanticValidationError):
            DatabaseSettings()


# ---------------------------------------------------------------------------
# RedisSettings
# ---------------------------------------------------------------------------


class TestRedisSettings:
    def test_redis_uri_optional(self, monkeypatch):
        monkeypatch.delenv("REDIS_URI", raising=False)
        assert RedisSettings().redis_uri is None

    def test_redis_uri_loaded(self, monkeypatch):
        monkeypatch.setenv("REDIS_URI", "redis://localhost:6379")
        assert RedisSettings().redis_uri == "redis://localhost:6379"

    def test_redis_timeout_default_and_override(self, monkeypatch):
        monkeypatch.delenv("REDIS_TIMEOUT_SECONDS", raising=False)
        assert RedisSettings().redis_timeout_seconds == 1.0
        monkeypatch.setenv("REDIS_TIMEOUT_SECONDS", "0.25")
        assert RedisSettings().redis_timeout_seconds == 0.25


# ---------------------------------------------------------------------------
# OtpSettings
# ---------------------------------------------------------------------------


class TestOtpSettings:
    def test_defaults(self):
        s = OtpSettings()
        assert s.otp_length == 6
        assert s.otp_ttl_seconds == 600
        assert s.otp_cooldown_seconds == 60
        assert s.otp_max_attempts == 3
        assert s.otp_delivery_timeout_seconds == 5.0
        assert s.otp_storage_mode == "mongodb"
        assert s.otp_lookup_index_timeout_seconds == 2.0
        assert s.otp_lookup_scan_timeout_seconds == 1.5

    def test_env_override(self, monkeypatch):
        monkeypatch.setenv("OTP_LENGTH", "8")
        monkeypatch.setenv("OTP_STORAGE_MODE", "memory")
        s = OtpSettings()
        assert s.otp_length == 8
        assert s.otp_storage_mode == "memory"

    def test_rejects_unknown_storage_mode(self, monkeypatch):
        monkeypatch.setenv("OTP_STORAGE_MODE", "sqlite")
        with pytest.raises(PydanticValidationError):
            OtpSettings()

    def test_rejects_zero_attempts(self, monkeypatch):
        monkeypatch.setenv("OTP_MAX_ATTEMPTS", "0")
        with pytest.raises(PydanticValidationError):
            OtpSettings()


# ---------------------------------------------------------------------------
# Provider settings
# ---------------------------------------------------------------------------


class TestProviderSettings:
    def test_sms_unconfigured_by_default(self, monkeypatch):
        for var in ("TWILIO_ACCOUNT_SID", "TWILIO_AUTH_TOKEN", "TWILIO_PHONE_NUMBER"):
            monkeypatch.delenv(var, raising=False)
        assert SmsSettings().is_configured is False

    def test_sms_requires_all_three(self, monkeypatch):
        monkeypatch.setenv("TWILIO_ACCOUNT_SID", "AC123")
        monkeypatch.setenv("TWILIO_AUTH_TOKEN", "tok")
        monkeypatch.delenv("TWILIO_PHONE_NUMBER", raising=False)
        assert SmsSettings().is_configured is False
        monkeypatch.setenv("TWILIO_PHONE_NUMBER", "+15550009999")
        assert SmsSettings().is_configured is True

    def test_email_defaults(self, monkeypatch):
        monkeypatch.delenv("ZEPTO_API_TOKEN", raising=False)
        s = EmailSettings()
        assert s.is_configured is False
        assert s.zepto_from_email == "noreply@okadaride.africa"

    def test_secondary_transports_off_by_default(self, monkeypatch):
        for var in ("SMS_GATEWAY_URL", "SENDGRID_API_KEY"):
            monkeypatch.delenv(var, raising=False)
        assert SmsSettings().gateway_configured is False
        assert EmailSettings().sendgrid_configured is False

    def test_secondary_transports_from_env(self, monkeypatch):
        monkeypatch.setenv("SMS_GATEWAY_URL", "https://sms.example.africa/send")
        monkeypatch.setenv("SENDGRID_API_KEY", "SG.key")
        assert SmsSettings().gateway_configured is True
        assert EmailSettings().sendgrid_configured is True


# ---------------------------------------------------------------------------
# JWTSettings
# ---------------------------------------------------------------------------


class TestJWTSettings:
    def test_defaults(self, monkeypatch):
        for var in ("JWT_ISSUER", "JWT_AUDIENCE", "JWT_PUBLIC_KEY", "JWT_SECRET"):
            monkeypatch.delenv(var, raising=False)
        s = JWTSettings()
        assert s.jwt_issuer == "okada"
        assert s.jwt_audience == "okada.api"
        assert s.is_configured is False
        assert s.use_rs256 is False

    def test_public_key_selects_rs256(self, monkeypatch):
        monkeypatch.setenv("JWT_PUBLIC_KEY", "-----BEGIN PUBLIC KEY-----")
        assert JWTSettings().use_rs256 is True

    def test_secret_configures_hs256(self, monkeypatch):
        monkeypatch.delenv("JWT_PUBLIC_KEY", raising=False)
        monkeypatch.setenv("JWT_SECRET", "s3cret")
        s = JWTSettings()
        assert s.is_configured is True
        assert s.use_rs256 is False


# ---------------------------------------------------------------------------
# AppSettings
# ---------------------------------------------------------------------------


class TestAppSettings:
    def test_sub_configs_populated(self, with_mongo):
        s = AppSettings()
        assert s.db is not None
        assert s.redis is not None
        assert s.otp is not None
        assert s.sms is not None
        assert s.email is not None
        assert s.jwt is not None
        assert s.logging is not None
        assert s.sentry is not None

    def test_is_production(self, with_mongo):
        with_mongo.setenv("ENV", "production")
        assert AppSettings().is_production is True

    def test_development_by_default(self, with_mongo):
        with_mongo.delenv("ENV", raising=False)
        assert AppSettings().is_production is False

    def test_explicit_sub_config_wins(self, with_mongo):
        s = AppSettings(otp=OtpSettings(otp_ttl_seconds=120))
        assert s.otp.otp_ttl_seconds == 120
