"""Unit tests for MongoDB document models."""

from datetime import datetime, timedelta, timezone

import pytest
from bson import ObjectId

from schemas.models.base import MongoBaseModel, PyObjectId
from schemas.models.otp import (
    DeliveryStatus,
    OtpChannel,
    OtpPurpose,
    OtpRecordDoc,
)


# ── Helpers ───────────────────────────────────────────────────────────────────

def now():
    return datetime.now(timezone.utc)


def oid():
    return ObjectId()


def _record(**overrides) -> OtpRecordDoc:
    created = now()
    base = dict(
        lookup_key="+15550001111",
        channel=OtpChannel.SMS,
        destination="+15550001111",
        purpose=OtpPurpose.LOGIN,
        code_hash="a" * 64,
        created_at=created,
        expires_at=created + timedelta(minutes=10),
    )
    base.update(overrides)
    return OtpRecordDoc(**base)


# ── PyObjectId ────────────────────────────────────────────────────────────────

class TestPyObjectId:
    def test_accepts_objectid_instance(self):
        o = oid()
        assert PyObjectId._validate(o) == o

    def test_accepts_valid_string(self):
        s = str(oid())
        result = PyObjectId._validate(s)
        assert isinstance(result, ObjectId)
        assert str(result) == s

    def test_rejects_invalid_string(self):
        with pytest.raises(ValueError):
            PyObjectId._validate("not-an-objectid")


# ── MongoBaseModel ─────────────────────────────────────────────────────────────

class TestMongoBaseModel:
    def test_from_mongo_returns_none_for_none(self):
        assert MongoBaseModel.from_mongo(None) is None

    def test_to_mongo_drops_none_id(self):
        assert "_id" not in MongoBaseModel().to_mongo()

    def test_to_mongo_keeps_set_id(self):
        o = oid()
        m = MongoBaseModel.model_validate({"_id": o})
        assert m.to_mongo()["_id"] == o

    def test_naive_datetimes_read_back_as_utc(self):
        raw = _record().to_mongo()
        raw["_id"] = oid()
        raw["created_at"] = datetime(2030, 1, 1, 12, 0)
        r = OtpRecordDoc.from_mongo(raw)
        assert r.created_at == datetime(2030, 1, 1, 12, 0, tzinfo=timezone.utc)
        assert r.expires_at.tzinfo is not None

    def test_to_mongo_has_no_enum_members(self):
        d = _record().to_mongo()
        assert type(d["channel"]) is str
        assert type(d["purpose"]) is str


# ── OtpRecordDoc ──────────────────────────────────────────────────────────────

class TestOtpRecordDoc:
    def test_defaults(self):
        r = _record()
        assert r.attempts == 0
        assert r.max_attempts == 3
        assert r.consumed is False
        assert r.consumed_at is None
        assert r.owner_id is None
        assert r.delivery_status is None

    def test_to_mongo_stores_enum_values(self):
        d = _record(delivery_status=DeliveryStatus.FALLBACK).to_mongo()
        assert d["channel"] == "sms"
        assert d["purpose"] == "login"
        assert d["delivery_status"] == "fallback"
        assert "_id" not in d
        assert "code" not in d

    def test_from_mongo_parses_raw_doc(self):
        o = oid()
        raw = _record(purpose=OtpPurpose.PASSWORD_RESET).to_mongo()
        raw["_id"] = o
        r = OtpRecordDoc.from_mongo(raw)
        assert r.id == o
        assert r.purpose is OtpPurpose.PASSWORD_RESET
        assert r.channel is OtpChannel.SMS

    def test_is_expired_boundary(self):
        r = _record()
        assert r.is_expired(r.expires_at - timedelta(seconds=1)) is False
        assert r.is_expired(r.expires_at) is True

    def test_is_expired_accepts_naive_stored_datetime(self):
        expires = datetime(2030, 1, 1, 12, 0, 0)  # naive, as pymongo returns it
        r = _record(created_at=expires - timedelta(minutes=10), expires_at=expires)
        assert r.is_expired(datetime(2030, 1, 1, 11, 59, tzinfo=timezone.utc)) is False
        assert r.is_expired(datetime(2030, 1, 1, 12, 1, tzinfo=timezone.utc)) is True

    def test_attempt_accounting(self):
        r = _record(attempts=2, max_attempts=3)
        assert r.attempts_remaining == 1
        assert r.attempts_exhausted is False
        r = _record(attempts=3, max_attempts=3)
        assert r.attempts_remaining == 0
        assert r.attempts_exhausted is True

    def test_is_active(self):
        t = now()
        assert _record().is_active(t) is True
        assert _record(consumed=True).is_active(t) is False
        assert _record(attempts=3).is_active(t) is False
        assert _record().is_active(t + timedelta(minutes=11)) is False

    def test_rejects_negative_attempts(self):
        with pytest.raises(ValueError):
            _record(attempts=-1)
