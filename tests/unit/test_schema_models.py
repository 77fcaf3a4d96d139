"""Unit tests for MongoDB document models and the OTP ledger entry."""

from datetime import datetime, timedelta, timezone

import pytest
from bson import ObjectId
from pydantic import ValidationError

from schemas.models.account import AccountDoc, AuthProvider, Role
from schemas.models.base import MongoBaseModel, PyObjectId
from schemas.models.otp import OtpEntry


# ── Helpers ───────────────────────────────────────────────────────────────────

def now():
    return datetime.now(timezone.utc)


def oid():
    return ObjectId()


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
        assert MongoBaseModel.model_validate({"_id": o}).to_mongo()["_id"] == o


# ── AccountDoc ────────────────────────────────────────────────────────────────

class TestAccountDoc:
    def _make(self, **overrides):
        base = {"email": "ann@x.com", "password_hash": "h", "display_name": "Ann"}
        base.update(overrides)
        return AccountDoc.model_validate(base)

    def test_defaults(self):
        doc = self._make()
        assert doc.role is Role.SEEKER
        assert doc.auth_provider is AuthProvider.LOCAL
        assert doc.email_verified is False
        assert doc.account_locked is False
        assert doc.failed_login_attempts == 0
        assert doc.version == 0
        assert doc.is_local is True

    def test_negative_failed_attempts_rejected(self):
        with pytest.raises(ValidationError):
            self._make(failed_login_attempts=-1)

    def test_naive_datetimes_read_as_utc(self):
        doc = self._make(last_login_at=datetime(2025, 1, 1, 12, 0))
        assert doc.last_login_at.tzinfo is not None
        assert doc.last_login_at.utcoffset() == timedelta(0)

    def test_to_mongo_stores_enum_values(self):
        doc = self._make(role=Role.RECRUITER, auth_provider=AuthProvider.GITHUB)
        data = doc.to_mongo()
        assert data["role"] == "RECRUITER"
        assert data["auth_provider"] == "GITHUB"
        assert "_id" not in data

    def test_from_mongo_round_trip(self):
        o = oid()
        doc = self._make(**{"_id": o, "role": "RECRUITER", "version": 4})
        restored = AccountDoc.from_mongo(doc.to_mongo())
        assert restored.id == o
        assert restored.role is Role.RECRUITER
        assert restored.version == 4

    def test_password_reset_set_and_clear(self):
        doc = self._make()
        expires = now() + timedelta(hours=1)
        doc.set_password_reset("abc", expires)
        assert doc.password_reset_token_hash == "abc"
        assert doc.password_reset_expires_at == expires
        doc.clear_password_reset()
        assert doc.password_reset_token_hash is None
        assert doc.password_reset_expires_at is None

    def test_version_guard_pins_read_version(self):
        o = oid()
        doc = self._make(**{"_id": o, "version": 3})
        assert doc.version_guard() == {"_id": o, "version": 3}

    def test_naive_created_at_read_as_utc(self):
        doc = self._make(created_at=datetime(2025, 1, 1))
        assert doc.created_at.tzinfo is not None

    def test_federated_provider_flag(self):
        assert AuthProvider.GOOGLE.is_federated
        assert not AuthProvider.LOCAL.is_federated
        assert self._make(auth_provider="GOOGLE").is_local is False


# ── OtpEntry ──────────────────────────────────────────────────────────────────

class TestOtpEntry:
    def test_valid_up_to_expiry_instant(self):
        t = now()
        entry = OtpEntry(email="a@x.com", code_hash="h", expires_at=t)
        assert entry.is_expired(t) is False
        assert entry.is_expired(t + timedelta(seconds=1)) is True
