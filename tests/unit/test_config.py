"""Unit tests for AppSettings and sub-configs."""

import pytest

from config import (
    AdminSettings,
    AppSettings,
    AuthPolicySettings,
    DatabaseSettings,
    EmailSettings,
    JWTSettings,
    RedisSettings,
)


# ---------------------------------------------------------------------------
# DatabaseSettings / RedisSettings
# ---------------------------------------------------------------------------


class TestDatabaseSettings:
    def test_loads_mongodb_uri(self, monkeypatch):
        monkeypatch.setenv("MONGODB_URI", "mongodb://localhost:27017/")
        assert DatabaseSettings().mongodb_uri == "mongodb://localhost:27017/"

    def test_default_db_name(self, monkeypatch):
        monkeypatch.delenv("DB_NAME", raising=False)
        assert DatabaseSettings().db_name == "talentiq"

    def test_mongodb_uri_optional(self, monkeypatch):
        monkeypatch.delenv("MONGODB_URI", raising=False)
        assert DatabaseSettings().mongodb_uri is None


class TestRedisSettings:
    def test_redis_uri_optional(self, monkeypatch):
        monkeypatch.delenv("REDIS_URI", raising=False)
        assert RedisSettings().redis_uri is None

    def test_redis_uri_loaded(self, monkeypatch):
        monkeypatch.setenv("REDIS_URI", "redis://localhost:6379")
        assert RedisSettings().redis_uri == "redis://localhost:6379"


# ---------------------------------------------------------------------------
# JWTSettings
# ---------------------------------------------------------------------------


class TestJWTSettings:
    def test_defaults(self, monkeypatch):
        for var in (
            "JWT_ISSUER",
            "JWT_AUDIENCE",
            "SESSION_TOKEN_TTL_SECONDS",
            "JWT_PRIVATE_KEY",
            "JWT_PUBLIC_KEY",
            "JWT_SECRET",
        ):
            monkeypatch.delenv(var, raising=False)
        s = JWTSettings()
        assert s.jwt_issuer == "talentiq"
        assert s.jwt_audience == "talentiq.api"
        assert s.session_token_ttl_seconds == 86400


@pytest.mark.parametrize(
    "private_key, public_key, expected",
    [
        ("private", "public", True),
        (None, None, False),
    ],
    ids=["keys_present", "keys_absent"],
)
def test_jwt_use_rs256(monkeypatch, private_key, public_key, expected):
    if private_key:
        monkeypatch.setenv("JWT_PRIVATE_KEY", private_key)
        monkeypatch.setenv("JWT_PUBLIC_KEY", public_key)
    else:
        monkeypatch.delenv("JWT_PRIVATE_KEY", raising=False)
        monkeypatch.delenv("JWT_PUBLIC_KEY", raising=False)
    assert JWTSettings().use_rs256 is expected


# ---------------------------------------------------------------------------
# Auth policy / email / admin
# ---------------------------------------------------------------------------


class TestAuthPolicySettings:
    def test_defaults(self):
        s = AuthPolicySettings()
        assert s.max_failed_logins == 5
        assert s.otp_length == 6
        assert s.otp_ttl_seconds == 600
        assert s.otp_max_attempts == 3
        assert s.otp_resend_cooldown_seconds == 0
        assert s.password_reset_ttl_seconds == 3600
        assert s.password_reset_token_length == 64
        assert s.reveal_unknown_email_on_reset is True

    def test_env_override(self, monkeypatch):
        monkeypatch.setenv("MAX_FAILED_LOGINS", "3")
        monkeypatch.setenv("OTP_RESEND_COOLDOWN_SECONDS", "60")
        s = AuthPolicySettings()
        assert s.max_failed_logins == 3
        assert s.otp_resend_cooldown_seconds == 60


def test_email_frontend_url_default(monkeypatch):
    monkeypatch.delenv("FRONTEND_URL", raising=False)
    assert EmailSettings().frontend_url == "http://localhost:5173"


@pytest.mark.parametrize(
    "email, password, expected",
    [
        ("admin@talentiq.app", "S3cret!pass", True),
        ("admin@talentiq.app", "", False),
        ("", "S3cret!pass", False),
    ],
    ids=["both_set", "no_password", "no_email"],
)
def test_admin_configured(monkeypatch, email, password, expected):
    monkeypatch.setenv("ADMIN_EMAIL", email)
    monkeypatch.setenv("ADMIN_PASSWORD", password)
    assert AdminSettings().configured is expected


# ---------------------------------------------------------------------------
# AppSettings
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    "env, expected",
    [("production", True), ("development", False)],
    ids=["production", "development"],
)
def test_is_production(monkeypatch, env, expected):
    monkeypatch.setenv("ENV", env)
    assert AppSettings().is_production is expected


class TestAppSettings:
    def test_sub_configs_populated(self):
        s = AppSettings()
        for attr in (
            "db",
            "redis",
            "jwt",
            "auth",
            "oauth",
            "email",
            "admin",
            "logging",
            "sentry",
        ):
            assert getattr(s, attr) is not None, f"sub-config '{attr}' is None"

    def test_cors_origins_default(self, monkeypatch):
        monkeypatch.delenv("CORS_ORIGINS", raising=False)
        assert AppSettings().cors_origins == ["http://localhost:5173"]
