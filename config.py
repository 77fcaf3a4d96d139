"""
Application configuration via pydantic-settings.

All settings are loaded from environment variables (and .env file).

MongoDB and Redis are both optional: without MONGODB_URI accounts live in an
in-memory store, and without REDIS_URI one-time passcodes live in process
memory. Both fallbacks are meant for local development and tests only.
"""

from __future__ import annotations

from typing import Optional

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class DatabaseSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    mongodb_uri: Optional[str] = None
    db_name: str = "talentiq"


class RedisSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    redis_uri: Optional[str] = None
    otp_key_prefix: str = "otp"


class JWTSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    jwt_issuer: str = "talentiq"
    jwt_audience: str = "talentiq.api"
    session_token_ttl_seconds: int = 86400

    # RS256 keys (preferred)
    jwt_private_key: str = ""
    jwt_public_key: str = ""

    # HS256 fallback (used when RS256 keys are absent)
    jwt_secret: str = ""

    @property
    def use_rs256(self) -> bool:
        return bool(self.jwt_private_key and self.jwt_public_key)


class AuthPolicySettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    max_failed_logins: int = 5

    otp_length: int = 6
    otp_ttl_seconds: int = 600
    otp_max_attempts: int = 3
    # 0 disables the cooldown between resend requests
    otp_resend_cooldown_seconds: int = 0

    password_reset_ttl_seconds: int = 3600
    password_reset_token_length: int = 64
    # When False, forgot-password answers unknown emails like known ones
    reveal_unknown_email_on_reset: bool = True

    check_email_deliverability: bool = True


class OAuthProviderSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    google_userinfo_url: str = "https://www.googleapis.com/oauth2/v3/userinfo"
    github_api_base_url: str = "https://api.github.com/"
    oauth_http_timeout_seconds: float = 5.0


class EmailSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    zepto_api_token: str = ""
    zepto_from_email: str = "noreply@talentiq.app"
    zepto_from_name: str = "TalentIQ"
    frontend_url: str = "http://localhost:5173"


class AdminSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    admin_email: str = ""
    admin_password: str = ""
    admin_display_name: str = "System Administrator"

    @property
    def configured(self) -> bool:
        return bool(self.admin_email.strip() and self.admin_password.strip())


class LoggingSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    log_level: str = "INFO"
    log_format: str = "console"  # "json" in production


class SentrySettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    sentry_dsn: str = ""
    sentry_send_pii: bool = False
    sentry_traces_sample_rate: float = 0.1
    sentry_profile_sample_rate: float = 0.05


class AppSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Core
    env: str = "development"
    app_name: str = "TalentIQ Auth"

    cors_origins: list[str] = ["http://localhost:5173"]

    # OpenAPI docs URL (None disables the docs UI in production)
    docs_url: Optional[str] = "/docs"

    # Sub-configs (composed via model_validator below)
    db: Optional[DatabaseSettings] = None
    redis: Optional[RedisSettings] = None
    jwt: Optional[JWTSettings] = None
    auth: Optional[AuthPolicySettings] = None
    oauth: Optional[OAuthProviderSettings] = None
    email: Optional[EmailSettings] = None
    admin: Optional[AdminSettings] = None
    logging: Optional[LoggingSettings] = None
    sentry: Optional[SentrySettings] = None

    @model_validator(mode="after")
    def _populate_sub_configs(self) -> "AppSettings":
        if self.db is None:
            self.db = DatabaseSettings()
        if self.redis is None:
            self.redis = RedisSettings()
        if self.jwt is None:
            self.jwt = JWTSettings()
        if self.auth is None:
            self.auth = AuthPolicySettings()
        if self.oauth is None:
            self.oauth = OAuthProviderSettings()
        if self.email is None:
            self.email = EmailSettings()
        if self.admin is None:
            self.admin = AdminSettings()
        if self.logging is None:
            self.logging = LoggingSettings()
        if self.sentry is None:
            self.sentry = SentrySettings()

        return self

    @property
    def is_production(self) -> bool:
        return self.env == "production"
