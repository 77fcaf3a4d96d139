"""
Account document model.

Maps to the `accounts` MongoDB collection.

Two creation paths produce slightly different shapes:
- Local registration: password_hash is the argon2 hash of the user's password,
  provider_user_id is None, email_verified starts False.
- Federated registration: auth_provider names the identity provider,
  provider_user_id holds the provider's subject id, email_verified is True
  from creation and password_hash is an unusable placeholder.

The reset-token pair (password_reset_token_hash, password_reset_expires_at)
is only ever written through set_password_reset() / clear_password_reset()
so the two fields are always both set or both None.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import Field, field_validator

from schemas.models.base import VersionedDocument
from shared.datetime_utils import ensure_utc


class Role(str, Enum):
    SEEKER = "SEEKER"
    RECRUITER = "RECRUITER"
    ADMIN = "ADMIN"


class AuthProvider(str, Enum):
    LOCAL = "LOCAL"
    GOOGLE = "GOOGLE"
    GITHUB = "GITHUB"

    @property
    def is_federated(self) -> bool:
        return self is not AuthProvider.LOCAL


class AccountDoc(VersionedDocument):
    """Document model for the `accounts` collection."""

    email: str
    password_hash: Optional[str] = None
    display_name: str
    role: Role = Role.SEEKER
    auth_provider: AuthProvider = AuthProvider.LOCAL
    provider_user_id: Optional[str] = None

    email_verified: bool = False
    account_locked: bool = False
    failed_login_attempts: int = Field(default=0, ge=0)
    last_login_at: Optional[datetime] = None

    password_reset_token_hash: Optional[str] = None
    password_reset_expires_at: Optional[datetime] = None

    @field_validator(
        "last_login_at",
        "password_reset_expires_at",
    )
    @classmethod
    def _as_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(value)

    @property
    def is_local(self) -> bool:
        return self.auth_provider is AuthProvider.LOCAL

    def set_password_reset(self, token_hash: str, expires_at: datetime) -> None:
        self.password_reset_token_hash = token_hash
        self.password_reset_expires_at = expires_at

    def clear_password_reset(self) -> None:
        self.password_reset_token_hash = None
        self.password_reset_expires_at = None

    def to_mongo(self) -> dict:
        data = super().to_mongo()
        data["role"] = self.role.value
        data["auth_provider"] = self.auth_provider.value
        return data
