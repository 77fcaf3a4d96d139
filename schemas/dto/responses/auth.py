"""
Response DTOs for authentication endpoints.

AccountSummaryResponse account block inside AuthResponse
AuthResponse           any flow that ends with a session token
OAuthCheckResponse     POST /api/auth/oauth/check
AuthMessageResponse    flows that only acknowledge (register, resend, reset)
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from services.auth_service import AuthResult, MessageResult, OAuthCheckResult


class AccountSummaryResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    email: str
    display_name: str = Field(serialization_alias="fullName")
    role: str
    auth_provider: str = Field(serialization_alias="authProvider")


class AuthResponse(BaseModel):
    """Session token plus the account it was issued for."""

    model_config = ConfigDict(populate_by_name=True)

    token: str
    token_type: str = Field(default="Bearer", serialization_alias="type")
    account: AccountSummaryResponse

    @classmethod
    def from_result(cls, result: AuthResult) -> "AuthResponse":
        summary = result.account
        return cls(
            token=result.token,
            account=AccountSummaryResponse(
                id=summary.id,
                email=summary.email,
                display_name=summary.display_name,
                role=summary.role.value,
                auth_provider=summary.auth_provider.value,
            ),
        )


class OAuthCheckResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    exists: bool
    email: str
    display_name: str = Field(serialization_alias="fullName")
    message: str
    auth_provider: Optional[str] = Field(default=None, serialization_alias="authProvider")

    @classmethod
    def from_result(cls, result: OAuthCheckResult) -> "OAuthCheckResponse":
        return cls(
            exists=result.exists,
            email=result.email,
            display_name=result.display_name,
            message=result.message,
            auth_provider=result.auth_provider.value if result.auth_provider else None,
        )


class AuthMessageResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    message: str
    email: Optional[str] = None

    @classmethod
    def from_result(cls, result: MessageResult) -> "AuthMessageResponse":
        return cls(message=result.message, email=result.email)
