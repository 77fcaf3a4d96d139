"""
Request DTOs for authentication endpoints.

RegisterRequest          POST /api/auth/register
VerifyOtpRequest         POST /api/auth/verify-otp
ResendOtpRequest         POST /api/auth/resend-otp
LoginRequest             POST /api/auth/login
ForgotPasswordRequest    POST /api/auth/forgot-password
ResetPasswordRequest     POST /api/auth/reset-password
ChangePasswordRequest    POST /api/auth/change-password
OAuthCheckRequest        POST /api/auth/oauth/check, /api/auth/oauth/login
OAuthRegisterRequest     POST /api/auth/oauth/register, /api/auth/oauth/login-or-register

Format and strength rules are enforced by AuthService so that every caller
gets the same typed errors; these models only check presence.
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class RegisterRequest(BaseModel):
    """Request body for POST /api/auth/register."""

    model_config = ConfigDict(populate_by_name=True)

    email: str
    password: str
    display_name: str = Field(alias="fullName", min_length=1, max_length=100)
    role: Optional[str] = None


class VerifyOtpRequest(BaseModel):
    """Request body for POST /api/auth/verify-otp.

    ``otp`` is the numeric code sent to the user's email address.
    """

    model_config = ConfigDict(populate_by_name=True)

    email: str
    otp: str = Field(min_length=1)


class ResendOtpRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    email: str


class LoginRequest(BaseModel):
    """Request body for POST /api/auth/login."""

    model_config = ConfigDict(populate_by_name=True)

    email: str
    password: str


class ForgotPasswordRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    email: str


class ResetPasswordRequest(BaseModel):
    """Request body for POST /api/auth/reset-password."""

    model_config = ConfigDict(populate_by_name=True)

    token: str = Field(min_length=1)
    new_password: str = Field(alias="newPassword")


class ChangePasswordRequest(BaseModel):
    """Request body for POST /api/auth/change-password (bearer token required)."""

    model_config = ConfigDict(populate_by_name=True)

    current_password: str = Field(alias="currentPassword")
    new_password: str = Field(alias="newPassword")


class OAuthCheckRequest(BaseModel):
    """Provider access token plus the provider that issued it."""

    model_config = ConfigDict(populate_by_name=True)

    token: str = Field(min_length=1)
    provider: str


class OAuthRegisterRequest(OAuthCheckRequest):
    """OAuthCheckRequest plus the role picked on first sign-in."""

    role: Optional[str] = None
