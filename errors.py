"""
Application error hierarchy and FastAPI exception handlers.

AppError is the base for all typed errors. The global exception handler
converts AppError subclasses to consistent JSON responses.

The authentication flows raise only the tagged errors declared in the second
half of this module. Each one fixes its own status code, error code and
message, so a route never has to pick a status for a business failure.

Non-AppError exceptions bubble up as 500s (with Sentry reporting in production).
"""

from __future__ import annotations

from typing import Any, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse


class AppError(Exception):
    """Base application error. All typed errors inherit from this."""

    status_code: int = 500
    error_code: str = "internal_error"

    def __init__(
        self,
        message: str,
        *,
        field: Optional[str] = None,
        details: Optional[Any] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.field = field
        self.details = details

    def to_dict(self) -> dict:
        payload: dict = {"error": self.message, "code": self.error_code}
        if self.field is not None:
            payload["field"] = self.field
        if self.details is not None:
            payload["details"] = self.details
        return payload


class ValidationError(AppError):
    status_code = 400
    error_code = "validation_error"


class AuthenticationError(AppError):
    status_code = 401
    error_code = "authentication_error"


class ForbiddenError(AppError):
    status_code = 403
    error_code = "forbidden"


class NotFoundError(AppError):
    status_code = 404
    error_code = "not_found"


class ConflictError(AppError):
    status_code = 409
    error_code = "conflict"


class RateLimitError(AppError):
    status_code = 429
    error_code = "rate_limit_exceeded"


# ── Validation ────────────────────────────────────────────────────────────────


class InvalidEmailFormat(ValidationError):
    error_code = "invalid_email_format"

    def __init__(self) -> None:
        super().__init__("Invalid email format", field="email")


class UnreachableEmailDomain(ValidationError):
    error_code = "unreachable_email_domain"

    def __init__(self) -> None:
        super().__init__("Invalid or unreachable email domain", field="email")


class WeakPassword(ValidationError):
    error_code = "weak_password"

    def __init__(self, missing_requirements: list[str]) -> None:
        super().__init__(
            "Password does not meet requirements",
            field="password",
            details={"missing_requirements": missing_requirements},
        )


class UnsupportedProvider(ValidationError):
    error_code = "unsupported_provider"

    def __init__(self, provider: Any) -> None:
        super().__init__(
            "Unsupported OAuth provider",
            field="provider",
            details={"provider": str(provider)},
        )


class RoleNotAllowed(ValidationError):
    error_code = "role_not_allowed"

    def __init__(self, role: Any) -> None:
        super().__init__(
            "This role cannot be chosen at registration",
            field="role",
            details={"role": str(role)},
        )


# ── Conflict ──────────────────────────────────────────────────────────────────


class EmailAlreadyRegistered(ConflictError):
    error_code = "email_already_registered"

    def __init__(self) -> None:
        super().__init__("Email already registered", field="email")


class EmailAlreadyVerified(ConflictError):
    error_code = "email_already_verified"

    def __init__(self) -> None:
        super().__init__("Email already verified", field="email")


# ── Authentication ────────────────────────────────────────────────────────────


class InvalidCredentials(AuthenticationError):
    error_code = "invalid_credentials"

    def __init__(self) -> None:
        super().__init__("Invalid email or password")


class InvalidOrExpiredOtp(AuthenticationError):
    error_code = "invalid_or_expired_otp"

    def __init__(self) -> None:
        super().__init__("Invalid or expired OTP")


class InvalidOrExpiredToken(AuthenticationError):
    error_code = "invalid_or_expired_token"

    def __init__(self) -> None:
        super().__init__("Invalid or expired reset token")


class IdentityVerificationFailed(AuthenticationError):
    error_code = "identity_verification_failed"

    def __init__(self) -> None:
        super().__init__("Could not verify identity with the provider")


# ── Authorization / account state ─────────────────────────────────────────────


class AccountLocked(ForbiddenError):
    error_code = "account_locked"

    def __init__(self) -> None:
        super().__init__(
            "Account is locked due to too many failed login attempts. "
            "Reset your password to unlock it."
        )


class EmailNotVerified(ForbiddenError):
    error_code = "email_not_verified"

    def __init__(self, email: str) -> None:
        super().__init__(
            "Email not verified. Please verify your email first.",
            details={"email": email, "requires_verification": True},
        )
        self.email = email


class _ProviderBoundError(ForbiddenError):
    """Forbidden error that names the provider the account belongs to."""

    template: str = "{provider}"

    def __init__(self, provider: Any) -> None:
        name = getattr(provider, "value", provider)
        super().__init__(self.template.format(provider=name), details={"provider": name})
        self.provider = provider


class WrongAuthMethod(_ProviderBoundError):
    error_code = "wrong_auth_method"
    template = "Please login with {provider}"


class ProviderMismatch(_ProviderBoundError):
    error_code = "provider_mismatch"
    template = (
        "This email is registered with {provider}. "
        "Please use that method to log in."
    )


class PasswordResetUnavailableForProvider(_ProviderBoundError):
    error_code = "password_reset_unavailable"
    template = "Password reset not available for {provider} accounts"


class PasswordChangeNotAllowedForProvider(_ProviderBoundError):
    error_code = "password_change_not_allowed"
    template = "Password cannot be changed for {provider} accounts"


# ── Not found / rate limit ────────────────────────────────────────────────────


class AccountNotFound(NotFoundError):
    error_code = "account_not_found"

    def __init__(self, message: str = "No account found with this email") -> None:
        super().__init__(message, field="email")


class OtpResendTooSoon(RateLimitError):
    error_code = "otp_resend_too_soon"

    def __init__(self, retry_after: int) -> None:
        super().__init__(
            "Please wait before requesting another code",
            details={"retry_after": retry_after},
        )
        self.retry_after = retry_after


def register_error_handlers(app: FastAPI) -> None:
    """Register global exception handlers on the FastAPI app."""

    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(
        request: Request, exc: Exception
    ) -> JSONResponse:
        # Sentry integration: if sentry_sdk is initialized it will auto-capture
        # unhandled exceptions before this handler fires.
        return JSONResponse(
            status_code=500,
            content={"error": "An internal server error occurred.", "code": "internal_error"},
        )
