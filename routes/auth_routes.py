"""
Authentication endpoints, mounted under /api/auth.

Handlers translate request DTOs into AuthService calls and results into
response DTOs. Business failures are raised by the service as AppError
subclasses and rendered by the global handler in errors.py.

POST /api/auth/register                 201  acknowledgement, OTP emailed
POST /api/auth/verify-otp               200  session token
POST /api/auth/resend-otp               200  acknowledgement
POST /api/auth/login                    200  session token
POST /api/auth/forgot-password          200  acknowledgement
POST /api/auth/reset-password           200  acknowledgement
POST /api/auth/change-password          200  acknowledgement (bearer token)
POST /api/auth/oauth/check              200  whether the identity has an account
POST /api/auth/oauth/register           201  session token
POST /api/auth/oauth/login              200  session token (existing accounts)
POST /api/auth/oauth/login-or-register  200  session token
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, status

from dependencies import get_auth_service, get_current_account
from schemas.dto.requests.auth import (
    ChangePasswordRequest,
    ForgotPasswordRequest,
    LoginRequest,
    OAuthCheckRequest,
    OAuthRegisterRequest,
    RegisterRequest,
    ResendOtpRequest,
    ResetPasswordRequest,
    VerifyOtpRequest,
)
from schemas.dto.responses.auth import (
    AuthMessageResponse,
    AuthResponse,
    OAuthCheckResponse,
)
from schemas.dto.responses.common import ErrorResponse
from schemas.models.account import AccountDoc
from services.auth_service import AuthService

_ERROR_RESPONSES = {
    status_code: {"model": ErrorResponse} for status_code in (400, 401, 403, 404, 409, 429)
}

router = APIRouter(prefix="/api/auth", tags=["auth"], responses=_ERROR_RESPONSES)


@router.post(
    "/register",
    status_code=status.HTTP_201_CREATED,
    response_model=AuthMessageResponse,
    response_model_exclude_none=True,
)
async def register(
    body: RegisterRequest, service: AuthService = Depends(get_auth_service)
) -> AuthMessageResponse:
    result = await service.register(
        body.email, body.password, body.display_name, body.role
    )
    return AuthMessageResponse.from_result(result)


@router.post("/verify-otp", response_model=AuthResponse)
async def verify_otp(
    body: VerifyOtpRequest, service: AuthService = Depends(get_auth_service)
) -> AuthResponse:
    return AuthResponse.from_result(await service.verify_otp(body.email, body.otp))


@router.post(
    "/resend-otp", response_model=AuthMessageResponse, response_model_exclude_none=True
)
async def resend_otp(
    body: ResendOtpRequest, service: AuthService = Depends(get_auth_service)
) -> AuthMessageResponse:
    return AuthMessageResponse.from_result(await service.resend_otp(body.email))


@router.post("/login", response_model=AuthResponse)
async def login(
    body: LoginRequest, service: AuthService = Depends(get_auth_service)
) -> AuthResponse:
    return AuthResponse.from_result(await service.login(body.email, body.password))


@router.post(
    "/forgot-password",
    response_model=AuthMessageResponse,
    response_model_exclude_none=True,
)
async def forgot_password(
    body: ForgotPasswordRequest, service: AuthService = Depends(get_auth_service)
) -> AuthMessageResponse:
    return AuthMessageResponse.from_result(await service.forgot_password(body.email))


@router.post(
    "/reset-password",
    response_model=AuthMessageResponse,
    response_model_exclude_none=True,
)
async def reset_password(
    body: ResetPasswordRequest, service: AuthService = Depends(get_auth_service)
) -> AuthMessageResponse:
    result = await service.reset_password(body.token, body.new_password)
    return AuthMessageResponse.from_result(result)


@router.post(
    "/change-password",
    response_model=AuthMessageResponse,
    response_model_exclude_none=True,
)
async def change_password(
    body: ChangePasswordRequest,
    account: AccountDoc = Depends(get_current_account),
    service: AuthService = Depends(get_auth_service),
) -> AuthMessageResponse:
    result = await service.change_password(
        account, body.current_password, body.new_password
    )
    return AuthMessageResponse.from_result(result)


# ── OAuth ─────────────────────────────────────────────────────────────────────


@router.post("/oauth/check", response_model=OAuthCheckResponse)
async def oauth_check(
    body: OAuthCheckRequest, service: AuthService = Depends(get_auth_service)
) -> OAuthCheckResponse:
    result = await service.oauth_check(body.token, body.provider)
    return OAuthCheckResponse.from_result(result)


@router.post(
    "/oauth/register",
    status_code=status.HTTP_201_CREATED,
    response_model=AuthResponse,
)
async def oauth_register(
    body: OAuthRegisterRequest, service: AuthService = Depends(get_auth_service)
) -> AuthResponse:
    result = await service.oauth_register(body.token, body.provider, body.role)
    return AuthResponse.from_result(result)


@router.post("/oauth/login", response_model=AuthResponse)
async def oauth_login_existing(
    body: OAuthCheckRequest, service: AuthService = Depends(get_auth_service)
) -> AuthResponse:
    result = await service.oauth_login_existing(body.token, body.provider)
    return AuthResponse.from_result(result)


@router.post("/oauth/login-or-register", response_model=AuthResponse)
async def oauth_login(
    body: OAuthRegisterRequest, service: AuthService = Depends(get_auth_service)
) -> AuthResponse:
    result = await service.oauth_login(body.token, body.provider, body.role)
    return AuthResponse.from_result(result)
