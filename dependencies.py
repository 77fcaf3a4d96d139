"""
FastAPI dependency providers.

All injectable dependencies are defined here as plain functions used with
FastAPI's Depends() system. Everything they hand out is built once in the
app lifespan and stored on app.state.
"""

from __future__ import annotations

from typing import Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from errors import AuthenticationError
from infrastructure.session_tokens import SessionIssuer
from repositories.account_repository import AccountStore
from schemas.models.account import AccountDoc
from services.auth_service import AuthService

_bearer = HTTPBearer(auto_error=False)


def get_auth_service(request: Request) -> AuthService:
    return request.app.state.auth_service


def get_session_issuer(request: Request) -> SessionIssuer:
    return request.app.state.session_issuer


def get_account_store(request: Request) -> AccountStore:
    return request.app.state.account_store


async def get_current_account(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer),
    issuer: SessionIssuer = Depends(get_session_issuer),
    store: AccountStore = Depends(get_account_store),
) -> AccountDoc:
    """Resolve the bearer session token to the caller's account.

    Raises AuthenticationError (401) for a missing, invalid or expired token,
    or when the account it names no longer exists.
    """
    if credentials is None:
        raise AuthenticationError("Authentication required")
    claims = issuer.decode(credentials.credentials)
    account = await store.find_by_id(claims.account_id)
    if account is None:
        raise AuthenticationError("Invalid session token")
    return account
