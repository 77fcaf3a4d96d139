"""
FastAPI application factory.
create_app() is the single entry point for building the app.

Backends are chosen from configuration at startup:
- MONGODB_URI set  → MongoAccountRepository, otherwise InMemoryAccountRepository
- REDIS_URI set    → RedisOtpLedger, otherwise InMemoryOtpLedger
- ZEPTO_API_TOKEN  → ZeptoMailProvider, otherwise ConsoleEmailProvider
"""

from __future__ import annotations

import secrets
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Optional

import sentry_sdk
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from pymongo.asynchronous.mongo_client import AsyncMongoClient

from config import AppSettings
from errors import register_error_handlers
from infrastructure.email.console import ConsoleEmailProvider
from infrastructure.email.zeptomail import ZeptoMailProvider
from infrastructure.email_validation import EmailAddressValidator
from infrastructure.http_client import HttpClient
from infrastructure.identity.verifier import FederatedIdentityVerifier
from infrastructure.otp.memory_ledger import InMemoryOtpLedger
from infrastructure.otp.redis_ledger import RedisOtpLedger
from infrastructure.redis_client import create_redis_client
from infrastructure.session_tokens import SessionIssuer
from repositories.account_repository import MongoAccountRepository
from repositories.memory_account_repository import InMemoryAccountRepository
from routes.auth_routes import router as auth_router
from routes.health_routes import router as health_router
from services.admin_bootstrap import ensure_admin_account
from services.auth_service import AuthService
from shared.logging import get_logger, setup_logging

log = get_logger(__name__)


def build_session_issuer(settings: AppSettings) -> SessionIssuer:
    """SessionIssuer from settings; development gets a throwaway HS256 secret."""
    jwt_settings = settings.jwt
    if not jwt_settings.use_rs256 and not jwt_settings.jwt_secret:
        if settings.is_production:
            raise RuntimeError("JWT_SECRET or JWT_PRIVATE_KEY/JWT_PUBLIC_KEY must be set")
        log.warning("jwt_secret_ephemeral", reason="not_configured")
        jwt_settings = jwt_settings.model_copy(
            update={"jwt_secret": secrets.token_urlsafe(32)}
        )
    return SessionIssuer(jwt_settings)


def build_email_provider(settings: AppSettings, http_client: HttpClient) -> Any:
    """ZeptoMail, or the log-only provider outside production when no token is set.

    Production without a token keeps ZeptoMail, whose sends then fail and are
    logged, so codes and reset links never reach the log stream.
    """
    policy = settings.auth
    if not settings.email.zepto_api_token:
        if not settings.is_production:
            log.warning("email_provider_console", reason="zepto_token_not_configured")
            return ConsoleEmailProvider(settings.email.frontend_url)
        log.error("email_provider_unconfigured", reason="zepto_token_not_configured")
    return ZeptoMailProvider(
        settings.email,
        http_client,
        otp_ttl_minutes=policy.otp_ttl_seconds // 60,
        reset_ttl_minutes=policy.password_reset_ttl_seconds // 60,
    )


def build_auth_service(
    settings: AppSettings,
    store: Any,
    redis_client: Any,
    http_client: HttpClient,
    session_issuer: SessionIssuer,
) -> AuthService:
    policy = settings.auth

    if redis_client is not None:
        otp_ledger: Any = RedisOtpLedger(
            redis_client,
            ttl_seconds=policy.otp_ttl_seconds,
            max_attempts=policy.otp_max_attempts,
            code_length=policy.otp_length,
            key_prefix=settings.redis.otp_key_prefix,
        )
    else:
        otp_ledger = InMemoryOtpLedger(
            ttl_seconds=policy.otp_ttl_seconds,
            max_attempts=policy.otp_max_attempts,
            code_length=policy.otp_length,
        )

    return AuthService(
        store=store,
        otp_ledger=otp_ledger,
        email_provider=build_email_provider(settings, http_client),
        identity_verifier=FederatedIdentityVerifier(settings.oauth),
        session_issuer=session_issuer,
        email_checker=EmailAddressValidator(
            check_deliverability=policy.check_email_deliverability
        ),
        policy=policy,
    )


def create_app(settings: Optional[AppSettings] = None) -> FastAPI:
    """Create and return a fully configured FastAPI application."""
    if settings is None:
        settings = AppSettings()

    setup_logging(
        settings.logging.log_level, settings.logging.log_format, settings.env
    )

    # Initialise Sentry before anything else so it captures startup errors
    if settings.sentry.sentry_dsn:
        sentry_sdk.init(
            dsn=settings.sentry.sentry_dsn,
            send_default_pii=settings.sentry.sentry_send_pii,
            traces_sample_rate=settings.sentry.sentry_traces_sample_rate,
            profiles_sample_rate=settings.sentry.sentry_profile_sample_rate,
        )

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        # ── Startup ──────────────────────────────────────────────────────────

        mongo_client: Optional[AsyncMongoClient] = None
        if settings.db.mongodb_uri:
            mongo_client = AsyncMongoClient(settings.db.mongodb_uri, tz_aware=True)
            app.state.db = mongo_client[settings.db.db_name]
            store: Any = MongoAccountRepository(app.state.db)
        else:
            log.warning("account_store_in_memory", reason="mongodb_not_configured")
            app.state.db = None
            store = InMemoryAccountRepository()
        await store.ensure_indexes()
        app.state.account_store = store

        # Redis is optional; without it OTP codes live in process memory
        redis_client = None
        if settings.redis.redis_uri:
            redis_client = await create_redis_client(settings.redis.redis_uri)
        app.state.redis = redis_client

        http_client = HttpClient(timeout=settings.oauth.oauth_http_timeout_seconds)
        app.state.session_issuer = build_session_issuer(settings)
        app.state.auth_service = build_auth_service(
            settings, store, redis_client, http_client, app.state.session_issuer
        )

        await ensure_admin_account(store, settings.admin)

        yield

        # ── Shutdown ─────────────────────────────────────────────────────────
        await http_client.aclose()
        if mongo_client is not None:
            await mongo_client.close()
        if redis_client is not None:
            await redis_client.aclose()

    app = FastAPI(
        title=settings.app_name,
        version="1.0.0",
        docs_url=settings.docs_url,
        redoc_url=None,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_error_handlers(app)
    app.include_router(health_router)
    app.include_router(auth_router)

    return app
