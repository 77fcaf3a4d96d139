"""Startup bootstrap for the administrator account.

ADMIN cannot be chosen through registration, so the first administrator is
created from ADMIN_EMAIL / ADMIN_PASSWORD at startup. Runs from the app
lifespan; safe to run on every boot.
"""

from __future__ import annotations

from typing import Optional

from config import AdminSettings
from repositories.account_repository import AccountStore
from repositories.errors import DuplicateAccountError
from schemas.models.account import AccountDoc, AuthProvider, Role
from shared.crypto import hash_password
from shared.datetime_utils import utc_now
from shared.logging import get_logger
from shared.validators import normalize_email

log = get_logger(__name__)


async def ensure_admin_account(
    store: AccountStore, settings: AdminSettings
) -> Optional[AccountDoc]:
    """Create or repair the configured admin account.

    Returns the admin account, or None when ADMIN_EMAIL / ADMIN_PASSWORD are
    not configured.
    """
    if not settings.configured:
        log.warning("admin_bootstrap_skipped", reason="credentials_not_configured")
        return None

    email = normalize_email(settings.admin_email)
    existing = await store.find_by_email(email)

    if existing is None:
        account = AccountDoc(
            email=email,
            password_hash=hash_password(settings.admin_password),
            display_name=settings.admin_display_name,
            role=Role.ADMIN,
            auth_provider=AuthProvider.LOCAL,
            email_verified=True,
            created_at=utc_now(),
        )
        try:
            account = await store.save(account)
        except DuplicateAccountError:
            # another instance won the race on first boot
            log.info("admin_bootstrap_skipped", reason="created_concurrently")
            return await store.find_by_email(email)
        log.info("admin_account_created", account_id=str(account.id))
        return account

    if existing.role is not Role.ADMIN:
        log.warning(
            "admin_bootstrap_role_mismatch",
            account_id=str(existing.id),
            role=existing.role.value,
        )

    if not existing.email_verified:
        existing.email_verified = True
        existing = await store.save(existing)
        log.info("admin_account_verified", account_id=str(existing.id))
    else:
        log.info("admin_account_exists", account_id=str(existing.id))
    return existing
