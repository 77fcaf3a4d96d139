"""
Account authentication flows.

AuthService is the only entry point routes call. It coordinates the account
store, the OTP ledger, the identity verifier, the session issuer and the
email provider.

Every flow that changes security-relevant account fields (failed-login
counter, lock flag, verified flag, password hash, reset token) runs as one
read-modify-write while holding the per-email lock. Across processes the
store's version check catches a concurrent writer; the flow is then re-read
and re-run, up to ``max_save_attempts`` times.

Emails are sent after the state change is persisted and never fail a flow:
a provider error or a False return is logged and the flow carries on.

Login evaluates, in order: unknown email, locked, unverified, non-local
origin, password. A locked or unverified account is rejected before the
password is looked at, and repeated attempts against a locked account leave
the failed-login counter alone.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Awaitable, Callable, Optional, TypeVar

from config import AuthPolicySettings
from errors import (
    AccountLocked,
    AccountNotFound,
    EmailAlreadyRegistered,
    EmailAlreadyVerified,
    EmailNotVerified,
    InvalidCredentials,
    InvalidEmailFormat,
    InvalidOrExpiredOtp,
    InvalidOrExpiredToken,
    OtpResendTooSoon,
    PasswordChangeNotAllowedForProvider,
    PasswordResetUnavailableForProvider,
    ProviderMismatch,
    RoleNotAllowed,
    UnreachableEmailDomain,
    WeakPassword,
    WrongAuthMethod,
)
from infrastructure.email.protocol import EmailProvider
from infrastructure.email_validation import EmailAddressChecker
from infrastructure.identity.protocol import IdentityVerifier, VerifiedIdentity
from infrastructure.otp.protocol import OtpLedger
from infrastructure.session_tokens import SessionIssuer
from repositories.account_repository import AccountStore
from repositories.errors import DuplicateAccountError, StaleAccountError
from schemas.models.account import AccountDoc, AuthProvider, Role
from shared.crypto import hash_password, hash_token, verify_password
from shared.datetime_utils import Clock, seconds_until, utc_now
from shared.generators import generate_reset_token, generate_secure_token
from shared.locks import KeyedLock
from shared.logging import get_logger
from shared.validators import normalize_email, validate_password

log = get_logger(__name__)

T = TypeVar("T")

DEFAULT_DISPLAY_NAME = "User"
SELF_SERVICE_ROLES = (Role.SEEKER, Role.RECRUITER)

REGISTERED_MESSAGE = (
    "Registration successful. Please check your email for the verification code."
)
OTP_RESENT_MESSAGE = "A new verification code has been sent to your email."
RESET_SENT_MESSAGE = "Password reset link sent to your email"
RESET_DONE_MESSAGE = "Password reset successfully"
PASSWORD_CHANGED_MESSAGE = "Password changed successfully"


# ── Results ───────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class AccountSummary:
    id: str
    email: str
    display_name: str
    role: Role
    auth_provider: AuthProvider

    @classmethod
    def from_account(cls, account: AccountDoc) -> "AccountSummary":
        return cls(
            id=str(account.id),
            email=account.email,
            display_name=account.display_name,
            role=account.role,
            auth_provider=account.auth_provider,
        )


@dataclass(frozen=True)
class AuthResult:
    token: str
    account: AccountSummary


@dataclass(frozen=True)
class OAuthCheckResult:
    exists: bool
    email: str
    display_name: str
    message: str
    auth_provider: Optional[AuthProvider] = None


@dataclass(frozen=True)
class MessageResult:
    message: str
    email: Optional[str] = None


def resolve_role(role: Any) -> Role:
    """Map a requested role to one a user may pick for themselves.

    ``None`` means the default (SEEKER). ADMIN and unknown names raise
    RoleNotAllowed.
    """
    if role is None:
        return Role.SEEKER
    if isinstance(role, Role):
        resolved = role
    else:
        try:
            resolved = Role(str(role).strip().upper())
        except ValueError:
            raise RoleNotAllowed(role) from None
    if resolved not in SELF_SERVICE_ROLES:
        raise RoleNotAllowed(resolved.value)
    return resolved


class AuthService:
    def __init__(
        self,
        store: AccountStore,
        otp_ledger: OtpLedger,
        email_provider: EmailProvider,
        identity_verifier: IdentityVerifier,
        session_issuer: SessionIssuer,
        email_checker: EmailAddressChecker,
        policy: Optional[AuthPolicySettings] = None,
        clock: Clock = utc_now,
        max_save_attempts: int = 3,
    ) -> None:
        self._store = store
        self._otp = otp_ledger
        self._email = email_provider
        self._identity = identity_verifier
        self._sessions = session_issuer
        self._email_checker = email_checker
        self._policy = policy or AuthPolicySettings()
        self._clock = clock
        self._max_save_attempts = max_save_attempts
        self._locks = KeyedLock()

    # ── Internals ─────────────────────────────────────────────────────────────

    async def _retry_stale(self, flow: Callable[[], Awaitable[T]]) -> T:
        attempt = 1
        while True:
            try:
                return await flow()
            except StaleAccountError as e:
                if attempt >= self._max_save_attempts:
                    log.error(
                        "account_save_conflict_exhausted",
                        account_id=e.account_id,
                        attempts=attempt,
                    )
                    raise
                log.warning(
                    "account_save_retry", account_id=e.account_id, attempt=attempt
                )
                attempt += 1

    async def _notify(
        self, kind: str, send: Callable[..., Awaitable[bool]], *args: Any
    ) -> None:
        try:
            delivered = await send(*args)
        except Exception as e:
            log.error(
                "notification_failed",
                kind=kind,
                error=str(e),
                error_type=type(e).__name__,
            )
            return
        if not delivered:
            log.error("notification_not_delivered", kind=kind)

    def _session(self, account: AccountDoc, auth_method: str) -> AuthResult:
        token = self._sessions.issue(
            str(account.id), account.email, account.role, auth_method=auth_method
        )
        return AuthResult(token=token, account=AccountSummary.from_account(account))

    def _check_password_strength(self, password: str) -> None:
        is_valid, missing = validate_password(password)
        if not is_valid:
            raise WeakPassword(missing)

    async def _find_unverified(self, email: str) -> AccountDoc:
        account = await self._store.find_by_email(email)
        if account is None:
            raise AccountNotFound()
        if account.email_verified:
            raise EmailAlreadyVerified()
        return account

    async def _issue_registration_otp(self, email: str) -> Optional[str]:
        # the account already exists; the user recovers through resend_otp
        try:
            return await self._otp.issue(email)
        except Exception as e:
            log.error(
                "registration_otp_issue_failed",
                error=str(e),
                error_type=type(e).__name__,
            )
            return None

    # ── Local registration and verification ───────────────────────────────────

    async def register(
        self,
        email: str,
        password: str,
        display_name: str,
        role: Any = None,
    ) -> MessageResult:
        email = normalize_email(email)
        if not self._email_checker.check_format(email):
            raise InvalidEmailFormat()
        chosen_role = resolve_role(role)
        self._check_password_strength(password)
        if not await self._email_checker.check_domain(email):
            raise UnreachableEmailDomain()

        name = (display_name or "").strip() or DEFAULT_DISPLAY_NAME
        async with self._locks.hold(email):
            if await self._store.exists_by_email(email):
                raise EmailAlreadyRegistered()
            account = AccountDoc(
                email=email,
                password_hash=hash_password(password),
                display_name=name,
                role=chosen_role,
                auth_provider=AuthProvider.LOCAL,
                email_verified=False,
                account_locked=False,
                failed_login_attempts=0,
                created_at=self._clock(),
            )
            try:
                account = await self._store.save(account)
            except DuplicateAccountError:
                raise EmailAlreadyRegistered() from None
            code = await self._issue_registration_otp(email)

        log.info("account_registered", account_id=str(account.id), role=chosen_role.value)
        if code is not None:
            await self._notify("otp", self._email.send_otp_email, email, name, code)
        return MessageResult(REGISTERED_MESSAGE, email=email)

    async def verify_otp(self, email: str, code: str) -> AuthResult:
        email = normalize_email(email)
        async with self._locks.hold(email):
            existing = await self._store.find_by_email(email)
            if existing is None:
                raise AccountNotFound()
            if existing.email_verified:
                # a live code is left alone; a consumed one still reads as invalid
                if await self._otp.peek(email) is None:
                    raise InvalidOrExpiredOtp()
                raise EmailAlreadyVerified()
            if not await self._otp.validate(email, code):
                raise InvalidOrExpiredOtp()

            account = await self._store.mark_email_verified(existing.id)
            if account is None:
                raise AccountNotFound()

        log.info("email_verified", account_id=str(account.id))
        await self._notify(
            "welcome", self._email.send_welcome_email, account.email, account.display_name
        )
        return self._session(account, auth_method="otp")

    async def resend_otp(self, email: str) -> MessageResult:
        email = normalize_email(email)
        async with self._locks.hold(email):
            account = await self._find_unverified(email)
            cooldown = self._policy.otp_resend_cooldown_seconds
            if cooldown > 0:
                entry = await self._otp.peek(email)
                if entry is not None and entry.issued_at is not None:
                    now = self._clock()
                    ready_at = entry.issued_at + timedelta(seconds=cooldown)
                    if now < ready_at:
                        raise OtpResendTooSoon(seconds_until(ready_at, now))
            code = await self._otp.issue(email)

        log.info("otp_resent", account_id=str(account.id))
        await self._notify(
            "otp", self._email.send_otp_email, email, account.display_name, code
        )
        return MessageResult(OTP_RESENT_MESSAGE, email=email)

    # ── Local login ───────────────────────────────────────────────────────────

    async def login(self, email: str, password: str) -> AuthResult:
        email = normalize_email(email)
        async with self._locks.hold(email):
            return await self._retry_stale(lambda: self._login_once(email, password))

    async def _login_once(self, email: str, password: str) -> AuthResult:
        account = await self._store.find_by_email(email)
        if account is None:
            log.warning("login_failed", reason="unknown_email")
            raise InvalidCredentials()
        if account.account_locked:
            log.warning("login_failed", reason="account_locked", account_id=str(account.id))
            raise AccountLocked()
        if not account.email_verified:
            log.info("login_failed", reason="email_not_verified", account_id=str(account.id))
            raise EmailNotVerified(account.email)
        if not account.is_local:
            raise WrongAuthMethod(account.auth_provider)

        if not verify_password(password, account.password_hash):
            account.failed_login_attempts += 1
            locked_now = account.failed_login_attempts >= self._policy.max_failed_logins
            if locked_now:
                account.account_locked = True
            await self._store.save(account)
            log.warning(
                "login_failed",
                reason="invalid_password",
                account_id=str(account.id),
                failed_attempts=account.failed_login_attempts,
                locked=locked_now,
            )
            if locked_now:
                raise AccountLocked()
            raise InvalidCredentials()

        account.failed_login_attempts = 0
        account.last_login_at = self._clock()
        account = await self._store.save(account)
        log.info("login_success", account_id=str(account.id))
        return self._session(account, auth_method="pwd")

    # ── Password reset and change ─────────────────────────────────────────────

    async def forgot_password(self, email: str) -> MessageResult:
        email = normalize_email(email)

        async def issue_reset_token() -> Optional[tuple[AccountDoc, str]]:
            account = await self._store.find_by_email(email)
            if account is None:
                if self._policy.reveal_unknown_email_on_reset:
                    raise AccountNotFound()
                return None
            if not account.is_local:
                raise PasswordResetUnavailableForProvider(account.auth_provider)
            token = generate_reset_token(self._policy.password_reset_token_length)
            expires_at = self._clock() + timedelta(
                seconds=self._policy.password_reset_ttl_seconds
            )
            account.set_password_reset(hash_token(token), expires_at)
            return await self._store.save(account), token

        async with self._locks.hold(email):
            issued = await self._retry_stale(issue_reset_token)

        if issued is None:
            log.info("password_reset_requested", outcome="unknown_email")
            return MessageResult(RESET_SENT_MESSAGE)

        account, token = issued
        log.info("password_reset_requested", account_id=str(account.id))
        await self._notify(
            "password_reset",
            self._email.send_password_reset_email,
            account.email,
            account.display_name,
            token,
        )
        return MessageResult(RESET_SENT_MESSAGE)

    async def reset_password(self, token: str, new_password: str) -> MessageResult:
        self._check_password_strength(new_password)
        token_hash = hash_token(token or "")
        found = await self._store.find_by_reset_token_hash(token_hash)
        if found is None:
            log.warning("password_reset_failed", reason="unknown_token")
            raise InvalidOrExpiredToken()

        async with self._locks.hold(found.email):
            await self._retry_stale(lambda: self._reset_once(token_hash, new_password))
        return MessageResult(RESET_DONE_MESSAGE)

    async def _reset_once(self, token_hash: str, new_password: str) -> None:
        account = await self._store.find_by_reset_token_hash(token_hash)
        if account is None:
            raise InvalidOrExpiredToken()

        expires_at = account.password_reset_expires_at
        if expires_at is None or self._clock() > expires_at:
            account.clear_password_reset()
            await self._store.save(account)
            log.warning(
                "password_reset_failed", reason="expired", account_id=str(account.id)
            )
            raise InvalidOrExpiredToken()

        was_locked = account.account_locked
        account.password_hash = hash_password(new_password)
        account.clear_password_reset()
        account.account_locked = False
        account.failed_login_attempts = 0
        await self._store.save(account)
        log.info("password_reset_completed", account_id=str(account.id), unlocked=was_locked)

    async def change_password(
        self, account: AccountDoc, current_password: str, new_password: str
    ) -> MessageResult:
        if not account.is_local:
            raise PasswordChangeNotAllowedForProvider(account.auth_provider)

        async def apply_change() -> AccountDoc:
            fresh = await self._store.find_by_id(str(account.id))
            if fresh is None:
                raise AccountNotFound()
            if not fresh.is_local:
                raise PasswordChangeNotAllowedForProvider(fresh.auth_provider)
            if not verify_password(current_password, fresh.password_hash):
                log.warning("password_change_failed", reason="invalid_password", account_id=str(fresh.id))
                raise InvalidCredentials()
            self._check_password_strength(new_password)
            fresh.password_hash = hash_password(new_password)
            return await self._store.save(fresh)

        async with self._locks.hold(normalize_email(account.email)):
            updated = await self._retry_stale(apply_change)

        log.info("password_changed", account_id=str(updated.id))
        return MessageResult(PASSWORD_CHANGED_MESSAGE)

    # ── Federated (OAuth) ─────────────────────────────────────────────────────

    async def _create_federated(
        self, identity: VerifiedIdentity, role: Role
    ) -> AccountDoc:
        account = AccountDoc(
            email=identity.email,
            # never revealed; federated accounts cannot log in with a password
            password_hash=hash_password(generate_secure_token()),
            display_name=identity.name or DEFAULT_DISPLAY_NAME,
            role=role,
            auth_provider=identity.provider,
            provider_user_id=identity.provider_user_id,
            email_verified=True,
            account_locked=False,
            failed_login_attempts=0,
            created_at=self._clock(),
            last_login_at=self._clock(),
        )
        account = await self._store.save(account)
        log.info(
            "oauth_account_created",
            account_id=str(account.id),
            provider=identity.provider.value,
            role=role.value,
        )
        return account

    async def _record_federated_login(
        self, identity: VerifiedIdentity, account: AccountDoc
    ) -> AuthResult:
        if account.auth_provider is not identity.provider:
            log.warning(
                "oauth_login_failed",
                reason="provider_mismatch",
                account_id=str(account.id),
                registered_provider=account.auth_provider.value,
                attempted_provider=identity.provider.value,
            )
            raise ProviderMismatch(account.auth_provider)
        account.last_login_at = self._clock()
        account = await self._store.save(account)
        log.info(
            "oauth_login_success",
            account_id=str(account.id),
            provider=identity.provider.value,
        )
        return self._session(account, auth_method=identity.provider.value.lower())

    async def oauth_check(self, provider_token: str, provider: Any) -> OAuthCheckResult:
        identity = await self._identity.verify(provider_token, provider)
        account = await self._store.find_by_email(identity.email)
        if account is not None:
            return OAuthCheckResult(
                exists=True,
                email=account.email,
                display_name=account.display_name,
                message="User account found",
                auth_provider=account.auth_provider,
            )
        return OAuthCheckResult(
            exists=False,
            email=identity.email,
            display_name=identity.name,
            message="No account found. Please complete registration.",
        )

    async def oauth_register(
        self, provider_token: str, provider: Any, role: Any = None
    ) -> AuthResult:
        chosen_role = resolve_role(role)
        identity = await self._identity.verify(provider_token, provider)
        async with self._locks.hold(identity.email):
            if await self._store.exists_by_email(identity.email):
                raise EmailAlreadyRegistered()
            try:
                account = await self._create_federated(identity, chosen_role)
            except DuplicateAccountError:
                raise EmailAlreadyRegistered() from None
        return self._session(account, auth_method=identity.provider.value.lower())

    async def oauth_login_existing(
        self, provider_token: str, provider: Any
    ) -> AuthResult:
        identity = await self._identity.verify(provider_token, provider)

        async def login_existing() -> AuthResult:
            account = await self._store.find_by_email(identity.email)
            if account is None:
                raise AccountNotFound(
                    "No account found with this email. Please sign up first."
                )
            return await self._record_federated_login(identity, account)

        async with self._locks.hold(identity.email):
            return await self._retry_stale(login_existing)

    async def oauth_login(
        self, provider_token: str, provider: Any, role: Any = None
    ) -> AuthResult:
        chosen_role = resolve_role(role)
        identity = await self._identity.verify(provider_token, provider)

        async def login_or_register() -> AuthResult:
            account = await self._store.find_by_email(identity.email)
            if account is None:
                try:
                    account = await self._create_federated(identity, chosen_role)
                except DuplicateAccountError:
                    # another process registered it first; treat as a login
                    account = await self._store.find_by_email(identity.email)
                    if account is None:
                        raise EmailAlreadyRegistered() from None
                    return await self._record_federated_login(identity, account)
                return self._session(
                    account, auth_method=identity.provider.value.lower()
                )
            return await self._record_federated_login(identity, account)

        async with self._locks.hold(identity.email):
            return await self._retry_stale(login_or_register)
