"""Identity provider strategies.

Each strategy knows which userinfo endpoint(s) to call with an already
authorised OAuth client and how to turn the provider's JSON into a
VerifiedIdentity. The client carries the caller's bearer token.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from errors import IdentityVerificationFailed
from infrastructure.identity.protocol import VerifiedIdentity
from schemas.models.account import AuthProvider
from shared.logging import get_logger
from shared.validators import normalize_email

log = get_logger(__name__)

DEFAULT_DISPLAY_NAME = "User"


class IdentityProviderStrategy(ABC):
    """Encapsulates everything that differs between identity providers."""

    @property
    @abstractmethod
    def provider(self) -> AuthProvider: ...

    @abstractmethod
    async def fetch_identity(self, client: Any) -> VerifiedIdentity: ...

    async def _get_json(self, client: Any, url: str) -> Any:
        response = await client.get(url)
        if response.status_code != 200:
            log.warning(
                "identity_provider_rejected_token",
                provider=self.provider.value,
                url=url,
                status_code=response.status_code,
            )
            raise IdentityVerificationFailed()
        return response.json()


class GoogleStrategy(IdentityProviderStrategy):
    provider = AuthProvider.GOOGLE

    def __init__(
        self, userinfo_url: str = "https://www.googleapis.com/oauth2/v3/userinfo"
    ) -> None:
        self._userinfo_url = userinfo_url

    async def fetch_identity(self, client: Any) -> VerifiedIdentity:
        userinfo = await self._get_json(client, self._userinfo_url)
        return extract_identity_from_google(userinfo)


class GitHubStrategy(IdentityProviderStrategy):
    provider = AuthProvider.GITHUB

    def __init__(self, api_base_url: str = "https://api.github.com/") -> None:
        self._base = api_base_url.rstrip("/")

    async def fetch_identity(self, client: Any) -> VerifiedIdentity:
        user = await self._get_json(client, f"{self._base}/user")
        emails: List[Dict[str, Any]] = []
        if not user.get("email"):
            emails = await self._get_json(client, f"{self._base}/user/emails")
            if not isinstance(emails, list):
                emails = []
        return extract_identity_from_github(user, emails)


# ── User-info extractors ──────────────────────────────────────────────────────


def extract_identity_from_google(userinfo: Dict[str, Any]) -> VerifiedIdentity:
    subject = str(userinfo.get("sub") or "")
    email = normalize_email(userinfo.get("email") or "")
    if not subject or not email:
        log.warning("identity_incomplete", provider="GOOGLE", has_subject=bool(subject))
        raise IdentityVerificationFailed()
    return VerifiedIdentity(
        provider=AuthProvider.GOOGLE,
        provider_user_id=subject,
        email=email,
        name=(userinfo.get("name") or "").strip() or DEFAULT_DISPLAY_NAME,
    )


def pick_github_email(email_data: List[Dict[str, Any]]) -> Optional[str]:
    """Primary and verified address first, then the first verified one."""
    for entry in email_data:
        if entry.get("primary") and entry.get("verified") and entry.get("email"):
            return entry["email"]
    for entry in email_data:
        if entry.get("verified") and entry.get("email"):
            return entry["email"]
    return None


def extract_identity_from_github(
    userinfo: Dict[str, Any], email_data: List[Dict[str, Any]]
) -> VerifiedIdentity:
    subject = str(userinfo.get("id") or "")
    email = userinfo.get("email") or pick_github_email(email_data)
    if not subject or not email:
        log.warning("identity_incomplete", provider="GITHUB", has_subject=bool(subject))
        raise IdentityVerificationFailed()
    name = (userinfo.get("name") or "").strip() or userinfo.get("login") or ""
    return VerifiedIdentity(
        provider=AuthProvider.GITHUB,
        provider_user_id=subject,
        email=normalize_email(email),
        name=name or DEFAULT_DISPLAY_NAME,
    )
