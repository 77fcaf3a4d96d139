"""Dispatching identity verifier.

Resolves the provider name, builds an Authlib httpx client authorised with
the caller's bearer token, and hands it to the matching strategy. Transport
failures, non-200 answers and malformed payloads all surface as
IdentityVerificationFailed.
"""

from typing import Any, Callable, Dict, Optional

import httpx
from authlib.common.errors import AuthlibBaseError
from authlib.integrations.httpx_client import AsyncOAuth2Client

from config import OAuthProviderSettings
from errors import IdentityVerificationFailed, UnsupportedProvider
from infrastructure.identity.protocol import VerifiedIdentity
from infrastructure.identity.providers import (
    GitHubStrategy,
    GoogleStrategy,
    IdentityProviderStrategy,
)
from schemas.models.account import AuthProvider
from shared.logging import get_logger

log = get_logger(__name__)

ClientFactory = Callable[[str], Any]


def resolve_provider(value: Any) -> AuthProvider:
    """Map a provider name (any case) to a federated AuthProvider.

    Blank values fail verification outright; LOCAL and unknown names are
    unsupported.
    """
    if isinstance(value, AuthProvider):
        provider = value
    else:
        name = str(value or "").strip().upper()
        if not name:
            raise IdentityVerificationFailed()
        try:
            provider = AuthProvider(name)
        except ValueError:
            raise UnsupportedProvider(value) from None
    if not provider.is_federated:
        raise UnsupportedProvider(provider.value)
    return provider


class FederatedIdentityVerifier:
    def __init__(
        self,
        settings: Optional[OAuthProviderSettings] = None,
        client_factory: Optional[ClientFactory] = None,
    ) -> None:
        settings = settings or OAuthProviderSettings()
        self._timeout = settings.oauth_http_timeout_seconds
        self._strategies: Dict[AuthProvider, IdentityProviderStrategy] = {
            AuthProvider.GOOGLE: GoogleStrategy(settings.google_userinfo_url),
            AuthProvider.GITHUB: GitHubStrategy(settings.github_api_base_url),
        }
        self._client_factory = client_factory or self._bearer_client

    def _bearer_client(self, access_token: str) -> AsyncOAuth2Client:
        return AsyncOAuth2Client(
            token={"access_token": access_token, "token_type": "Bearer"},
            timeout=self._timeout,
        )

    async def verify(self, provider_token: str, provider: Any) -> VerifiedIdentity:
        resolved = resolve_provider(provider)
        if not provider_token or not provider_token.strip():
            raise IdentityVerificationFailed()

        strategy = self._strategies[resolved]
        client = self._client_factory(provider_token.strip())
        try:
            async with client:
                identity = await strategy.fetch_identity(client)
        except IdentityVerificationFailed:
            raise
        except (httpx.HTTPError, AuthlibBaseError, ValueError, TypeError, AttributeError) as e:
            log.warning(
                "identity_verification_error",
                provider=resolved.value,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise IdentityVerificationFailed() from e

        log.info(
            "identity_verified",
            provider=resolved.value,
            provider_user_id=identity.provider_user_id,
        )
        return identity
