"""IdentityVerifier protocol and the identity it yields."""

from dataclasses import dataclass
from typing import Any, Protocol

from schemas.models.account import AuthProvider


@dataclass(frozen=True)
class VerifiedIdentity:
    provider: AuthProvider
    provider_user_id: str
    email: str
    name: str


class IdentityVerifier(Protocol):
    async def verify(self, provider_token: str, provider: Any) -> VerifiedIdentity:
        """Exchange a provider access token for the identity it belongs to.

        Raises IdentityVerificationFailed when the provider rejects the token
        or returns no usable email, and UnsupportedProvider for LOCAL or
        unknown provider names.
        """
        ...
