"""Stateless session tokens (JWT).

RS256 when a key pair is configured, HS256 with JWT_SECRET otherwise. Keys
supplied through the environment may carry literal ``\\n`` sequences.

Tokens are not tracked server-side: a token stays valid until it expires,
even after a password change.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

import jwt

from config import JWTSettings
from errors import AuthenticationError
from shared.datetime_utils import Clock, utc_now
from shared.logging import get_logger

log = get_logger(__name__)


@dataclass(frozen=True)
class SessionClaims:
    account_id: str
    email: str
    role: str
    issued_at: datetime
    expires_at: datetime


def _role_name(role: Any) -> str:
    return str(getattr(role, "value", role))


class SessionIssuer:
    def __init__(self, settings: JWTSettings, clock: Clock = utc_now) -> None:
        self._issuer = settings.jwt_issuer
        self._audience = settings.jwt_audience
        self.ttl_seconds = settings.session_token_ttl_seconds
        self._clock = clock
        if settings.use_rs256:
            self._algorithm = "RS256"
            self._signing_key: Any = settings.jwt_private_key.replace("\\n", "\n").encode("utf-8")
            self._verify_key: Any = settings.jwt_public_key.replace("\\n", "\n").encode("utf-8")
        else:
            if not settings.jwt_secret:
                raise RuntimeError(
                    "JWT_SECRET must be set when RS256 keys are not provided"
                )
            self._algorithm = "HS256"
            self._signing_key = self._verify_key = settings.jwt_secret

    @property
    def algorithm(self) -> str:
        return self._algorithm

    def issue(
        self, account_id: Any, email: str, role: Any, auth_method: str = "pwd"
    ) -> str:
        now = self._clock()
        claims = {
            "iss": self._issuer,
            "aud": self._audience,
            "sub": str(account_id),
            "email": email,
            "role": _role_name(role),
            "iat": int(now.timestamp()),
            "exp": int((now + timedelta(seconds=self.ttl_seconds)).timestamp()),
            "amr": [auth_method],  # Authentication Methods References
        }
        return jwt.encode(claims, self._signing_key, algorithm=self._algorithm)

    def decode(self, token: Optional[str]) -> SessionClaims:
        if not token:
            raise AuthenticationError("Authentication required")
        try:
            claims = jwt.decode(
                token,
                self._verify_key,
                algorithms=[self._algorithm],
                audience=self._audience,
                issuer=self._issuer,
                options={"require": ["sub", "exp", "iat"]},
            )
        except jwt.ExpiredSignatureError:
            raise AuthenticationError("Session expired") from None
        except jwt.InvalidTokenError as e:
            log.info("session_token_rejected", error_type=type(e).__name__)
            raise AuthenticationError("Invalid session token") from None
        return SessionClaims(
            account_id=claims["sub"],
            email=claims.get("email", ""),
            role=claims.get("role", ""),
            issued_at=datetime.fromtimestamp(claims["iat"], tz=timezone.utc),
            expires_at=datetime.fromtimestamp(claims["exp"], tz=timezone.utc),
        )
