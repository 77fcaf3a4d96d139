"""Outbound HTTP client for transactional email delivery.

OAuth identity checks do not go through here: they use authlib's
AsyncOAuth2Client, which attaches the caller's bearer token per request.
"""

from typing import Any

import httpx

DEFAULT_USER_AGENT = "talentiq-auth/1.0"


class HttpClient:
    """Long-lived httpx.AsyncClient owned by the app lifespan.

    Created once at startup and closed on shutdown so connections to the
    email API are pooled across requests.
    """

    def __init__(
        self, timeout: float = 5.0, user_agent: str = DEFAULT_USER_AGENT
    ) -> None:
        self._client = httpx.AsyncClient(
            timeout=timeout, headers={"User-Agent": user_agent}
        )

    @property
    def is_closed(self) -> bool:
        return self._client.is_closed

    async def post(self, url: str, **kwargs: Any) -> httpx.Response:
        return await self._client.post(url, **kwargs)

    async def aclose(self) -> None:
        await self._client.aclose()
