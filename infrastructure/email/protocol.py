"""EmailProvider protocol. Services depend on this, not the concrete implementation.

Every method returns False instead of raising when delivery fails.
"""

from typing import Optional, Protocol


class EmailProvider(Protocol):
    async def send_otp_email(
        self, email: str, user_name: Optional[str], otp_code: str
    ) -> bool: ...

    async def send_welcome_email(
        self, email: str, user_name: Optional[str]
    ) -> bool: ...

    async def send_password_reset_email(
        self, email: str, user_name: Optional[str], reset_token: str
    ) -> bool: ...
