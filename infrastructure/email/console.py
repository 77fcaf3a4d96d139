"""EmailProvider that logs instead of sending.

Selected outside production when no ZeptoMail token is configured, so local
development can complete the verification and reset flows by reading the log.
"""

from typing import Optional

from infrastructure.email.zeptomail import build_reset_url
from shared.logging import get_logger

log = get_logger(__name__)


class ConsoleEmailProvider:
    def __init__(self, frontend_url: str = "http://localhost:5173") -> None:
        self._frontend_url = frontend_url

    async def send_otp_email(
        self, email: str, user_name: Optional[str], otp_code: str
    ) -> bool:
        # printed in clear on purpose; "code" keys are redacted by the log pipeline
        log.info("email_test_mode", kind="otp", to_email=email, body=f"OTP {otp_code}")
        return True

    async def send_welcome_email(self, email: str, user_name: Optional[str]) -> bool:
        log.info("email_test_mode", kind="welcome", to_email=email, user_name=user_name)
        return True

    async def send_password_reset_email(
        self, email: str, user_name: Optional[str], reset_token: str
    ) -> bool:
        log.info(
            "email_test_mode",
            kind="password_reset",
            to_email=email,
            body=build_reset_url(self._frontend_url, reset_token),
        )
        return True
