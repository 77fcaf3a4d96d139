"""ZeptoMail implementation of EmailProvider.

HTML bodies come from Jinja2 templates in templates/emails/; plain-text
fallbacks are built inline. Reset emails carry a link to the frontend's
reset page with the token as a query parameter.
"""

import os
from dataclasses import dataclass
from typing import Optional
from urllib.parse import urlencode

from jinja2 import Environment, FileSystemLoader, select_autoescape

from config import EmailSettings
from infrastructure.http_client import HttpClient
from shared.logging import get_logger

log = get_logger(__name__)

_ZEPTO_API_URL = "https://api.zeptomail.in/v1.1/email"
_TOKEN_SCHEME = "Zoho-enczapikey "
_ACCEPTED_STATUSES = frozenset({200, 201, 202})
_DEFAULT_TEMPLATE_DIR = os.path.join(
    os.path.dirname(os.path.dirname(os.path.dirname(__file__))),
    "templates",
    "emails",
)


def build_reset_url(frontend_url: str, reset_token: str) -> str:
    return f"{frontend_url.rstrip('/')}/reset-password?{urlencode({'token': reset_token})}"


def _plain_text(user_name: Optional[str], *paragraphs: str) -> str:
    greeting = f"Hello {user_name}," if user_name else "Hello,"
    return "\n\n".join((greeting,) + paragraphs)


@dataclass(frozen=True)
class OutgoingEmail:
    to_email: str
    to_name: Optional[str]
    subject: str
    html_body: str
    text_body: str

    def as_payload(self, sender_address: str, sender_name: str) -> dict:
        return {
            "from": {"address": sender_address, "name": sender_name},
            "to": [
                {
                    "email_address": {
                        "address": self.to_email,
                        "name": self.to_name or self.to_email,
                    }
                }
            ],
            "subject": self.subject,
            "htmlbody": self.html_body,
            "textbody": self.text_body,
        }


class ZeptoMailProvider:
    def __init__(
        self,
        settings: EmailSettings,
        http_client: HttpClient,
        otp_ttl_minutes: int = 10,
        reset_ttl_minutes: int = 60,
        template_dir: str = _DEFAULT_TEMPLATE_DIR,
    ) -> None:
        self._settings = settings
        self._http = http_client
        self._otp_ttl_minutes = otp_ttl_minutes
        self._reset_ttl_minutes = reset_ttl_minutes
        self._jinja = Environment(
            loader=FileSystemLoader(template_dir),
            autoescape=select_autoescape(["html", "xml"]),
        )

    @property
    def _brand(self) -> str:
        return self._settings.zepto_from_name

    def _render(self, template_name: str, **context) -> str:
        return self._jinja.get_template(template_name).render(brand=self._brand, **context)

    def _authorization(self) -> str:
        token = self._settings.zepto_api_token
        return token if token.startswith(_TOKEN_SCHEME) else _TOKEN_SCHEME + token

    async def _deliver(self, message: OutgoingEmail) -> bool:
        if not self._settings.zepto_api_token:
            log.error("email_send_skipped", reason="token_not_configured")
            return False

        payload = message.as_payload(self._settings.zepto_from_email, self._brand)
        headers = {
            "Authorization": self._authorization(),
            "Content-Type": "application/json",
        }
        try:
            response = await self._http.post(_ZEPTO_API_URL, json=payload, headers=headers)
        except Exception as e:
            log.error(
                "email_send_error",
                to_email=message.to_email,
                subject=message.subject,
                error=str(e),
                error_type=type(e).__name__,
            )
            return False

        if response.status_code not in _ACCEPTED_STATUSES:
            log.error(
                "email_rejected",
                to_email=message.to_email,
                subject=message.subject,
                status_code=response.status_code,
                response=response.text[:200],
            )
            return False
        log.info("email_sent", to_email=message.to_email, subject=message.subject)
        return True

    async def send_otp_email(
        self, email: str, user_name: Optional[str], otp_code: str
    ) -> bool:
        return await self._deliver(
            OutgoingEmail(
                to_email=email,
                to_name=user_name,
                subject=f"{self._brand} - Email Verification Code",
                html_body=self._render(
                    "otp.html",
                    otp_code=otp_code,
                    user_name=user_name,
                    ttl_minutes=self._otp_ttl_minutes,
                ),
                text_body=_plain_text(
                    user_name,
                    f"Your email verification code is: {otp_code}",
                    f"This code will expire in {self._otp_ttl_minutes} minutes.",
                    "If you didn't request this code, please ignore this email.",
                ),
            )
        )

    async def send_welcome_email(self, email: str, user_name: Optional[str]) -> bool:
        login_url = f"{self._settings.frontend_url.rstrip('/')}/login"
        return await self._deliver(
            OutgoingEmail(
                to_email=email,
                to_name=user_name,
                subject=f"Welcome to {self._brand}!",
                html_body=self._render(
                    "welcome.html", user_name=user_name, login_url=login_url
                ),
                text_body=_plain_text(
                    user_name,
                    "Your email has been successfully verified.",
                    f"You can now log in: {login_url}",
                ),
            )
        )

    async def send_password_reset_email(
        self, email: str, user_name: Optional[str], reset_token: str
    ) -> bool:
        reset_url = build_reset_url(self._settings.frontend_url, reset_token)
        return await self._deliver(
            OutgoingEmail(
                to_email=email,
                to_name=user_name,
                subject=f"{self._brand} - Password Reset Request",
                html_body=self._render(
                    "password_reset.html",
                    reset_url=reset_url,
                    user_name=user_name,
                    ttl_minutes=self._reset_ttl_minutes,
                ),
                text_body=_plain_text(
                    user_name,
                    "We received a request to reset your password.",
                    f"Open the link below to choose a new one:\n{reset_url}",
                    f"This link will expire in {self._reset_ttl_minutes} minutes.",
                    "If you didn't request a password reset, please ignore this email.",
                ),
            )
        )
