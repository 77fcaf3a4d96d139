"""Email address checks used at registration.

Format is a pure regex check. Domain reachability asks the email-validator
library for a deliverability verdict (MX / fallback A records). The DNS
lookup is synchronous, so it runs in a worker thread via asyncio.to_thread().
"""

import asyncio
import re
from typing import Protocol

from email_validator import EmailNotValidError, validate_email

from shared.logging import get_logger

log = get_logger(__name__)

EMAIL_PATTERN = re.compile(r"^[A-Za-z0-9+_.-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}$")


class EmailAddressChecker(Protocol):
    def check_format(self, email: str) -> bool: ...

    async def check_domain(self, email: str) -> bool: ...


class EmailAddressValidator:
    def __init__(self, check_deliverability: bool = True, timeout: int = 5) -> None:
        self._check_deliverability = check_deliverability
        self._timeout = timeout

    def check_format(self, email: str) -> bool:
        return bool(email) and EMAIL_PATTERN.match(email) is not None

    async def check_domain(self, email: str) -> bool:
        if not self._check_deliverability:
            return True
        try:
            await asyncio.to_thread(
                validate_email,
                email,
                check_deliverability=True,
                timeout=self._timeout,
            )
            return True
        except EmailNotValidError as e:
            log.info(
                "email_domain_rejected",
                domain=email.rsplit("@", 1)[-1],
                error=str(e),
            )
            return False
