"""Process-local OTP ledger.

Entries live in a dict keyed by normalised email and are lost on restart.
Suitable for a single instance; multi-instance deployments configure Redis
and get infrastructure/otp/redis_ledger.py instead.

Expired entries are dropped whenever a new code is issued, so codes that are
never submitted do not accumulate.

Validation order for a submitted code:
  1. no entry                      -> reject
  2. entry past its expiry         -> remove, reject
  3. attempts already at ceiling   -> remove, reject
  4. count the attempt, compare    -> on match remove and accept,
                                      otherwise keep the entry and reject
"""

import asyncio
from dataclasses import replace
from datetime import datetime, timedelta
from typing import Optional

from schemas.models.otp import OtpEntry
from shared.crypto import hash_token, token_matches
from shared.datetime_utils import Clock, utc_now
from shared.generators import generate_otp_code
from shared.logging import get_logger
from shared.validators import normalize_email

log = get_logger(__name__)


class InMemoryOtpLedger:
    def __init__(
        self,
        ttl_seconds: int = 600,
        max_attempts: int = 3,
        code_length: int = 6,
        clock: Clock = utc_now,
    ) -> None:
        self.ttl_seconds = ttl_seconds
        self.max_attempts = max_attempts
        self.code_length = code_length
        self._clock = clock
        self._entries: dict[str, OtpEntry] = {}
        self._lock = asyncio.Lock()

    def _purge_expired(self, now: datetime) -> None:
        # caller holds self._lock
        expired = [k for k, entry in self._entries.items() if entry.is_expired(now)]
        for key in expired:
            del self._entries[key]
        if expired:
            log.debug("otp_entries_purged", count=len(expired))

    async def issue(self, email: str) -> str:
        key = normalize_email(email)
        code = generate_otp_code(self.code_length)
        now = self._clock()
        async with self._lock:
            self._purge_expired(now)
            self._entries[key] = OtpEntry(
                email=key,
                code_hash=hash_token(code),
                expires_at=now + timedelta(seconds=self.ttl_seconds),
                issued_at=now,
            )
        log.info("otp_issued", email=key, ttl_seconds=self.ttl_seconds)
        return code

    async def validate(self, email: str, code: str) -> bool:
        key = normalize_email(email)
        async with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                log.warning("otp_rejected", email=key, reason="not_found")
                return False

            if entry.is_expired(self._clock()):
                del self._entries[key]
                log.warning("otp_rejected", email=key, reason="expired")
                return False

            if entry.attempts >= self.max_attempts:
                del self._entries[key]
                log.warning("otp_rejected", email=key, reason="max_attempts")
                return False

            entry.attempts += 1
            if token_matches(code or "", entry.code_hash):
                del self._entries[key]
                log.info("otp_accepted", email=key, attempts=entry.attempts)
                return True

            log.warning(
                "otp_rejected", email=key, reason="mismatch", attempts=entry.attempts
            )
            return False

    async def clear(self, email: str) -> None:
        async with self._lock:
            self._entries.pop(normalize_email(email), None)

    async def peek(self, email: str) -> Optional[OtpEntry]:
        entry = self._entries.get(normalize_email(email))
        return replace(entry) if entry else None

    def __len__(self) -> int:
        return len(self._entries)
