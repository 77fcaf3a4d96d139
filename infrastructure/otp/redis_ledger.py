"""Redis-backed OTP ledger.

One hash per email at ``{prefix}:{email}`` holding code_hash, expires_at
(epoch seconds), issued_at and attempts. The key also carries a Redis TTL so
abandoned entries disappear on their own.

Issue and validate each run as a single Lua script, so two instances
validating the same email at once cannot both count the same attempt or both
accept the same code.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from schemas.models.otp import OtpEntry
from shared.crypto import hash_token
from shared.datetime_utils import Clock, utc_now
from shared.generators import generate_otp_code
from shared.logging import get_logger
from shared.validators import normalize_email

log = get_logger(__name__)

_ISSUE_SCRIPT = """
redis.call('DEL', KEYS[1])
redis.call('HSET', KEYS[1],
    'code_hash', ARGV[1], 'expires_at', ARGV[2], 'issued_at', ARGV[3], 'attempts', 0)
redis.call('EXPIRE', KEYS[1], ARGV[4])
return 1
"""

# 1 accepted, 0 missing or mismatch, -1 expired, -2 attempts exhausted
_VALIDATE_SCRIPT = """
local entry = redis.call('HMGET', KEYS[1], 'code_hash', 'expires_at', 'attempts')
if not entry[1] then
    return 0
end
if tonumber(ARGV[2]) > tonumber(entry[2]) then
    redis.call('DEL', KEYS[1])
    return -1
end
if tonumber(entry[3]) >= tonumber(ARGV[3]) then
    redis.call('DEL', KEYS[1])
    return -2
end
redis.call('HINCRBY', KEYS[1], 'attempts', 1)
if entry[1] == ARGV[1] then
    redis.call('DEL', KEYS[1])
    return 1
end
return 0
"""

_REJECT_REASONS = {0: "not_found_or_mismatch", -1: "expired", -2: "max_attempts"}


class RedisOtpLedger:
    def __init__(
        self,
        redis_client: aioredis.Redis,
        ttl_seconds: int = 600,
        max_attempts: int = 3,
        code_length: int = 6,
        key_prefix: str = "otp",
        clock: Clock = utc_now,
    ) -> None:
        self._redis = redis_client
        self.ttl_seconds = ttl_seconds
        self.max_attempts = max_attempts
        self.code_length = code_length
        self._prefix = key_prefix
        self._clock = clock

    def _key(self, email: str) -> str:
        return f"{self._prefix}:{normalize_email(email)}"

    async def issue(self, email: str) -> str:
        code = generate_otp_code(self.code_length)
        now = self._clock()
        expires_at = now + timedelta(seconds=self.ttl_seconds)
        try:
            await self._redis.eval(
                _ISSUE_SCRIPT,
                1,
                self._key(email),
                hash_token(code),
                expires_at.timestamp(),
                now.timestamp(),
                self.ttl_seconds,
            )
        except RedisError as e:
            log.error(
                "otp_issue_error", error=str(e), error_type=type(e).__name__
            )
            raise
        log.info("otp_issued", email=normalize_email(email), ttl_seconds=self.ttl_seconds)
        return code

    async def validate(self, email: str, code: str) -> bool:
        try:
            outcome = await self._redis.eval(
                _VALIDATE_SCRIPT,
                1,
                self._key(email),
                hash_token(code or ""),
                self._clock().timestamp(),
                self.max_attempts,
            )
        except RedisError as e:
            log.error(
                "otp_validate_error", error=str(e), error_type=type(e).__name__
            )
            raise
        outcome = int(outcome)
        if outcome == 1:
            log.info("otp_accepted", email=normalize_email(email))
            return True
        log.warning(
            "otp_rejected",
            email=normalize_email(email),
            reason=_REJECT_REASONS.get(outcome, "unknown"),
        )
        return False

    async def clear(self, email: str) -> None:
        await self._redis.delete(self._key(email))

    async def peek(self, email: str) -> Optional[OtpEntry]:
        raw = await self._redis.hgetall(self._key(email))
        if not raw:
            return None
        issued_at = raw.get("issued_at")
        return OtpEntry(
            email=normalize_email(email),
            code_hash=raw["code_hash"],
            expires_at=datetime.fromtimestamp(float(raw["expires_at"]), tz=timezone.utc),
            attempts=int(raw.get("attempts", 0)),
            issued_at=(
                datetime.fromtimestamp(float(issued_at), tz=timezone.utc)
                if issued_at
                else None
            ),
        )
