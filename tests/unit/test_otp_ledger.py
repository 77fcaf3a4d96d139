"""Unit tests for the OTP ledgers (in-memory and Redis)."""

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from infrastructure.otp.memory_ledger import InMemoryOtpLedger
from infrastructure.otp.redis_ledger import RedisOtpLedger
from shared.crypto import hash_token

T0 = datetime(2025, 3, 1, 9, 0, tzinfo=timezone.utc)


@pytest.fixture
def ledger(clock):
    return InMemoryOtpLedger(ttl_seconds=600, max_attempts=3, clock=clock)


# ── InMemoryOtpLedger ─────────────────────────────────────────────────────────


class TestInMemoryIssue:
    async def test_returns_numeric_code(self, ledger):
        code = await ledger.issue("a@x.com")
        assert len(code) == 6 and code.isdigit()

    async def test_stores_hash_not_code(self, ledger):
        code = await ledger.issue("a@x.com")
        entry = await ledger.peek("a@x.com")
        assert entry.code_hash == hash_token(code)
        assert entry.attempts == 0
        assert entry.expires_at == T0 + timedelta(seconds=600)

    async def test_new_code_supersedes_old(self, ledger):
        first = await ledger.issue("a@x.com")
        second = await ledger.issue("a@x.com")
        assert len(ledger) == 1
        if first != second:
            assert await ledger.validate("a@x.com", first) is False
        assert await ledger.validate("a@x.com", second) is True

    async def test_email_key_is_case_insensitive(self, ledger):
        code = await ledger.issue("A@X.com ")
        assert await ledger.validate("a@x.com", code) is True

    async def test_issue_drops_expired_entries(self, ledger, clock):
        await ledger.issue("stale@x.com")
        clock.advance(seconds=300)
        await ledger.issue("live@x.com")
        clock.advance(seconds=301)
        await ledger.issue("new@x.com")
        assert len(ledger) == 2
        assert await ledger.peek("stale@x.com") is None
        assert await ledger.peek("live@x.com") is not None


class TestInMemoryValidate:
    async def test_correct_code_accepted_once(self, ledger):
        code = await ledger.issue("a@x.com")
        assert await ledger.validate("a@x.com", code) is True
        assert await ledger.validate("a@x.com", code) is False
        assert await ledger.peek("a@x.com") is None

    async def test_unknown_email_rejected(self, ledger):
        assert await ledger.validate("nobody@x.com", "123456") is False

    async def test_mismatch_counts_attempt_and_keeps_entry(self, ledger):
        code = await ledger.issue("a@x.com")
        wrong = "000000" if code != "000000" else "111111"
        assert await ledger.validate("a@x.com", wrong) is False
        entry = await ledger.peek("a@x.com")
        assert entry is not None
        assert entry.attempts == 1

    async def test_exhausted_after_three_wrong_attempts(self, ledger):
        code = await ledger.issue("a@x.com")
        wrong = "000000" if code != "000000" else "111111"
        for _ in range(3):
            assert await ledger.validate("a@x.com", wrong) is False
        assert (await ledger.peek("a@x.com")).attempts == 3
        # fourth submission carries the right code but the ceiling was reached
        assert await ledger.validate("a@x.com", code) is False
        assert await ledger.peek("a@x.com") is None

    async def test_expired_entry_removed(self, ledger, clock):
        code = await ledger.issue("a@x.com")
        clock.advance(seconds=601)
        assert await ledger.validate("a@x.com", code) is False
        assert await ledger.peek("a@x.com") is None

    async def test_valid_at_exact_expiry(self, ledger, clock):
        code = await ledger.issue("a@x.com")
        clock.advance(seconds=600)
        assert await ledger.validate("a@x.com", code) is True

    async def test_clear(self, ledger):
        await ledger.issue("a@x.com")
        await ledger.clear("a@x.com")
        assert len(ledger) == 0


# ── RedisOtpLedger ────────────────────────────────────────────────────────────


def _fake_redis(eval_returns=1):
    r = AsyncMock()
    r.eval.return_value = eval_returns
    r.delete.return_value = 1
    r.hgetall.return_value = {}
    return r


class TestRedisOtpLedger:
    async def test_issue_runs_script_with_hash_and_ttl(self, clock):
        redis = _fake_redis()
        ledger = RedisOtpLedger(redis, ttl_seconds=600, clock=clock)
        code = await ledger.issue("A@X.com")

        args = redis.eval.call_args.args
        assert args[1] == 1
        assert args[2] == "otp:a@x.com"
        assert args[3] == hash_token(code)
        assert args[4] == (T0 + timedelta(seconds=600)).timestamp()
        assert args[6] == 600

    async def test_validate_accepted(self, clock):
        redis = _fake_redis(eval_returns=1)
        ledger = RedisOtpLedger(redis, max_attempts=3, clock=clock)
        assert await ledger.validate("a@x.com", "123456") is True

        args = redis.eval.call_args.args
        assert args[3] == hash_token("123456")
        assert args[4] == T0.timestamp()
        assert args[5] == 3

    @pytest.mark.parametrize("outcome", [0, -1, -2], ids=["mismatch", "expired", "exhausted"])
    async def test_validate_rejected(self, clock, outcome):
        ledger = RedisOtpLedger(_fake_redis(eval_returns=outcome), clock=clock)
        assert await ledger.validate("a@x.com", "123456") is False

    async def test_redis_error_propagates(self, clock):
        redis = _fake_redis()
        redis.eval.side_effect = RedisConnectionError("down")
        ledger = RedisOtpLedger(redis, clock=clock)
        with pytest.raises(RedisConnectionError):
            await ledger.validate("a@x.com", "123456")

    async def test_key_prefix(self, clock):
        redis = _fake_redis()
        ledger = RedisOtpLedger(redis, key_prefix="talentiq:otp", clock=clock)
        await ledger.clear("a@x.com")
        redis.delete.assert_awaited_once_with("talentiq:otp:a@x.com")

    async def test_peek_missing(self, clock):
        ledger = RedisOtpLedger(_fake_redis(), clock=clock)
        assert await ledger.peek("a@x.com") is None

    async def test_peek_parses_hash(self, clock):
        redis = _fake_redis()
        redis.hgetall.return_value = {
            "code_hash": "abc",
            "expires_at": str(T0.timestamp() + 600),
            "issued_at": str(T0.timestamp()),
            "attempts": "2",
        }
        entry = await RedisOtpLedger(redis, clock=clock).peek("a@x.com")
        assert entry.code_hash == "abc"
        assert entry.attempts == 2
        assert entry.issued_at == T0
        assert entry.expires_at == T0 + timedelta(seconds=600)
