"""In-process AccountStore.

Used when MONGODB_URI is not configured and throughout the test suite.
Mirrors the MongoDB repository's contract, including the unique email key and
the version check on save, and hands out deep copies so callers cannot mutate
stored state without going through save().
"""

from __future__ import annotations

import asyncio
from typing import Optional

from bson import ObjectId

from repositories.errors import DuplicateAccountError, StaleAccountError
from schemas.models.account import AccountDoc
from shared.datetime_utils import utc_now
from shared.validators import normalize_email


class InMemoryAccountRepository:
    def __init__(self) -> None:
        self._by_id: dict[str, AccountDoc] = {}
        self._lock = asyncio.Lock()

    async def ensure_indexes(self) -> None:
        return None

    def _find(self, **criteria) -> Optional[AccountDoc]:
        for account in self._by_id.values():
            if all(getattr(account, k) == v for k, v in criteria.items()):
                return account.model_copy(deep=True)
        return None

    async def find_by_email(self, email: str) -> Optional[AccountDoc]:
        return self._find(email=normalize_email(email))

    async def find_by_id(self, account_id: str) -> Optional[AccountDoc]:
        account = self._by_id.get(str(account_id))
        return account.model_copy(deep=True) if account else None

    async def find_by_reset_token_hash(self, token_hash: str) -> Optional[AccountDoc]:
        if not token_hash:
            return None
        return self._find(password_reset_token_hash=token_hash)

    async def exists_by_email(self, email: str) -> bool:
        return self._find(email=normalize_email(email)) is not None

    async def save(self, account: AccountDoc) -> AccountDoc:
        async with self._lock:
            now = utc_now()
            account.email = normalize_email(account.email)
            account.updated_at = now

            if account.id is None:
                if self._find(email=account.email) is not None:
                    raise DuplicateAccountError(account.email)
                account.id = ObjectId()
                account.created_at = account.created_at or now
                account.version = 1
            else:
                stored = self._by_id.get(str(account.id))
                if stored is None or stored.version != account.version:
                    raise StaleAccountError(str(account.id), account.version)
                account.version += 1

            self._by_id[str(account.id)] = account.model_copy(deep=True)
            return account

    async def mark_email_verified(self, account_id) -> Optional[AccountDoc]:
        async with self._lock:
            stored = self._by_id.get(str(account_id))
            if stored is None:
                return None
            stored.email_verified = True
            stored.updated_at = utc_now()
            stored.version += 1
            return stored.model_copy(deep=True)

    def __len__(self) -> int:
        return len(self._by_id)
